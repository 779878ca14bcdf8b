"""
Turn Engine Module

Drives a case one round at a time: the client interview and drafting before
trial, then the in-trial loop of player submission and AI response.

Written procedure has no clock. Oral procedure runs a RoundCountdown for
every "awaiting input" phase; when it expires the current draft is submitted
through the same path as a manual submission.

At most one generation call is outstanding per case. While an ADR proposal is
pending the engine hands control to the NegotiationProtocol and refuses
ordinary submissions.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import TYPE_CHECKING, Optional

from constants import (
    COUNTDOWN_TICK_SECONDS,
    ORAL_OPENING_MIN_LENGTH,
    ORAL_TURN_SECONDS,
    SUBMISSION_PREVIEW_LENGTH,
)
from exceptions import GenerationError, RoundInProgressError, ValidationError
from llm_prompt_core.utils import truncate
from metrics import record_round
from sessions.countdown import RoundCountdown
from sessions.negotiation import NegotiationProtocol
from turn_history import (
    ActionKind,
    ADRProposalRecord,
    PlayerAction,
    RulingOrNarrative,
    Speaker,
    StageFeedback,
    SystemNotice,
    TurnHistory,
)

if TYPE_CHECKING:
    from case_model import Case, GuidedStep
    from content_generator import AdmissibilityResult, ContentGenerator, TurnContinuation
    from sessions.lifecycle_controller import CaseLifecycleController

logger = logging.getLogger(__name__)


class RoundState(str, Enum):
    INTERVIEW = "interview"            # Pre-trial: reading the client interview
    DRAFTING = "drafting"              # Pre-trial: writing the filing / opening statement
    AWAITING_INPUT = "awaiting_input"  # Trial: the player's turn
    GENERATING = "generating"          # A generation call is outstanding
    AWAITING_RETRY = "awaiting_retry"  # The last call failed; resubmit or conclude
    NEGOTIATING = "negotiating"        # An ADR proposal is pending
    CONCLUDED = "concluded"


_SUBMITTABLE = (RoundState.AWAITING_INPUT, RoundState.AWAITING_RETRY)

# Unanswered records a revised submission may replace
_REVISABLE = (ActionKind.ORAL_ARGUMENT, ActionKind.FILING)

DEADLINE_NOTICE = "Time is up. Your argument was submitted as it stood."


class TurnEngine:
    """Round driver for one case. Created by the lifecycle controller."""

    def __init__(
        self,
        controller: CaseLifecycleController,
        case: Case,
        generator: ContentGenerator,
        history: TurnHistory,
        countdown_seconds: int = ORAL_TURN_SECONDS,
        tick_seconds: float = COUNTDOWN_TICK_SECONDS,
    ) -> None:
        self.controller = controller
        self.case = case
        self.generator = generator
        self.history = history

        self.state = RoundState.INTERVIEW if case.client_interview else RoundState.DRAFTING
        self.draft = ""
        self.admissibility_attempts = 0
        self.last_admissibility: Optional[AdmissibilityResult] = None
        self.turn_number = 0  # In-trial player submissions
        self.suggested_options: tuple[str, ...] = ()
        self.feedback: Optional[StageFeedback] = None

        self.negotiation = NegotiationProtocol(self)

        self._in_flight = False
        self._token = 0  # Bumped by stop(); results from older tokens are dropped
        self._unanswered: Optional[PlayerAction] = None
        self._unanswered_input = ""

        self.countdown: Optional[RoundCountdown] = None
        if case.is_oral:
            self.countdown = RoundCountdown(
                on_expire=self._on_countdown_expired,
                on_tick=controller.publish_tick,
                duration=countdown_seconds,
                tick_seconds=tick_seconds,
            )

    @property
    def procedure(self) -> str:
        return self.case.procedure.value

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    @property
    def time_remaining(self) -> Optional[int]:
        return self.countdown.remaining if self.countdown else None

    def _require(self, *states: RoundState) -> None:
        if self.state not in states:
            raise ValidationError(f"Not allowed while {self.state.value.replace('_', ' ')}.")

    def _require_idle(self) -> None:
        if self._in_flight:
            raise RoundInProgressError()

    def _append(self, record) -> None:
        self.history.append(record)
        self.controller.publish_record(record)

    # === PRE-TRIAL ===

    def acknowledge_interview(self) -> None:
        """Move from the client interview to drafting."""
        if self.state is RoundState.DRAFTING:
            return
        self._require(RoundState.INTERVIEW)
        self.state = RoundState.DRAFTING
        logger.info("[TurnEngine] Interview acknowledged, drafting %s", self.procedure)

    def update_draft(self, text: str) -> None:
        """Keep the player's in-progress text. Oral expiry submits exactly this buffer."""
        self._require(RoundState.DRAFTING, *_SUBMITTABLE)
        self.draft = text

    async def submit_draft(self, text: Optional[str] = None) -> Optional[AdmissibilityResult]:
        """
        Submit the pre-trial filing (written) or opening statement (oral).

        Written: returns the admissibility result; the trial starts only when
        it is admissible. Oral: validated locally, returns None, and the trial
        starts straight away.

        Raises:
            ValidationError: Empty filing or opening statement below the minimum length
            GenerationError: The admissibility check failed; drafting continues
        """
        self._require_idle()
        self._require(RoundState.DRAFTING)
        if text is not None:
            self.draft = text
        draft = self.draft

        if self.case.is_oral:
            if len(draft.strip()) < ORAL_OPENING_MIN_LENGTH:
                raise ValidationError(
                    f"Your opening statement must be at least {ORAL_OPENING_MIN_LENGTH} characters long."
                )
            opening = PlayerAction(
                text=f"Opening statement: {truncate(draft, SUBMISSION_PREVIEW_LENGTH)}",
                submission=draft,
                kind=ActionKind.OPENING_STATEMENT,
            )
            self.draft = ""
            await self.controller.complete_pre_trial([opening])
            return None

        if not draft.strip():
            raise ValidationError("The filing cannot be empty.")

        self.admissibility_attempts += 1
        self._in_flight = True
        try:
            result = await self.generator.check_admissibility(self.case, draft)
        except GenerationError as e:
            self.controller.record_error("The court could not review your filing. Please try again.", e)
            raise
        finally:
            self._in_flight = False

        self.last_admissibility = result
        if not result.admissible:
            logger.info(
                "[TurnEngine] Filing inadmissible (attempt %d)", self.admissibility_attempts
            )
            return result

        self.controller.clear_error()
        filing = PlayerAction(
            text=f"Filing submitted: {truncate(draft, SUBMISSION_PREVIEW_LENGTH)}",
            submission=draft,
            kind=ActionKind.FILING,
        )
        court = RulingOrNarrative(
            speaker=Speaker.JUDGE,
            text=result.next_narrative or result.analysis,
            feedback=StageFeedback(analysis=result.analysis),
        )
        self.draft = ""
        await self.controller.complete_pre_trial([filing, court])
        return result

    # === TRIAL LOOP ===

    async def begin_trial(self) -> None:
        """
        Enter the in-trial loop once the controller has moved to TRIAL.

        An unanswered opening record (the oral opening statement) is treated
        as an already-submitted round and answered first.
        """
        last = self.history.last
        if isinstance(last, PlayerAction):
            self._unanswered = last
            self._unanswered_input = last.submission
            try:
                await self._request_turn(last.submission)
            except GenerationError:
                logger.warning("[TurnEngine] Opening response failed, awaiting retry")
            return

        self.state = RoundState.AWAITING_INPUT
        self._start_countdown()

    async def submit(self, text: Optional[str] = None, forced: bool = False) -> Optional[TurnContinuation]:
        """
        Submit the player's action for this round.

        ``text`` defaults to the draft buffer. ``forced`` is the oral deadline
        path: blank input is accepted so the round always advances.

        In AWAITING_RETRY the same input re-requests the AI turn without a
        duplicate record; a revised input replaces the unanswered record.

        Raises:
            RoundInProgressError: A generation call is still outstanding
            ValidationError: Blank manual input, or no round open
            GenerationError: The AI turn failed; the round awaits retry
        """
        self._require_idle()
        if self.state is RoundState.NEGOTIATING:
            raise ValidationError("Accept, reject or counter the pending proposal first.")
        self._require(*_SUBMITTABLE)

        value = self.draft if text is None else text

        if self.state is RoundState.AWAITING_RETRY and self._unanswered is not None:
            revisable = self._unanswered.kind in _REVISABLE
            if value == self._unanswered_input or (forced and not revisable):
                self._stop_countdown()
                logger.info("[TurnEngine] Retrying round %d", self.turn_number)
                return await self._request_turn(self._unanswered_input)
            if not revisable:
                raise ValidationError("Retry the last response or conclude the trial.")

        if not value.strip() and not forced:
            if self.case.is_oral:
                raise ValidationError("You must present an argument to proceed.")
            raise ValidationError("The filing cannot be empty.")

        self._stop_countdown()

        if self.state is RoundState.AWAITING_RETRY and self._unanswered is not None:
            self.history.revert_last()
            self.controller.publish_revert()
        else:
            self.turn_number += 1

        if self.case.is_oral:
            label, kind = "Oral argument", ActionKind.ORAL_ARGUMENT
        else:
            label, kind = "Filing submitted", ActionKind.FILING
        preview = truncate(value, SUBMISSION_PREVIEW_LENGTH) or "(no argument presented)"
        action = PlayerAction(text=f"{label}: {preview}", submission=value, kind=kind)
        if forced:
            # Retries return above, so only the deadline path gets here
            self._append(SystemNotice(text=DEADLINE_NOTICE))
        self._append(action)
        self._unanswered = action
        self._unanswered_input = value
        return await self._request_turn(value)

    async def retry(self) -> Optional[TurnContinuation]:
        """Re-request the AI turn for the unanswered record."""
        self._require(RoundState.AWAITING_RETRY)
        return await self.submit(self._unanswered_input, forced=True)

    async def _request_turn(self, latest_input: str) -> Optional[TurnContinuation]:
        """
        Ask the generator for the next turn and apply it.

        Returns None when the engine was stopped while the call was out.
        """
        self._require_idle()
        self.state = RoundState.GENERATING
        self._in_flight = True
        token = self._token
        try:
            continuation = await self.generator.advance_turn(self.case, self.history, latest_input)
        except GenerationError as e:
            self._in_flight = False
            if token != self._token:
                return None
            self.state = RoundState.AWAITING_RETRY
            self.draft = latest_input
            record_round(self.procedure, "failed")
            self.controller.record_error(
                "The court could not continue the trial. You can try again or conclude the case.", e
            )
            self._start_countdown()
            raise
        self._in_flight = False

        if token != self._token:
            logger.info("[TurnEngine] Dropping response for a stopped round")
            return None

        self._unanswered = None
        self._unanswered_input = ""
        self.draft = ""
        self.feedback = continuation.feedback
        self.suggested_options = tuple(continuation.suggested_options)
        self.controller.clear_error()

        record = continuation.to_record()
        self._append(record)

        if continuation.concluded:
            self.state = RoundState.CONCLUDED
            record_round(self.procedure, "concluded")
            logger.info("[TurnEngine] Trial reached its natural conclusion")
            await self.controller.conclude_trial()
        elif isinstance(record, ADRProposalRecord):
            self.state = RoundState.NEGOTIATING
            record_round(self.procedure, "proposal")
            self.negotiation.open(record)
        else:
            self.state = RoundState.AWAITING_INPUT
            record_round(self.procedure, "answered")
            self._start_countdown()
        return continuation

    # === COUNTDOWN ===

    def _start_countdown(self) -> None:
        if self.countdown is not None:
            self.countdown.start()

    def _stop_countdown(self) -> None:
        if self.countdown is not None:
            self.countdown.cancel()

    async def _on_countdown_expired(self, generation: int) -> None:
        if self.countdown is None or generation != self.countdown.generation:
            return
        if self._in_flight or self.state not in _SUBMITTABLE:
            return
        logger.info("[TurnEngine] Time is up, submitting the current draft")
        try:
            await self.submit(forced=True)
        except (GenerationError, ValidationError) as e:
            logger.warning("[TurnEngine] Deadline submission failed: %s", e)

    # === MISC ===

    def current_guidance(self) -> Optional[GuidedStep]:
        """Tutorial hint for the current point of play, if the case has one."""
        if self.state in (RoundState.INTERVIEW, RoundState.DRAFTING):
            return self.case.guidance_for("pre-trial-drafting")
        if self.state in (*_SUBMITTABLE, RoundState.GENERATING):
            upcoming = self.turn_number if self.state is not RoundState.AWAITING_INPUT else self.turn_number + 1
            return self.case.guidance_for(f"trial-turn-{max(upcoming, 1)}")
        return None

    def stop(self) -> None:
        """Stop the clock and drop any outstanding response. Used on conclusion and reset."""
        self._token += 1
        self._stop_countdown()
        self.state = RoundState.CONCLUDED

    def snapshot(self) -> dict:
        return {
            "state": self.state.value,
            "draft": self.draft,
            "turn_number": self.turn_number,
            "admissibility_attempts": self.admissibility_attempts,
            "time_remaining": self.time_remaining,
            "clock_running": self.countdown.is_running if self.countdown else False,
            "suggested_options": list(self.suggested_options),
            "pending_proposal": (
                self.negotiation.pending.proposal.model_dump(mode="json")
                if self.negotiation.pending
                else None
            ),
        }
