"""
Negotiation Sub-Protocol

Entered when the opposing side's latest record carries an ADR proposal. The
player resolves it in exactly one way:

- accept: the case ends by agreement, straight to conclusion with no AI call
- reject: the trial resumes and the court takes the next turn
- counter: the trial resumes with the player's counter-terms on the table

Only one proposal can be pending. The turn engine never requests a new AI
turn while one is.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional

from constants import SUBMISSION_PREVIEW_LENGTH
from exceptions import NegotiationError, ValidationError
from llm_prompt_core.utils import truncate
from turn_history import ActionKind, ADRProposal, ADRProposalRecord, PlayerAction

if TYPE_CHECKING:
    from content_generator import TurnContinuation
    from evaluation import Evaluation
    from sessions.turn_engine import TurnEngine

logger = logging.getLogger(__name__)


class NegotiationProtocol:
    def __init__(self, engine: TurnEngine) -> None:
        self.engine = engine
        self.pending: Optional[ADRProposalRecord] = None

    @property
    def is_pending(self) -> bool:
        return self.pending is not None

    def open(self, record: ADRProposalRecord) -> None:
        if self.pending is not None:
            raise NegotiationError("A proposal is already pending resolution.")
        self.pending = record
        logger.info(
            "[Negotiation] %s proposed: %s",
            record.proposal.kind.value,
            truncate(record.proposal.terms, SUBMISSION_PREVIEW_LENGTH),
        )

    def _take_pending(self) -> ADRProposal:
        self.engine._require_idle()
        if self.pending is None:
            raise NegotiationError("There is no proposal to respond to.")
        proposal = self.pending.proposal
        self.pending = None
        return proposal

    async def accept(self) -> Evaluation:
        """Accept the pending proposal and conclude the case."""
        proposal = self._take_pending()
        self.engine._append(PlayerAction(
            text=f"Accepted the {proposal.kind.value} proposal: {proposal.terms}",
            submission="",
            kind=ActionKind.ADR_ACCEPTANCE,
            proposal=proposal,
        ))
        logger.info("[Negotiation] Accepted, concluding the case")
        return await self.engine.controller.conclude_trial()

    async def reject(self) -> Optional[TurnContinuation]:
        """Reject the pending proposal; the court takes the next turn."""
        proposal = self._take_pending()
        return await self._resume(PlayerAction(
            text=f"Rejected the {proposal.kind.value} proposal.",
            submission="",
            kind=ActionKind.ADR_REJECTION,
        ), "")

    async def counter(self, text: str) -> Optional[TurnContinuation]:
        """
        Reject the pending proposal with counter-terms of the same kind.

        Raises:
            ValidationError: Empty counter-offer; the proposal stays pending
        """
        if not text or not text.strip():
            raise ValidationError("A counter-offer needs terms.")
        proposal = self._take_pending()
        terms = text.strip()
        return await self._resume(PlayerAction(
            text=f"Countered the {proposal.kind.value} proposal: {truncate(terms, SUBMISSION_PREVIEW_LENGTH)}",
            submission=terms,
            kind=ActionKind.ADR_COUNTER,
            proposal=ADRProposal(kind=proposal.kind, terms=terms),
        ), terms)

    async def _resume(self, action: PlayerAction, latest_input: str) -> Optional[TurnContinuation]:
        engine = self.engine
        engine._append(action)
        engine._unanswered = action
        engine._unanswered_input = latest_input
        logger.info("[Negotiation] %s, resuming trial", action.kind.value)
        return await engine._request_turn(latest_input)
