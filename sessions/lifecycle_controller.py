"""
Case Lifecycle Controller

Owns the stage of the active case and everything scoped to it: the Case, its
TurnHistory, the TurnEngine and the final Evaluation.

    SELECTION -> PRE_TRIAL -> TRIAL -> END -> APPEAL

No stage may be skipped or reversed; reset() returns to SELECTION from
anywhere and discards the case. Stage changes reach observers synchronously.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Optional, Sequence

from config import get_area_name, get_procedure_for_area
from constants import COUNTDOWN_TICK_SECONDS, ORAL_TURN_SECONDS, SUCCESS_THRESHOLD
from evaluation import (
    apply_progression,
    determine_resolution,
    fallback_evaluation,
    select_closing_record,
    tier_for,
)
from exceptions import (
    DatabaseError,
    GenerationError,
    RoundInProgressError,
    StageTransitionError,
    UnknownLegalAreaError,
    ValidationError,
)
from guided_cases import get_guided_case
from logging_config import StructuredLoggerAdapter
from metrics import record_case_started, record_evaluation
from sessions.turn_engine import TurnEngine
from turn_history import TurnHistory, TurnRecord

if TYPE_CHECKING:
    from case_model import Case, ProcedureKind
    from content_generator import ContentGenerator
    from evaluation import Evaluation
    from player_memory import SessionContext

logger = logging.getLogger(__name__)


class Stage(str, Enum):
    SELECTION = "selection"
    PRE_TRIAL = "pre_trial"
    TRIAL = "trial"
    END = "end"
    APPEAL = "appeal"  # Placeholder: leaves only through reset()


_TRANSITIONS: dict[Stage, tuple[Stage, ...]] = {
    Stage.SELECTION: (Stage.PRE_TRIAL,),
    Stage.PRE_TRIAL: (Stage.TRIAL,),
    Stage.TRIAL: (Stage.END,),
    Stage.END: (Stage.APPEAL,),
    Stage.APPEAL: (),
}

StageObserver = Callable[[Stage, Stage], None]

LISTENER_EVENTS = ("record", "revert", "tick", "evaluation", "error")


class CaseLifecycleController:
    """One case at a time for one player."""

    def __init__(
        self,
        generator: ContentGenerator,
        context: SessionContext,
        success_threshold: int = SUCCESS_THRESHOLD,
        countdown_seconds: int = ORAL_TURN_SECONDS,
        tick_seconds: float = COUNTDOWN_TICK_SECONDS,
    ) -> None:
        self.generator = generator
        self.context = context
        self.success_threshold = success_threshold
        self.countdown_seconds = countdown_seconds
        self.tick_seconds = tick_seconds

        self.stage = Stage.SELECTION
        self.case: Optional[Case] = None
        self.history = TurnHistory()
        self.engine: Optional[TurnEngine] = None
        self.evaluation: Optional[Evaluation] = None
        self.last_error: Optional[str] = None

        self._observers: list[StageObserver] = []
        self._listeners: dict[str, list[Callable[[Any], None]]] = {event: [] for event in LISTENER_EVENTS}
        self._selecting = False
        self._token = 0  # Bumped by reset(); async work from older tokens is discarded
        self._conclusion_task: Optional[asyncio.Task] = None
        self._progression_applied = False

        self.log = StructuredLoggerAdapter(logger, {"player_id": context.player_id})

    # === OBSERVERS ===

    def add_observer(self, callback: StageObserver) -> None:
        """Register ``callback(old_stage, new_stage)``."""
        self._observers.append(callback)

    def add_listener(self, event: str, callback: Callable[[Any], None]) -> None:
        """
        Register a callback for case events.

        Events: "record" (TurnRecord), "revert" (None), "tick" (remaining
        time units), "evaluation" (Evaluation), "error" (message).
        """
        if event not in self._listeners:
            raise ValueError(f"Unknown event: {event}")
        self._listeners[event].append(callback)

    def _emit(self, event: str, payload: Any) -> None:
        for callback in list(self._listeners[event]):
            try:
                callback(payload)
            except Exception:
                logger.exception("[Lifecycle] %s listener failed", event)

    def publish_record(self, record: TurnRecord) -> None:
        self._emit("record", record)

    def publish_revert(self) -> None:
        self._emit("revert", None)

    def publish_tick(self, remaining: int) -> None:
        self._emit("tick", remaining)

    def record_error(self, message: str, exc: Optional[BaseException] = None) -> None:
        """Store a short, human-readable message for the player."""
        self.last_error = message
        self.log.warning_event("recoverable_error", message, stage=self.stage.value, error=str(exc) if exc else None)
        self._emit("error", message)

    def clear_error(self) -> None:
        self.last_error = None

    def _transition(self, target: Stage) -> None:
        if target not in _TRANSITIONS[self.stage]:
            raise StageTransitionError(self.stage.value, target.value)
        self._set_stage(target)

    def _set_stage(self, target: Stage) -> None:
        old, self.stage = self.stage, target
        self.log.info_event("stage_changed", f"{old.value} -> {target.value}", stage=target.value)
        for callback in list(self._observers):
            try:
                callback(old, target)
            except Exception:
                logger.exception("[Lifecycle] Stage observer failed")

    # === SELECTION ===

    async def select_case(self, area: str, procedure_kind: Optional[ProcedureKind] = None) -> Optional[Case]:
        """
        Generate a case at the player's current difficulty tier and enter PRE_TRIAL.

        ``procedure_kind`` defaults to the one configured for ``area``.
        Returns None if the controller was reset while generating.

        Raises:
            StageTransitionError: Not in SELECTION
            UnknownLegalAreaError: Unconfigured area without an explicit procedure kind
            GenerationError: Case generation failed; the stage stays SELECTION
        """
        if self.stage is not Stage.SELECTION:
            raise StageTransitionError(self.stage.value, Stage.PRE_TRIAL.value)
        if self._selecting:
            raise RoundInProgressError()

        try:
            area_name = get_area_name(area)
            if procedure_kind is None:
                procedure_kind = get_procedure_for_area(area)
        except UnknownLegalAreaError:
            if procedure_kind is None:
                raise
            area_name = area

        try:
            completed = self.context.load_progression()
        except DatabaseError as e:
            self.record_error("Your progress could not be loaded.", e)
            raise
        tier = tier_for(completed)

        self.clear_error()
        self._selecting = True
        token = self._token
        try:
            case = await self.generator.generate_case(area_name, procedure_kind, tier)
        except GenerationError as e:
            self.record_error("Could not generate a case. Please try again.", e)
            raise
        finally:
            self._selecting = False

        if token != self._token:
            logger.info("[Lifecycle] Discarding case generated before reset")
            return None

        self._start_case(case)
        return case

    def select_guided_case(self, case: Optional[Case] = None) -> Case:
        """Load a tutorial case without calling the generator."""
        if self.stage is not Stage.SELECTION:
            raise StageTransitionError(self.stage.value, Stage.PRE_TRIAL.value)
        if self._selecting:
            raise RoundInProgressError()
        case = case or get_guided_case()
        self._start_case(case)
        return case

    def _start_case(self, case: Case) -> None:
        self.case = case
        self.history = TurnHistory()
        self.evaluation = None
        self._conclusion_task = None
        self._progression_applied = False
        self.clear_error()
        self.engine = TurnEngine(
            controller=self,
            case=case,
            generator=self.generator,
            history=self.history,
            countdown_seconds=self.countdown_seconds,
            tick_seconds=self.tick_seconds,
        )
        self.log.bind(case_id=case.id, procedure=case.procedure.value)
        record_case_started(case.area, case.procedure.value)
        self._transition(Stage.PRE_TRIAL)

    # === PRE-TRIAL / TRIAL ===

    async def complete_pre_trial(self, initial_history: Sequence[TurnRecord]) -> None:
        """
        Enter TRIAL with the records produced by drafting.

        Raises:
            StageTransitionError: Not in PRE_TRIAL
            ValidationError: ``initial_history`` is empty
        """
        if self.stage is not Stage.PRE_TRIAL:
            raise StageTransitionError(self.stage.value, Stage.TRIAL.value)
        if not initial_history:
            raise ValidationError("The trial cannot start without an opening record.")

        for record in initial_history:
            self.history.append(record)
            self.publish_record(record)
        self._transition(Stage.TRIAL)
        await self.engine.begin_trial()

    async def conclude_trial(self) -> Evaluation:
        """
        End the trial and evaluate it.

        Idempotent: in END (or APPEAL) the stored evaluation is returned and
        nothing else happens. A failed evaluation call yields the zero-score
        fallback, so this never fails once the trial is over.

        Raises:
            StageTransitionError: Not in TRIAL, END or APPEAL
            RoundInProgressError: A turn is still being generated
        """
        if self._conclusion_task is not None:
            return await asyncio.shield(self._conclusion_task)
        if self.stage is not Stage.TRIAL:
            raise StageTransitionError(self.stage.value, Stage.END.value)
        if self.engine is not None and self.engine.in_flight:
            raise RoundInProgressError()
        if not self.history:
            raise ValidationError("There is nothing to evaluate yet.")

        self.engine.stop()
        self._transition(Stage.END)
        self._conclusion_task = asyncio.ensure_future(self._evaluate(self._token))
        return await asyncio.shield(self._conclusion_task)

    async def _evaluate(self, token: int) -> Evaluation:
        case = self.case
        resolution = determine_resolution(self.history)
        closing = select_closing_record(self.history, resolution)
        self.log.info_event("evaluation_requested", "Evaluating case", resolution=resolution.value)

        try:
            evaluation = await self.generator.evaluate(
                self.history, case.objective, closing=closing, resolution=resolution
            )
        except GenerationError as e:
            self.record_error("The evaluation could not be completed. A substitute score was recorded.", e)
            evaluation = fallback_evaluation(str(e))
        except Exception as e:
            logger.error("[Lifecycle] Evaluation failed unexpectedly: %s", e, exc_info=True)
            self.record_error("The evaluation could not be completed. A substitute score was recorded.", e)
            evaluation = fallback_evaluation(str(e))

        if token != self._token:
            return evaluation

        self.evaluation = evaluation
        counted = False
        if not self._progression_applied:
            self._progression_applied = True
            try:
                counted = apply_progression(self.context, case, evaluation, self.success_threshold)
            except DatabaseError as e:
                self.record_error("Your progress could not be saved.", e)
                counted = True  # incremented in memory, only the save failed
        record_evaluation(evaluation.score, counted)

        try:
            self.context.record_completed_case(case, evaluation)
        except DatabaseError as e:
            self.log.error_event("history_not_saved", str(e))

        self.log.info_event(
            "case_evaluated",
            f"Score {evaluation.score}",
            score=evaluation.score,
            counted=counted,
            fallback=evaluation.is_fallback,
        )
        self._emit("evaluation", evaluation)
        return evaluation

    # === END ===

    def open_appeal(self) -> None:
        self._transition(Stage.APPEAL)

    def reset(self) -> None:
        """Back to SELECTION from any stage, discarding the case."""
        self._token += 1
        if self.engine is not None:
            self.engine.stop()
        if self._conclusion_task is not None and not self._conclusion_task.done():
            self._conclusion_task.cancel()

        self.case = None
        self.history = TurnHistory()
        self.engine = None
        self.evaluation = None
        self.last_error = None
        self._conclusion_task = None
        self._progression_applied = False
        self.log.unbind("case_id", "procedure")

        if self.stage is not Stage.SELECTION:
            self._set_stage(Stage.SELECTION)

    def snapshot(self) -> dict[str, Any]:
        """Serializable view of the controller for clients."""
        return {
            "stage": self.stage.value,
            "case": self.case.model_dump(mode="json") if self.case else None,
            "history": self.history.to_list(),
            "engine": self.engine.snapshot() if self.engine else None,
            "evaluation": self.evaluation.model_dump(mode="json") if self.evaluation else None,
            "last_error": self.last_error,
            "completed_cases": self.context.completed_cases,
            "next_tier": tier_for(self.context.completed_cases).value,
        }
