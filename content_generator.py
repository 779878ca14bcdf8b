"""
Content generator: the engine's only window onto the LLM.

The lifecycle controller and turn engine depend on the ``ContentGenerator``
protocol alone. ``LLMContentGenerator`` implements it over the
llm_prompt_core model wrappers; tests substitute an ``AsyncMock``.

Every operation raises ``GenerationError`` on any failure (network, service,
malformed reply), never a provider-specific exception.
"""

from __future__ import annotations

import asyncio
import logging
import math
from typing import TYPE_CHECKING, Any, Optional, Protocol

from pydantic import BaseModel, Field, model_validator
from pydantic import ValidationError as SchemaValidationError

from case_model import Case, DifficultyTier, ProcedureKind
from constants import (
    LLM_MAX_TOKENS_CASE,
    LLM_MAX_TOKENS_EVALUATION,
    LLM_MAX_TOKENS_TURN,
    LLM_PROVIDER,
    LLM_TEMPERATURE_CASE,
    LLM_TEMPERATURE_EVALUATION,
    LLM_TEMPERATURE_TURN,
)
from evaluation import Evaluation, Resolution
from exceptions import GenerationError, LLMResponseError
from llm_prompt_core.prompts.builder import PromptBuilder
from llm_prompt_core.utils import extract_json
from metrics import track_generation_error, track_llm_call
from turn_history import (
    ActionKind,
    ADRProposal,
    ADRProposalRecord,
    PlayerAction,
    RulingOrNarrative,
    Speaker,
    StageFeedback,
    TurnHistory,
    TurnRecord,
)

if TYPE_CHECKING:
    from llm_prompt_core.models.base import BaseLLMModel

logger = logging.getLogger(__name__)


class AdmissibilityResult(BaseModel):
    """
    Outcome of the pre-trial review of a written filing.

    ``admissible=False`` is the inadmissible-submission branch: a normal
    result, not an error.
    """

    admissible: bool
    analysis: str
    next_narrative: str = ""


class TurnContinuation(BaseModel):
    """The AI side's answer to one player action."""

    narrative: str
    concluded: bool = False
    feedback: Optional[StageFeedback] = None
    suggested_options: list[str] = Field(default_factory=list)
    speaker: Speaker = Speaker.JUDGE
    adr_proposal: Optional[ADRProposal] = None

    @model_validator(mode="after")
    def _normalise(self) -> TurnContinuation:
        if self.speaker not in (Speaker.JUDGE, Speaker.OPPONENT):
            raise ValueError(f"AI turns come from JUDGE or OPPONENT, not {self.speaker.value}")
        if self.adr_proposal is not None:
            if self.concluded:
                # A concluded trial has nothing left to settle
                self.adr_proposal = None
            else:
                self.speaker = Speaker.OPPONENT
        return self

    def to_record(self) -> TurnRecord:
        options = tuple(self.suggested_options)
        if self.adr_proposal is not None:
            return ADRProposalRecord(
                text=self.narrative,
                proposal=self.adr_proposal,
                feedback=self.feedback,
                options=options,
            )
        return RulingOrNarrative(
            speaker=self.speaker,
            text=self.narrative,
            is_final_ruling=self.concluded,
            feedback=self.feedback,
            options=options,
        )


class ContentGenerator(Protocol):
    async def generate_case(
        self, area: str, procedure_kind: ProcedureKind, difficulty: DifficultyTier
    ) -> Case: ...

    async def check_admissibility(self, case: Case, draft: str) -> AdmissibilityResult: ...

    async def advance_turn(
        self, case: Case, history: TurnHistory, latest_input: str
    ) -> TurnContinuation: ...

    async def evaluate(
        self,
        history: TurnHistory,
        objective: str,
        closing: Optional[TurnRecord] = None,
        resolution: Resolution = Resolution.EARLY_CONCLUSION,
    ) -> Evaluation: ...


def create_default_model(purpose: str, provider: str = LLM_PROVIDER) -> BaseLLMModel:
    """
    Build the model used for one kind of call.

    Args:
        purpose: "case", "turn" or "evaluation"
        provider: "gemini" or "anthropic"
    """
    settings = {
        "case": (LLM_TEMPERATURE_CASE, LLM_MAX_TOKENS_CASE),
        "turn": (LLM_TEMPERATURE_TURN, LLM_MAX_TOKENS_TURN),
        "evaluation": (LLM_TEMPERATURE_EVALUATION, LLM_MAX_TOKENS_EVALUATION),
    }
    if purpose not in settings:
        raise ValueError(f"Unknown model purpose: {purpose}")
    temperature, max_tokens = settings[purpose]

    if provider == "gemini":
        from llm_prompt_core.models.gemini import GeminiFlash25NoThinking, GeminiPro25

        model_class = GeminiFlash25NoThinking if purpose == "turn" else GeminiPro25
        return model_class(temperature=temperature, max_tokens=max_tokens, json_mode=True)

    if provider == "anthropic":
        from llm_prompt_core.models.anthropic import ClaudeHaikuModel, ClaudeSonnet4Model

        model_class = ClaudeHaikuModel if purpose == "turn" else ClaudeSonnet4Model
        return model_class(
            temperature=temperature,
            max_tokens=max_tokens,
            system_prompt="Reply with a single JSON object and nothing else.",
        )

    raise ValueError(f"Unknown LLM provider: {provider}")


class LLMContentGenerator:
    """ContentGenerator backed by LangChain model wrappers."""

    def __init__(
        self,
        case_model: BaseLLMModel | None = None,
        turn_model: BaseLLMModel | None = None,
        evaluation_model: BaseLLMModel | None = None,
        provider: str = LLM_PROVIDER,
    ) -> None:
        self.case_model = case_model or create_default_model("case", provider)
        self.turn_model = turn_model or create_default_model("turn", provider)
        self.evaluation_model = evaluation_model or create_default_model("evaluation", provider)
        logger.info(
            "Content generator ready (case=%s, turn=%s, evaluation=%s)",
            self.case_model.model_name,
            self.turn_model.model_name,
            self.evaluation_model.model_name,
        )

    async def _invoke_json(self, operation: str, model: BaseLLMModel, prompt: str) -> dict[str, Any]:
        """
        Run the blocking SDK call in the default executor and parse its JSON reply.

        Raises:
            GenerationError: The call itself failed
            LLMResponseError: The reply was empty or not a JSON object
        """
        loop = asyncio.get_event_loop()
        try:
            with track_llm_call(provider=model.provider, model=model.model_name):
                response = await loop.run_in_executor(None, lambda: model.invoke(prompt))
        except Exception as e:
            logger.error("[Generator] %s call failed: %s", operation, e)
            track_generation_error(operation)
            raise GenerationError(operation, str(e)) from e

        if not response or not response.strip():
            track_generation_error(operation)
            raise LLMResponseError(operation, "empty response")

        try:
            return extract_json(response)
        except ValueError as e:
            logger.warning("[Generator] %s returned unparseable reply: %.200s", operation, response)
            track_generation_error(operation)
            raise LLMResponseError(operation, str(e)) from e

    def _validate(self, operation: str, schema: type[BaseModel], data: dict[str, Any]) -> Any:
        try:
            return schema.model_validate(data)
        except SchemaValidationError as e:
            track_generation_error(operation)
            raise LLMResponseError(operation, f"reply did not match schema: {e.error_count()} error(s)") from e

    async def generate_case(
        self, area: str, procedure_kind: ProcedureKind, difficulty: DifficultyTier
    ) -> Case:
        prompt = PromptBuilder.build_case_prompt(area, procedure_kind.value, difficulty.value)
        data = await self._invoke_json("generate_case", self.case_model, prompt)

        data.pop("id", None)
        data.update(
            area=area,
            procedure=procedure_kind,
            difficulty=difficulty,
            is_guided=False,
            guided_steps=(),
        )
        case = self._validate("generate_case", Case, data)
        logger.info("[Generator] Generated case %s: %s", case.id, case.title)
        return case

    async def check_admissibility(self, case: Case, draft: str) -> AdmissibilityResult:
        prompt = PromptBuilder.build_admissibility_prompt(case.to_prompt_context(), draft)
        data = await self._invoke_json("check_admissibility", self.turn_model, prompt)
        return self._validate("check_admissibility", AdmissibilityResult, data)

    async def advance_turn(
        self, case: Case, history: TurnHistory, latest_input: str
    ) -> TurnContinuation:
        last = history.last
        if isinstance(last, PlayerAction) and last.kind in (ActionKind.ADR_REJECTION, ActionKind.ADR_COUNTER):
            proposal = last.proposal or _pending_proposal(history)
            latest_action = PromptBuilder.build_negotiation_action(
                kind=proposal.kind.value if proposal else "settlement",
                terms=latest_input or (proposal.terms if proposal else ""),
                countered=last.kind is ActionKind.ADR_COUNTER,
            )
        else:
            latest_action = PromptBuilder.build_latest_action(case.procedure.value, latest_input)

        prompt = PromptBuilder.build_turn_prompt(
            case_context=case.to_prompt_context(),
            procedure=case.procedure.value,
            history=history.transcript(),
            latest_action=latest_action,
        )
        data = await self._invoke_json("advance_turn", self.turn_model, prompt)
        continuation = self._validate("advance_turn", TurnContinuation, data)
        if not case.is_oral and continuation.suggested_options:
            continuation.suggested_options = []
        return continuation

    async def evaluate(
        self,
        history: TurnHistory,
        objective: str,
        closing: Optional[TurnRecord] = None,
        resolution: Resolution = Resolution.EARLY_CONCLUSION,
    ) -> Evaluation:
        prompt = PromptBuilder.build_evaluation_prompt(
            history=history.transcript(),
            objective=objective,
            resolution=resolution.value,
            closing=closing.text if closing is not None else None,
        )
        data = await self._invoke_json("evaluate", self.evaluation_model, prompt)

        try:
            score = float(data["score"])
        except (KeyError, TypeError, ValueError):
            pass  # left for schema validation to report
        else:
            if not math.isfinite(score):
                track_generation_error("evaluate")
                raise LLMResponseError("evaluate", f"score is not a finite number: {data['score']!r}")
            data["score"] = max(0, min(100, round(score)))
        return self._validate("evaluate", Evaluation, data)


def _pending_proposal(history: TurnHistory) -> Optional[ADRProposal]:
    record = history.last_from(Speaker.OPPONENT)
    if isinstance(record, ADRProposalRecord):
        return record.proposal
    return None
