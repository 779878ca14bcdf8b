"""
Evaluation & Progression

Scores a concluded case against the player's objective and turns the result
into difficulty progression for future cases.

The tier offered for the next case depends only on the progression counter:
introductory below TIER_INTERMEDIATE_AT successes, intermediate below
TIER_ADVANCED_AT, advanced after that.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import TYPE_CHECKING, Optional

from pydantic import BaseModel, ConfigDict, Field

from case_model import DifficultyTier
from constants import FALLBACK_SCORE, SUCCESS_THRESHOLD, TIER_ADVANCED_AT, TIER_INTERMEDIATE_AT
from turn_history import (
    ActionKind,
    PlayerAction,
    RulingOrNarrative,
    Speaker,
    TurnHistory,
    TurnRecord,
)

if TYPE_CHECKING:
    from case_model import Case
    from player_memory import SessionContext

logger = logging.getLogger(__name__)


class Resolution(str, Enum):
    """How the trial ended. Decides what the evaluator should judge."""

    RULING = "ruling"                   # Litigation outcome
    ADR_ACCEPTANCE = "adr_acceptance"   # Negotiation quality
    EARLY_CONCLUSION = "early_conclusion"


class Evaluation(BaseModel):
    model_config = ConfigDict(frozen=True)

    score: int = Field(ge=0, le=100)
    analysis: str
    strengths: str
    weaknesses: str
    advice: str
    is_fallback: bool = False


def fallback_evaluation(reason: str = "") -> Evaluation:
    """Zero-score evaluation used when the evaluator cannot be reached."""
    analysis = "The evaluation could not be completed, so no score was awarded."
    if reason:
        analysis = f"{analysis} ({reason})"
    return Evaluation(
        score=FALLBACK_SCORE,
        analysis=analysis,
        strengths="Your trial transcript has been preserved.",
        weaknesses="Not assessed.",
        advice="Start a new case to receive a full evaluation.",
        is_fallback=True,
    )


def tier_for(completed_cases: int) -> DifficultyTier:
    if completed_cases < TIER_INTERMEDIATE_AT:
        return DifficultyTier.INTRODUCTORY
    if completed_cases < TIER_ADVANCED_AT:
        return DifficultyTier.INTERMEDIATE
    return DifficultyTier.ADVANCED


def is_success(evaluation: Evaluation, threshold: int = SUCCESS_THRESHOLD) -> bool:
    return evaluation.score > threshold


def determine_resolution(history: TurnHistory) -> Resolution:
    last = history.last
    if isinstance(last, PlayerAction) and last.kind is ActionKind.ADR_ACCEPTANCE:
        return Resolution.ADR_ACCEPTANCE
    if isinstance(last, RulingOrNarrative) and last.is_final_ruling:
        return Resolution.RULING
    return Resolution.EARLY_CONCLUSION


def select_closing_record(history: TurnHistory, resolution: Resolution) -> Optional[TurnRecord]:
    """
    Pick the record that anchors the evaluation prompt.

    Settlements are anchored on the acceptance record; everything else on the
    last final ruling, or failing that the last word from the bench or the
    opposing side.
    """
    records = history.records()
    if resolution is Resolution.ADR_ACCEPTANCE:
        for record in reversed(records):
            if isinstance(record, PlayerAction) and record.kind is ActionKind.ADR_ACCEPTANCE:
                return record
    for record in reversed(records):
        if isinstance(record, RulingOrNarrative) and record.is_final_ruling:
            return record
    return history.last_from(Speaker.JUDGE, Speaker.OPPONENT)


def apply_progression(
    context: SessionContext,
    case: Case,
    evaluation: Evaluation,
    threshold: int = SUCCESS_THRESHOLD,
) -> bool:
    """
    Count a concluded case towards progression if it earned it.

    The caller guarantees this runs at most once per case. Returns True when
    the counter was incremented (and saved).
    """
    if not case.counts_for_progression:
        logger.info("[Progression] Guided case %s does not count", case.id)
        return False
    if not is_success(evaluation, threshold):
        logger.info("[Progression] Score %d did not exceed %d", evaluation.score, threshold)
        return False

    context.completed_cases += 1
    context.save_progression()
    logger.info(
        "[Progression] Case %s counted; %d completed, next tier %s",
        case.id,
        context.completed_cases,
        tier_for(context.completed_cases).value,
    )
    return True
