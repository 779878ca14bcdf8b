"""
Tests for scoring helpers and difficulty progression.
"""

import os
import sys
from unittest.mock import Mock

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from case_model import DifficultyTier
from evaluation import (
    Evaluation,
    Resolution,
    apply_progression,
    determine_resolution,
    fallback_evaluation,
    is_success,
    select_closing_record,
    tier_for,
)
from turn_history import (
    ActionKind,
    ADRKind,
    ADRProposal,
    ADRProposalRecord,
    PlayerAction,
    RulingOrNarrative,
    Speaker,
    TurnHistory,
)


def _evaluation(score):
    return Evaluation(score=score, analysis="a", strengths="s", weaknesses="w", advice="d")


class TestTiers:
    @pytest.mark.parametrize("completed,tier", [
        (0, DifficultyTier.INTRODUCTORY),
        (1, DifficultyTier.INTRODUCTORY),
        (2, DifficultyTier.INTERMEDIATE),
        (4, DifficultyTier.INTERMEDIATE),
        (5, DifficultyTier.ADVANCED),
        (40, DifficultyTier.ADVANCED),
    ])
    def test_tier_for(self, completed, tier):
        assert tier_for(completed) is tier


class TestSuccess:
    def test_threshold_is_exclusive(self):
        assert not is_success(_evaluation(70))
        assert is_success(_evaluation(71))

    def test_custom_threshold(self):
        assert is_success(_evaluation(55), threshold=50)

    def test_score_bounds_enforced(self):
        with pytest.raises(ValueError):
            _evaluation(101)

    def test_fallback(self):
        fallback = fallback_evaluation("timeout")
        assert fallback.score == 0
        assert fallback.is_fallback
        assert "timeout" in fallback.analysis
        assert not is_success(fallback)


class TestResolution:
    proposal = ADRProposal(kind=ADRKind.MEDIATION, terms="Joint mediation session")

    def test_acceptance(self):
        history = TurnHistory()
        history.append(ADRProposalRecord(text="Shall we mediate?", proposal=self.proposal))
        history.append(PlayerAction(text="Accepted", submission="", kind=ActionKind.ADR_ACCEPTANCE, proposal=self.proposal))

        resolution = determine_resolution(history)
        assert resolution is Resolution.ADR_ACCEPTANCE
        closing = select_closing_record(history, resolution)
        assert closing.kind is ActionKind.ADR_ACCEPTANCE

    def test_final_ruling(self):
        history = TurnHistory()
        history.append(PlayerAction(text="Filing", submission="Claim", kind=ActionKind.FILING))
        history.append(RulingOrNarrative(speaker=Speaker.JUDGE, text="Judgment for the plaintiff.", is_final_ruling=True))

        resolution = determine_resolution(history)
        assert resolution is Resolution.RULING
        assert select_closing_record(history, resolution).text == "Judgment for the plaintiff."

    def test_early_conclusion_uses_last_court_record(self):
        history = TurnHistory()
        history.append(RulingOrNarrative(speaker=Speaker.JUDGE, text="Proceed."))
        history.append(RulingOrNarrative(speaker=Speaker.OPPONENT, text="We object."))
        history.append(PlayerAction(text="Filing", submission="Reply", kind=ActionKind.FILING))

        resolution = determine_resolution(history)
        assert resolution is Resolution.EARLY_CONCLUSION
        assert select_closing_record(history, resolution).text == "We object."

    def test_no_court_record(self):
        history = TurnHistory()
        history.append(PlayerAction(text="Filing", submission="Claim", kind=ActionKind.FILING))
        assert select_closing_record(history, determine_resolution(history)) is None


class TestApplyProgression:
    @pytest.fixture
    def context(self):
        context = Mock()
        context.completed_cases = 1
        return context

    def test_success_counts_and_saves(self, context, make_case):
        assert apply_progression(context, make_case(), _evaluation(85)) is True
        assert context.completed_cases == 2
        context.save_progression.assert_called_once()

    def test_threshold_score_does_not_count(self, context, make_case):
        assert apply_progression(context, make_case(), _evaluation(70)) is False
        assert context.completed_cases == 1
        context.save_progression.assert_not_called()

    def test_guided_case_never_counts(self, context, make_case):
        assert apply_progression(context, make_case(is_guided=True), _evaluation(99)) is False
        assert context.completed_cases == 1
