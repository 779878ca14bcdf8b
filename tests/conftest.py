"""
Shared fixtures for the engine tests.

The content generator is always an AsyncMock so no test touches a model.
Factories are exposed as fixtures so test modules don't import this file.
"""

import os
import sys
from unittest.mock import AsyncMock

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from case_model import Case, DifficultyTier, Party, ProcedureKind
from content_generator import AdmissibilityResult, TurnContinuation
from evaluation import Evaluation
from player_memory import SessionContext
from sessions.lifecycle_controller import CaseLifecycleController
from turn_history import ADRKind, ADRProposal


def build_case(procedure=ProcedureKind.WRITTEN, **overrides) -> Case:
    data = dict(
        title="Unpaid Invoice",
        summary="A supplier was never paid for a delivery of office furniture.",
        area="Civil Law" if procedure is ProcedureKind.WRITTEN else "Criminal Law",
        procedure=procedure,
        difficulty=DifficultyTier.INTRODUCTORY,
        objective="Recover the unpaid invoice with interest.",
        parties=(
            Party(name="Muebles Sur", role="Plaintiff (your client)"),
            Party(name="Oficinas Norte", role="Defendant"),
        ),
        evidence=("Invoice #42", "Signed delivery note"),
    )
    data.update(overrides)
    return Case(**data)


def build_continuation(narrative="The court takes note of your argument.", **kwargs) -> TurnContinuation:
    return TurnContinuation(narrative=narrative, **kwargs)


def build_proposal_continuation(terms="The defendant will pay 70% of the invoice.") -> TurnContinuation:
    return TurnContinuation(
        narrative="Opposing counsel proposes to settle.",
        adr_proposal=ADRProposal(kind=ADRKind.SETTLEMENT, terms=terms),
    )


def build_evaluation(score=85, **kwargs) -> Evaluation:
    data = dict(
        score=score,
        analysis="A well structured case.",
        strengths="Clear use of the evidence.",
        weaknesses="The interest claim was thin.",
        advice="Cite the applicable article.",
    )
    data.update(kwargs)
    return Evaluation(**data)


@pytest.fixture
def make_case():
    return build_case


@pytest.fixture
def make_continuation():
    return build_continuation


@pytest.fixture
def make_proposal():
    return build_proposal_continuation


@pytest.fixture
def make_evaluation():
    return build_evaluation


@pytest.fixture
def db_path(tmp_path):
    return str(tmp_path / "players.db")


@pytest.fixture
def session_context(db_path):
    return SessionContext("player_test", db_path=db_path)


@pytest.fixture
def generator():
    """Generator whose calls all succeed with a written case."""
    gen = AsyncMock()
    gen.generate_case.return_value = build_case()
    gen.check_admissibility.return_value = AdmissibilityResult(
        admissible=True,
        analysis="The claim is properly pleaded.",
        next_narrative="The defendant has been served and must answer.",
    )
    gen.advance_turn.return_value = build_continuation()
    gen.evaluate.return_value = build_evaluation()
    return gen


@pytest.fixture
async def make_controller(generator, session_context):
    """
    Factory for controllers on the shared generator and context.

    Controllers are reset on teardown so no countdown task outlives its test.
    """
    created = []

    def factory(**kwargs):
        kwargs.setdefault("countdown_seconds", 300)
        kwargs.setdefault("tick_seconds", 0.01)
        controller = CaseLifecycleController(generator, session_context, **kwargs)
        created.append(controller)
        return controller

    yield factory

    for controller in created:
        controller.reset()


@pytest.fixture
async def controller(make_controller):
    return make_controller()
