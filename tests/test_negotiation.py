"""
Tests for the ADR negotiation sub-protocol.
"""

import os
import sys

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from evaluation import Resolution
from exceptions import GenerationError, NegotiationError, ValidationError
from sessions.lifecycle_controller import Stage
from sessions.turn_engine import RoundState
from turn_history import ActionKind, ADRKind, ADRProposalRecord, PlayerAction


@pytest.fixture
async def negotiating(controller, generator, make_case, make_proposal, make_continuation):
    """Written trial with a 70% settlement on the table."""
    controller.select_guided_case(make_case())
    await controller.engine.submit_draft("Claim for 1000 EUR under the supply contract.")
    generator.advance_turn.return_value = make_proposal("The defendant will pay 70% of the invoice.")
    await controller.engine.submit("The delivery note proves receipt.")
    generator.advance_turn.return_value = make_continuation("The court schedules the hearing.")
    return controller


class TestProposal:
    async def test_proposal_opens_negotiation(self, negotiating):
        engine = negotiating.engine
        assert engine.state is RoundState.NEGOTIATING
        assert engine.negotiation.is_pending
        assert isinstance(negotiating.history.last, ADRProposalRecord)
        assert engine.snapshot()["pending_proposal"] == {
            "kind": "settlement",
            "terms": "The defendant will pay 70% of the invoice.",
        }

    async def test_ordinary_submission_blocked(self, negotiating, generator):
        calls = generator.advance_turn.await_count
        with pytest.raises(ValidationError):
            await negotiating.engine.submit("Another filing.")
        assert generator.advance_turn.await_count == calls

    async def test_only_one_pending_proposal(self, negotiating):
        engine = negotiating.engine
        with pytest.raises(NegotiationError):
            engine.negotiation.open(negotiating.history.last)


class TestAccept:
    async def test_accept_concludes_without_another_turn(self, negotiating, generator):
        calls = generator.advance_turn.await_count

        evaluation = await negotiating.engine.negotiation.accept()

        assert generator.advance_turn.await_count == calls
        assert negotiating.stage is Stage.END
        assert negotiating.evaluation is evaluation

        last = negotiating.history.last
        assert isinstance(last, PlayerAction)
        assert last.kind is ActionKind.ADR_ACCEPTANCE
        assert last.proposal.terms == "The defendant will pay 70% of the invoice."

        kwargs = generator.evaluate.await_args.kwargs
        assert kwargs["resolution"] is Resolution.ADR_ACCEPTANCE
        assert kwargs["closing"] is last

    async def test_accept_without_proposal(self, controller, make_case):
        controller.select_guided_case(make_case())
        await controller.engine.submit_draft("A claim.")
        with pytest.raises(NegotiationError):
            await controller.engine.negotiation.accept()


class TestReject:
    async def test_reject_resumes_trial(self, negotiating, generator):
        calls = generator.advance_turn.await_count

        continuation = await negotiating.engine.negotiation.reject()

        assert continuation.narrative == "The court schedules the hearing."
        assert generator.advance_turn.await_count == calls + 1
        generator.evaluate.assert_not_awaited()
        assert negotiating.stage is Stage.TRIAL
        assert negotiating.engine.state is RoundState.AWAITING_INPUT
        assert not negotiating.engine.negotiation.is_pending

        rejection = negotiating.history.records()[-2]
        assert rejection.kind is ActionKind.ADR_REJECTION
        assert rejection.proposal is None

    async def test_reject_failure_can_be_retried(self, negotiating, generator):
        generator.advance_turn.side_effect = GenerationError("advance_turn", "overloaded")
        with pytest.raises(GenerationError):
            await negotiating.engine.negotiation.reject()
        assert negotiating.engine.state is RoundState.AWAITING_RETRY

        generator.advance_turn.side_effect = None
        await negotiating.engine.retry()
        kinds = [r.kind for r in negotiating.history if isinstance(r, PlayerAction)]
        assert kinds.count(ActionKind.ADR_REJECTION) == 1
        assert negotiating.engine.state is RoundState.AWAITING_INPUT


class TestCounter:
    async def test_empty_counter_keeps_proposal_pending(self, negotiating, generator):
        calls = generator.advance_turn.await_count
        with pytest.raises(ValidationError):
            await negotiating.engine.negotiation.counter("   ")
        assert negotiating.engine.negotiation.is_pending
        assert negotiating.engine.state is RoundState.NEGOTIATING
        assert generator.advance_turn.await_count == calls

    async def test_counter_carries_new_terms(self, negotiating, generator):
        await negotiating.engine.negotiation.counter("Pay 90% within 15 days.")

        counter = negotiating.history.records()[-2]
        assert counter.kind is ActionKind.ADR_COUNTER
        assert counter.proposal.kind is ADRKind.SETTLEMENT
        assert counter.proposal.terms == "Pay 90% within 15 days."
        assert generator.advance_turn.await_args.args[2] == "Pay 90% within 15 days."
        assert negotiating.stage is Stage.TRIAL
