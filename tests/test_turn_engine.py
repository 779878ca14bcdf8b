"""
Tests for the turn engine: pre-trial drafting and the in-trial round loop.

All tests drive the engine through a real lifecycle controller with a mocked
content generator.
"""

import asyncio
import os
import sys

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from case_model import ProcedureKind
from constants import ORAL_OPENING_MIN_LENGTH
from content_generator import AdmissibilityResult
from exceptions import GenerationError, RoundInProgressError, ValidationError
from guided_cases import get_guided_case
from sessions.lifecycle_controller import Stage
from sessions.turn_engine import DEADLINE_NOTICE, RoundState
from turn_history import ActionKind, PlayerAction, RulingOrNarrative, Speaker, SystemNotice

OPENING = "The defendant acted in self defence and the evidence shows it clearly."
TICK = 0.01


async def _start_written_trial(controller, make_case):
    controller.select_guided_case(make_case())
    await controller.engine.submit_draft("Claim for the unpaid invoice of 1000 EUR plus interest.")
    assert controller.stage is Stage.TRIAL
    return controller.engine


async def _start_oral_trial(controller, make_case):
    controller.select_guided_case(make_case(ProcedureKind.ORAL))
    await controller.engine.submit_draft(OPENING)
    assert controller.stage is Stage.TRIAL
    return controller.engine


class TestWrittenPreTrial:
    async def test_interview_precedes_drafting(self, controller, make_case):
        controller.select_guided_case(make_case(client_interview="My client says the goods arrived on time."))
        engine = controller.engine
        assert engine.state is RoundState.INTERVIEW

        with pytest.raises(ValidationError):
            await engine.submit_draft("A filing")

        engine.acknowledge_interview()
        assert engine.state is RoundState.DRAFTING

    async def test_no_interview_starts_drafting(self, controller, make_case):
        controller.select_guided_case(make_case())
        assert controller.engine.state is RoundState.DRAFTING

    async def test_admissible_filing_starts_trial(self, controller, generator, make_case):
        engine = await _start_written_trial(controller, make_case)

        records = controller.history.records()
        assert len(records) == 2
        assert isinstance(records[0], PlayerAction)
        assert records[0].kind is ActionKind.FILING
        assert records[0].submission.startswith("Claim for the unpaid invoice")
        assert isinstance(records[1], RulingOrNarrative)
        assert records[1].speaker is Speaker.JUDGE
        assert records[1].text == "The defendant has been served and must answer."
        assert records[1].feedback.analysis == "The claim is properly pleaded."

        assert engine.state is RoundState.AWAITING_INPUT
        assert engine.countdown is None
        generator.advance_turn.assert_not_awaited()

    async def test_inadmissible_filing_stays_in_pre_trial(self, controller, generator, make_case):
        generator.check_admissibility.return_value = AdmissibilityResult(
            admissible=False, analysis="The claim names no defendant."
        )
        controller.select_guided_case(make_case())
        engine = controller.engine

        result = await engine.submit_draft("Pay me.")
        assert result.admissible is False
        result = await engine.submit_draft("Pay me, please.")

        assert engine.admissibility_attempts == 2
        assert engine.last_admissibility.analysis == "The claim names no defendant."
        assert engine.state is RoundState.DRAFTING
        assert controller.stage is Stage.PRE_TRIAL
        assert len(controller.history) == 0

    async def test_empty_filing_is_rejected_locally(self, controller, generator, make_case):
        controller.select_guided_case(make_case())
        with pytest.raises(ValidationError):
            await controller.engine.submit_draft("   ")
        generator.check_admissibility.assert_not_awaited()
        assert controller.engine.admissibility_attempts == 0

    async def test_admissibility_failure_keeps_drafting(self, controller, generator, make_case):
        generator.check_admissibility.side_effect = GenerationError("check_admissibility", "timeout")
        controller.select_guided_case(make_case())

        with pytest.raises(GenerationError):
            await controller.engine.submit_draft("A complete claim.")

        assert controller.stage is Stage.PRE_TRIAL
        assert controller.engine.state is RoundState.DRAFTING
        assert controller.engine.draft == "A complete claim."
        assert controller.last_error


class TestOralPreTrial:
    async def test_short_opening_rejected_without_generator_call(self, controller, generator, make_case):
        controller.select_guided_case(make_case(ProcedureKind.ORAL))
        with pytest.raises(ValidationError):
            await controller.engine.submit_draft("x" * (ORAL_OPENING_MIN_LENGTH - 1))

        assert controller.stage is Stage.PRE_TRIAL
        generator.check_admissibility.assert_not_awaited()
        generator.advance_turn.assert_not_awaited()

    async def test_opening_is_answered_and_clock_starts(self, controller, generator, make_case):
        engine = await _start_oral_trial(controller, make_case)

        records = controller.history.records()
        assert records[0].kind is ActionKind.OPENING_STATEMENT
        assert records[0].submission == OPENING
        assert isinstance(records[1], RulingOrNarrative)

        generator.advance_turn.assert_awaited_once()
        assert generator.advance_turn.await_args.args[2] == OPENING
        assert engine.state is RoundState.AWAITING_INPUT
        assert engine.countdown.is_running

    async def test_opening_response_failure_awaits_retry(self, controller, generator, make_case):
        generator.advance_turn.side_effect = GenerationError("advance_turn", "unavailable")
        engine = await _start_oral_trial(controller, make_case)

        assert engine.state is RoundState.AWAITING_RETRY
        assert len(controller.history) == 1

        generator.advance_turn.side_effect = None
        with pytest.raises(ValidationError):
            await engine.submit("A different opening")

        await engine.retry()
        assert len(controller.history) == 2
        assert engine.state is RoundState.AWAITING_INPUT


class TestTrialRounds:
    async def test_round_appends_player_then_court(self, controller, generator, make_case, make_continuation):
        engine = await _start_written_trial(controller, make_case)
        generator.advance_turn.return_value = make_continuation(
            "The defendant must reply within ten days.", suggested_options=["Ask for costs"]
        )

        continuation = await engine.submit("Reply to the defence with the delivery note.")

        assert continuation.narrative == "The defendant must reply within ten days."
        records = controller.history.records()
        assert records[-2].kind is ActionKind.FILING
        assert records[-2].text.startswith("Filing submitted: ")
        assert records[-1].text == "The defendant must reply within ten days."
        assert engine.turn_number == 1

        case, history, latest_input = generator.advance_turn.await_args.args
        assert case is controller.case
        assert history is controller.history
        assert latest_input == "Reply to the defence with the delivery note."

    async def test_blank_written_submission_rejected(self, controller, generator, make_case):
        engine = await _start_written_trial(controller, make_case)
        with pytest.raises(ValidationError):
            await engine.submit("")
        generator.advance_turn.assert_not_awaited()

    async def test_blank_oral_submission_rejected_when_manual(self, controller, generator, make_case):
        engine = await _start_oral_trial(controller, make_case)
        with pytest.raises(ValidationError, match="must present an argument"):
            await engine.submit("  ")
        assert generator.advance_turn.await_count == 1

    async def test_natural_conclusion_ends_trial(self, controller, generator, make_case, make_continuation):
        engine = await _start_written_trial(controller, make_case)
        generator.advance_turn.return_value = make_continuation("Judgment for the plaintiff.", concluded=True)

        await engine.submit("Closing submissions.")

        assert controller.stage is Stage.END
        assert controller.evaluation is not None
        assert controller.history.last.is_final_ruling
        assert engine.state is RoundState.CONCLUDED

    async def test_failure_keeps_player_record_and_awaits_retry(self, controller, generator, make_case):
        engine = await _start_written_trial(controller, make_case)
        before = len(controller.history)
        generator.advance_turn.side_effect = GenerationError("advance_turn", "503")

        with pytest.raises(GenerationError):
            await engine.submit("Request for evidence.")

        assert len(controller.history) == before + 1
        assert isinstance(controller.history.last, PlayerAction)
        assert controller.stage is Stage.TRIAL
        assert engine.state is RoundState.AWAITING_RETRY
        assert engine.draft == "Request for evidence."
        assert controller.last_error

    async def test_retry_same_input_adds_no_duplicate(self, controller, generator, make_case, make_continuation):
        engine = await _start_written_trial(controller, make_case)
        before = len(controller.history)
        generator.advance_turn.side_effect = GenerationError("advance_turn", "503")
        with pytest.raises(GenerationError):
            await engine.submit("Request for evidence.")

        generator.advance_turn.side_effect = None
        generator.advance_turn.return_value = make_continuation("Granted.")
        await engine.submit("Request for evidence.")

        records = controller.history.records()[before:]
        assert len(records) == 2
        assert records[0].submission == "Request for evidence."
        assert records[1].text == "Granted."
        assert engine.turn_number == 1
        assert controller.last_error is None

    async def test_revised_input_replaces_unanswered_record(self, controller, generator, make_case):
        engine = await _start_written_trial(controller, make_case)
        before = len(controller.history)
        generator.advance_turn.side_effect = GenerationError("advance_turn", "503")
        with pytest.raises(GenerationError):
            await engine.submit("First attempt.")

        generator.advance_turn.side_effect = None
        await engine.submit("Revised attempt.")

        records = controller.history.records()[before:]
        assert [r.submission for r in records if isinstance(r, PlayerAction)] == ["Revised attempt."]
        assert len(records) == 2
        assert engine.turn_number == 1

    async def test_second_submission_while_generating_is_rejected(self, controller, generator, make_case, make_continuation):
        engine = await _start_written_trial(controller, make_case)
        release = asyncio.Event()

        async def slow_turn(*args):
            await release.wait()
            return make_continuation("Noted.")

        generator.advance_turn.side_effect = slow_turn
        first = asyncio.create_task(engine.submit("First filing."))
        await asyncio.sleep(0)

        assert engine.in_flight
        with pytest.raises(RoundInProgressError):
            await engine.submit("Second filing.")
        with pytest.raises(RoundInProgressError):
            await controller.conclude_trial()

        release.set()
        await first
        assert generator.advance_turn.await_count == 1
        assert engine.state is RoundState.AWAITING_INPUT

    async def test_guidance_follows_the_tutorial(self, controller):
        controller.select_guided_case(get_guided_case())
        engine = controller.engine
        engine.acknowledge_interview()
        assert engine.current_guidance().trigger == "pre-trial-drafting"

        await engine.submit_draft(OPENING)
        assert engine.current_guidance().trigger == "trial-turn-1"


class TestOralCountdown:
    async def test_expiry_submits_empty_draft(self, make_controller, generator, make_case):
        controller = make_controller(countdown_seconds=2, tick_seconds=TICK)
        engine = await _start_oral_trial(controller, make_case)
        generator.advance_turn.reset_mock()

        await asyncio.sleep(TICK * 8)

        generator.advance_turn.assert_awaited()
        assert generator.advance_turn.await_args_list[0].args[2] == ""
        forced = [r for r in controller.history if isinstance(r, PlayerAction) and r.kind is ActionKind.ORAL_ARGUMENT]
        assert forced[0].submission == ""
        assert forced[0].text == "Oral argument: (no argument presented)"
        assert engine.turn_number >= 1

    async def test_expiry_leaves_a_notice_before_the_argument(self, make_controller, generator, make_case):
        controller = make_controller(countdown_seconds=2, tick_seconds=TICK)
        engine = await _start_oral_trial(controller, make_case)
        engine.update_draft("The confession was obtained under duress.")

        await asyncio.sleep(TICK * 8)

        records = controller.history.records()
        assert isinstance(records[2], SystemNotice)
        assert records[2].text == DEADLINE_NOTICE
        assert records[3].submission == "The confession was obtained under duress."

    async def test_manual_submission_leaves_no_notice(self, controller, make_case):
        engine = await _start_oral_trial(controller, make_case)
        await engine.submit("I move to exclude the confession.")
        assert not any(isinstance(r, SystemNotice) for r in controller.history)

    async def test_expiry_matches_manual_submission(self, make_controller, generator, make_case):
        manual = make_controller()
        engine = await _start_oral_trial(manual, make_case)
        await engine.submit("I move to exclude the confession.")

        timed = make_controller(countdown_seconds=2, tick_seconds=TICK)
        timed_engine = await _start_oral_trial(timed, make_case)
        timed_engine.update_draft("I move to exclude the confession.")
        await asyncio.sleep(TICK * 10)

        manual_records = manual.history.to_list()
        timed_records = [r for r in timed.history.to_list() if r["speaker"] != "SYSTEM"]
        assert len(manual_records) == 4
        assert manual_records[2]["submission"] == "I move to exclude the confession."
        assert timed_records[:4] == manual_records

    async def test_clock_stops_while_generating(self, controller, generator, make_case, make_continuation):
        engine = await _start_oral_trial(controller, make_case)
        release = asyncio.Event()

        async def slow_turn(*args):
            await release.wait()
            return make_continuation()

        generator.advance_turn.side_effect = slow_turn
        task = asyncio.create_task(engine.submit("Objection, hearsay."))
        await asyncio.sleep(0)

        assert not engine.countdown.is_running
        release.set()
        await task
        assert engine.countdown.is_running
        assert engine.countdown.remaining == engine.countdown.duration
        assert engine.snapshot()["clock_running"] is True

    async def test_clock_stops_during_negotiation(self, controller, generator, make_case, make_proposal):
        engine = await _start_oral_trial(controller, make_case)
        generator.advance_turn.return_value = make_proposal()

        await engine.submit("The prosecution has no witness.")

        assert engine.state is RoundState.NEGOTIATING
        assert not engine.countdown.is_running
        assert engine.snapshot()["clock_running"] is False
