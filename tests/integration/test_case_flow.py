"""
Integration tests for the complete case flow.

Tests the end-to-end path:
1. Client message -> CourtSession -> lifecycle controller / turn engine
2. LLMContentGenerator -> prompt building -> model reply parsing
3. Negotiation, natural conclusion, evaluation and progression
4. Messages pushed back to the client

Models are mocked at the ``invoke`` level so the real prompt and JSON handling
run without any network call.
"""

import sys
import os

# Add parent directory to path so we can import modules
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))

import asyncio
import json
import pytest
from unittest.mock import Mock

from content_generator import LLMContentGenerator
from exceptions import LLMResponseError
from player_memory import SessionContext
from web_server import CourtSession


class MockWebSocketResponse:
    """Mock WebSocket response capturing what the server sends."""

    def __init__(self):
        self.messages_sent = []
        self.closed = False

    async def send_json(self, data):
        self.messages_sent.append(data)

    def get_messages_by_type(self, msg_type):
        return [msg for msg in self.messages_sent if msg.get('type') == msg_type]

    def get_last_message_by_type(self, msg_type):
        messages = self.get_messages_by_type(msg_type)
        return messages[-1] if messages else None


def _model(name, replies):
    model = Mock()
    model.provider = "google"
    model.model_name = name
    model.invoke.side_effect = [json.dumps(reply) for reply in replies]
    return model


CRIMINAL_CASE = {
    "title": "The Borrowed Bicycle",
    "summary": "Your client is accused of stealing a neighbour's bicycle.",
    "objective": "Obtain an acquittal or the lightest possible outcome.",
    "parties": [
        {"name": "Tomás Ruiz", "role": "Defendant (your client)"},
        {"name": "Public Prosecutor", "role": "Prosecution"},
    ],
    "evidence": ["Text message asking to borrow the bicycle"],
    "judge": {"name": "Judge Valdés", "disposition": "Strict but fair"},
}

OPENING = "My client borrowed the bicycle with permission and returned it the next morning."


@pytest.fixture
def mock_ws():
    return MockWebSocketResponse()


@pytest.fixture
def context(tmp_path):
    return SessionContext("integration_player", db_path=str(tmp_path / "players.db"))


async def _flush(session):
    while session._background_tasks:
        await asyncio.gather(*list(session._background_tasks))


class TestOralCaseFlow:
    async def test_counter_offer_then_ruling(self, mock_ws, context):
        turn_model = _model("turn", [
            {"narrative": "The judge invites the prosecution to respond.", "suggested_options": ["Call a witness"]},
            {
                "narrative": "The prosecution offers a plea agreement.",
                "adr_proposal": {"kind": "agreement", "terms": "Plead guilty to a misdemeanour"},
            },
            {
                "narrative": "The court acquits the defendant.",
                "concluded": True,
                "feedback": {"analysis": "The text message was decisive.", "citation": "Art. 340"},
            },
        ])
        generator = LLMContentGenerator(
            case_model=_model("case", [CRIMINAL_CASE]),
            turn_model=turn_model,
            evaluation_model=_model("evaluation", [{
                "score": 91,
                "analysis": "You turned down a poor deal and won.",
                "strengths": "Evidence",
                "weaknesses": "Timing",
                "advice": "Object sooner.",
            }]),
        )
        session = CourtSession(mock_ws, generator, context)

        try:
            await session.dispatch(json.dumps({"type": "select_case", "area": "criminal"}))
            assert session.controller.case.procedure.value == "oral"

            await session.dispatch(json.dumps({"type": "submit_draft", "text": OPENING}))
            state = mock_ws.get_last_message_by_type("state")
            assert state["stage"] == "trial"
            assert state["engine"]["suggested_options"] == ["Call a witness"]

            await session.dispatch(json.dumps({"type": "submit", "text": "The message shows consent."}))
            state = mock_ws.get_last_message_by_type("state")
            assert state["engine"]["state"] == "negotiating"
            assert state["engine"]["pending_proposal"]["kind"] == "agreement"

            await session.dispatch(json.dumps({"type": "counter_proposal", "text": "Dismiss all charges"}))
            await _flush(session)

            counter_prompt = turn_model.invoke.call_args_list[2].args[0]
            assert 'countered with: "Dismiss all charges"' in counter_prompt

            evaluation = mock_ws.get_last_message_by_type("evaluation")
            assert evaluation["evaluation"]["score"] == 91
            assert evaluation["completed_cases"] == 1

            stages = [(m["from"], m["to"]) for m in mock_ws.get_messages_by_type("stage_changed")]
            assert stages == [("selection", "pre_trial"), ("pre_trial", "trial"), ("trial", "end")]

            speakers = [m["record"]["speaker"] for m in mock_ws.get_messages_by_type("record")]
            assert speakers == ["PLAYER", "JUDGE", "PLAYER", "OPPONENT", "PLAYER", "JUDGE"]

            assert SessionContext("integration_player", db_path=context.db_path).completed_cases == 1
            assert context.get_case_history()[0].title == "The Borrowed Bicycle"
        finally:
            await session.close()

    async def test_malformed_turn_reply_is_recoverable(self, mock_ws, context):
        generator = LLMContentGenerator(
            case_model=_model("case", [CRIMINAL_CASE]),
            turn_model=_model("turn", [
                {"narrative": "Proceed."},
                {"unexpected": "shape"},
                {"narrative": "The court notes your objection."},
            ]),
            evaluation_model=_model("evaluation", []),
        )
        session = CourtSession(mock_ws, generator, context)

        try:
            await session.dispatch(json.dumps({"type": "select_case", "area": "criminal"}))
            await session.dispatch(json.dumps({"type": "submit_draft", "text": OPENING}))

            with pytest.raises(LLMResponseError):
                await session.dispatch(json.dumps({"type": "submit", "text": "Objection!"}))
            assert session.controller.engine.state.value == "awaiting_retry"

            await session.dispatch(json.dumps({"type": "retry"}))
            state = mock_ws.get_last_message_by_type("state")
            assert state["engine"]["state"] == "awaiting_input"
            assert [r["speaker"] for r in state["history"]] == ["PLAYER", "JUDGE", "PLAYER", "JUDGE"]
        finally:
            await session.close()
