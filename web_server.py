"""
Web server for the courtroom simulation.

This server:
- Handles WebSocket connections, one CaseLifecycleController per connection
- Maps client messages onto lifecycle, turn engine and negotiation operations
- Pushes stage changes, new records, countdown ticks and evaluations back
- Serves the legal areas and Prometheus metrics
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Awaitable, Callable, Optional

import aiohttp
from aiohttp import web
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from case_model import ProcedureKind
from config import get_legal_areas
from constants import DEFAULT_DB_PATH, DEFAULT_SERVER_HOST, DEFAULT_SERVER_PORT
from content_generator import ContentGenerator, LLMContentGenerator
from exceptions import (
    DigitalCounselError,
    GenerationError,
    InvalidMessageError,
    ValidationError,
)
from guided_cases import get_guided_case
from logging_config import setup_logging
from metrics import update_active_sessions
from player_memory import SessionContext, get_or_create_session_context
from sessions.lifecycle_controller import CaseLifecycleController, Stage
from turn_history import TurnRecord

logger = logging.getLogger(__name__)

GENERATOR_KEY = web.AppKey("generator", object)
DB_PATH_KEY = web.AppKey("db_path", str)
SESSIONS_KEY = web.AppKey("sessions", set)


class CourtSession:
    """Binds one WebSocket connection to one player's controller."""

    def __init__(
        self,
        ws: web.WebSocketResponse,
        generator: ContentGenerator,
        context: SessionContext,
    ) -> None:
        self.ws = ws
        self.context = context
        self.controller = CaseLifecycleController(generator, context)
        self._background_tasks: set[asyncio.Task] = set()

        self.controller.add_observer(self._on_stage_changed)
        self.controller.add_listener("record", self._on_record)
        self.controller.add_listener("revert", lambda _: self._push({"type": "record_reverted"}))
        self.controller.add_listener("tick", lambda remaining: self._push({"type": "tick", "remaining": remaining}))
        self.controller.add_listener("evaluation", self._on_evaluation)
        self.controller.add_listener("error", lambda message: self._push({"type": "error", "message": message}))

        self._handlers: dict[str, Callable[[dict[str, Any]], Awaitable[None]]] = {
            "get_state": self.handle_get_state,
            "set_username": self.handle_set_username,
            "select_case": self.handle_select_case,
            "select_guided_case": self.handle_select_guided_case,
            "acknowledge_interview": self.handle_acknowledge_interview,
            "update_draft": self.handle_update_draft,
            "submit_draft": self.handle_submit_draft,
            "submit": self.handle_submit,
            "retry": self.handle_retry,
            "accept_proposal": self.handle_accept_proposal,
            "reject_proposal": self.handle_reject_proposal,
            "counter_proposal": self.handle_counter_proposal,
            "conclude": self.handle_conclude,
            "open_appeal": self.handle_open_appeal,
            "reset": self.handle_reset,
            "get_case_history": self.handle_get_case_history,
            "get_notes": self.handle_get_notes,
            "save_notes": self.handle_save_notes,
        }

    # === OUTBOUND ===

    def _push(self, payload: dict[str, Any]) -> None:
        """Send from a synchronous callback without blocking the caller."""
        if self.ws.closed:
            return
        task = asyncio.ensure_future(self.ws.send_json(payload))
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)

    def _on_stage_changed(self, old: Stage, new: Stage) -> None:
        self._push({"type": "stage_changed", "from": old.value, "to": new.value})

    def _on_record(self, record: TurnRecord) -> None:
        self._push({"type": "record", "record": record.to_dict()})

    def _on_evaluation(self, evaluation) -> None:
        self._push({
            "type": "evaluation",
            "evaluation": evaluation.model_dump(mode="json"),
            "completed_cases": self.context.completed_cases,
        })

    async def send_state(self) -> None:
        await self.ws.send_json({
            "type": "state",
            "player_id": self.context.player_id,
            "username": self.context.username,
            **self.controller.snapshot(),
        })

    async def close(self) -> None:
        self.controller.reset()
        for task in self._background_tasks:
            if not task.done():
                task.cancel()
        await asyncio.gather(*self._background_tasks, return_exceptions=True)
        self._background_tasks.clear()

    # === INBOUND ===

    async def dispatch(self, raw: str) -> None:
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise InvalidMessageError(raw, f"not JSON ({e.msg})") from e
        if not isinstance(data, dict):
            raise InvalidMessageError(raw, "expected a JSON object")

        msg_type = data.get("type")
        handler = self._handlers.get(msg_type)
        if handler is None:
            raise InvalidMessageError(raw, f"unknown message type {msg_type!r}")
        await handler(data)

    def _engine(self):
        if self.controller.engine is None:
            raise ValidationError("There is no active case.")
        return self.controller.engine

    async def handle_get_state(self, data: dict[str, Any]) -> None:
        await self.send_state()

    async def handle_set_username(self, data: dict[str, Any]) -> None:
        self.context.set_username(str(data.get("username", "")))
        await self.send_state()

    async def handle_select_case(self, data: dict[str, Any]) -> None:
        procedure = data.get("procedure")
        try:
            procedure_kind = ProcedureKind(procedure) if procedure else None
        except ValueError as e:
            raise ValidationError(f"Unknown procedure: {procedure}") from e
        await self.controller.select_case(str(data.get("area", "")), procedure_kind)
        await self.send_state()

    async def handle_select_guided_case(self, data: dict[str, Any]) -> None:
        try:
            case = get_guided_case(data.get("case_id"))
        except KeyError as e:
            raise ValidationError(str(e.args[0])) from e
        self.controller.select_guided_case(case)
        await self.send_state()

    async def handle_acknowledge_interview(self, data: dict[str, Any]) -> None:
        self._engine().acknowledge_interview()
        await self.send_state()

    async def handle_update_draft(self, data: dict[str, Any]) -> None:
        self._engine().update_draft(str(data.get("text", "")))

    async def handle_submit_draft(self, data: dict[str, Any]) -> None:
        result = await self._engine().submit_draft(data.get("text"))
        if result is not None:
            await self.ws.send_json({"type": "admissibility", **result.model_dump(mode="json")})
        await self.send_state()

    async def handle_submit(self, data: dict[str, Any]) -> None:
        await self._engine().submit(data.get("text"))
        await self.send_state()

    async def handle_retry(self, data: dict[str, Any]) -> None:
        await self._engine().retry()
        await self.send_state()

    async def handle_accept_proposal(self, data: dict[str, Any]) -> None:
        await self._engine().negotiation.accept()
        await self.send_state()

    async def handle_reject_proposal(self, data: dict[str, Any]) -> None:
        await self._engine().negotiation.reject()
        await self.send_state()

    async def handle_counter_proposal(self, data: dict[str, Any]) -> None:
        await self._engine().negotiation.counter(str(data.get("text", "")))
        await self.send_state()

    async def handle_conclude(self, data: dict[str, Any]) -> None:
        await self.controller.conclude_trial()
        await self.send_state()

    async def handle_open_appeal(self, data: dict[str, Any]) -> None:
        self.controller.open_appeal()
        await self.send_state()

    async def handle_reset(self, data: dict[str, Any]) -> None:
        self.controller.reset()
        await self.send_state()

    async def handle_get_case_history(self, data: dict[str, Any]) -> None:
        await self.ws.send_json({
            "type": "case_history",
            "cases": [entry.to_dict() for entry in self.context.get_case_history()],
        })

    async def handle_get_notes(self, data: dict[str, Any]) -> None:
        case_id = self._notes_case_id(data)
        await self.ws.send_json({"type": "notes", "case_id": case_id, "text": self.context.get_notes(case_id)})

    async def handle_save_notes(self, data: dict[str, Any]) -> None:
        case_id = self._notes_case_id(data)
        self.context.save_notes(case_id, str(data.get("text", "")))
        await self.ws.send_json({"type": "notes_saved", "case_id": case_id})

    def _notes_case_id(self, data: dict[str, Any]) -> str:
        case_id = data.get("case_id") or (self.controller.case.id if self.controller.case else None)
        if not case_id:
            raise ValidationError("Notes need a case.")
        return case_id


async def websocket_handler(request: web.Request) -> web.WebSocketResponse:
    """Handle WebSocket connections."""
    ws = web.WebSocketResponse()
    await ws.prepare(request)

    context = get_or_create_session_context(
        request.query.get("player_id"), db_path=request.app[DB_PATH_KEY]
    )
    session = CourtSession(ws, request.app[GENERATOR_KEY], context)
    sessions = request.app[SESSIONS_KEY]
    sessions.add(session)
    update_active_sessions(len(sessions))
    logger.info("Client connected (player %s)", context.player_id)

    try:
        await session.send_state()

        async for msg in ws:
            if msg.type == aiohttp.WSMsgType.TEXT:
                try:
                    await session.dispatch(msg.data)
                except InvalidMessageError as e:
                    logger.warning("Invalid message: %s", e.reason)
                    await ws.send_json({"type": "invalid_message", "message": e.reason})
                except ValidationError as e:
                    await ws.send_json({"type": "validation_error", "message": str(e)})
                except GenerationError:
                    # The controller has already pushed its player-facing message
                    await session.send_state()
                except DigitalCounselError as e:
                    await ws.send_json({"type": "rejected", "message": str(e)})
                except Exception as e:
                    logger.exception("Error handling message: %s", e)
                    await ws.send_json({
                        "type": "error",
                        "message": "Server error. Please try again.",
                    })

            elif msg.type == aiohttp.WSMsgType.ERROR:
                logger.error("WebSocket error: %s", ws.exception())

    finally:
        await session.close()
        sessions.discard(session)
        update_active_sessions(len(sessions))
        logger.info("Client disconnected (player %s)", context.player_id)

    return ws


# API endpoint for the case selection screen
async def areas_handler(request: web.Request) -> web.Response:
    return web.json_response({"areas": get_legal_areas()})


async def metrics_handler(request: web.Request) -> web.Response:
    return web.Response(body=generate_latest(), headers={"Content-Type": CONTENT_TYPE_LATEST})


def create_app(
    generator: Optional[ContentGenerator] = None,
    db_path: str = DEFAULT_DB_PATH,
) -> web.Application:
    """Create and configure the web application."""
    app = web.Application()
    app[GENERATOR_KEY] = generator if generator is not None else LLMContentGenerator()
    app[DB_PATH_KEY] = db_path
    app[SESSIONS_KEY] = set()

    app.router.add_get("/api/areas", areas_handler)
    app.router.add_get("/metrics", metrics_handler)
    app.router.add_get("/ws", websocket_handler)

    return app


# Main entry point
def main() -> None:
    """Start the web server."""
    setup_logging()
    logger.info("=" * 60)
    logger.info("Digital Counsel Server")
    logger.info("=" * 60)
    logger.info("Starting server on http://%s:%d", DEFAULT_SERVER_HOST, DEFAULT_SERVER_PORT)
    logger.info("WebSocket endpoint: /ws, legal areas: /api/areas, metrics: /metrics")
    logger.info("=" * 60)

    app = create_app()
    web.run_app(app, host=DEFAULT_SERVER_HOST, port=DEFAULT_SERVER_PORT)


if __name__ == "__main__":
    main()
