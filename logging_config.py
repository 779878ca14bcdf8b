"""
Logging configuration for structured JSON logging.

JSON output for production, a readable format for development, and a logger
adapter that stamps case context onto every lifecycle event.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Any, Optional

from pythonjsonlogger import jsonlogger

from constants import LOG_FORMAT_JSON, LOG_LEVEL_DEVELOPMENT, LOG_LEVEL_PRODUCTION


class ContextualJsonFormatter(jsonlogger.JsonFormatter):
    """
    JSON formatter that always emits timestamp, level and logger name.

    Extra fields passed through ``extra=`` (case_id, stage, round...) are
    included as top-level keys.
    """

    def __init__(self, *args, rename_fields: Optional[dict] = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.rename_fields = rename_fields or {}

    def add_fields(self, log_record: dict, record: logging.LogRecord, message_dict: dict) -> None:
        super().add_fields(log_record, record, message_dict)

        if not log_record.get('timestamp'):
            log_record['timestamp'] = self.formatTime(record, self.datefmt)
        if not log_record.get('level'):
            log_record['level'] = record.levelname
        if not log_record.get('logger'):
            log_record['logger'] = record.name

        for old_name, new_name in self.rename_fields.items():
            if old_name in log_record:
                log_record[new_name] = log_record.pop(old_name)


def setup_logging(use_json: Optional[bool] = None, log_level: Optional[str] = None) -> None:
    """
    Configure root logging with JSON or readable format.

    Args:
        use_json: Force JSON (True) or readable (False) output. None reads
                  LOG_FORMAT_JSON from the environment, then constants.
        log_level: Level name such as "INFO". None picks DEBUG when ENV is
                   dev/development and INFO otherwise.
    """
    if use_json is None:
        use_json = os.getenv("LOG_FORMAT_JSON", str(LOG_FORMAT_JSON)).lower() in ("true", "1", "yes")

    if log_level is None:
        env = os.getenv("ENV", "production").lower()
        log_level = LOG_LEVEL_DEVELOPMENT if env in ("dev", "development") else LOG_LEVEL_PRODUCTION

    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)

    if use_json:
        formatter = ContextualJsonFormatter(
            '%(timestamp)s %(level)s %(logger)s %(message)s',
            rename_fields={
                'timestamp': '@timestamp',
                'level': 'severity',
            }
        )
    else:
        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )

    handler.setFormatter(formatter)
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, log_level.upper()))


class StructuredLoggerAdapter(logging.LoggerAdapter):
    """
    Logger adapter that adds case context to all log messages.

    Usage:
        logger = StructuredLoggerAdapter(logging.getLogger(__name__), {
            'player_id': context.player_id,
        })
        logger.bind(case_id=case.id, procedure="oral")
        logger.info_event("round_completed", "Round completed", round=3)
    """

    def process(self, msg: str, kwargs: dict) -> tuple[str, dict]:
        extra = kwargs.get('extra', {})
        extra.update(self.extra)
        kwargs['extra'] = extra
        return msg, kwargs

    def bind(self, **context: Any) -> None:
        """Add or replace context fields for all subsequent messages."""
        self.extra = {**self.extra, **context}

    def unbind(self, *keys: str) -> None:
        """Drop context fields, e.g. when a case is discarded."""
        self.extra = {k: v for k, v in self.extra.items() if k not in keys}

    def log_event(
        self,
        level: int,
        event_type: str,
        message: str,
        **context: Any
    ) -> None:
        """
        Log a structured event with type and context.

        Args:
            level: Logging level (e.g., logging.INFO)
            event_type: Type of event (e.g., "stage_changed", "round_failed")
            message: Human-readable message
            **context: Additional contextual key-value pairs
        """
        context['event_type'] = event_type
        self.log(level, message, extra=context)

    def info_event(self, event_type: str, message: str, **context: Any) -> None:
        self.log_event(logging.INFO, event_type, message, **context)

    def error_event(self, event_type: str, message: str, **context: Any) -> None:
        self.log_event(logging.ERROR, event_type, message, **context)

    def warning_event(self, event_type: str, message: str, **context: Any) -> None:
        self.log_event(logging.WARNING, event_type, message, **context)

    def debug_event(self, event_type: str, message: str, **context: Any) -> None:
        self.log_event(logging.DEBUG, event_type, message, **context)
