"""
Prometheus metrics instrumentation for Digital Counsel.

This module provides metrics tracking for:
- Cases started by area and procedure
- Trial rounds by outcome
- Content-generation failures by operation
- LLM API latency
- Evaluation score distribution
- Database query time
- Active session count

Usage:
    from metrics import track_llm_call, track_generation_error, record_round

    with track_llm_call(provider="google", model="gemini-2.5-flash"):
        # ... call LLM ...
        pass

    track_generation_error("advance_turn")
    record_round(procedure="oral", outcome="answered")
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from typing import Generator

from prometheus_client import Counter, Gauge, Histogram

# === COUNTERS ===

cases_started_total = Counter(
    "digital_counsel_cases_started_total",
    "Cases that reached the pre-trial stage",
    ["area", "procedure"],
)

rounds_total = Counter(
    "digital_counsel_rounds_total",
    "Trial rounds by outcome",
    ["procedure", "outcome"],
)

generation_errors_total = Counter(
    "digital_counsel_generation_errors_total",
    "Content-generation calls that failed",
    ["operation"],
)

progression_increments_total = Counter(
    "digital_counsel_progression_increments_total",
    "Concluded cases that counted towards difficulty progression",
)

# === HISTOGRAMS ===

llm_latency_seconds = Histogram(
    "digital_counsel_llm_latency_seconds",
    "Time taken for LLM API calls",
    ["provider", "model"],
    buckets=(0.1, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0, 60.0, float("inf")),
)

evaluation_score = Histogram(
    "digital_counsel_evaluation_score",
    "Scores awarded at the end of a case",
    buckets=(10, 20, 30, 40, 50, 60, 70, 80, 90, 100),
)

db_query_time_seconds = Histogram(
    "digital_counsel_db_query_time_seconds",
    "Time taken for database queries",
    ["operation"],
    buckets=(0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 5.0, float("inf")),
)

# === GAUGES ===

active_sessions_gauge = Gauge(
    "digital_counsel_active_sessions",
    "Current number of connected players",
)

# === CONTEXT MANAGERS ===


@contextmanager
def track_llm_call(provider: str, model: str) -> Generator[None, None, None]:
    """
    Context manager to track LLM API call latency.

    Args:
        provider: The LLM provider (e.g., "anthropic", "google")
        model: The model name
    """
    start_time = time.time()
    try:
        yield
    finally:
        duration = time.time() - start_time
        llm_latency_seconds.labels(provider=provider, model=model).observe(duration)


@contextmanager
def track_db_query(operation: str) -> Generator[None, None, None]:
    """
    Context manager to track database query metrics.

    Args:
        operation: The database operation (e.g., "select", "update")
    """
    start_time = time.time()
    try:
        yield
    finally:
        duration = time.time() - start_time
        db_query_time_seconds.labels(operation=operation).observe(duration)


def track_generation_error(operation: str) -> None:
    """Count a failed generate_case / check_admissibility / advance_turn / evaluate call."""
    generation_errors_total.labels(operation=operation).inc()


def record_case_started(area: str, procedure: str) -> None:
    cases_started_total.labels(area=area, procedure=procedure).inc()


def record_round(procedure: str, outcome: str) -> None:
    """
    Count a finished round.

    Args:
        procedure: "written" or "oral"
        outcome: "answered", "concluded", "failed" or "proposal"
    """
    rounds_total.labels(procedure=procedure, outcome=outcome).inc()


def record_evaluation(score: int, counted: bool) -> None:
    evaluation_score.observe(score)
    if counted:
        progression_increments_total.inc()


def update_active_sessions(count: int) -> None:
    active_sessions_gauge.set(count)
