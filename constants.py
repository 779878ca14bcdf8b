"""
Project-wide constants.

Centralizes magic numbers and configuration values for maintainability.
"""

from __future__ import annotations

import os
from typing import Final

# =============================================================================
# LLM Configuration
# =============================================================================
LLM_PROVIDER: Final[str] = os.getenv("LLM_PROVIDER", "gemini")
LLM_TEMPERATURE_CASE: Final[float] = 0.9
LLM_TEMPERATURE_TURN: Final[float] = 0.8
LLM_TEMPERATURE_EVALUATION: Final[float] = 0.3
LLM_MAX_TOKENS_CASE: Final[int] = 2048
LLM_MAX_TOKENS_TURN: Final[int] = 1024
LLM_MAX_TOKENS_EVALUATION: Final[int] = 1024

# =============================================================================
# Trial Mechanics - Timing
# =============================================================================
ORAL_TURN_SECONDS: Final[int] = 300  # Countdown per oral round (time units)
COUNTDOWN_TICK_SECONDS: Final[float] = 1.0  # Wall-clock length of one time unit

# =============================================================================
# Trial Mechanics - Drafting
# =============================================================================
ORAL_OPENING_MIN_LENGTH: Final[int] = 50  # Characters, after stripping whitespace
SUBMISSION_PREVIEW_LENGTH: Final[int] = 50  # Characters quoted in a record's narrative

# =============================================================================
# Evaluation & Progression
# =============================================================================
SUCCESS_THRESHOLD: Final[int] = 70  # Score must be strictly greater to count
TIER_INTERMEDIATE_AT: Final[int] = 2  # Completed cases before intermediate cases
TIER_ADVANCED_AT: Final[int] = 5  # Completed cases before advanced cases
FALLBACK_SCORE: Final[int] = 0

# =============================================================================
# Server Configuration
# =============================================================================
DEFAULT_SERVER_HOST: Final[str] = "0.0.0.0"
DEFAULT_SERVER_PORT: Final[int] = 8080

# =============================================================================
# Persistence
# =============================================================================
DEFAULT_DB_PATH: Final[str] = os.getenv("PLAYER_DB_PATH", "data/player_memory.db")

# =============================================================================
# Logging Configuration
# =============================================================================
LOG_LEVEL_PRODUCTION: Final[str] = "INFO"
LOG_LEVEL_DEVELOPMENT: Final[str] = "DEBUG"
LOG_FORMAT_JSON: Final[bool] = True  # Set to False for development readable format
