"""
Model wrappers for different LLM providers.

This module provides unified interfaces for Claude (Anthropic) and Gemini models.
"""

from llm_prompt_core.models.base import BaseLLMModel
from llm_prompt_core.models.anthropic import (
    ClaudeModel,
    ClaudeSonnet4Model,
    ClaudeHaikuModel,
)
from llm_prompt_core.models.gemini import (
    GoogleGeminiModel,
    GeminiFlash25NoThinking,
    GeminiPro25,
)

__all__ = [
    "BaseLLMModel",
    "ClaudeModel",
    "ClaudeSonnet4Model",
    "ClaudeHaikuModel",
    "GoogleGeminiModel",
    "GeminiFlash25NoThinking",
    "GeminiPro25",
]
