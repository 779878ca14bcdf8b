"""
Anthropic Claude model wrapper.

This module provides a LangChain-compatible wrapper for Claude models.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any, ClassVar

from langchain_core.callbacks.manager import CallbackManagerForLLMRun
from pydantic import PrivateAttr

from llm_prompt_core.models.base import BaseLLMModel


class ClaudeModel(BaseLLMModel):
    """
    LangChain-compatible wrapper for Anthropic Claude models.

    Attributes:
        model_name: Name of the Claude model to use
        temperature: Controls randomness in generation (0.0 to 1.0)
        max_tokens: Maximum number of tokens to generate
        system_prompt: Optional system message sent with every request
        api_key: Optional API key (defaults to ANTHROPIC_API_KEY env variable)
    """

    provider: ClassVar[str] = "anthropic"

    model_name: str = "claude-sonnet-4-20250514"
    system_prompt: str | None = None

    _client: Any = PrivateAttr()

    class Config:
        arbitrary_types_allowed = True

    def __init__(self, **data: Any):
        super().__init__(**data)
        resolved_api_key = self._get_api_key("ANTHROPIC_API_KEY", "Claude")

        from anthropic import Anthropic

        self._client = self._initialize_client(Anthropic, resolved_api_key, "anthropic")

    def _call(
        self,
        prompt: str,
        stop: Sequence[str] | None = None,
        run_manager: CallbackManagerForLLMRun | None = None,
        **kwargs: Any,
    ) -> str:
        temperature = kwargs.pop("temperature", self.temperature)
        max_tokens = kwargs.pop("max_tokens", self.max_tokens)
        if stop:
            kwargs.setdefault("stop_sequences", list(stop))
        if self.system_prompt:
            kwargs.setdefault("system", self.system_prompt)

        try:
            response = self._client.messages.create(
                model=self.model_name,
                max_tokens=max_tokens,
                temperature=temperature,
                messages=[{"role": "user", "content": prompt}],
                **kwargs,
            )

            if not response.content:
                raise RuntimeError("Claude response did not contain any text.")

            return response.content[0].text

        except Exception as e:
            self._handle_api_error(e, "Claude")

    @property
    def _llm_type(self) -> str:
        return "anthropic-claude"


class ClaudeSonnet4Model(ClaudeModel):
    """Claude Sonnet 4 - balanced model used for turns and evaluation."""

    def __init__(
        self,
        temperature: float = 0.8,
        max_tokens: int = 1024,
        **kwargs: Any,
    ):
        super().__init__(
            model_name="claude-sonnet-4-20250514",
            temperature=temperature,
            max_tokens=max_tokens,
            **kwargs,
        )


class ClaudeHaikuModel(ClaudeModel):
    """Claude Haiku 3.5 - fast model for short courtroom turns."""

    def __init__(
        self,
        temperature: float = 0.8,
        max_tokens: int = 1024,
        **kwargs: Any,
    ):
        super().__init__(
            model_name="claude-3-5-haiku-20241022",
            temperature=temperature,
            max_tokens=max_tokens,
            **kwargs,
        )
