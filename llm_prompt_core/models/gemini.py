"""
Google Gemini model wrapper.

This module provides a LangChain-compatible wrapper for Google Gemini models.
Case generation, courtroom turns and evaluation all ask for JSON, so the
wrapper can pin the response MIME type to ``application/json``.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any, ClassVar, Optional

from google import genai
from google.genai import types as genai_types
from langchain_core.callbacks.manager import CallbackManagerForLLMRun
from pydantic import Field, PrivateAttr

from llm_prompt_core.models.base import BaseLLMModel


class GoogleGeminiModel(BaseLLMModel):
    """Minimal LangChain-compatible adapter for the official Google GenAI SDK."""

    provider: ClassVar[str] = "google"

    thinking_budget: Optional[int] = None
    include_thoughts: Optional[bool] = None
    json_mode: bool = False
    generation_config: dict[str, Any] = Field(default_factory=dict)

    _client: genai.Client = PrivateAttr()

    class Config:
        arbitrary_types_allowed = True

    def __init__(self, **data: Any):
        super().__init__(**data)
        resolved_api_key = self._get_api_key("GOOGLE_API_KEY", "Google Gemini")
        self._client = genai.Client(api_key=resolved_api_key)

    def _build_generation_config(
        self,
        stop: Optional[Sequence[str]],
        overrides: dict[str, Any],
    ) -> genai_types.GenerateContentConfig:
        config_kwargs: dict[str, Any] = {
            "temperature": overrides.pop("temperature", self.temperature),
            "max_output_tokens": overrides.pop(
                "max_output_tokens",
                overrides.pop("max_tokens", self.max_tokens),
            ),
        }

        # LangChain's `stop` arg only applies when no explicit stop_sequences were passed.
        stop_sequences = overrides.pop("stop_sequences", None)
        if not stop_sequences and stop:
            stop_sequences = list(stop)
        if stop_sequences:
            config_kwargs["stop_sequences"] = stop_sequences

        if self.json_mode:
            config_kwargs["response_mime_type"] = "application/json"

        if self.generation_config:
            config_kwargs.update(self.generation_config)
        config_kwargs.update(overrides)

        thinking_kwargs: dict[str, Any] = {}
        if self.thinking_budget is not None:
            thinking_kwargs["thinking_budget"] = self.thinking_budget
        if self.include_thoughts is not None:
            thinking_kwargs["include_thoughts"] = self.include_thoughts
        if thinking_kwargs:
            config_kwargs["thinking_config"] = genai_types.ThinkingConfig(
                **thinking_kwargs
            )

        return genai_types.GenerateContentConfig(**config_kwargs)

    def _call(
        self,
        prompt: str,
        stop: Optional[Sequence[str]] = None,
        run_manager: Optional[CallbackManagerForLLMRun] = None,
        **kwargs: Any,
    ) -> str:
        config = self._build_generation_config(stop=stop, overrides=dict(kwargs))
        try:
            response = self._client.models.generate_content(
                model=self.model_name,
                contents=prompt,
                config=config,
            )
        except Exception as e:
            self._handle_api_error(e, "Google Gemini")

        text_response = response.text
        if text_response is None:
            raise RuntimeError("Google Gemini response did not contain any text.")
        return text_response

    @property
    def _llm_type(self) -> str:
        return "google-genai"

    @property
    def _identifying_params(self) -> dict[str, Any]:
        return {
            **super()._identifying_params,
            "thinking_budget": self.thinking_budget,
            "include_thoughts": self.include_thoughts,
            "json_mode": self.json_mode,
        }


class GeminiFlash25NoThinking(GoogleGeminiModel):
    """Gemini 2.5 Flash with thinking explicitly disabled. Used for courtroom turns."""

    def __init__(
        self,
        temperature: float = 0.8,
        max_tokens: int = 1024,
        **kwargs: Any,
    ):
        super().__init__(
            model_name="gemini-2.5-flash",
            temperature=temperature,
            max_tokens=max_tokens,
            thinking_budget=0,
            include_thoughts=False,
            **kwargs,
        )


class GeminiPro25(GoogleGeminiModel):
    """Gemini 2.5 Pro. Used for case generation and evaluation."""

    def __init__(
        self,
        temperature: float = 0.8,
        max_tokens: int = 2048,
        **kwargs: Any,
    ):
        super().__init__(
            model_name="gemini-2.5-pro",
            temperature=temperature,
            max_tokens=max_tokens,
            **kwargs,
        )
