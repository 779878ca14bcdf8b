"""
Base class for LLM model wrappers.

Every provider wrapper used by the content generator extends this class, so
the generator only ever deals with LangChain's ``invoke`` and the provider
name and model name it reports to metrics.
"""

from __future__ import annotations

import os
from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import Any, ClassVar

from langchain_core.callbacks.manager import CallbackManagerForLLMRun
from langchain_core.language_models.llms import LLM


class BaseLLMModel(LLM, ABC):
    """
    Abstract base class for all LLM provider wrappers.

    Subclasses must implement:
    - _call(): The main method for generating text
    - _llm_type: Property returning the model type identifier
    - _identifying_params: Property returning model configuration parameters

    Shared helpers:
    - _get_api_key(): Resolve API key from instance or environment
    - _initialize_client(): Initialize SDK client with error handling
    - _handle_api_error(): Normalise SDK errors into builtin exception types
    """

    provider: ClassVar[str] = "unknown"

    model_name: str
    temperature: float = 0.8
    max_tokens: int = 1024
    api_key: str | None = None

    def _get_api_key(
        self, env_var_name: str, provider_name: str, required: bool = True
    ) -> str | None:
        """
        Resolve API key from instance attribute or environment variable.

        Raises:
            OSError: If required=True and no key was found
        """
        resolved_key = self.api_key or os.getenv(env_var_name)

        if required and not resolved_key:
            raise OSError(
                f"{env_var_name} environment variable must be set for {provider_name} models."
            )

        return resolved_key

    def _initialize_client(
        self, client_class: type[Any], api_key: str, package_name: str, **client_kwargs: Any
    ) -> Any:
        try:
            return client_class(api_key=api_key, **client_kwargs)
        except (ImportError, NameError):
            raise ImportError(
                f"{package_name} package not installed. Install it with: pip install {package_name}"
            )

    def _handle_api_error(self, exception: Exception, provider_name: str) -> None:
        """
        Re-raise a provider exception as a builtin type with provider context.

        RuntimeError passes through untouched; ConnectionError, TimeoutError
        and ValueError keep their type; anything else (SDK APIError,
        AuthenticationError, ...) becomes a RuntimeError. The original is
        always chained.
        """
        if isinstance(exception, RuntimeError):
            raise exception

        if isinstance(exception, ConnectionError):
            raise ConnectionError(
                f"{provider_name} API connection failed: {exception}"
            ) from exception
        if isinstance(exception, TimeoutError):
            raise TimeoutError(f"{provider_name} API request timed out: {exception}") from exception
        if isinstance(exception, ValueError):
            raise ValueError(f"Invalid request parameters: {exception}") from exception

        raise RuntimeError(
            f"{provider_name} API call failed: {exception.__class__.__name__}: {exception}"
        ) from exception

    @property
    @abstractmethod
    def _llm_type(self) -> str:
        """String identifier for this LLM type (e.g. "anthropic-claude", "google-genai")."""

    @property
    def _identifying_params(self) -> dict[str, Any]:
        return {
            "model_name": self.model_name,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }

    @abstractmethod
    def _call(
        self,
        prompt: str,
        stop: Sequence[str] | None = None,
        run_manager: CallbackManagerForLLMRun | None = None,
        **kwargs: Any,
    ) -> str:
        """
        Generate text from a prompt.

        Raises:
            RuntimeError: If the model fails to generate a response
        """
