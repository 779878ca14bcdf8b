"""
LLM Prompt Core - prompt construction and model wrappers for the trial simulation.

Supports Claude (Anthropic) and Gemini (Google) through LangChain-compatible
wrappers, and builds the case, admissibility, turn and evaluation prompts.
"""

from llm_prompt_core.models.base import BaseLLMModel
from llm_prompt_core.prompts.builder import PromptBuilder
from llm_prompt_core.utils import extract_json, list_to_conjunction

__all__ = [
    "BaseLLMModel",
    "PromptBuilder",
    "extract_json",
    "list_to_conjunction",
]

__version__ = "0.1.0"
