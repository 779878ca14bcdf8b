"""
Prompt templates and builders for the courtroom simulation.

This module contains the prompt templates and the builder that combines them
with the case file and trial record.
"""

from llm_prompt_core.prompts.builder import PromptBuilder
from llm_prompt_core.prompts.templates import (
    admissibility_schema,
    case_schema,
    evaluation_schema,
    turn_schema,
)

__all__ = [
    "PromptBuilder",
    "admissibility_schema",
    "case_schema",
    "evaluation_schema",
    "turn_schema",
]
