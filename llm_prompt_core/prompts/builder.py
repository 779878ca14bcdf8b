"""
Prompt builder for composing context-aware prompts.

This module provides the PromptBuilder class for constructing prompts from a
rendered case file, the trial record and the player's latest input.
"""

from typing import Optional

from llm_prompt_core.prompts.templates import (
    adr_counter_template,
    adr_rejection_template,
    admissibility_schema,
    admissibility_template,
    case_generation_template,
    case_instruction_prefix,
    case_schema,
    closing_instruction_template,
    court_instruction_prefix,
    evaluation_instruction_prefix,
    evaluation_schema,
    evaluation_template,
    oral_filing_goals_instruction,
    oral_latest_action_template,
    oral_next_step_instruction,
    oral_silent_action,
    preamble_template,
    procedure_descriptions,
    resolution_instructions,
    turn_schema,
    turn_template,
    written_filing_goals_instruction,
    written_latest_action_template,
    written_next_step_instruction,
)


class PromptBuilder:
    """
    Builder class for constructing prompts for different types of LLM operations.

    This class provides methods to build prompts for:
    - Case generation
    - Admissibility review of a written filing
    - Courtroom turns
    - Final evaluation
    """

    @staticmethod
    def build_preamble(instruction_prefix: str, case_context: str) -> str:
        return preamble_template.format(
            instruction_prefix=instruction_prefix,
            case_context=case_context,
        )

    @staticmethod
    def build_case_prompt(area: str, procedure: str, difficulty: str) -> str:
        """
        Build the prompt that asks for a new case.

        Args:
            area: Display name of the legal area (e.g. "Labour Law")
            procedure: "written" or "oral"
            difficulty: "introductory", "intermediate" or "advanced"
        """
        filing_goals = (
            written_filing_goals_instruction if procedure == "written" else oral_filing_goals_instruction
        )
        return case_generation_template.format(
            instruction_prefix=case_instruction_prefix,
            area=area,
            difficulty=difficulty,
            procedure_description=procedure_descriptions[procedure],
            filing_goals_instruction=filing_goals,
            schema=case_schema,
        )

    @staticmethod
    def build_admissibility_prompt(case_context: str, draft: str) -> str:
        preamble = PromptBuilder.build_preamble(court_instruction_prefix, case_context)
        return admissibility_template.format(
            preamble=preamble,
            draft=draft,
            schema=admissibility_schema,
        )

    @staticmethod
    def build_latest_action(procedure: str, latest_input: str) -> str:
        if procedure == "written":
            return written_latest_action_template.format(latest_input=latest_input)
        if not latest_input.strip():
            return oral_silent_action
        return oral_latest_action_template.format(latest_input=latest_input)

    @staticmethod
    def build_negotiation_action(kind: str, terms: str, countered: bool) -> str:
        template = adr_counter_template if countered else adr_rejection_template
        return template.format(kind=kind, terms=terms)

    @staticmethod
    def build_turn_prompt(
        case_context: str,
        procedure: str,
        history: str,
        latest_action: str,
    ) -> str:
        """
        Build a complete prompt for the next courtroom turn.

        Args:
            case_context: The case rendered for prompts
            procedure: "written" or "oral"
            history: The trial record so far, one line per record
            latest_action: The sentence describing what the player just did
        """
        preamble = PromptBuilder.build_preamble(court_instruction_prefix, case_context)
        next_step = written_next_step_instruction if procedure == "written" else oral_next_step_instruction
        return turn_template.format(
            preamble=preamble,
            procedure=procedure,
            history=history or "(no records yet)",
            latest_action=latest_action,
            next_step_instruction=next_step,
            schema=turn_schema,
        )

    @staticmethod
    def build_evaluation_prompt(
        history: str,
        objective: str,
        resolution: str,
        closing: Optional[str] = None,
    ) -> str:
        closing_instruction = closing_instruction_template.format(closing=closing) if closing else ""
        return evaluation_template.format(
            instruction_prefix=evaluation_instruction_prefix,
            objective=objective,
            history=history,
            resolution_instruction=resolution_instructions[resolution],
            closing_instruction=closing_instruction,
            schema=evaluation_schema,
        )
