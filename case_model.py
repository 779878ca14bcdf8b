"""
Case Model

Passive data describing a generated case: parties, objective, evidence,
difficulty and the procedure kind that decides how the trial is run.

A Case is immutable once generated. The content generator (or the guided case
catalogue) creates it and the lifecycle controller owns it for one case.
"""

from __future__ import annotations

import uuid
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from llm_prompt_core.utils import list_to_conjunction


class ProcedureKind(str, Enum):
    """How a case is litigated."""

    WRITTEN = "written"  # Civil / family: filings, no countdown
    ORAL = "oral"        # Criminal / labour: spoken turns against the clock


class DifficultyTier(str, Enum):
    """Coarse case-generation parameter derived from the progression counter."""

    INTRODUCTORY = "introductory"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


class Party(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    role: str  # e.g. "Plaintiff (your client)", "Defendant", "Key witness"


class JudgeProfile(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    disposition: str


class GlossaryTerm(BaseModel):
    model_config = ConfigDict(frozen=True)

    term: str
    definition: str
    source: Optional[str] = None  # Statute or article backing the definition


class GuidedStep(BaseModel):
    """Tutorial hint shown when ``trigger`` matches the current point of play."""

    model_config = ConfigDict(frozen=True)

    trigger: str  # "pre-trial-drafting" or "trial-turn-<n>"
    title: str
    text: str


class Case(BaseModel):
    """A generated legal case."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    title: str
    summary: str
    area: str
    procedure: ProcedureKind
    difficulty: DifficultyTier
    objective: str
    parties: tuple[Party, ...] = ()
    evidence: tuple[str, ...] = ()
    judge: Optional[JudgeProfile] = None
    opposing_argument: Optional[str] = None
    glossary: tuple[GlossaryTerm, ...] = ()

    client_interview: str = ""
    filing_goals: Optional[str] = None
    key_facts: tuple[str, ...] = ()
    is_guided: bool = False
    guided_steps: tuple[GuidedStep, ...] = ()

    @property
    def is_oral(self) -> bool:
        return self.procedure is ProcedureKind.ORAL

    @property
    def counts_for_progression(self) -> bool:
        """Tutorial cases never move the difficulty tier."""
        return not self.is_guided

    def guidance_for(self, trigger: str) -> Optional[GuidedStep]:
        if not self.is_guided:
            return None
        for step in self.guided_steps:
            if step.trigger == trigger:
                return step
        return None

    def procedure_label(self) -> str:
        return "Written procedure" if self.procedure is ProcedureKind.WRITTEN else "Oral trial"

    def to_prompt_context(self) -> str:
        """Render the case for inclusion in an LLM prompt."""
        parties = "\n".join(f"- {p.name}: {p.role}" for p in self.parties) or "- (none listed)"
        evidence = "\n".join(f"- {e}" for e in self.evidence) or "- (none listed)"
        lines = [
            f"Title: {self.title}",
            f"Area of law: {self.area}",
            f"Procedure: {self.procedure_label()}",
            f"Difficulty: {self.difficulty.value}",
            f"Summary: {self.summary}",
            f"Player objective: {self.objective}",
            f"Parties:\n{parties}",
            f"Evidence:\n{evidence}",
        ]
        if self.judge:
            lines.append(f"Presiding judge: {self.judge.name} ({self.judge.disposition})")
        if self.opposing_argument:
            lines.append(f"Opposing position: {self.opposing_argument}")
        if self.glossary:
            terms = list_to_conjunction([entry.term for entry in self.glossary])
            lines.append(f"Key terms the player is studying: {terms}")
        return "\n".join(lines)
