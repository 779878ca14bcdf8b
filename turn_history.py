"""
Turn History Log

Append-only, ordered record of every action taken during pre-trial drafting
and the trial. It is the authoritative transcript used for evaluation.

Records are a tagged variant, one class per speaker/purpose:
- PlayerAction: something the player submitted or decided
- RulingOrNarrative: the judge or opposing counsel moving the trial forward
- ADRProposalRecord: the opposing side offering to settle
- SystemNotice: engine bookkeeping visible in the transcript
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterator, Optional, Union

from pydantic import BaseModel, ConfigDict

logger = logging.getLogger(__name__)


class Speaker(str, Enum):
    PLAYER = "PLAYER"
    JUDGE = "JUDGE"
    OPPONENT = "OPPONENT"
    SYSTEM = "SYSTEM"


class ADRKind(str, Enum):
    SETTLEMENT = "settlement"
    MEDIATION = "mediation"
    ARBITRATION = "arbitration"
    AGREEMENT = "agreement"


class ADRProposal(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: ADRKind
    terms: str


class StageFeedback(BaseModel):
    """Coaching on the player's last action."""

    model_config = ConfigDict(frozen=True)

    analysis: str
    citation: Optional[str] = None


class ActionKind(str, Enum):
    FILING = "filing"
    OPENING_STATEMENT = "opening_statement"
    ORAL_ARGUMENT = "oral_argument"
    ADR_ACCEPTANCE = "adr_acceptance"
    ADR_REJECTION = "adr_rejection"
    ADR_COUNTER = "adr_counter"


@dataclass(frozen=True)
class PlayerAction:
    text: str
    submission: str
    kind: ActionKind
    proposal: Optional[ADRProposal] = None

    speaker = Speaker.PLAYER

    def __post_init__(self) -> None:
        carries_proposal = self.kind in (ActionKind.ADR_ACCEPTANCE, ActionKind.ADR_COUNTER)
        if carries_proposal and self.proposal is None:
            raise ValueError(f"{self.kind.value} records must carry the proposal terms")
        if not carries_proposal and self.proposal is not None:
            raise ValueError(f"{self.kind.value} records cannot carry a proposal")

    def to_dict(self) -> dict[str, Any]:
        data = {
            "speaker": self.speaker.value,
            "kind": self.kind.value,
            "text": self.text,
            "submission": self.submission,
        }
        if self.proposal:
            data["proposal"] = self.proposal.model_dump(mode="json")
        return data


@dataclass(frozen=True)
class RulingOrNarrative:
    speaker: Speaker
    text: str
    is_final_ruling: bool = False
    feedback: Optional[StageFeedback] = None
    options: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.speaker not in (Speaker.JUDGE, Speaker.OPPONENT):
            raise ValueError(f"Rulings and narrative come from the bench or opposing counsel, not {self.speaker.value}")

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "speaker": self.speaker.value,
            "text": self.text,
            "is_final_ruling": self.is_final_ruling,
        }
        if self.feedback:
            data["feedback"] = self.feedback.model_dump(mode="json")
        if self.options:
            data["options"] = list(self.options)
        return data


@dataclass(frozen=True)
class ADRProposalRecord:
    text: str
    proposal: ADRProposal
    feedback: Optional[StageFeedback] = None
    options: tuple[str, ...] = ()

    speaker = Speaker.OPPONENT

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "speaker": self.speaker.value,
            "text": self.text,
            "proposal": self.proposal.model_dump(mode="json"),
        }
        if self.feedback:
            data["feedback"] = self.feedback.model_dump(mode="json")
        if self.options:
            data["options"] = list(self.options)
        return data


@dataclass(frozen=True)
class SystemNotice:
    text: str

    speaker = Speaker.SYSTEM

    def to_dict(self) -> dict[str, Any]:
        return {"speaker": self.speaker.value, "text": self.text}


TurnRecord = Union[PlayerAction, RulingOrNarrative, ADRProposalRecord, SystemNotice]


@dataclass
class TurnHistory:
    """
    Ordered transcript of a case.

    Records are only ever appended. ``revert_last`` exists for one purpose: a
    player record whose round failed and that the player replaces with a
    revised submission.
    """

    _records: list[TurnRecord] = field(default_factory=list)

    def append(self, record: TurnRecord) -> TurnRecord:
        self._records.append(record)
        logger.debug("[History] #%d %s", len(self._records), record.speaker.value)
        return record

    def revert_last(self) -> TurnRecord:
        if not self._records:
            raise IndexError("Cannot revert an empty history")
        record = self._records.pop()
        logger.info("[History] Reverted last %s record", record.speaker.value)
        return record

    @property
    def last(self) -> Optional[TurnRecord]:
        return self._records[-1] if self._records else None

    def last_from(self, *speakers: Speaker) -> Optional[TurnRecord]:
        for record in reversed(self._records):
            if record.speaker in speakers:
                return record
        return None

    def records(self) -> tuple[TurnRecord, ...]:
        return tuple(self._records)

    def to_list(self) -> list[dict[str, Any]]:
        return [record.to_dict() for record in self._records]

    def transcript(self) -> str:
        """Plain-text transcript for prompts."""
        lines = []
        for record in self._records:
            text = record.submission if isinstance(record, PlayerAction) and record.submission else record.text
            lines.append(f"[{record.speaker.value}]: {text}")
        return "\n".join(lines)

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[TurnRecord]:
        return iter(self._records)

    def __bool__(self) -> bool:
        return bool(self._records)
