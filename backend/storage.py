"""
In-memory session state for one question-generation session.

Everything a session mutates lives on a SessionState instance owned by a
controller; there is no module-level store.
"""

from __future__ import annotations
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

DIFFICULTIES = ("easy", "medium", "hard")
DEFAULT_CATEGORY = "General"
DEFAULT_DIFFICULTY = "medium"


def new_id() -> str:
    return str(uuid.uuid4())


def normalize_difficulty(value: Any, default: str = DEFAULT_DIFFICULTY) -> str:
    v = str(value or "").strip().lower()
    return v if v in DIFFICULTIES else default


@dataclass(frozen=True)
class Question:
    text: str
    category: str = DEFAULT_CATEGORY
    difficulty: str = DEFAULT_DIFFICULTY
    diagnostic: Optional[Mapping[str, Any]] = field(default=None, compare=False)

    @property
    def is_fallback(self) -> bool:
        return self.diagnostic is not None

    @classmethod
    def from_dict(cls, data: Any) -> "Question":
        if not isinstance(data, Mapping):
            return cls(text=str(data) if data is not None else "")
        diagnostic = data.get("_diagnostic") or data.get("_error")
        if diagnostic is not None and not isinstance(diagnostic, Mapping):
            diagnostic = {"message": str(diagnostic)}
        return cls(
            text=str(data.get("text") or ""),
            category=str(data.get("category") or DEFAULT_CATEGORY),
            difficulty=str(data.get("difficulty") or DEFAULT_DIFFICULTY),
            diagnostic=diagnostic,
        )

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "text": self.text,
            "category": self.category,
            "difficulty": self.difficulty,
        }
        if self.diagnostic is not None:
            out["_diagnostic"] = dict(self.diagnostic)
        return out


@dataclass(frozen=True)
class GenerationQuery:
    resume_text: str
    position: str
    company: str = ""
    difficulty: str = "all"

    def to_payload(self) -> Dict[str, str]:
        return {
            "resume": self.resume_text,
            "position": self.position,
            "company": self.company,
            "difficulty": self.difficulty,
        }


@dataclass(frozen=True)
class ResumeFile:
    filename: str
    content_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass
class QuestionFeed:
    all: List[Question] = field(default_factory=list)
    displayed_count: int = 0

    @property
    def remaining(self) -> int:
        return len(self.all) - self.displayed_count


class Phase(str, Enum):
    IDLE = "idle"
    EXTRACTING = "extracting"
    REQUESTING = "requesting"
    READY = "ready"
    REQUESTING_MORE = "requesting_more"

    @property
    def in_flight(self) -> bool:
        return self in (Phase.EXTRACTING, Phase.REQUESTING, Phase.REQUESTING_MORE)


MORE_LABEL = "Generate More Questions"
MORE_BUSY_LABEL = "Generating more questions..."
MORE_EMPTY_LABEL = "No more questions available"
MORE_FAILED_LABEL = "Failed to generate more"


@dataclass
class SessionState:
    session_id: str = field(default_factory=new_id)
    file: Optional[ResumeFile] = None
    query: Optional[GenerationQuery] = None
    feed: QuestionFeed = field(default_factory=QuestionFeed)
    rendered: List[str] = field(default_factory=list)
    phase: Phase = Phase.IDLE
    more_visible: bool = False
    more_label: str = MORE_LABEL
    error: Optional[str] = None
