# core/models.py

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Optional


@dataclass
class Candidate:
    kind: str
    snippet: str
    replacement: str
    context: Optional[str] = None
    explanation: Optional[str] = None
    confidence_raw: Optional[float] = None

    def is_valid(self) -> bool:
        return bool(self.kind) and bool(self.snippet) and bool(self.replacement)


@dataclass
class ResolvedSpan:
    start: int
    end: int
    matched_text: str
    candidate: Candidate

    def __post_init__(self):
        if self.start < 0 or self.start >= self.end:
            raise ValueError(f"Invalid span [{self.start}, {self.end})")
        if self.end - self.start != len(self.matched_text):
            raise ValueError(
                f"Span [{self.start}, {self.end}) does not fit {self.matched_text!r}"
            )

    def overlaps(self, other: "ResolvedSpan") -> bool:
        return not (self.end <= other.start or other.end <= self.start)

    def shifted(self, offset: int) -> "ResolvedSpan":
        return replace(self, start=self.start + offset, end=self.end + offset)


@dataclass
class LocateResult:
    candidate: Candidate
    span: Optional[ResolvedSpan] = None
    reason: Optional[str] = None

    @property
    def found(self) -> bool:
        return self.span is not None


@dataclass
class Chunk:
    text: str
    offset: int

    @property
    def end(self) -> int:
        return self.offset + len(self.text)


@dataclass
class Suggestion:
    id: str
    kind: str
    title: str
    icon: str
    description: str
    original_text: str
    suggested_text: str
    confidence: float
    start: int
    end: int
    region: Optional[str] = None
