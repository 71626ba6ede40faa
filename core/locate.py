# core/locate.py

from __future__ import annotations

import logging
from typing import Iterator, List, Optional, Sequence, Set, Tuple

import regex as re

from core.models import Candidate, LocateResult, ResolvedSpan

logger = logging.getLogger(__name__)

WORD_CHAR_RE = re.compile(r"[A-Za-z0-9]")

NOT_FOUND = "no unused position found"
INVALID = "invalid candidate"


class ClaimedOffsets:
    """
    Positions already handed out during one resolution pass.

    A position is free when its start has not been claimed and the range
    does not overlap any claimed range.
    """

    def __init__(self) -> None:
        self.starts: Set[int] = set()
        self.ranges: List[Tuple[int, int]] = []

    def is_free(self, start: int, end: int) -> bool:
        if start in self.starts:
            return False
        return all(end <= s or e <= start for s, e in self.ranges)

    def claim(self, start: int, end: int) -> None:
        self.starts.add(start)
        self.ranges.append((start, end))

    def __contains__(self, start: int) -> bool:
        return start in self.starts

    def __len__(self) -> int:
        return len(self.starts)


def is_boundary(text: str, pos: int) -> bool:
    if pos < 0 or pos >= len(text):
        return True
    return WORD_CHAR_RE.match(text[pos]) is None


def has_word_boundary(text: str, start: int, length: int) -> bool:
    return is_boundary(text, start - 1) and is_boundary(text, start + length)


def _occurrences(text: str, needle: str) -> Iterator[int]:
    # Overlapping occurrences, left to right.
    pos = text.find(needle)
    while pos != -1:
        yield pos
        pos = text.find(needle, pos + 1)


def _search(
    document: str,
    snippet: str,
    claimed: ClaimedOffsets,
    context: Optional[str],
    relaxed: bool = True,
) -> Optional[Tuple[int, int]]:
    size = len(snippet)

    # 1) Anchored on the oracle's context
    if context and len(context) > size:
        relative = context.find(snippet)
        if relative != -1:
            for ctx_pos in _occurrences(document, context):
                start = ctx_pos + relative
                if claimed.is_free(start, start + size) and has_word_boundary(
                    document, start, size
                ):
                    return start, start + size

    # 2) Direct, whole-token matches only
    for start in _occurrences(document, snippet):
        if claimed.is_free(start, start + size) and has_word_boundary(
            document, start, size
        ):
            return start, start + size

    if not relaxed:
        return None

    # 3) Direct, any adjacent characters
    for start in _occurrences(document, snippet):
        if claimed.is_free(start, start + size):
            return start, start + size

    return None


def find_span(
    document: str,
    snippet: str,
    claimed: ClaimedOffsets,
    context: Optional[str] = None,
) -> Optional[Tuple[int, int]]:
    """
    Find the first unclaimed position of snippet in document and claim it.

    Tries the context anchor, then a boundary-checked direct search, then a
    relaxed direct search. A snippet padded with whitespace skips the relaxed
    tier and is retried once, stripped, through all three tiers, so the
    padding never ends up inside the span. Returns (start, end) or None.
    """
    if not isinstance(snippet, str):
        raise TypeError(f"snippet must be str, got {type(snippet).__name__}")
    if not snippet:
        return None

    trimmed = snippet.strip()
    padded = bool(trimmed) and trimmed != snippet

    found = _search(document, snippet, claimed, context, relaxed=not padded)
    if found is None and padded:
        found = _search(document, trimmed, claimed, context)

    if found is not None:
        claimed.claim(*found)
    return found


def locate(
    document: str,
    candidates: Sequence[Candidate],
    claimed: Optional[ClaimedOffsets] = None,
) -> List[LocateResult]:
    """
    Resolve each candidate to a span of document, in input order.

    Earlier candidates get first claim on ambiguous positions. Candidates
    that cannot be placed come back with span=None and a reason.
    """
    if claimed is None:
        claimed = ClaimedOffsets()

    results: List[LocateResult] = []
    for cand in candidates:
        if not cand.is_valid():
            results.append(LocateResult(candidate=cand, reason=INVALID))
            continue

        found = find_span(document, cand.snippet, claimed, cand.context)
        if found is None:
            logger.debug("Could not find unused position for %r", cand.snippet)
            results.append(LocateResult(candidate=cand, reason=NOT_FOUND))
            continue

        start, end = found
        span = ResolvedSpan(
            start=start,
            end=end,
            matched_text=document[start:end],
            candidate=cand,
        )
        results.append(LocateResult(candidate=cand, span=span))

    return results


def located_spans(results: Sequence[LocateResult]) -> List[ResolvedSpan]:
    return [r.span for r in results if r.span is not None]
