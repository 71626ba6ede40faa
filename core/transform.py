# core/transform.py

from __future__ import annotations

import logging
from typing import Iterable, List, Tuple

from core.models import Suggestion

logger = logging.getLogger(__name__)


def apply_suggestions(text: str, accepted: Iterable[Suggestion]) -> Tuple[str, List[Suggestion]]:
    """
    Replace each accepted suggestion's span with its suggested text.

    Offsets refer to the text as given, so edits are applied in one
    left-to-right pass. A suggestion is skipped when its span falls outside
    the text, overlaps an earlier accepted one, or no longer holds the text
    it was made for.

    Returns the new text and the suggestions that were applied.
    """
    ordered = sorted(accepted, key=lambda s: (s.start, s.end))
    out_parts = []
    applied: List[Suggestion] = []
    cursor = 0

    for sugg in ordered:
        if sugg.start < cursor or sugg.end > len(text) or sugg.start >= sugg.end:
            logger.info("Skipping suggestion %s at [%d, %d)", sugg.id, sugg.start, sugg.end)
            continue

        current = text[sugg.start:sugg.end]
        if sugg.original_text and current != sugg.original_text:
            logger.info(
                "Skipping stale suggestion %s: expected %r, found %r",
                sugg.id,
                sugg.original_text,
                current,
            )
            continue

        if sugg.start > cursor:
            out_parts.append(text[cursor:sugg.start])
        out_parts.append(sugg.suggested_text)
        applied.append(sugg)
        cursor = sugg.end

    if cursor < len(text):
        out_parts.append(text[cursor:])

    return "".join(out_parts), applied


def shift_after_edit(suggestions: Iterable[Suggestion], edited: Suggestion) -> List[Suggestion]:
    """
    Keep the remaining suggestions addressable after one edit was applied.

    Suggestions ending before the edit are unchanged, those starting after
    it move by the change in length, and those overlapping it are dropped.
    """
    delta = len(edited.suggested_text) - (edited.end - edited.start)
    kept: List[Suggestion] = []
    for sugg in suggestions:
        if sugg.id == edited.id:
            continue
        if sugg.end <= edited.start:
            kept.append(sugg)
        elif sugg.start >= edited.end:
            sugg.start += delta
            sugg.end += delta
            kept.append(sugg)
    return kept
