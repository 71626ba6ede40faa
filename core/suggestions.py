# core/suggestions.py

from __future__ import annotations

import uuid
from typing import Dict, Iterable, List, Mapping, Optional

from core.config import KindStyle
from core.models import ResolvedSpan, Suggestion

DEFAULT_ICON = "✨"
DEFAULT_DESCRIPTION = "A suggestion for improvement."
REGION_DESCRIPTION = "A context-aware suggestion for improvement."
DEFAULT_CONFIDENCE = 80.0

KIND_STYLES: Dict[str, KindStyle] = {
    "spelling": KindStyle(title="Spelling Correction", icon="✍️"),
    "grammar": KindStyle(title="Grammar Correction", icon="🧐"),
}

# region kind -> title prefix and icon; other regions keep the kind's style
REGION_STYLES: Dict[str, KindStyle] = {
    "subject": KindStyle(title="Subject Line", icon="📧"),
    "intro": KindStyle(title="Opening", icon="🎯"),
    "cta": KindStyle(title="CTA", icon="🚀"),
}


def style_for(kind: str, overrides: Optional[Mapping[str, KindStyle]] = None) -> KindStyle:
    if overrides and kind in overrides:
        return overrides[kind]
    if kind in KIND_STYLES:
        return KIND_STYLES[kind]
    # passive-voice -> Passive Voice
    title = " ".join(word.capitalize() for word in kind.split("-"))
    return KindStyle(title=title, icon=DEFAULT_ICON)


def region_style(kind: str, region: str) -> Optional[KindStyle]:
    """Title and icon for a suggestion found in a subject, intro or CTA region."""
    prefix = REGION_STYLES.get(region)
    if prefix is None:
        return None
    title = " ".join(word.capitalize() for word in kind.split("-"))
    return KindStyle(title=f"{prefix.title} {title}", icon=prefix.icon)


def clamp_confidence(raw: Optional[float], default: float = DEFAULT_CONFIDENCE) -> float:
    if not raw:
        return default
    return min(100.0, max(0.0, raw))


def to_suggestion(
    span: ResolvedSpan,
    overrides: Optional[Mapping[str, KindStyle]] = None,
    default_confidence: float = DEFAULT_CONFIDENCE,
    region: Optional[str] = None,
) -> Suggestion:
    cand = span.candidate
    style = style_for(cand.kind, overrides)
    description = DEFAULT_DESCRIPTION
    if region is not None:
        style = region_style(cand.kind, region) or style
        description = REGION_DESCRIPTION
    return Suggestion(
        id=str(uuid.uuid4()),
        kind=cand.kind,
        title=style.title,
        icon=style.icon,
        description=cand.explanation or description,
        original_text=span.matched_text,
        suggested_text=cand.replacement,
        confidence=clamp_confidence(cand.confidence_raw, default_confidence),
        start=span.start,
        end=span.end,
        region=region,
    )


def to_suggestions(
    spans: Iterable[ResolvedSpan],
    overrides: Optional[Mapping[str, KindStyle]] = None,
    default_confidence: float = DEFAULT_CONFIDENCE,
    region: Optional[str] = None,
) -> List[Suggestion]:
    return [to_suggestion(s, overrides, default_confidence, region) for s in spans]
