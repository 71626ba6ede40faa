# core/regions.py

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, List, Optional, Tuple

import regex as re

from core.chunking import split_sentences

PARAGRAPH_BREAK_RE = re.compile(r"\n[ \t]*\n\s*")

# (pattern, weight per match)
CTA_PATTERNS = [
    (re.compile(
        r"\b(click|read|download|subscribe|join|sign up|get|buy|purchase|order|"
        r"learn more|discover|explore|try|start|begin)\b",
        re.IGNORECASE,
    ), 1),
    (re.compile(r"\b(here|now|today|free|limited|exclusive|special)\b", re.IGNORECASE), 1),
    (re.compile(r"https?://\S+", re.IGNORECASE), 3),
    (re.compile(r"\[[^\]]+\]\([^)]+\)"), 1),
]

SIGN_OFF_RE = re.compile(
    r"^(best|thanks|thank you|cheers|regards|kind regards|sincerely|warmly|"
    r"talk soon|see you)\b",
    re.IGNORECASE,
)

MAX_SUBJECT_LENGTH = 100
SHORT_SUBJECT_LENGTH = 60
MIN_INTRO_LENGTH = 20
MIN_CTA_PARAGRAPH = 10
MIN_CTA_SCORE = 2.0
MAX_CTA_REGIONS = 2
MAX_CLOSING_LENGTH = 200
MIN_BODY_LENGTH = 50


@dataclass
class ContentRegion:
    kind: str
    start: int
    end: int
    text: str
    confidence: float


def _region(kind: str, document: str, start: int, end: int, confidence: float) -> Optional[ContentRegion]:
    """Region over document[start:end] with surrounding whitespace left out."""
    raw = document[start:end]
    text = raw.strip()
    if not text:
        return None
    start += len(raw) - len(raw.lstrip())
    return ContentRegion(kind=kind, start=start, end=start + len(text), text=text, confidence=confidence)


def _paragraphs(text: str, start: int = 0) -> Iterator[Tuple[int, int]]:
    pos = start
    for m in PARAGRAPH_BREAK_RE.finditer(text, start):
        yield pos, m.start()
        pos = m.end()
    if pos < len(text):
        yield pos, len(text)


def _subject(text: str) -> Optional[ContentRegion]:
    first = len(text) - len(text.lstrip())
    line_end = text.find("\n", first)
    if line_end == -1:
        return None
    line = text[first:line_end].strip()
    if not line or len(line) > MAX_SUBJECT_LENGTH or line.endswith("."):
        return None
    confidence = 0.9 if len(line) <= SHORT_SUBJECT_LENGTH else 0.7
    return _region("subject", text, first, line_end, confidence)


def _intro(text: str, start: int) -> Optional[ContentRegion]:
    rest = text[start:]
    if not rest.strip():
        return None
    for para_start, para_end in _paragraphs(text, start):
        if text[para_start:para_end].strip():
            break
    else:
        return None

    if para_end == len(text):
        # No blank line: the opening is the first three sentences.
        sentences = split_sentences(text[para_start:])
        para_end = para_start + sum(len(s) for s in sentences[:3])

    if len(text[para_start:para_end].strip()) <= MIN_INTRO_LENGTH:
        return None
    return _region("intro", text, para_start, para_end, 0.8)


def cta_score(paragraph: str, position: float) -> float:
    """
    Score how much a paragraph reads like a call to action.

    position is where the paragraph starts, as a fraction of the document;
    later paragraphs score higher.
    """
    score = 0.0
    for pattern, weight in CTA_PATTERNS:
        score += weight * len(pattern.findall(paragraph))
    if len(paragraph) < 200 and score > 0:
        score += 2
    return score + position * 2


def detect_regions(text: str) -> List[ContentRegion]:
    """
    Split newsletter or email text into subject, intro, body, CTA and
    closing regions.

    Regions are disjoint, ordered by start, and each region's text is
    exactly text[start:end]. Stretches too short to be a body are left
    out.
    """
    regions: List[ContentRegion] = []
    if not text.strip():
        return regions

    cursor = 0
    subject = _subject(text)
    if subject:
        regions.append(subject)
        cursor = subject.end

    intro = _intro(text, cursor)
    if intro:
        regions.append(intro)
        cursor = intro.end

    paragraphs = [(s, e) for s, e in _paragraphs(text, cursor) if text[s:e].strip()]

    scored = []
    for s, e in paragraphs:
        para = text[s:e]
        if len(para.strip()) <= MIN_CTA_PARAGRAPH:
            continue
        score = cta_score(para, s / len(text))
        if score >= MIN_CTA_SCORE:
            scored.append((score, s, e))
    scored.sort(key=lambda item: -item[0])
    cta_spans = set()
    for score, s, e in scored[:MAX_CTA_REGIONS]:
        region = _region("cta", text, s, e, min(0.95, score / 10))
        if region:
            regions.append(region)
            cta_spans.add((s, e))

    if paragraphs and paragraphs[-1] not in cta_spans:
        s, e = paragraphs[-1]
        closing = text[s:e].strip()
        if len(closing) <= MAX_CLOSING_LENGTH and SIGN_OFF_RE.match(closing):
            region = _region("closing", text, s, e, 0.7)
            if region:
                regions.append(region)

    regions.sort(key=lambda r: r.start)
    body: List[ContentRegion] = []
    gap_start = 0
    bounds = [(r.start, r.end) for r in regions] + [(len(text), len(text))]
    for start, end in bounds:
        if len(text[gap_start:start].strip()) > MIN_BODY_LENGTH:
            found = _region("body", text, gap_start, start, 0.6)
            if found:
                body.append(found)
        gap_start = max(gap_start, end)

    return sorted(regions + body, key=lambda r: r.start)
