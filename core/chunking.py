# core/chunking.py

from __future__ import annotations

from typing import List

import regex as re

# A run of text up to and including its terminators, or a trailing run with none.
TERMINATOR_RE = re.compile(r"[^.!?]*[.!?]+|[^.!?]+\Z")

ABBREVIATIONS = {
    "Mr", "Mrs", "Ms", "Dr", "Prof", "Sr", "Jr", "vs", "etc", "Inc", "Ltd",
    "Corp", "Co", "LLC", "LLP", "USA", "UK", "US", "EU", "CEO", "CFO", "CTO",
    "VP", "Gen", "Lt", "Col", "Capt", "Sgt", "St", "Ave", "Blvd", "Rd", "Dept",
    "Univ", "Jan", "Feb", "Mar", "Apr", "Jun", "Jul", "Aug", "Sep", "Oct",
    "Nov", "Dec", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun", "AM", "PM",
    "cf", "al", "No", "vol", "pp", "ed", "eds",
}

# Always followed by a name, never the end of a sentence.
TITLES = {
    "Mr", "Mrs", "Ms", "Dr", "Prof", "Sr", "Jr", "St", "Gen", "Lt", "Col",
    "Capt", "Sgt",
}


def split_on_terminators(text: str) -> List[str]:
    """
    Split text after each run of '.', '!' or '?'.

    The pieces are contiguous: joined back together they equal text.
    Text with no terminator comes back as a single piece.
    """
    if not text:
        return []
    pieces = TERMINATOR_RE.findall(text)
    return pieces or [text]


def _word_before(text: str, pos: int) -> str:
    start = pos
    while start > 0 and text[start - 1].isalpha():
        start -= 1
    return text[start:pos]


def _next_non_space(text: str, pos: int) -> str:
    while pos < len(text) and text[pos].isspace():
        pos += 1
    return text[pos] if pos < len(text) else ""


def _is_sentence_end(text: str, i: int) -> bool:
    char = text[i]
    prev_char = text[i - 1] if i > 0 else ""
    next_char = text[i + 1] if i + 1 < len(text) else ""

    if char == ".":
        word = _word_before(text, i)
        if word in TITLES:
            return False
        # 3.14, example.com
        if prev_char.isdigit() and next_char.isdigit():
            return False
        if prev_char.isalpha() and next_char.isalpha():
            return False
        if word in ABBREVIATIONS and _next_non_space(text, i + 1).islower():
            return False

    if next_char and not next_char.isspace():
        return False

    following = _next_non_space(text, i + 1)
    return following == "" or bool(re.match(r"[A-Z0-9]", following))


def split_sentences(text: str) -> List[str]:
    """
    Sentence splitter that tolerates decimals, dotted names and common
    abbreviations.

    Like split_on_terminators, the pieces are contiguous; whitespace between
    sentences stays at the head of the following piece.
    """
    if not text:
        return []

    pieces: List[str] = []
    piece_start = 0
    for i, char in enumerate(text):
        if char in ".!?" and _is_sentence_end(text, i):
            pieces.append(text[piece_start:i + 1])
            piece_start = i + 1

    if piece_start < len(text):
        pieces.append(text[piece_start:])
    return pieces


def truncate_at_sentence_boundary(text: str, max_length: int) -> str:
    """Shorten text to at most max_length characters, dropping whole sentences."""
    if len(text) <= max_length:
        return text

    sentences = [s.strip() for s in split_sentences(text) if s.strip()]
    result = ""
    for sentence in sentences:
        if len(result) + len(sentence) + 1 > max_length:
            break
        result = f"{result} {sentence}" if result else sentence

    if not result and sentences:
        # The first sentence alone is too long: cut it.
        return sentences[0][:max_length]
    return result
