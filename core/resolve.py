# core/resolve.py

from __future__ import annotations

import logging
from typing import Callable, Iterable, List, Sequence

from core.chunking import split_on_terminators
from core.locate import locate, located_spans
from core.models import Candidate, Chunk, ResolvedSpan

logger = logging.getLogger(__name__)

Chunker = Callable[[str], Sequence[str]]


def plan_chunks(document: str, chunker: Chunker = split_on_terminators) -> List[Chunk]:
    """
    Cut document into chunks that know where they sit in it.

    Each chunk's text has its leading whitespace removed and its offset
    points at the first kept character. Whitespace-only pieces are skipped.
    """
    chunks: List[Chunk] = []
    cursor = 0
    for piece in chunker(document):
        if not document.startswith(piece, cursor):
            raise ValueError(
                f"Chunker returned a piece that is not at offset {cursor}: {piece[:40]!r}"
            )
        chunk_offset = cursor
        cursor += len(piece)

        trimmed = piece.lstrip()
        if not trimmed:
            continue
        trim_offset = len(piece) - len(trimmed)
        chunks.append(Chunk(text=trimmed, offset=chunk_offset + trim_offset))

    return chunks


def rebase_spans(spans: Iterable[ResolvedSpan], offset: int) -> List[ResolvedSpan]:
    return [s.shifted(offset) for s in spans]


def merge_chunk_spans(
    per_chunk: Iterable[Sequence[ResolvedSpan]],
) -> List[ResolvedSpan]:
    """
    Concatenate spans from all chunks, ordered by start.

    Chunks are disjoint, so spans already re-based to document offsets
    cannot overlap; only their order needs restoring.
    """
    merged: List[ResolvedSpan] = []
    for spans in per_chunk:
        merged.extend(spans)
    merged.sort(key=lambda s: (s.start, s.end))
    return merged


def locate_in_chunk(chunk: Chunk, candidates: Sequence[Candidate]) -> List[ResolvedSpan]:
    """Locate candidates inside one chunk and return document-level spans."""
    results = locate(chunk.text, candidates)
    return rebase_spans(located_spans(results), chunk.offset)


def locate_across_chunks(
    document: str,
    chunker: Chunker,
    candidates_for: Callable[[str], Sequence[Candidate]],
) -> List[ResolvedSpan]:
    """
    Analyse each chunk independently and map the spans back onto document.

    candidates_for receives a chunk's text and returns the candidates
    proposed for it. A chunk whose candidates cannot be produced
    contributes nothing; the other chunks are unaffected.
    """
    per_chunk: List[List[ResolvedSpan]] = []
    for chunk in plan_chunks(document, chunker):
        try:
            candidates = candidates_for(chunk.text)
        except Exception as e:
            logger.warning("Skipping chunk at offset %d: %s", chunk.offset, e)
            continue
        per_chunk.append(locate_in_chunk(chunk, candidates))

    return merge_chunk_spans(per_chunk)
