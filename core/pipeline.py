# core/pipeline.py

from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterator, Awaitable, Iterable, List, Optional, Sequence, Tuple

from .cache import RateLimiter, ResponseCache, cache_key
from .chunking import split_sentences, truncate_at_sentence_boundary
from .config import AssistantConfig
from .locate import ClaimedOffsets, locate, located_spans
from .models import Candidate, Chunk, ResolvedSpan, Suggestion
from .oracle import (
    JsonObjectStream,
    OracleNotConfigured,
    SuggestionOracle,
    parse_candidate,
    parse_candidates,
)
from .prompts import build_analysis_prompt, build_grammar_stream_prompt, build_region_prompt
from .regions import ContentRegion, detect_regions
from .resolve import Chunker, locate_in_chunk, merge_chunk_spans, plan_chunks
from .suggestions import to_suggestion, to_suggestions
from .validators import InputError, validate_input

logger = logging.getLogger(__name__)

GRAMMAR_CONFIDENCE = 95.0


class WritingAssistant:
    """
    Ties the suggestion model to the span locator.

    One instance holds the response caches and the rate limiters, so it is
    meant to live as long as the process serving requests.
    """

    def __init__(self, config: AssistantConfig, oracle: Optional[SuggestionOracle] = None):
        self.config = config
        self.oracle = oracle or SuggestionOracle(config.oracle)
        self.cache: ResponseCache[str] = ResponseCache(
            ttl=config.cache.ttl_seconds,
            max_entries=config.cache.max_entries,
        )
        self.grammar_cache: ResponseCache[List[Candidate]] = ResponseCache(
            ttl=config.cache.grammar_ttl_seconds,
            max_entries=config.cache.max_entries,
        )
        self.rate_limiter = RateLimiter(
            max_requests=config.rate_limit.max_requests,
            window=config.rate_limit.window_seconds,
        )
        self.grammar_rate_limiter = RateLimiter(
            max_requests=config.rate_limit.grammar_max_requests,
            window=config.rate_limit.window_seconds,
        )

    def _kinds(self, kinds: Optional[Iterable[str]]) -> List[str]:
        return list(kinds) if kinds else list(self.config.analysis.default_types)

    async def _ask(self, text: str, kinds: Sequence[str], region: Optional[str] = None) -> List[Candidate]:
        processed = truncate_at_sentence_boundary(text, self.config.analysis.max_input_length)
        mode = "analyze" if region is None else f"analyze:{region}"
        key = cache_key(processed, mode, kinds=list(kinds))
        raw = self.cache.get(key)
        if raw is not None:
            logger.debug("Analysis cache hit")
            return parse_candidates(raw)

        if region is None:
            prompt = build_analysis_prompt(processed, kinds)
        else:
            prompt = build_region_prompt(processed, kinds, region)
        raw = await self.oracle.complete_json(prompt)
        candidates = parse_candidates(raw)
        self.cache.set(key, raw)
        return candidates

    async def propose(self, text: str, kinds: Sequence[str]) -> List[Candidate]:
        """Ask the model for candidates on text. Responses are cached."""
        analysis = self.config.analysis
        validate_input(text, analysis.min_input_length, analysis.max_input_length)
        return await self._ask(text, kinds)

    async def _analyze_text(self, text: str, kinds: Sequence[str]) -> List[Suggestion]:
        candidates = await self.propose(text, kinds)
        results = locate(text, candidates)
        spans = located_spans(results)
        if len(spans) < len(results):
            logger.info("Located %d of %d suggestions", len(spans), len(results))
        return to_suggestions(spans, self.config.kinds)

    async def analyze(
        self,
        text: str,
        kinds: Optional[Iterable[str]] = None,
        client_id: Optional[str] = None,
    ) -> List[Suggestion]:
        """Analyse text in one model call and locate every suggestion in it."""
        if client_id:
            self.rate_limiter.check(client_id)
        return await self._analyze_text(text, self._kinds(kinds))

    async def _analyze_chunk(
        self,
        chunk: Chunk,
        kinds: Sequence[str],
        semaphore: asyncio.Semaphore,
        region: Optional[str] = None,
    ) -> List[ResolvedSpan]:
        async with semaphore:
            if region is None:
                candidates = await self.propose(chunk.text, kinds)
            else:
                candidates = await self._ask(chunk.text, kinds, region)
        return locate_in_chunk(chunk, candidates)

    async def _gather_chunks(
        self, chunks: Sequence[Chunk], jobs: Sequence[Awaitable[List[ResolvedSpan]]]
    ) -> List[List[ResolvedSpan]]:
        """
        Run one job per chunk. A failed job yields an empty list, unless
        every job failed for lack of credentials.
        """
        results = await asyncio.gather(*jobs, return_exceptions=True)

        not_configured = [r for r in results if isinstance(r, OracleNotConfigured)]
        if results and len(not_configured) == len(results):
            raise not_configured[0]

        per_chunk: List[List[ResolvedSpan]] = []
        for chunk, result in zip(chunks, results):
            if isinstance(result, BaseException):
                logger.warning(
                    "Analysis failed for text at offset %d: %s: %s",
                    chunk.offset,
                    type(result).__name__,
                    result,
                )
                per_chunk.append([])
                continue
            per_chunk.append(result)
        return per_chunk

    async def analyze_in_parallel(
        self,
        text: str,
        kinds: Optional[Iterable[str]] = None,
        client_id: Optional[str] = None,
        chunker: Chunker = split_sentences,
    ) -> List[Suggestion]:
        """
        Analyse each sentence with its own model call, concurrently.

        Spans come back in document coordinates, ordered by start. A
        sentence whose call fails contributes no suggestions.
        """
        if not isinstance(text, str) or not text.strip():
            raise InputError("No text provided")
        if client_id:
            self.rate_limiter.check(client_id)

        kinds = self._kinds(kinds)
        chunks = plan_chunks(text, chunker)
        semaphore = asyncio.Semaphore(max(1, self.config.analysis.max_concurrency))

        jobs = [self._analyze_chunk(chunk, kinds, semaphore) for chunk in chunks]
        per_chunk = await self._gather_chunks(chunks, jobs)
        return to_suggestions(merge_chunk_spans(per_chunk), self.config.kinds)

    async def analyze_with_context(
        self,
        text: str,
        kinds: Optional[Iterable[str]] = None,
        client_id: Optional[str] = None,
    ) -> Tuple[List[ContentRegion], List[Suggestion]]:
        """
        Analyse an email or newsletter region by region.

        Each detected region (subject, intro, body, CTA, closing) gets its
        own model call with criteria for that region, and its suggestions
        are placed inside the region, in document coordinates. Text with no
        detectable region falls back to a single-pass analysis.
        """
        analysis = self.config.analysis
        validate_input(text, analysis.min_input_length, analysis.max_input_length)
        if client_id:
            self.rate_limiter.check(client_id)

        kinds = self._kinds(kinds)
        regions = detect_regions(text)
        if not regions:
            logger.info("No content regions detected, analysing as a whole")
            return [], await self._analyze_text(text, kinds)

        chunks = [Chunk(text=r.text, offset=r.start) for r in regions]
        semaphore = asyncio.Semaphore(max(1, analysis.max_concurrency))
        jobs = [
            self._analyze_chunk(chunk, kinds, semaphore, region.kind)
            for chunk, region in zip(chunks, regions)
        ]
        per_region = await self._gather_chunks(chunks, jobs)

        suggestions: List[Suggestion] = []
        for region, spans in zip(regions, per_region):
            suggestions.extend(to_suggestions(spans, self.config.kinds, region=region.kind))
        suggestions.sort(key=lambda s: (s.start, s.end))
        return regions, suggestions

    def check_grammar_stream(
        self,
        text: str,
        level: str = "full",
        client_id: Optional[str] = None,
    ) -> AsyncIterator[Suggestion]:
        """
        Yield spelling/grammar suggestions as the model produces them.

        Input and rate-limit checks run before the iterator is returned.
        All suggestions of one check share a claimed-offset record, so a
        repeated mistake is placed on successive occurrences.
        """
        if not isinstance(text, str) or not text.strip():
            raise InputError("No text provided")
        if client_id:
            self.grammar_rate_limiter.check(client_id)
        return self._stream_grammar(text, level)

    def _place(self, text: str, cand: Candidate, claimed: ClaimedOffsets) -> Optional[Suggestion]:
        result = locate(text, [cand], claimed)[0]
        if result.span is None:
            return None
        return to_suggestion(result.span, self.config.kinds, GRAMMAR_CONFIDENCE)

    async def _stream_grammar(self, text: str, level: str) -> AsyncIterator[Suggestion]:
        claimed = ClaimedOffsets()
        # Candidates are cached, not spans: the key ignores surrounding
        # whitespace, so offsets are recomputed against this text.
        key = cache_key(text, "grammar", level=level)
        cached = self.grammar_cache.get(key)
        if cached is not None:
            for cand in cached:
                sugg = self._place(text, cand, claimed)
                if sugg is not None:
                    yield sugg
            return

        parser = JsonObjectStream()
        collected: List[Candidate] = []

        async for delta in self.oracle.stream(build_grammar_stream_prompt(text, level)):
            for obj in parser.feed(delta):
                cand = parse_candidate(obj)
                if cand is None:
                    continue
                collected.append(cand)
                sugg = self._place(text, cand, claimed)
                if sugg is not None:
                    yield sugg

        self.grammar_cache.set(key, collected)
