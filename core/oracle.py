# core/oracle.py

from __future__ import annotations

import json
import logging
from typing import Any, AsyncIterator, Dict, List, Optional

import httpx
from openai import AsyncOpenAI, OpenAIError

from core.config import OracleSettings
from core.models import Candidate

logger = logging.getLogger(__name__)

EMPTY_RESPONSE = '{ "suggestions": [] }'


class OracleError(RuntimeError):
    pass


class OracleNotConfigured(OracleError):
    pass


def _optional_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def parse_candidate(raw: Any) -> Optional[Candidate]:
    """
    Map one suggestion object emitted by the model onto a Candidate.

    Objects missing a type, original text or suggested text are dropped.
    """
    if not isinstance(raw, dict):
        return None

    kind = raw.get("type")
    snippet = raw.get("originalText")
    replacement = raw.get("suggestedText")
    if not (isinstance(kind, str) and kind):
        return None
    if not (isinstance(snippet, str) and snippet):
        return None
    if not (isinstance(replacement, str) and replacement):
        return None

    context = raw.get("context")
    explanation = raw.get("explanation")
    return Candidate(
        kind=kind,
        snippet=snippet,
        replacement=replacement,
        context=context if isinstance(context, str) else None,
        explanation=explanation if isinstance(explanation, str) else None,
        confidence_raw=_optional_float(raw.get("confidence")),
    )


def parse_candidates(payload: str) -> List[Candidate]:
    """Parse a '{"suggestions": [...]}' response into valid candidates."""
    try:
        data = json.loads(payload or EMPTY_RESPONSE)
    except json.JSONDecodeError as e:
        raise OracleError(f"Model returned invalid JSON: {e}") from e

    if not isinstance(data, dict):
        logger.error("Model did not return a JSON object: %r", data)
        return []

    raw_suggestions = data.get("suggestions") or []
    if not isinstance(raw_suggestions, list):
        logger.error("Model did not return a list of suggestions: %r", raw_suggestions)
        return []

    candidates = []
    for raw in raw_suggestions:
        cand = parse_candidate(raw)
        if cand is None:
            logger.debug("Dropping malformed suggestion: %r", raw)
            continue
        candidates.append(cand)
    return candidates


class JsonObjectStream:
    """
    Pull complete top-level JSON objects out of text arriving in pieces.

    Code fences are ignored. Text that does not parse as an object once its
    braces balance is skipped.
    """

    def __init__(self) -> None:
        self.buffer = ""

    def _object_end(self, start: int) -> int:
        depth = 0
        in_string = False
        escaped = False
        for i in range(start, len(self.buffer)):
            ch = self.buffer[i]
            if in_string:
                if escaped:
                    escaped = False
                elif ch == "\\":
                    escaped = True
                elif ch == '"':
                    in_string = False
                continue
            if ch == '"':
                in_string = True
            elif ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
                if depth == 0:
                    return i
        return -1

    def feed(self, delta: str) -> List[Dict[str, Any]]:
        self.buffer += delta
        self.buffer = self.buffer.replace("```json", "").replace("```", "")

        objects: List[Dict[str, Any]] = []
        while True:
            start = self.buffer.find("{")
            if start == -1:
                self.buffer = ""
                break
            end = self._object_end(start)
            if end == -1:
                self.buffer = self.buffer[start:]
                break

            chunk = self.buffer[start:end + 1]
            self.buffer = self.buffer[end + 1:]
            try:
                obj = json.loads(chunk)
            except json.JSONDecodeError:
                logger.warning("Could not parse streamed object: %s", chunk)
                continue
            if isinstance(obj, dict):
                objects.append(obj)
        return objects


class SuggestionOracle:
    """Chat-completions client for the suggestion model."""

    def __init__(self, settings: OracleSettings, client: AsyncOpenAI | None = None):
        self.settings = settings
        self._client = client

    @property
    def client(self) -> AsyncOpenAI:
        if self._client is None:
            if not self.settings.api_key:
                raise OracleNotConfigured("OpenAI API key not configured")
            timeout = httpx.Timeout(self.settings.timeout_seconds, connect=30.0)
            self._client = AsyncOpenAI(api_key=self.settings.api_key, timeout=timeout)
        return self._client

    async def complete_json(self, prompt: str) -> str:
        """Ask for a single JSON object and return the raw message content."""
        try:
            response = await self.client.chat.completions.create(
                model=self.settings.model,
                messages=[{"role": "user", "content": prompt}],
                temperature=self.settings.temperature,
                max_tokens=self.settings.max_output_tokens,
                response_format={"type": "json_object"},
            )
        except OpenAIError as e:
            raise OracleError(f"Model request failed: {e}") from e

        if not response.choices:
            return EMPTY_RESPONSE
        return response.choices[0].message.content or EMPTY_RESPONSE

    async def stream(self, prompt: str) -> AsyncIterator[str]:
        """Yield content deltas of a streamed completion."""
        try:
            response = await self.client.chat.completions.create(
                model=self.settings.model,
                messages=[{"role": "user", "content": prompt}],
                temperature=0,
                stream=True,
            )
            async for chunk in response:
                if not chunk.choices:
                    continue
                delta = chunk.choices[0].delta.content
                if delta:
                    yield delta
        except OpenAIError as e:
            raise OracleError(f"Model stream failed: {e}") from e
