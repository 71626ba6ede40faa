# tests/test_oracle.py

import asyncio
import json
from types import SimpleNamespace

import pytest
from openai import AsyncOpenAI, OpenAIError

from core.config import OracleSettings
from core.oracle import (
    EMPTY_RESPONSE,
    JsonObjectStream,
    OracleError,
    OracleNotConfigured,
    SuggestionOracle,
    parse_candidate,
    parse_candidates,
)


def test_parse_candidates_keeps_well_formed_entries():
    payload = json.dumps(
        {
            "suggestions": [
                {
                    "type": "spelling",
                    "originalText": "teh",
                    "suggestedText": "the",
                    "explanation": "Typo.",
                    "confidence": 90,
                    "context": "I saw teh cat",
                },
                {"type": "grammar", "originalText": "", "suggestedText": "x"},
                {"originalText": "a", "suggestedText": "b"},
                "not an object",
            ]
        }
    )
    candidates = parse_candidates(payload)

    assert len(candidates) == 1
    c = candidates[0]
    assert (c.kind, c.snippet, c.replacement) == ("spelling", "teh", "the")
    assert c.context == "I saw teh cat"
    assert c.explanation == "Typo."
    assert c.confidence_raw == 90.0


def test_parse_candidates_tolerates_odd_payloads():
    assert parse_candidates("") == []
    assert parse_candidates('{"suggestions": []}') == []
    assert parse_candidates('{"suggestions": "none"}') == []
    assert parse_candidates("[1, 2, 3]") == []
    assert parse_candidates("{}") == []


def test_parse_candidates_rejects_invalid_json():
    with pytest.raises(OracleError):
        parse_candidates("{not json")


def test_parse_candidate_confidence_is_optional():
    raw = {"type": "clarity", "originalText": "a", "suggestedText": "b"}
    assert parse_candidate({**raw, "confidence": "85"}).confidence_raw == 85.0
    assert parse_candidate({**raw, "confidence": "high"}).confidence_raw is None
    assert parse_candidate(raw).confidence_raw is None


def test_stream_yields_objects_once_complete():
    stream = JsonObjectStream()
    assert stream.feed('```json\n{"type": "spelling", "originalText": "teh"') == []
    objs = stream.feed(', "suggestedText": "the"}\n{"type": ')
    assert objs == [{"type": "spelling", "originalText": "teh", "suggestedText": "the"}]
    objs = stream.feed('"grammar", "originalText": "a", "suggestedText": "an"}\n```')
    assert objs == [{"type": "grammar", "originalText": "a", "suggestedText": "an"}]


def test_stream_ignores_braces_inside_strings():
    stream = JsonObjectStream()
    assert stream.feed('{"explanation": "use } not {"}') == [{"explanation": "use } not {"}]


def test_stream_skips_unparseable_objects():
    stream = JsonObjectStream()
    assert stream.feed('{not json} {"a": 1}') == [{"a": 1}]


class FakeCompletions:
    """Shaped like AsyncOpenAI().chat.completions."""

    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        return self.response


def fake_client(completions):
    return SimpleNamespace(chat=SimpleNamespace(completions=completions))


def message(content):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


async def deltas(*parts, error=None):
    for part in parts:
        yield SimpleNamespace(choices=[SimpleNamespace(delta=SimpleNamespace(content=part))])
    yield SimpleNamespace(choices=[])
    if error is not None:
        raise error


async def collect(stream):
    return [part async for part in stream]


def test_oracle_without_api_key_is_not_configured():
    oracle = SuggestionOracle(OracleSettings(api_key=None))
    with pytest.raises(OracleNotConfigured):
        asyncio.run(oracle.complete_json("prompt"))
    with pytest.raises(OracleNotConfigured):
        asyncio.run(collect(oracle.stream("prompt")))


def test_oracle_builds_its_client_from_settings():
    oracle = SuggestionOracle(OracleSettings(api_key="sk-test", timeout_seconds=12))
    client = oracle.client
    assert isinstance(client, AsyncOpenAI)
    assert client.timeout.read == 12
    assert oracle.client is client


def test_complete_json_sends_settings_and_returns_content():
    completions = FakeCompletions(response=message('{"suggestions": []}'))
    oracle = SuggestionOracle(OracleSettings(model="gpt-4o-mini", temperature=0.3), client=fake_client(completions))

    assert asyncio.run(oracle.complete_json("prompt")) == '{"suggestions": []}'
    [call] = completions.calls
    assert call["model"] == "gpt-4o-mini"
    assert call["temperature"] == 0.3
    assert call["response_format"] == {"type": "json_object"}
    assert call["messages"] == [{"role": "user", "content": "prompt"}]


def test_complete_json_without_choices_or_content():
    oracle = SuggestionOracle(OracleSettings(), client=fake_client(FakeCompletions(response=SimpleNamespace(choices=[]))))
    assert asyncio.run(oracle.complete_json("prompt")) == EMPTY_RESPONSE

    oracle = SuggestionOracle(OracleSettings(), client=fake_client(FakeCompletions(response=message(None))))
    assert asyncio.run(oracle.complete_json("prompt")) == EMPTY_RESPONSE


def test_complete_json_wraps_client_errors():
    completions = FakeCompletions(error=OpenAIError("rate limited"))
    oracle = SuggestionOracle(OracleSettings(), client=fake_client(completions))
    with pytest.raises(OracleError, match="rate limited"):
        asyncio.run(oracle.complete_json("prompt"))


def test_stream_yields_content_deltas():
    completions = FakeCompletions(response=deltas('{"type": ', "", '"spelling"}'))
    oracle = SuggestionOracle(OracleSettings(), client=fake_client(completions))

    assert asyncio.run(collect(oracle.stream("prompt"))) == ['{"type": ', '"spelling"}']
    assert completions.calls[0]["stream"] is True


def test_stream_wraps_client_errors():
    request_failed = FakeCompletions(error=OpenAIError("connection reset"))
    oracle = SuggestionOracle(OracleSettings(), client=fake_client(request_failed))
    with pytest.raises(OracleError, match="connection reset"):
        asyncio.run(collect(oracle.stream("prompt")))

    broken_midway = FakeCompletions(response=deltas("{", error=OpenAIError("stream closed")))
    oracle = SuggestionOracle(OracleSettings(), client=fake_client(broken_midway))
    with pytest.raises(OracleError, match="stream closed"):
        asyncio.run(collect(oracle.stream("prompt")))
