# tests/test_pipeline.py

import asyncio

import pytest

from core.cache import RateLimitExceeded
from core.config import AssistantConfig, RateLimitSettings
from core.oracle import OracleError, OracleNotConfigured
from core.validators import InputError


def sugg(kind, original, suggested, **extra):
    return {"type": kind, "originalText": original, "suggestedText": suggested, **extra}


async def collect(stream):
    return [s async for s in stream]


def test_analyze_places_suggestions_on_the_text(make_assistant):
    text = "Their going to the store. I will buy teh milk and teh bread."
    assistant, _ = make_assistant(
        replies={
            "Their going": [
                sugg("grammar", "Their", "They're", explanation="Contraction needed."),
                sugg("spelling", "teh", "the", context="buy teh milk and", confidence=150),
                sugg("spelling", "teh", "the"),
                sugg("clarity", "not in the text", "anything"),
            ]
        }
    )

    suggestions = asyncio.run(assistant.analyze(text))

    first_teh = text.index("teh")
    second_teh = text.index("teh", first_teh + 1)
    assert [(s.start, s.end) for s in suggestions] == [
        (0, 5),
        (first_teh, first_teh + 3),
        (second_teh, second_teh + 3),
    ]
    assert suggestions[0].title == "Grammar Correction"
    assert suggestions[0].description == "Contraction needed."
    assert suggestions[1].title == "Spelling Correction"
    assert suggestions[1].confidence == 100.0
    assert suggestions[2].confidence == 80.0
    assert suggestions[2].description == "A suggestion for improvement."
    for s in suggestions:
        assert text[s.start:s.end] == s.original_text


def test_analyze_titles_unknown_kinds_from_their_name(make_assistant):
    text = "The report was written by the team last week."
    assistant, _ = make_assistant(
        replies={"The report": [sugg("passive-voice", "was written by the team", "the team wrote")]}
    )
    suggestions = asyncio.run(assistant.analyze(text, ["passive-voice"]))
    assert suggestions[0].title == "Passive Voice"
    assert suggestions[0].icon == "✨"


def test_analyze_rejects_bad_input(make_assistant):
    assistant, oracle = make_assistant()
    with pytest.raises(InputError):
        asyncio.run(assistant.analyze("short"))
    with pytest.raises(InputError):
        asyncio.run(assistant.analyze("How to write malware quickly and well"))
    assert oracle.prompts == []


def test_analyze_reuses_cached_response(make_assistant):
    text = "Their going to the store tomorrow."
    assistant, oracle = make_assistant(replies={"Their going": [sugg("grammar", "Their", "They're")]})

    first = asyncio.run(assistant.analyze(text))
    second = asyncio.run(assistant.analyze(text))

    assert len(oracle.prompts) == 1
    assert [(s.start, s.end) for s in first] == [(s.start, s.end) for s in second]


def test_analyze_rate_limits_per_client(make_assistant):
    config = AssistantConfig(rate_limit=RateLimitSettings(max_requests=1, window_seconds=60))
    assistant, _ = make_assistant(config=config)
    text = "Their going to the store tomorrow."

    asyncio.run(assistant.analyze(text, client_id="c1"))
    with pytest.raises(RateLimitExceeded):
        asyncio.run(assistant.analyze(text, client_id="c1"))
    asyncio.run(assistant.analyze(text, client_id="c2"))


def test_parallel_analysis_rebases_and_survives_failures(make_assistant):
    text = "Their going to the store. The sky is very blue today. I will buy teh milk."
    assistant, oracle = make_assistant(
        replies={
            "Their going": [sugg("grammar", "Their", "They're")],
            "The sky": OracleError("boom"),
            "buy teh": [sugg("spelling", "teh", "the")],
        }
    )

    suggestions = asyncio.run(assistant.analyze_in_parallel(text))

    assert len(oracle.prompts) == 3
    assert [(s.start, s.end) for s in suggestions] == [
        (0, 5),
        (text.index("teh"), text.index("teh") + 3),
    ]
    for s in suggestions:
        assert text[s.start:s.end] == s.original_text


def test_parallel_analysis_without_credentials_raises(make_assistant):
    assistant, _ = make_assistant(
        replies={"": OracleNotConfigured("OpenAI API key not configured")}
    )
    with pytest.raises(OracleNotConfigured):
        asyncio.run(assistant.analyze_in_parallel("First sentence here. Second sentence here."))


def test_parallel_analysis_requires_text(make_assistant):
    assistant, _ = make_assistant()
    with pytest.raises(InputError):
        asyncio.run(assistant.analyze_in_parallel("   "))


def test_grammar_stream_places_each_object_as_it_arrives(make_assistant):
    text = "I has teh cat and teh dog."
    assistant, oracle = make_assistant(
        stream_parts=[
            '{"type": "spelling", "originalText": "teh", "sugg',
            'estedText": "the"}\n{"type": "spelling", "originalText": "teh", "suggestedText": "the"}',
            '{"type": "grammar", "originalText": "has", "suggestedText": "have"}{"type": "grammar"}',
        ]
    )

    found = asyncio.run(collect(assistant.check_grammar_stream(text)))

    first_teh = text.index("teh")
    second_teh = text.index("teh", first_teh + 1)
    assert [(s.kind, s.start, s.end) for s in found] == [
        ("spelling", first_teh, first_teh + 3),
        ("spelling", second_teh, second_teh + 3),
        ("grammar", 2, 5),
    ]
    assert all(s.confidence == 95.0 for s in found)

    again = asyncio.run(collect(assistant.check_grammar_stream(text)))
    assert len(oracle.prompts) == 1
    assert [(s.kind, s.start, s.end) for s in again] == [(s.kind, s.start, s.end) for s in found]


def test_grammar_stream_checks_input_before_streaming(make_assistant):
    assistant, oracle = make_assistant()
    with pytest.raises(InputError):
        assistant.check_grammar_stream("   ")
    assert oracle.prompts == []


def test_grammar_stream_propagates_model_failure(make_assistant):
    assistant, _ = make_assistant(stream_parts=[OracleError("down")])
    with pytest.raises(OracleError):
        asyncio.run(collect(assistant.check_grammar_stream("I has a cat.")))


def test_grammar_cache_places_spans_on_the_current_text(make_assistant):
    assistant, oracle = make_assistant(
        stream_parts=['{"type": "spelling", "originalText": "teh", "suggestedText": "the"}']
    )
    plain = "I saw teh cat."
    padded = "   I saw teh cat."

    [first] = asyncio.run(collect(assistant.check_grammar_stream(plain)))
    [second] = asyncio.run(collect(assistant.check_grammar_stream(padded)))

    assert len(oracle.prompts) == 1
    assert (first.start, first.end) == (6, 9)
    assert (second.start, second.end) == (9, 12)
    assert padded[second.start:second.end] == "teh"


def test_grammar_checks_have_their_own_rate_limit(make_assistant):
    config = AssistantConfig(
        rate_limit=RateLimitSettings(max_requests=1, grammar_max_requests=2, window_seconds=60)
    )
    assistant, _ = make_assistant(config=config)
    text = "Their going to the store tomorrow."

    asyncio.run(assistant.analyze(text, client_id="c1"))
    assistant.check_grammar_stream(text, client_id="c1")
    assistant.check_grammar_stream(text, client_id="c1")
    with pytest.raises(RateLimitExceeded):
        assistant.check_grammar_stream(text, client_id="c1")
    with pytest.raises(RateLimitExceeded):
        asyncio.run(assistant.analyze(text, client_id="c1"))


NEWSLETTER = (
    "Big nwes inside\n"
    "Hi friends, we have been busy building something new for you this spring.\n\n"
    "Our team spent the winter rewriting the editor from scratch. It is faster, "
    "it handles long documents, and it finally supports comments.\n\n"
    "Sign up today at https://example.com/beta and get early access.\n\n"
    "Thanks for reading,\nSam"
)


def test_context_analysis_asks_once_per_region(make_assistant):
    assistant, oracle = make_assistant(
        replies={
            "EMAIL SUBJECT LINE": [sugg("spelling", "nwes", "news")],
            "BODY CONTENT": [sugg("conciseness", "from scratch", "anew")],
            "CALL-TO-ACTION": [sugg("clarity", "Sign up today", "Join the beta today")],
        }
    )

    regions, suggestions = asyncio.run(assistant.analyze_with_context(NEWSLETTER))

    assert [r.kind for r in regions] == ["subject", "intro", "body", "cta", "closing"]
    assert len(oracle.prompts) == len(regions)
    assert [(s.region, s.title) for s in suggestions] == [
        ("subject", "Subject Line Spelling"),
        ("body", "Conciseness"),
        ("cta", "CTA Clarity"),
    ]
    assert suggestions[0].icon == "📧"
    assert suggestions[1].description == "A context-aware suggestion for improvement."
    for s in suggestions:
        assert NEWSLETTER[s.start:s.end] == s.original_text
    assert suggestions[0].start == 4
    assert suggestions[2].start == NEWSLETTER.index("Sign up today")


def test_context_analysis_keeps_suggestions_inside_their_region(make_assistant):
    # "Sam" is only in the closing; the intro's model reply cannot claim it.
    assistant, _ = make_assistant(
        replies={
            "OPENING/INTRO": [sugg("grammar", "Sam", "Samuel")],
            "CLOSING": [sugg("grammar", "Sam", "Samantha")],
        }
    )
    _, suggestions = asyncio.run(assistant.analyze_with_context(NEWSLETTER))

    assert [(s.region, s.suggested_text) for s in suggestions] == [("closing", "Samantha")]
    assert suggestions[0].start == NEWSLETTER.rindex("Sam")


def test_context_analysis_survives_a_failed_region(make_assistant):
    assistant, _ = make_assistant(
        replies={
            "EMAIL SUBJECT LINE": OracleError("boom"),
            "CALL-TO-ACTION": [sugg("clarity", "Sign up today", "Join the beta today")],
        }
    )
    regions, suggestions = asyncio.run(assistant.analyze_with_context(NEWSLETTER))
    assert len(regions) == 5
    assert [s.region for s in suggestions] == ["cta"]


def test_context_analysis_falls_back_without_regions(make_assistant):
    assistant, oracle = make_assistant(replies={"Their going": [sugg("grammar", "Their", "They're")]})
    regions, suggestions = asyncio.run(assistant.analyze_with_context("Their going home"))

    assert regions == []
    assert len(oracle.prompts) == 1
    assert "CONTEXT:" not in oracle.prompts[0]
    assert [(s.start, s.end, s.region) for s in suggestions] == [(0, 5, None)]
