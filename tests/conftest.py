# tests/conftest.py

import json

import pytest

from core.config import AssistantConfig
from core.pipeline import WritingAssistant


class FakeOracle:
    """
    Stands in for the model.

    replies maps a fragment of the prompt to either the suggestions to
    return or an exception to raise. stream_parts is what stream() yields.
    """

    def __init__(self, replies=None, stream_parts=None):
        self.replies = replies or {}
        self.stream_parts = stream_parts or []
        self.prompts = []

    async def complete_json(self, prompt):
        self.prompts.append(prompt)
        for fragment, reply in self.replies.items():
            if fragment in prompt:
                if isinstance(reply, Exception):
                    raise reply
                return json.dumps({"suggestions": reply})
        return '{"suggestions": []}'

    async def stream(self, prompt):
        self.prompts.append(prompt)
        for part in self.stream_parts:
            if isinstance(part, Exception):
                raise part
            yield part


@pytest.fixture
def make_assistant():
    def _make(config=None, **oracle_kwargs):
        oracle = FakeOracle(**oracle_kwargs)
        return WritingAssistant(config or AssistantConfig(), oracle=oracle), oracle

    return _make
