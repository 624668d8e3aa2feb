"""Shared fakes for the upstream adapters."""

from typing import List, Optional, Union

import pytest

from relay.cache import ResponseCache
from relay.errors import UpstreamError, UpstreamKind
from relay.pipeline import ChatRelay
from relay.types import ConfidenceLevel, KnowledgeAnswer, KnowledgeBaseResult


def kb_result(
    level: Optional[ConfidenceLevel] = ConfidenceLevel.HIGH,
    text: str = "Tomatoes need full sun",
    query: str = "How do I grow tomatoes?",
) -> KnowledgeBaseResult:
    answers = () if level is None else (KnowledgeAnswer(text=text, match_confidence=0.8, confidence_level=level),)
    return KnowledgeBaseResult(
        query_text=query,
        intent_name="Knowledge.KnowledgeBase.123",
        intent_confidence=0.8,
        fulfillment_text=text if answers else "",
        answers=answers,
    )


class FakeKnowledge:
    def __init__(self, result: Union[KnowledgeBaseResult, Exception]) -> None:
        self.result = result
        self.calls: List[tuple] = []

    async def lookup(self, session_id, query_text, language_code="en-US"):
        self.calls.append((session_id, query_text, language_code))
        if isinstance(self.result, Exception):
            raise self.result
        return self.result


class FakeCompleter:
    def __init__(self, result: Union[str, Exception] = "Plant in full sun and water weekly.") -> None:
        self.result = result
        self.calls: List[dict] = []

    async def complete(self, system_prompt, user_prompt, temperature=None, max_tokens=None):
        self.calls.append(
            {
                "system_prompt": system_prompt,
                "user_prompt": user_prompt,
                "temperature": temperature,
                "max_tokens": max_tokens,
            }
        )
        if isinstance(self.result, Exception):
            raise self.result
        return self.result


@pytest.fixture
def knowledge():
    return FakeKnowledge(kb_result())


@pytest.fixture
def completer():
    return FakeCompleter()


@pytest.fixture
def relay(knowledge, completer):
    return ChatRelay(knowledge, completer, ResponseCache())


@pytest.fixture
def timeout_error():
    return UpstreamError(UpstreamKind.TIMEOUT, "Completion request timed out after 10.0s")
