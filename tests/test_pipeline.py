"""ChatRelay pipeline tests."""

import pytest

from conftest import FakeCompleter, FakeKnowledge, kb_result
from relay.cache import ResponseCache
from relay.config import Settings
from relay.errors import UpstreamError, UpstreamKind
from relay.llm import CompletionClient
from relay.pipeline import ChatRelay, build_relay
from relay.policy import finish_resolution, plan_resolution
from relay.types import AnswerSource, ConfidenceLevel, RelayResponse


async def test_enhanced_answer(relay, knowledge, completer):
    response = await relay.respond("session-1", "How do I grow tomatoes?")

    assert response.cached is False
    assert response.result.fulfillment_text == "Plant in full sun and water weekly."
    assert response.result.answer_source is AnswerSource.KB_ENHANCED
    assert knowledge.calls == [("session-1", "How do I grow tomatoes?", "en-US")]
    assert len(completer.calls) == 1


async def test_language_code_passed_through(relay, knowledge):
    await relay.respond("session-1", "¿Cómo cultivo tomates?", "es")

    assert knowledge.calls[0][2] == "es"


async def test_second_request_served_from_cache(relay, knowledge, completer):
    first = await relay.respond("session-1", "How do I grow tomatoes?")
    second = await relay.respond("session-2", "  how do I GROW tomatoes?")

    assert second.cached is True
    assert second.result == first.result
    assert len(knowledge.calls) == 1
    assert len(completer.calls) == 1


async def test_expired_cache_goes_upstream_again(knowledge, completer):
    now = [0.0]
    relay = ChatRelay(knowledge, completer, ResponseCache(ttl_seconds=60, clock=lambda: now[0]))

    await relay.respond("s", "How do I grow tomatoes?")
    now[0] = 60.0
    response = await relay.respond("s", "How do I grow tomatoes?")

    assert response.cached is False
    assert len(knowledge.calls) == 2


async def test_kb_only_without_completer():
    relay = ChatRelay(FakeKnowledge(kb_result(ConfidenceLevel.MEDIUM)))

    response = await relay.respond("s", "How do I grow tomatoes?")

    assert response.result.answer_source is AnswerSource.KB_ONLY
    assert response.result.fulfillment_text == "Tomatoes need full sun"
    assert relay.completion_available is False


async def test_no_match_never_calls_completion(completer):
    relay = ChatRelay(FakeKnowledge(kb_result(ConfidenceLevel.NO_MATCH, "Check the seed packet.")), completer)

    response = await relay.respond("s", "When do I sow peppers?")

    assert response.result.fulfillment_text == "Check the seed packet."
    assert response.result.answer_source is AnswerSource.KB_NO_MATCH
    assert completer.calls == []


async def test_no_answers_calls_general_prompt_once():
    completer = FakeCompleter("Peppers like warm soil, so sow them indoors in early spring.")
    relay = ChatRelay(FakeKnowledge(kb_result(None)), completer)

    response = await relay.respond("s", "When do I sow peppers?")

    assert len(completer.calls) == 1
    assert "no entry" in completer.calls[0]["user_prompt"]
    assert completer.calls[0]["temperature"] == 0.5
    assert response.result.answer_source is AnswerSource.GENERAL_KNOWLEDGE


async def test_completion_failure_recovered(timeout_error):
    relay = ChatRelay(FakeKnowledge(kb_result(ConfidenceLevel.HIGH)), FakeCompleter(timeout_error))

    response = await relay.respond("s", "How do I grow tomatoes?")

    assert response.result.fulfillment_text == "Tomatoes need full sun"
    assert response.result.answer_source is AnswerSource.KB_ERROR_FALLBACK


async def test_unexpected_completion_error_recovered():
    relay = ChatRelay(FakeKnowledge(kb_result(ConfidenceLevel.HIGH)), FakeCompleter(RuntimeError("socket closed")))

    response = await relay.respond("s", "How do I grow tomatoes?")

    assert response.result.fulfillment_text == "Tomatoes need full sun"
    assert response.result.answer_source is AnswerSource.KB_ERROR_FALLBACK


async def test_lookup_failure_propagates_and_is_not_cached(completer):
    knowledge = FakeKnowledge(UpstreamError(UpstreamKind.UNAVAILABLE, "Knowledge base lookup failed"))
    relay = ChatRelay(knowledge, completer)

    with pytest.raises(UpstreamError):
        await relay.respond("s", "How do I grow tomatoes?")

    assert len(relay.cache) == 0
    assert completer.calls == []


async def test_blank_query_rejected(relay, knowledge):
    with pytest.raises(ValueError):
        await relay.respond("s", "   ")

    assert knowledge.calls == []


async def test_empty_echo_uses_original_query(completer):
    relay = ChatRelay(FakeKnowledge(kb_result(ConfidenceLevel.HIGH, query="")), completer)

    response = await relay.respond("s", "Why are my leaves yellow?")

    assert response.result.query_text == "Why are my leaves yellow?"


async def test_enhance_runs_rewrite_branch(relay, completer):
    result = await relay.enhance("How to grow tomatoes?", "Tomatoes need full sun and regular watering.")

    assert result.answer_source is AnswerSource.KB_ENHANCED
    assert "Tomatoes need full sun and regular watering." in completer.calls[0]["user_prompt"]


def test_to_dict_shape():
    result = finish_resolution(plan_resolution(kb_result(ConfidenceLevel.HIGH), False))
    payload = RelayResponse(result, cached=True, response_time_ms=3).to_dict()

    assert payload == {
        "queryText": "How do I grow tomatoes?",
        "detectedIntent": "Knowledge.KnowledgeBase.123",
        "confidence": 0.8,
        "fulfillmentText": "Tomatoes need full sun",
        "answerSource": "kb_only",
        "knowledgeAnswers": [
            {"answer": "Tomatoes need full sun", "matchConfidence": 0.8, "matchConfidenceLevel": "HIGH"}
        ],
        "cached": True,
        "responseTime": 3,
    }


class TestBuildRelay:
    def test_without_key_has_no_completer(self):
        relay = build_relay(Settings())

        assert relay.completer is None
        assert relay.cache.ttl_seconds == 1800
        assert relay.cache.capacity == 100

    def test_with_key_builds_completion_client(self):
        relay = build_relay(Settings(completion_api_key="gsk_test", completion_model="llama-3.3-70b-versatile"))

        assert isinstance(relay.completer, CompletionClient)
        assert relay.completer.model_id == "llama-3.3-70b-versatile"
        assert relay.persona.name == "GrowBot"

