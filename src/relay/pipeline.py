import dataclasses
import logging
import time
from typing import Optional, Protocol

from .cache import ResponseCache
from .config import Settings
from .errors import UpstreamError, UpstreamKind
from .knowledge import DialogflowKnowledgeBase
from .llm import CompletionClient
from .policy import CompletionRequest, finish_resolution, plan_resolution
from .prompts import Persona
from .text import normalize_query
from .types import (
    CompletionOutcome,
    ConfidenceLevel,
    KnowledgeAnswer,
    KnowledgeBaseResult,
    RelayResponse,
    ResolutionResult,
)

logger = logging.getLogger(__name__)


class KnowledgeLookup(Protocol):
    async def lookup(self, session_id: str, query_text: str, language_code: str) -> KnowledgeBaseResult: ...


class Completer(Protocol):
    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> str: ...


class ChatRelay:
    def __init__(
        self,
        knowledge: KnowledgeLookup,
        completer: Optional[Completer] = None,
        cache: Optional[ResponseCache] = None,
        persona: Optional[Persona] = None,
        default_language: str = "en-US",
    ) -> None:
        self.knowledge = knowledge
        self.completer = completer
        self.cache = cache if cache is not None else ResponseCache()
        self.persona = persona or Persona()
        self.default_language = default_language

    @property
    def completion_available(self) -> bool:
        return self.completer is not None

    async def respond(self, session_id: str, query: str, language_code: Optional[str] = None) -> RelayResponse:
        started = time.perf_counter()
        if not normalize_query(query):
            raise ValueError("query must not be blank")

        cached = self.cache.get(query)
        if cached is not None:
            logger.info("Cache hit for %r", query)
            return RelayResponse(cached, cached=True, response_time_ms=_elapsed_ms(started))

        kb_result = await self.knowledge.lookup(session_id, query, language_code or self.default_language)
        if not kb_result.query_text:
            kb_result = dataclasses.replace(kb_result, query_text=query)

        result = await self.resolve(kb_result)
        self.cache.put(query, result)
        logger.info("Resolved %r via %s", query, result.answer_source.value)
        return RelayResponse(result, cached=False, response_time_ms=_elapsed_ms(started))

    async def resolve(self, kb_result: KnowledgeBaseResult) -> ResolutionResult:
        plan = plan_resolution(kb_result, self.completion_available, self.persona)
        outcome = None
        if plan.request is not None and self.completer is not None:
            outcome = await self._complete(self.completer, plan.request)
        return finish_resolution(plan, outcome)

    async def enhance(self, query: str, kb_text: str) -> ResolutionResult:
        """Run the high-confidence rewrite branch on caller-supplied text."""
        kb_result = KnowledgeBaseResult(
            query_text=query,
            answers=(KnowledgeAnswer(text=kb_text, match_confidence=1.0, confidence_level=ConfidenceLevel.HIGH),),
        )
        return await self.resolve(kb_result)

    async def _complete(self, completer: Completer, request: CompletionRequest) -> CompletionOutcome:
        try:
            text = await completer.complete(
                request.system_prompt,
                request.user_prompt,
                temperature=request.temperature,
                max_tokens=request.max_tokens,
            )
        except UpstreamError as exc:
            logger.warning("Completion (%s) failed: %s", request.variant.value, exc)
            return CompletionOutcome.failure(exc)
        except Exception as exc:
            logger.exception("Completion (%s) raised unexpectedly", request.variant.value)
            return CompletionOutcome.failure(UpstreamError(UpstreamKind.UNAVAILABLE, str(exc)))
        return CompletionOutcome.success(text)


def build_relay(settings: Settings) -> ChatRelay:
    knowledge = DialogflowKnowledgeBase(
        settings.dialogflow_project_id,
        settings.dialogflow_knowledge_base_id,
        credentials_path=settings.dialogflow_credentials,
        timeout=settings.lookup_timeout,
    )
    completer = None
    if settings.completion_configured:
        completer = CompletionClient(
            api_key=settings.completion_api_key,
            model_id=settings.completion_model,
            url=settings.completion_url,
            timeout=settings.completion_timeout,
        )
    else:
        logger.warning("No completion API key set; answers will not be enhanced")
    cache = ResponseCache(ttl_seconds=settings.cache_ttl_seconds, capacity=settings.cache_capacity)
    persona = Persona(name=settings.assistant_name, topic=settings.assistant_topic)
    return ChatRelay(knowledge, completer, cache, persona, default_language=settings.default_language)


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)
