from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Optional

from google.api_core import exceptions as core_exceptions
from google.auth import exceptions as auth_exceptions

from .errors import UpstreamError, UpstreamKind
from .types import ConfidenceLevel, KnowledgeAnswer, KnowledgeBaseResult

logger = logging.getLogger(__name__)


class DialogflowKnowledgeBase:
    """Knowledge-base lookups through Dialogflow ES knowledge connectors.

    The sessions client is created on first use from a service-account
    file, so a missing credential only fails the lookups and not startup.
    """

    def __init__(
        self,
        project_id: str,
        knowledge_base_id: str,
        credentials_path: Optional[str] = None,
        timeout: float = 10.0,
        client: Any = None,
    ) -> None:
        self.project_id = project_id
        self.knowledge_base_id = knowledge_base_id
        self.credentials_path = credentials_path
        self.timeout = timeout
        self._client = client

    @property
    def knowledge_base_path(self) -> str:
        return f"projects/{self.project_id}/knowledgeBases/{self.knowledge_base_id}"

    def session_path(self, session_id: str) -> str:
        return f"projects/{self.project_id}/agent/sessions/{session_id}"

    def _ensure_client(self) -> Any:
        if self._client is not None:
            return self._client
        if not self.credentials_path or not Path(self.credentials_path).exists():
            raise UpstreamError(
                UpstreamKind.UNAVAILABLE,
                f"Dialogflow credentials not found: {self.credentials_path or '<unset>'}",
            )
        from google.cloud import dialogflow_v2beta1 as dialogflow

        try:
            self._client = dialogflow.SessionsAsyncClient.from_service_account_file(self.credentials_path)
        except (OSError, ValueError, auth_exceptions.GoogleAuthError) as exc:
            raise UpstreamError(UpstreamKind.UNAVAILABLE, f"Invalid Dialogflow credentials: {exc}") from exc
        return self._client

    async def lookup(self, session_id: str, query_text: str, language_code: str = "en-US") -> KnowledgeBaseResult:
        client = self._ensure_client()
        request = {
            "session": self.session_path(session_id),
            "query_input": {"text": {"text": query_text, "language_code": language_code}},
            "query_params": {"knowledge_base_names": [self.knowledge_base_path]},
        }
        try:
            response = await client.detect_intent(request=request, retry=None, timeout=self.timeout)
        except core_exceptions.DeadlineExceeded as exc:
            raise UpstreamError(UpstreamKind.TIMEOUT, f"Knowledge base lookup timed out: {exc}") from exc
        except (core_exceptions.GoogleAPIError, auth_exceptions.GoogleAuthError) as exc:
            raise UpstreamError(UpstreamKind.UNAVAILABLE, f"Knowledge base lookup failed: {exc}") from exc

        result = parse_query_result(getattr(response, "query_result", None))
        logger.info("Knowledge base returned %d answer(s) for session %s", len(result.answers), session_id)
        return result


def parse_query_result(query_result: Any) -> KnowledgeBaseResult:
    if query_result is None:
        raise UpstreamError(UpstreamKind.MALFORMED, "Knowledge base response has no query result")
    try:
        knowledge = getattr(query_result, "knowledge_answers", None)
        raw_answers = list(getattr(knowledge, "answers", None) or [])
        answers = tuple(
            KnowledgeAnswer(
                text=answer.answer or "",
                match_confidence=float(getattr(answer, "match_confidence", 0.0) or 0.0),
                confidence_level=ConfidenceLevel.parse(getattr(answer, "match_confidence_level", None)),
            )
            for answer in raw_answers
        )
        intent = getattr(query_result, "intent", None)
        return KnowledgeBaseResult(
            query_text=query_result.query_text,
            intent_name=getattr(intent, "display_name", None) or None,
            intent_confidence=float(getattr(query_result, "intent_detection_confidence", 0.0) or 0.0),
            fulfillment_text=getattr(query_result, "fulfillment_text", "") or "",
            answers=answers,
        )
    except (AttributeError, TypeError, ValueError) as exc:
        raise UpstreamError(UpstreamKind.MALFORMED, f"Unexpected knowledge base response: {exc}") from exc
