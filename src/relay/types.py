from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from .errors import UpstreamError


class ConfidenceLevel(str, Enum):
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"
    NO_MATCH = "NO_MATCH"

    @classmethod
    def parse(cls, value: Any) -> "ConfidenceLevel":
        """Accept an upstream enum member, its name, or None."""
        if isinstance(value, cls):
            return value
        name = getattr(value, "name", value)
        if not isinstance(name, str):
            return cls.NO_MATCH
        try:
            return cls(name.strip().upper())
        except ValueError:
            return cls.NO_MATCH


class AnswerSource(str, Enum):
    NO_COMPLETION_FALLBACK = "no_completion_fallback"
    GENERAL_KNOWLEDGE = "general_knowledge"
    DEFAULT_FALLBACK = "default_fallback"
    DEFAULT_ERROR_FALLBACK = "default_error_fallback"
    KB_ONLY = "kb_only"
    KB_ENHANCED = "kb_enhanced"
    KB_ORIGINAL = "kb_original"
    KB_ERROR_FALLBACK = "kb_error_fallback"
    HYBRID = "hybrid"
    KB_FALLBACK = "kb_fallback"
    HYBRID_ERROR_FALLBACK = "hybrid_error_fallback"
    KB_NO_MATCH = "kb_no_match"


@dataclass(frozen=True)
class KnowledgeAnswer:
    text: str
    match_confidence: float = 0.0
    confidence_level: ConfidenceLevel = ConfidenceLevel.NO_MATCH

    def to_dict(self) -> Dict[str, Any]:
        return {
            "answer": self.text,
            "matchConfidence": self.match_confidence,
            "matchConfidenceLevel": self.confidence_level.value,
        }


@dataclass(frozen=True)
class KnowledgeBaseResult:
    query_text: str
    intent_name: Optional[str] = None
    intent_confidence: float = 0.0
    fulfillment_text: str = ""
    answers: Tuple[KnowledgeAnswer, ...] = ()

    @property
    def top_answer(self) -> Optional[KnowledgeAnswer]:
        return self.answers[0] if self.answers else None


@dataclass(frozen=True)
class ResolutionResult:
    query_text: str
    fulfillment_text: str
    answer_source: AnswerSource
    knowledge_answers: Tuple[KnowledgeAnswer, ...] = ()
    detected_intent: Optional[str] = None
    intent_confidence: float = 0.0

    def __post_init__(self) -> None:
        if not self.fulfillment_text or not self.fulfillment_text.strip():
            raise ValueError("fulfillment_text must be non-empty")
        if not isinstance(self.answer_source, AnswerSource):
            raise TypeError(f"answer_source must be an AnswerSource, got {self.answer_source!r}")


@dataclass(frozen=True)
class CompletionOutcome:
    text: Optional[str] = None
    error: Optional[UpstreamError] = None

    @classmethod
    def success(cls, text: str) -> "CompletionOutcome":
        return cls(text=text)

    @classmethod
    def failure(cls, error: UpstreamError) -> "CompletionOutcome":
        return cls(error=error)


@dataclass(frozen=True)
class RelayResponse:
    result: ResolutionResult
    cached: bool
    response_time_ms: int

    def to_dict(self) -> Dict[str, Any]:
        result = self.result
        return {
            "queryText": result.query_text,
            "detectedIntent": result.detected_intent,
            "confidence": result.intent_confidence,
            "fulfillmentText": result.fulfillment_text,
            "answerSource": result.answer_source.value,
            "knowledgeAnswers": [answer.to_dict() for answer in result.knowledge_answers],
            "cached": self.cached,
            "responseTime": self.response_time_ms,
        }


@dataclass
class DeliveryResult:
    token: str
    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None
    code: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"token": self.token, "success": self.success}
        if self.success:
            payload["messageId"] = self.message_id
        else:
            payload["error"] = self.error
            payload["code"] = self.code
        return payload


@dataclass
class BatchDeliveryResult:
    success_count: int = 0
    failure_count: int = 0
    results: List[DeliveryResult] = field(default_factory=list)
