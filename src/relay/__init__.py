from .cache import ResponseCache
from .pipeline import ChatRelay, build_relay
from .types import AnswerSource, ConfidenceLevel, KnowledgeAnswer, KnowledgeBaseResult, ResolutionResult

__version__ = "2.1.0"

__all__ = [
    "AnswerSource",
    "ChatRelay",
    "ConfidenceLevel",
    "KnowledgeAnswer",
    "KnowledgeBaseResult",
    "ResolutionResult",
    "ResponseCache",
    "build_relay",
]
