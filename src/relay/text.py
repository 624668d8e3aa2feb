import re
from typing import Iterable

SPACE_RE = re.compile(r"\s+")
ELLIPSIS = "..."


def normalize_query(text: str) -> str:
    normalized = text.replace("\u3000", " ").strip().casefold()
    normalized = SPACE_RE.sub(" ", normalized)
    return normalized


def truncate_text(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[:limit] + ELLIPSIS


def contains_phrase(text: str, phrases: Iterable[str]) -> bool:
    lowered = text.lower()
    return any(phrase in lowered for phrase in phrases)
