from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from .errors import UpstreamError, UpstreamKind

logger = logging.getLogger(__name__)

GROQ_CHAT_URL = "https://api.groq.com/openai/v1/chat/completions"


class CompletionClient:
    """Client for an OpenAI-compatible chat completions endpoint (Groq by default).

    Each call is a single request with a fixed timeout. Failures raise
    ``UpstreamError`` and are never retried here.
    """

    def __init__(
        self,
        api_key: str,
        model_id: str = "llama-3.1-8b-instant",
        url: str = GROQ_CHAT_URL,
        max_tokens: int = 300,
        temperature: float = 0.2,
        top_p: float = 0.9,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.api_key = api_key
        self.model_id = model_id
        self.url = url
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.top_p = top_p
        self.timeout = timeout
        self._transport = transport

    def _payload(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: Optional[float],
        max_tokens: Optional[int],
    ) -> Dict[str, Any]:
        return {
            "model": self.model_id,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "temperature": self.temperature if temperature is None else temperature,
            "max_tokens": self.max_tokens if max_tokens is None else max_tokens,
            "top_p": self.top_p,
            "stream": False,
        }

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> str:
        payload = self._payload(system_prompt, user_prompt, temperature, max_tokens)
        headers = {"Authorization": f"Bearer {self.api_key}"}
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(self.url, json=payload, headers=headers)
        except httpx.TimeoutException as exc:
            raise UpstreamError(UpstreamKind.TIMEOUT, f"Completion request timed out after {self.timeout}s") from exc
        except httpx.HTTPError as exc:
            raise UpstreamError(UpstreamKind.UNAVAILABLE, f"Completion request failed: {exc}") from exc
        except (httpx.InvalidURL, UnicodeEncodeError) as exc:
            raise UpstreamError(UpstreamKind.UNAVAILABLE, f"Completion request could not be sent: {exc}") from exc

        if not response.is_success:
            raise UpstreamError(
                UpstreamKind.BAD_STATUS,
                f"Completion API error: {response.status_code} - {response.text[:200]}",
                status_code=response.status_code,
            )

        try:
            content = response.json()["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise UpstreamError(UpstreamKind.MALFORMED, f"Failed to parse completion response: {exc}") from exc
        if not isinstance(content, str):
            raise UpstreamError(UpstreamKind.MALFORMED, "Completion response content is not text")

        text = content.strip()
        logger.debug("Completion returned %d chars", len(text))
        return text
