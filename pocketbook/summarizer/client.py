"""Client for OpenAI-compatible chat completion endpoints."""

from __future__ import annotations

import asyncio
import json
import logging
import random
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Literal, TypedDict

import httpx

from pocketbook.summarizer.models import (
    AuthError,
    CompletionError,
    MalformedResponseError,
    TransientError,
)

if TYPE_CHECKING:
    from collections.abc import Sequence

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://openrouter.ai/api/v1"
APP_TITLE = "pocketbook"


class ChatMessage(TypedDict):
    """A single turn of the conversation sent to the model."""

    role: Literal["system", "user", "assistant"]
    content: str


def user_message(content: str) -> ChatMessage:
    """Build a user-role message."""
    return {"role": "user", "content": content}


@dataclass(frozen=True)
class CompletionClient:
    """Immutable handle for a chat completion service.

    Every call opens its own HTTP connection pool, so one instance can be
    shared by any number of concurrent chapter workers.

    Example:
        client = CompletionClient(api_key="sk-...", model="openai/gpt-4o-mini")
        text = await client.complete([user_message("Hello")], temperature=0.2)

    """

    api_key: str
    model: str
    base_url: str = DEFAULT_BASE_URL
    max_attempts: int = 3
    max_elapsed: float = 300.0
    request_timeout: float = 120.0
    backoff_base: float = 1.0
    backoff_max: float = 30.0
    transport: httpx.AsyncBaseTransport | None = field(default=None, repr=False, compare=False)

    def __post_init__(self) -> None:
        """Validate settings and normalize the base URL."""
        if not self.api_key:
            msg = "An API key is required for the completion service."
            raise ValueError(msg)
        if self.max_attempts < 1:
            msg = f"max_attempts must be at least 1, got {self.max_attempts}"
            raise ValueError(msg)
        object.__setattr__(self, "base_url", self.base_url.rstrip("/"))

    @property
    def url(self) -> str:
        """Full URL of the chat completions endpoint."""
        return f"{self.base_url}/chat/completions"

    async def complete(
        self,
        messages: Sequence[ChatMessage],
        temperature: float = 0.7,
    ) -> str:
        """Send a conversation and return the first choice's message content.

        Transient failures are retried with exponential backoff and jitter,
        bounded by ``max_attempts`` and by ``max_elapsed`` seconds overall.

        Raises:
            TransientError: Retries were exhausted or the time budget ran out.
            AuthError: The service rejected the API key.
            MalformedResponseError: The reply could not be decoded.
            CompletionError: Any other rejected request.

        """
        payload: dict[str, Any] = {
            "model": self.model,
            "messages": [dict(m) for m in messages],
            "temperature": temperature,
        }
        try:
            async with asyncio.timeout(self.max_elapsed):
                return await self._complete_with_retries(payload)
        except TimeoutError as e:
            msg = f"Completion did not finish within {self.max_elapsed:.0f}s"
            raise TransientError(msg) from e

    async def _complete_with_retries(self, payload: dict[str, Any]) -> str:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.max_elapsed
        async with httpx.AsyncClient(
            timeout=self.request_timeout,
            transport=self.transport,
        ) as http:
            attempt = 1
            while True:
                try:
                    return await self._post(http, payload)
                except TransientError as e:
                    if attempt >= self.max_attempts:
                        raise
                    delay = self._backoff_delay(attempt)
                    if loop.time() + delay >= deadline:
                        raise
                    logger.warning(
                        "Transient completion error (attempt %d/%d), retrying in %.1fs: %s",
                        attempt,
                        self.max_attempts,
                        delay,
                        e,
                    )
                    await asyncio.sleep(delay)
                    attempt += 1

    def _backoff_delay(self, attempt: int) -> float:
        """Full-jitter exponential backoff for the given (1-based) attempt."""
        ceiling = min(self.backoff_max, self.backoff_base * 2 ** (attempt - 1))
        return random.uniform(0, ceiling)  # noqa: S311

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            "X-Title": APP_TITLE,
        }

    async def _post(self, http: httpx.AsyncClient, payload: dict[str, Any]) -> str:
        try:
            response = await http.post(self.url, json=payload, headers=self._headers())
        except httpx.TimeoutException as e:
            msg = f"Request to {self.url} timed out: {e}"
            raise TransientError(msg) from e
        except httpx.TransportError as e:
            msg = f"Connection to {self.url} failed: {e}"
            raise TransientError(msg) from e

        status = response.status_code
        if status in (401, 403):
            msg = f"Authentication failed ({status}): {response.text}"
            raise AuthError(msg)
        if status == 429 or status >= 500:  # noqa: PLR2004
            msg = f"Service unavailable ({status}): {response.text}"
            raise TransientError(msg)
        if not response.is_success:
            logger.error("Completion request rejected %s: %s", status, response.text)
            msg = f"Request error ({status}): {response.text}"
            raise CompletionError(msg)

        return extract_content(response.text)


def extract_content(body: str) -> str:
    """Return the first choice's message content from a completion envelope.

    Raises:
        MalformedResponseError: If the body is not a completion envelope.

    """
    try:
        data = json.loads(body)
    except json.JSONDecodeError as e:
        msg = f"Response is not valid JSON: {body}"
        raise MalformedResponseError(msg) from e

    choices = data.get("choices") if isinstance(data, dict) else None
    if not isinstance(choices, list) or not choices:
        msg = f"Response has no choices: {body}"
        raise MalformedResponseError(msg)

    first = choices[0]
    message = first.get("message") if isinstance(first, dict) else None
    content = message.get("content") if isinstance(message, dict) else None
    if not isinstance(content, str):
        msg = f"First choice has no message content: {body}"
        raise MalformedResponseError(msg)
    return content
