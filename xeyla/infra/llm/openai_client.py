from __future__ import annotations

import logging
from typing import Any

import httpx

from xeyla.infra.llm.base import LLMAPIError
from xeyla.infra.resilience import RetryPolicy, is_network_error, is_timeout_error, retry_async

LOGGER = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.groq.com/openai/v1"
DEFAULT_MODEL = "openai/gpt-oss-120b"
_ERROR_BODY_LIMIT = 500


class ChatCompletionAPIError(LLMAPIError):
    """Non-2xx answer from an OpenAI-compatible chat completion endpoint."""


class _ServerStatusError(Exception):
    def __init__(self, response: httpx.Response) -> None:
        super().__init__(f"server status {response.status_code}")
        self.response = response


def _is_retryable(exc: Exception) -> bool:
    return is_timeout_error(exc) or is_network_error(exc) or isinstance(exc, _ServerStatusError)


def _first_message_content(data: Any) -> str:
    if not isinstance(data, dict):
        return ""
    choices = data.get("choices") or []
    if not choices or not isinstance(choices[0], dict):
        return ""
    message = choices[0].get("message") or {}
    content = message.get("content") if isinstance(message, dict) else None
    return content if isinstance(content, str) else ""


class ChatCompletionClient:
    """``/chat/completions`` over httpx for Groq or any OpenAI-compatible host.

    Timeouts, connection failures and 5xx answers are retried ``max_retries``
    times with backoff; 4xx answers and other errors surface immediately.
    """

    def __init__(
        self,
        *,
        api_key: str,
        model: str = DEFAULT_MODEL,
        base_url: str = DEFAULT_BASE_URL,
        timeout_seconds: float = 30.0,
        max_retries: int = 1,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self.max_retries = max(0, max_retries)
        self._transport = transport
        self._retry_policy = RetryPolicy(max_attempts=self.max_retries + 1, base_delay_ms=500, jitter_ms=100)

    async def create_chat_completion(
        self,
        *,
        model: str | None = None,
        messages: list[dict[str, Any]],
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> dict[str, Any]:
        body: dict[str, Any] = {"model": model or self.model, "messages": messages}
        if temperature is not None:
            body["temperature"] = temperature
        if max_tokens is not None:
            body["max_tokens"] = max_tokens

        response = await self._post("/chat/completions", body)
        if not response.is_success:
            text = response.text
            if len(text) > _ERROR_BODY_LIMIT:
                text = text[:_ERROR_BODY_LIMIT] + "..."
            raise ChatCompletionAPIError(
                status_code=response.status_code,
                message=f"Chat completion API error {response.status_code}: {text}",
            )
        return {"content": _first_message_content(response.json())}

    async def _post(self, path: str, body: dict[str, Any]) -> httpx.Response:
        headers = {"Authorization": f"Bearer {self.api_key}"}
        async with httpx.AsyncClient(timeout=self.timeout_seconds, transport=self._transport) as client:

            async def attempt() -> httpx.Response:
                response = await client.post(self.base_url + path, json=body, headers=headers)
                if response.status_code >= 500:
                    raise _ServerStatusError(response)
                return response

            try:
                return await retry_async(
                    attempt,
                    policy=self._retry_policy,
                    timeout_seconds=None,
                    logger=LOGGER,
                    name="llm.http",
                    is_retryable=_is_retryable,
                )
            except _ServerStatusError as exc:
                return exc.response
            except httpx.TimeoutException as exc:
                raise RuntimeError("Chat completion request timed out") from exc
