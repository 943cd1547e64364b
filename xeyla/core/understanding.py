from __future__ import annotations

import asyncio
import logging
import time

from xeyla.infra.llm import LLMAPIError, LLMClient

LOGGER = logging.getLogger(__name__)

EXTRACTION_TEMPERATURE = 0.1
REPLY_TEMPERATURE = 0.5


class LanguageUnderstandingClient:
    """Black-box text completion: ``complete()`` returns text or ``None``.

    ``None`` covers every failure mode (no client configured, transport error,
    API error, deadline expiry, empty answer). Callers treat it exactly like
    "no actionable intent".
    """

    def __init__(
        self,
        llm_client: LLMClient | None,
        *,
        model: str | None = None,
        timeout_seconds: float = 30.0,
        extraction_temperature: float = EXTRACTION_TEMPERATURE,
        reply_temperature: float = REPLY_TEMPERATURE,
    ) -> None:
        self._client = llm_client
        self._model = model
        self._timeout_seconds = timeout_seconds
        self.extraction_temperature = extraction_temperature
        self.reply_temperature = reply_temperature

    @property
    def enabled(self) -> bool:
        return self._client is not None

    async def complete(self, instruction: str, message: str, temperature: float) -> str | None:
        if self._client is None:
            LOGGER.warning("llm.complete skipped: client not configured")
            return None
        messages = []
        if instruction:
            messages.append({"role": "system", "content": instruction})
        messages.append({"role": "user", "content": message})
        started = time.monotonic()
        try:
            response = await asyncio.wait_for(
                self._client.create_chat_completion(
                    model=self._model,
                    messages=messages,
                    temperature=temperature,
                ),
                timeout=self._timeout_seconds,
            )
        except asyncio.TimeoutError:
            LOGGER.warning("llm.complete timeout after=%.1fs", self._timeout_seconds)
            return None
        except LLMAPIError as exc:
            LOGGER.warning("llm.complete api_error status=%s", exc.status_code)
            return None
        except Exception:
            LOGGER.exception("llm.complete failed")
            return None
        duration_ms = int((time.monotonic() - started) * 1000)
        content = response.get("content") if isinstance(response, dict) else None
        if not isinstance(content, str) or not content.strip():
            LOGGER.info("llm.complete empty response duration_ms=%s", duration_ms)
            return None
        LOGGER.debug("llm.complete ok duration_ms=%s chars=%s", duration_ms, len(content))
        return content

    async def extract(self, instruction: str, message: str) -> str | None:
        return await self.complete(instruction, message, self.extraction_temperature)

    async def reply(self, instruction: str, message: str) -> str | None:
        return await self.complete(instruction, message, self.reply_temperature)
