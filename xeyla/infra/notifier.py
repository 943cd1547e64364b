from __future__ import annotations

import asyncio
import logging
from typing import Protocol

from telegram import InputFile
from telegram.error import BadRequest, TelegramError

LOGGER = logging.getLogger(__name__)

MAX_CHUNK_SIZE = 3500
FALLBACK_CHUNK_SIZE = 2000
EMPTY_MESSAGE_PLACEHOLDER = "(pesan kosong)"


class NotifierError(RuntimeError):
    """Delivery to the chat transport failed."""


class Notifier(Protocol):
    async def send(self, recipient_id: str, text: str) -> None:
        ...

    async def send_document(
        self,
        recipient_id: str,
        document: bytes,
        mime_type: str,
        file_name: str,
        caption: str,
    ) -> None:
        ...


def chunk_text(text: str, max_len: int = MAX_CHUNK_SIZE) -> list[str]:
    chunks: list[str] = []
    remaining = text or ""
    while remaining:
        if len(remaining) <= max_len:
            chunks.append(remaining)
            break
        split_at = remaining.rfind("\n", 0, max_len + 1)
        if split_at == -1:
            split_at = remaining.rfind(" ", 0, max_len + 1)
        if split_at <= 0:
            split_at = max_len
        chunk = remaining[:split_at].rstrip()
        if not chunk:
            chunk = remaining[:max_len]
            split_at = max_len
        chunks.append(chunk)
        remaining = remaining[split_at:].lstrip("\n ")
    return chunks


def _chat_id(recipient_id: str) -> int | str:
    stripped = recipient_id.strip()
    if stripped.lstrip("-").isdigit():
        return int(stripped)
    return stripped


class TelegramNotifier:
    """Notifier over a python-telegram-bot ``Bot``; every send has a deadline."""

    def __init__(self, bot, *, timeout_seconds: float = 15.0) -> None:
        self._bot = bot
        self._timeout_seconds = timeout_seconds

    async def send(self, recipient_id: str, text: str) -> None:
        payload = text if text and text.strip() else EMPTY_MESSAGE_PLACEHOLDER
        chat_id = _chat_id(recipient_id)
        for chunk in chunk_text(payload, max_len=MAX_CHUNK_SIZE):
            try:
                await self._send_message(chat_id, chunk)
            except BadRequest as exc:
                if "Message is too long" not in str(exc):
                    raise NotifierError(str(exc)) from exc
                LOGGER.warning("Telegram rejected message chunk as too long; splitting further.")
                for subchunk in chunk_text(chunk, max_len=FALLBACK_CHUNK_SIZE):
                    await self._send_message(chat_id, subchunk)

    async def send_document(
        self,
        recipient_id: str,
        document: bytes,
        mime_type: str,
        file_name: str,
        caption: str,
    ) -> None:
        chat_id = _chat_id(recipient_id)
        caption_chunks = chunk_text(caption, max_len=1000) if caption else []
        try:
            await asyncio.wait_for(
                self._bot.send_document(
                    chat_id=chat_id,
                    document=InputFile(document, filename=file_name),
                    caption=caption_chunks[0] if caption_chunks else None,
                ),
                timeout=self._timeout_seconds,
            )
        except asyncio.TimeoutError as exc:
            raise NotifierError(f"send_document timed out mime_type={mime_type}") from exc
        except TelegramError as exc:
            raise NotifierError(str(exc)) from exc
        for extra in caption_chunks[1:]:
            await self._send_message(chat_id, extra)

    async def _send_message(self, chat_id: int | str, text: str) -> None:
        try:
            await asyncio.wait_for(
                self._bot.send_message(chat_id=chat_id, text=text),
                timeout=self._timeout_seconds,
            )
        except asyncio.TimeoutError as exc:
            raise NotifierError("send_message timed out") from exc
        except BadRequest:
            raise
        except TelegramError as exc:
            raise NotifierError(str(exc)) from exc
