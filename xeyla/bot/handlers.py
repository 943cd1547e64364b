from __future__ import annotations

import logging

from telegram import Update
from telegram.ext import ContextTypes

from xeyla.core.dispatcher import Dispatcher

LOGGER = logging.getLogger(__name__)

START_TEXT = (
    "Halo kak! Aku Xeyla 👋\n\n"
    "Aku bisa bantu ingetin jadwal dan catat keuangan.\n"
    "Contoh:\n"
    "- \"Ingetin meeting besok jam 2\"\n"
    "- \"Besok ada apa?\"\n"
    "- \"Hapus jadwal olahraga\"\n"
    "- \"Beli cilok 2k\"\n"
    "- \"Berapa sisa saldo?\""
)


def _get_dispatcher(context: ContextTypes.DEFAULT_TYPE) -> Dispatcher:
    return context.application.bot_data["dispatcher"]


async def start(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    if update.effective_message is None:
        return
    await update.effective_message.reply_text(START_TEXT)


async def chat(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    message = update.effective_message
    chat = update.effective_chat
    if message is None or chat is None or not message.text:
        return
    user_id = str(chat.id)
    LOGGER.info("chat.received user_id=%s chars=%s", user_id, len(message.text))
    try:
        await _get_dispatcher(context).handle_message(user_id, message.text)
    except Exception:
        LOGGER.exception("chat.failed user_id=%s", user_id)
