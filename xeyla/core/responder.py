from __future__ import annotations

import logging
from zoneinfo import ZoneInfo

from xeyla.core import replies
from xeyla.core.clock import REFERENCE_TZ, ClockContext
from xeyla.core.models import Schedule
from xeyla.core.prompts import query_instruction, render_schedule_list
from xeyla.core.understanding import LanguageUnderstandingClient

LOGGER = logging.getLogger(__name__)


class ScheduleResponder:
    """Conversational answer grounded strictly in the user's stored schedules."""

    def __init__(self, understanding: LanguageUnderstandingClient, *, tz: ZoneInfo = REFERENCE_TZ) -> None:
        self._understanding = understanding
        self._tz = tz

    async def answer(self, message: str, ctx: ClockContext, schedules: list[Schedule]) -> str:
        schedule_list = render_schedule_list(schedules, ctx, with_ids=False, tz=self._tz)
        text = await self._understanding.reply(query_instruction(ctx, schedule_list), message)
        if text is None:
            LOGGER.info("responder.answer fallback schedules=%s", len(schedules))
            return replies.REPLY_FALLBACK_TEXT
        return text.strip()
