"""Dispatcher: routes one inbound chat message through the pipeline.

classify -> domain extractor chain -> store mutation (if any) -> reply via the
Notifier. For schedules the chain is create, delete, edit, then the
conversational responder; the first extractor with a non-None answer wins.
``NeedsConfirmation`` from any extractor ends the chain with a clarification
and no mutation.
"""

from __future__ import annotations

import logging
import time
from zoneinfo import ZoneInfo

from xeyla.core import replies
from xeyla.core.actions import (
    CreateSchedules,
    DeleteSchedule,
    EditSchedule,
    NeedsConfirmation,
    QueryFinance,
    RecordFinance,
)
from xeyla.core.classifier import IntentClassifier
from xeyla.core.clock import REFERENCE_TZ, Clock, ClockContext, build_context, now_in
from xeyla.core.extractors import (
    FinanceExtractor,
    ScheduleCreateExtractor,
    ScheduleDeleteExtractor,
    ScheduleEditExtractor,
)
from xeyla.core.finance import FinanceHandler, FinanceReporter, ReportRenderer
from xeyla.core.responder import ScheduleResponder
from xeyla.core.result import DispatchResult, clarify, ensure_valid, error, ok
from xeyla.core.understanding import LanguageUnderstandingClient
from xeyla.infra.notifier import Notifier
from xeyla.infra.store import RecordStore, StoreError

LOGGER = logging.getLogger(__name__)


class Dispatcher:
    def __init__(
        self,
        *,
        store: RecordStore,
        notifier: Notifier,
        understanding: LanguageUnderstandingClient,
        clock: Clock | None = None,
        tz: ZoneInfo = REFERENCE_TZ,
        report_renderer: ReportRenderer | None = None,
    ) -> None:
        self._store = store
        self._notifier = notifier
        self._tz = tz
        self._clock = clock or (lambda: now_in(tz))
        self._classifier = IntentClassifier(understanding)
        self._create = ScheduleCreateExtractor(understanding, tz=tz)
        self._delete = ScheduleDeleteExtractor(understanding, tz=tz)
        self._edit = ScheduleEditExtractor(understanding, tz=tz)
        self._finance_extractor = FinanceExtractor(understanding)
        self._responder = ScheduleResponder(understanding, tz=tz)
        reporter = FinanceReporter(store, understanding, renderer=report_renderer)
        self._finance = FinanceHandler(store, reporter, tz=tz)

    async def handle_message(self, user_id: str, text: str) -> DispatchResult | None:
        message = (text or "").strip()
        if not message:
            return None
        started = time.monotonic()
        result = await self.dispatch(user_id, message)
        LOGGER.info(
            "dispatch.done user_id=%s intent=%s status=%s duration_ms=%s",
            user_id,
            result.intent,
            result.status,
            int((time.monotonic() - started) * 1000),
        )
        await self._deliver(user_id, result)
        return result

    async def dispatch(self, user_id: str, message: str) -> DispatchResult:
        result = await self._route(user_id, message)
        return ensure_valid(result, fallback_text=replies.INTERNAL_ERROR_TEXT, logger=LOGGER)

    async def _route(self, user_id: str, message: str) -> DispatchResult:
        ctx = build_context(self._clock(), self._tz)
        domain = await self._classifier.classify(message)
        if domain == "finance":
            result = await self._dispatch_finance(user_id, message, ctx)
            if result is not None:
                return result
            LOGGER.info("dispatch.finance no_action user_id=%s, falling back to schedule chain", user_id)
        return await self._dispatch_schedule(user_id, message, ctx)

    async def _dispatch_finance(self, user_id: str, message: str, ctx: ClockContext) -> DispatchResult | None:
        action = await self._finance_extractor.extract(message, ctx)
        if action is None:
            return None
        if isinstance(action, NeedsConfirmation):
            return clarify(replies.confirmation_text(action.kind, action.details), "finance.confirm")
        if isinstance(action, RecordFinance):
            return self._finance.record(user_id, action)
        if isinstance(action, QueryFinance):
            return await self._finance.query(user_id, action, ctx)
        return None

    async def _dispatch_schedule(self, user_id: str, message: str, ctx: ClockContext) -> DispatchResult:
        created = await self._create.extract(message, ctx)
        if created is not None:
            return self._apply_create(user_id, created)

        try:
            schedules = self._store.list_upcoming_schedules(user_id)
        except StoreError:
            LOGGER.exception("dispatch.schedule list failed user_id=%s", user_id)
            return error(replies.SCHEDULE_FAILURE_TEXT, "schedule.list")

        deleted = await self._delete.extract(message, ctx, schedules)
        if deleted is not None:
            if isinstance(deleted, NeedsConfirmation):
                return clarify(replies.confirmation_text(deleted.kind, deleted.details), "schedule.delete")
            return self._apply_delete(user_id, deleted)

        edited = await self._edit.extract(message, ctx, schedules)
        if edited is not None:
            if isinstance(edited, NeedsConfirmation):
                return clarify(replies.confirmation_text(edited.kind, edited.details), "schedule.edit")
            return self._apply_edit(user_id, edited)

        answer = await self._responder.answer(message, ctx, schedules)
        return ok(answer, "schedule.query", debug={"schedules": len(schedules)})

    def _apply_create(self, user_id: str, action: CreateSchedules) -> DispatchResult:
        try:
            ids = self._store.insert_schedules(((item.task, item.time) for item in action.items), user_id)
        except StoreError:
            LOGGER.exception("dispatch.create failed user_id=%s items=%s", user_id, len(action.items))
            return error(replies.SCHEDULE_FAILURE_TEXT, "schedule.create")
        for item, schedule_id in zip(action.items, ids):
            LOGGER.info(
                "schedule.created id=%s user_id=%s time=%s task=%r",
                schedule_id,
                user_id,
                item.time,
                item.task,
            )
        return ok(replies.created_text(action.items), "schedule.create", debug={"mutated": True, "ids": ids})

    def _apply_delete(self, user_id: str, action: DeleteSchedule) -> DispatchResult:
        try:
            target = self._store.get_schedule(action.id)
            if target is None or target.user_id != user_id:
                return ok(replies.NOT_FOUND_TEXT, "schedule.delete")
            removed = self._store.delete_schedule(action.id)
        except StoreError:
            LOGGER.exception("dispatch.delete failed user_id=%s id=%s", user_id, action.id)
            return error(replies.SCHEDULE_FAILURE_TEXT, "schedule.delete")
        if not removed:
            return ok(replies.NOT_FOUND_TEXT, "schedule.delete")
        LOGGER.info("schedule.deleted id=%s user_id=%s task=%r", action.id, user_id, target.task)
        return ok(replies.deleted_text(target), "schedule.delete", debug={"mutated": True, "id": action.id})

    def _apply_edit(self, user_id: str, action: EditSchedule) -> DispatchResult:
        try:
            target = self._store.get_schedule(action.id)
            if target is None or target.user_id != user_id:
                return ok(replies.NOT_FOUND_TEXT, "schedule.edit")
            new_task = action.new_task or target.task
            new_time = action.new_time or target.time
            updated = self._store.update_schedule(action.id, new_task, new_time)
        except StoreError:
            LOGGER.exception("dispatch.edit failed user_id=%s id=%s", user_id, action.id)
            return error(replies.SCHEDULE_FAILURE_TEXT, "schedule.edit")
        if not updated:
            return ok(replies.NOT_FOUND_TEXT, "schedule.edit")
        LOGGER.info(
            "schedule.edited id=%s user_id=%s old=%r new=%r",
            action.id,
            user_id,
            target.task,
            new_task,
        )
        return ok(
            replies.edited_text(target, new_task, new_time),
            "schedule.edit",
            debug={"mutated": True, "id": action.id},
        )

    async def _deliver(self, user_id: str, result: DispatchResult) -> None:
        try:
            if result.attachment is not None:
                await self._notifier.send_document(
                    user_id,
                    result.attachment.data,
                    result.attachment.mime_type,
                    result.attachment.name,
                    result.text,
                )
                return
            await self._notifier.send(user_id, result.text)
        except Exception:
            LOGGER.exception("dispatch.reply failed user_id=%s intent=%s", user_id, result.intent)
