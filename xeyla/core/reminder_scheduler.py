"""Reminder sweep on APScheduler.

Once per tick: compute the reference-timezone minute, select Pending schedules
whose stored time falls in that exact minute, notify the owner, mark Fired.
A reminder whose minute passes while the process is down is never sent.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import timedelta
from zoneinfo import ZoneInfo

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from xeyla.core import replies
from xeyla.core.clock import REFERENCE_TZ, Clock, minute_key, now_in
from xeyla.core.models import Schedule
from xeyla.infra.notifier import Notifier
from xeyla.infra.resilience import RetryPolicy, retry_async
from xeyla.infra.store import RecordStore, StoreError

LOGGER = logging.getLogger(__name__)

SWEEP_JOB_ID = "reminder-sweep"
DEFAULT_TICK_SECONDS = 60
# Share of one tick a single row may spend on delivery, retries included.
DELIVERY_BUDGET_SHARE = 0.8


@dataclass(frozen=True)
class SweepReport:
    minute_key: str
    due: int = 0
    sent: int = 0
    failed: int = 0
    skipped: int = 0


class ReminderScheduler:
    def __init__(
        self,
        *,
        store: RecordStore,
        notifier: Notifier,
        clock: Clock | None = None,
        tz: ZoneInfo = REFERENCE_TZ,
        tick_seconds: int = DEFAULT_TICK_SECONDS,
        delivery_policy: RetryPolicy | None = None,
        delivery_timeout_seconds: float = 15.0,
    ) -> None:
        self._store = store
        self._notifier = notifier
        self._tz = tz
        self._clock = clock or (lambda: now_in(tz))
        self._tick_seconds = max(1, tick_seconds)
        self._delivery_policy = delivery_policy or RetryPolicy(max_attempts=2)
        self._delivery_timeout_seconds = delivery_timeout_seconds
        self._delivery_budget_seconds = max(1.0, self._tick_seconds * DELIVERY_BUDGET_SHARE)
        self._scheduler: AsyncIOScheduler | None = None

    @property
    def running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    def start(self) -> None:
        """Register the sweep job. Must be called from inside the running event loop."""
        if self.running:
            LOGGER.info("ReminderScheduler already started, skipping")
            return
        loop = asyncio.get_running_loop()
        scheduler = AsyncIOScheduler(event_loop=loop, timezone=self._tz)
        now = self._clock()
        # Align ticks to the start of the next minute so each civil minute gets one sweep.
        first_run = now.replace(second=1, microsecond=0) + timedelta(minutes=1)
        scheduler.add_job(
            self.run_once,
            trigger=IntervalTrigger(seconds=self._tick_seconds, start_date=first_run, timezone=self._tz),
            id=SWEEP_JOB_ID,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
            misfire_grace_time=max(1, self._tick_seconds // 2),
        )
        scheduler.start()
        self._scheduler = scheduler
        LOGGER.info(
            "ReminderScheduler started tick=%ss first_run=%s",
            self._tick_seconds,
            first_run.isoformat(),
        )

    def shutdown(self, wait: bool = False) -> None:
        if self._scheduler is None:
            return
        try:
            if self._scheduler.running:
                self._scheduler.shutdown(wait=wait)
            LOGGER.info("ReminderScheduler shutdown")
        except Exception:
            LOGGER.exception("ReminderScheduler shutdown error")
        finally:
            self._scheduler = None

    async def run_once(self) -> SweepReport:
        now_key = minute_key(self._clock(), self._tz)
        try:
            due = self._store.list_due_schedules(now_key)
        except StoreError:
            LOGGER.exception("reminder.sweep select failed minute=%s", now_key)
            return SweepReport(minute_key=now_key)
        LOGGER.debug("reminder.sweep minute=%s due=%s", now_key, len(due))
        sent = failed = skipped = 0
        outcomes = await asyncio.gather(*(self._fire(schedule) for schedule in due), return_exceptions=True)
        for schedule, outcome in zip(due, outcomes):
            if isinstance(outcome, BaseException):
                LOGGER.error("reminder.fire crashed id=%s", schedule.id, exc_info=outcome)
                failed += 1
            elif outcome == "sent":
                sent += 1
            elif outcome == "failed":
                failed += 1
            else:
                skipped += 1
        if due:
            LOGGER.info(
                "reminder.sweep minute=%s due=%s sent=%s failed=%s skipped=%s",
                now_key,
                len(due),
                sent,
                failed,
                skipped,
            )
        return SweepReport(minute_key=now_key, due=len(due), sent=sent, failed=failed, skipped=skipped)

    async def _fire(self, schedule: Schedule) -> str:
        try:
            current = self._store.get_schedule(schedule.id)
        except StoreError:
            LOGGER.exception("reminder.fire reload failed id=%s", schedule.id)
            return "skipped"
        if current is None or current.is_reminded:
            # Deleted or already fired between select and send.
            LOGGER.info("reminder.fire skipped id=%s user_id=%s", schedule.id, schedule.user_id)
            return "skipped"

        text = replies.reminder_text(current)
        delivered = True
        try:
            await asyncio.wait_for(
                retry_async(
                    lambda: self._notifier.send(current.user_id, text),
                    policy=self._delivery_policy,
                    timeout_seconds=self._delivery_timeout_seconds,
                    logger=LOGGER,
                    name=f"reminder.send:{current.id}",
                ),
                timeout=self._delivery_budget_seconds,
            )
        except Exception:
            delivered = False
            LOGGER.exception(
                "reminder.send failed id=%s user_id=%s time=%s; marking fired anyway",
                current.id,
                current.user_id,
                current.time,
            )

        try:
            marked = self._store.mark_reminded(current.id)
        except StoreError:
            LOGGER.exception("reminder.mark failed id=%s", current.id)
            marked = False
        if delivered:
            LOGGER.info(
                "reminder.sent id=%s user_id=%s time=%s marked=%s",
                current.id,
                current.user_id,
                current.time,
                marked,
            )
            return "sent"
        return "failed"
