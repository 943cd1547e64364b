"""Action extractors: free text + clock context -> action, ``None`` or ``NeedsConfirmation``.

Each extractor makes one low-temperature completion and validates the shape of
the answer before building an action. Malformed output is ``None``; an id the
model invents outside the supplied schedule list is never acted upon.
"""

from __future__ import annotations

import logging
import re
from decimal import Decimal, InvalidOperation
from typing import Any
from zoneinfo import ZoneInfo

from xeyla.core import replies
from xeyla.core.actions import (
    CreateSchedules,
    DeleteSchedule,
    EditSchedule,
    FinanceAction,
    NeedsConfirmation,
    QueryFinance,
    RecordFinance,
    ScheduleItem,
)
from xeyla.core.clock import REFERENCE_TZ, ClockContext, normalize_civil
from xeyla.core.models import FINANCE_QUERY_TYPES, FinanceType, Schedule
from xeyla.core.prompts import (
    create_instruction,
    delete_instruction,
    edit_instruction,
    finance_instruction,
    render_schedule_list,
)
from xeyla.core.understanding import LanguageUnderstandingClient
from xeyla.infra.llm import parse_json_payload

LOGGER = logging.getLogger(__name__)

_AMOUNT_RE = re.compile(r"^(?P<number>\d+(?:[.,]\d+)*)\s*(?P<suffix>k|rb|ribu|jt|juta)?$")
_THOUSANDS_RE = re.compile(r"^\d{1,3}(?:([.,])\d{3})(?:\1\d{3})*$")
_MULTIPLIERS = {
    "k": Decimal(1_000),
    "rb": Decimal(1_000),
    "ribu": Decimal(1_000),
    "jt": Decimal(1_000_000),
    "juta": Decimal(1_000_000),
}
MIN_REPORT_YEAR = 2000
MAX_REPORT_YEAR = 2100
_EXPENSE_LABELS = {"pengeluaran", "expense", "keluar", "spending"}
_INCOME_LABELS = {"pemasukan", "income", "masuk", "earning"}


def parse_amount(value: Any) -> Decimal | None:
    """Parse a rupiah amount: numbers, ``"2k"``, ``"10rb"``, ``"1,5jt"``, ``"Rp 25.000"``.

    Returns None for anything that is not a strictly positive amount.
    """
    amount: Decimal | None
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        try:
            amount = Decimal(str(value))
        except InvalidOperation:
            return None
    elif isinstance(value, str):
        amount = _parse_amount_text(value)
    else:
        return None
    if amount is None or not amount.is_finite() or amount <= 0:
        return None
    return amount.quantize(Decimal("0.01"))


def _parse_amount_text(text: str) -> Decimal | None:
    cleaned = text.strip().lower().replace("rp", "").replace(" ", "")
    if cleaned.endswith("-"):
        cleaned = cleaned[:-1]
    match = _AMOUNT_RE.match(cleaned)
    if match is None:
        return None
    number = match.group("number")
    suffix = match.group("suffix")
    if suffix is None and _THOUSANDS_RE.match(number):
        number = number.replace(".", "").replace(",", "")
    else:
        number = number.replace(",", ".")
        if number.count(".") > 1:
            return None
    try:
        amount = Decimal(number)
    except InvalidOperation:
        return None
    if suffix:
        amount *= _MULTIPLIERS[suffix]
    return amount


def normalize_finance_type(value: Any) -> FinanceType | None:
    if not isinstance(value, str):
        return None
    normalized = value.strip().lower()
    if normalized in _EXPENSE_LABELS:
        return "expense"
    if normalized in _INCOME_LABELS:
        return "income"
    return None


def _coerce_id(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None


def _optional_text(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    trimmed = value.strip()
    if not trimmed or trimmed.lower() == "null":
        return None
    return trimmed


def _confirmation_from(payload: dict[str, Any], kind: str) -> NeedsConfirmation | None:
    if not payload.get("needsConfirmation"):
        return None
    details = _optional_text(payload.get("details")) or replies.DEFAULT_CONFIRMATION_DETAILS
    return NeedsConfirmation(kind=kind, details=details)


class ScheduleCreateExtractor:
    def __init__(self, understanding: LanguageUnderstandingClient, *, tz: ZoneInfo = REFERENCE_TZ) -> None:
        self._understanding = understanding
        self._tz = tz

    async def extract(self, message: str, ctx: ClockContext) -> CreateSchedules | None:
        raw = await self._understanding.extract(create_instruction(ctx), message)
        payload = parse_json_payload(raw)
        if isinstance(payload, dict):
            candidates = [payload]
        elif isinstance(payload, list):
            candidates = payload
        else:
            return None
        items: list[ScheduleItem] = []
        for candidate in candidates:
            if not isinstance(candidate, dict):
                continue
            task = _optional_text(candidate.get("task"))
            time_value = candidate.get("time")
            civil = normalize_civil(time_value, self._tz) if isinstance(time_value, str) else None
            if task is None or civil is None:
                LOGGER.info("extract.create dropped item task=%r time=%r", task, time_value)
                continue
            items.append(ScheduleItem(task=task, time=civil))
        if not items:
            return None
        return CreateSchedules(items=tuple(items))


class ScheduleDeleteExtractor:
    def __init__(self, understanding: LanguageUnderstandingClient, *, tz: ZoneInfo = REFERENCE_TZ) -> None:
        self._understanding = understanding
        self._tz = tz

    async def extract(
        self,
        message: str,
        ctx: ClockContext,
        schedules: list[Schedule],
    ) -> DeleteSchedule | NeedsConfirmation | None:
        if not schedules:
            return None
        schedule_list = render_schedule_list(schedules, ctx, tz=self._tz)
        raw = await self._understanding.extract(delete_instruction(ctx, schedule_list), message)
        payload = parse_json_payload(raw)
        if not isinstance(payload, dict):
            return None
        confirmation = _confirmation_from(payload, "delete")
        if confirmation is not None:
            return confirmation
        if "id" not in payload:
            return None
        schedule_id = _coerce_id(payload.get("id"))
        if schedule_id is None or schedule_id not in {item.id for item in schedules}:
            LOGGER.info("extract.delete unknown id=%r", payload.get("id"))
            return NeedsConfirmation(kind="delete", details=replies.UNKNOWN_TARGET_DETAILS)
        return DeleteSchedule(id=schedule_id)


class ScheduleEditExtractor:
    def __init__(self, understanding: LanguageUnderstandingClient, *, tz: ZoneInfo = REFERENCE_TZ) -> None:
        self._understanding = understanding
        self._tz = tz

    async def extract(
        self,
        message: str,
        ctx: ClockContext,
        schedules: list[Schedule],
    ) -> EditSchedule | NeedsConfirmation | None:
        if not schedules:
            return None
        schedule_list = render_schedule_list(schedules, ctx, tz=self._tz)
        raw = await self._understanding.extract(edit_instruction(ctx, schedule_list), message)
        payload = parse_json_payload(raw)
        if not isinstance(payload, dict):
            return None
        confirmation = _confirmation_from(payload, "edit")
        if confirmation is not None:
            return confirmation
        if "id" not in payload:
            return None
        schedule_id = _coerce_id(payload.get("id"))
        if schedule_id is None or schedule_id not in {item.id for item in schedules}:
            LOGGER.info("extract.edit unknown id=%r", payload.get("id"))
            return NeedsConfirmation(kind="edit", details=replies.UNKNOWN_TARGET_DETAILS)
        new_task = _optional_text(payload.get("newTask"))
        raw_time = _optional_text(payload.get("newTime"))
        new_time = normalize_civil(raw_time, self._tz) if raw_time else None
        if raw_time and new_time is None:
            return NeedsConfirmation(kind="edit", details=replies.UNCLEAR_TIME_DETAILS)
        if new_task is None and new_time is None:
            return NeedsConfirmation(kind="edit", details=replies.MISSING_CHANGE_DETAILS)
        return EditSchedule(id=schedule_id, new_task=new_task, new_time=new_time)


class FinanceExtractor:
    def __init__(self, understanding: LanguageUnderstandingClient) -> None:
        self._understanding = understanding

    async def extract(self, message: str, ctx: ClockContext) -> FinanceAction | None:
        raw = await self._understanding.extract(finance_instruction(ctx), message)
        payload = parse_json_payload(raw)
        if not isinstance(payload, dict):
            return None
        confirmation = _confirmation_from(payload, "finance")
        if confirmation is not None:
            return confirmation
        action = payload.get("action")
        if action == "query":
            return _parse_query(payload)
        if action == "record":
            return _parse_record(payload)
        return None


def _parse_query(payload: dict[str, Any]) -> QueryFinance | None:
    query_type = payload.get("queryType")
    if query_type not in FINANCE_QUERY_TYPES:
        LOGGER.info("extract.finance unknown queryType=%r", query_type)
        return None
    year = _coerce_id(payload.get("year"))
    month = _coerce_id(payload.get("month"))
    if year is not None and not MIN_REPORT_YEAR <= year <= MAX_REPORT_YEAR:
        LOGGER.info("extract.finance dropped year=%r", year)
        year = None
    if month is not None and not 1 <= month <= 12:
        month = None
    return QueryFinance(query_type=query_type, year=year, month=month)


def _parse_record(payload: dict[str, Any]) -> RecordFinance | None:
    amount = parse_amount(payload.get("amount"))
    finance_type = normalize_finance_type(payload.get("type"))
    if amount is None or finance_type is None:
        LOGGER.info(
            "extract.finance invalid record amount=%r type=%r",
            payload.get("amount"),
            payload.get("type"),
        )
        return None
    description = _optional_text(payload.get("description")) or "-"
    category = _optional_text(payload.get("category")) or "lainnya"
    return RecordFinance(
        amount=amount,
        type=finance_type,
        category=category[:100],
        description=description,
    )
