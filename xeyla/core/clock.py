"""Civil-time helpers for the reference timezone.

Every "today"/"tomorrow" decision and every reminder minute match is computed
from an aware instant converted to the reference timezone. Day keys are never
derived from UTC or from the host's local zone.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Callable
from zoneinfo import ZoneInfo

REFERENCE_TZ = ZoneInfo("Asia/Jakarta")

CIVIL_FORMAT = "%Y-%m-%d %H:%M:%S"
MINUTE_FORMAT = "%Y-%m-%d %H:%M"
DATE_FORMAT = "%Y-%m-%d"

EARLY_MORNING_END = time(4, 0)

LABEL_TODAY = "🔴 HARI INI"
LABEL_TOMORROW = "🔵 BESOK"

WEEKDAYS_ID = ("Senin", "Selasa", "Rabu", "Kamis", "Jumat", "Sabtu", "Minggu")
MONTHS_ID = (
    "Januari",
    "Februari",
    "Maret",
    "April",
    "Mei",
    "Juni",
    "Juli",
    "Agustus",
    "September",
    "Oktober",
    "November",
    "Desember",
)
MONTHS_ID_SHORT = ("Jan", "Feb", "Mar", "Apr", "Mei", "Jun", "Jul", "Agu", "Sep", "Okt", "Nov", "Des")

Clock = Callable[[], datetime]


@dataclass(frozen=True)
class ClockContext:
    now: datetime
    today_long: str
    tomorrow_long: str
    today_short: str
    tomorrow_short: str
    time_str: str

    @property
    def early_morning(self) -> bool:
        return is_early_morning(self.now)


def now_in(tz: ZoneInfo = REFERENCE_TZ) -> datetime:
    return datetime.now(tz=tz)


def to_reference(value: datetime, tz: ZoneInfo = REFERENCE_TZ) -> datetime:
    if value.tzinfo is None:
        raise ValueError("naive datetime has no defined civil time")
    return value.astimezone(tz)


def format_long_date(day: date) -> str:
    return f"{WEEKDAYS_ID[day.weekday()]}, {day.day} {MONTHS_ID[day.month - 1]} {day.year}"


def format_short_label(day: date) -> str:
    return f"{WEEKDAYS_ID[day.weekday()]}, {day.day} {MONTHS_ID_SHORT[day.month - 1]}"


def format_month(year: int, month: int) -> str:
    return f"{MONTHS_ID[month - 1]} {year}"


def date_key(value: datetime, tz: ZoneInfo = REFERENCE_TZ) -> str:
    return to_reference(value, tz).strftime(DATE_FORMAT)


def minute_key(value: datetime, tz: ZoneInfo = REFERENCE_TZ) -> str:
    return to_reference(value, tz).strftime(MINUTE_FORMAT)


def format_civil(value: datetime, tz: ZoneInfo = REFERENCE_TZ) -> str:
    return to_reference(value, tz).strftime(CIVIL_FORMAT)


def parse_civil(text: str, tz: ZoneInfo = REFERENCE_TZ) -> datetime | None:
    """Parse ``YYYY-MM-DD HH:MM[:SS]`` (``T`` separator allowed) as reference-tz civil time."""
    if not isinstance(text, str):
        return None
    cleaned = text.strip().replace("T", " ")
    for fmt in (CIVIL_FORMAT, MINUTE_FORMAT):
        try:
            parsed = datetime.strptime(cleaned, fmt)
        except ValueError:
            continue
        return parsed.replace(tzinfo=tz)
    return None


def normalize_civil(text: str, tz: ZoneInfo = REFERENCE_TZ) -> str | None:
    parsed = parse_civil(text, tz)
    if parsed is None:
        return None
    return parsed.strftime(CIVIL_FORMAT)


def is_early_morning(now: datetime) -> bool:
    return now.time() < EARLY_MORNING_END


def resolve_tomorrow(now: datetime, tz: ZoneInfo = REFERENCE_TZ) -> date:
    # 01:30 on the 14th still means the 15th: "besok" is always the next calendar day.
    return to_reference(now, tz).date() + timedelta(days=1)


def build_context(now: datetime | None = None, tz: ZoneInfo = REFERENCE_TZ) -> ClockContext:
    current = to_reference(now, tz) if now is not None else now_in(tz)
    today = current.date()
    tomorrow = resolve_tomorrow(current, tz)
    return ClockContext(
        now=current,
        today_long=format_long_date(today),
        tomorrow_long=format_long_date(tomorrow),
        today_short=today.strftime(DATE_FORMAT),
        tomorrow_short=tomorrow.strftime(DATE_FORMAT),
        time_str=current.strftime("%H:%M"),
    )


def day_label(value: datetime, ctx: ClockContext, tz: ZoneInfo = REFERENCE_TZ) -> str:
    local = to_reference(value, tz)
    key = local.strftime(DATE_FORMAT)
    if key == ctx.today_short:
        return LABEL_TODAY
    if key == ctx.tomorrow_short:
        return LABEL_TOMORROW
    return format_short_label(local.date())


def day_bounds(day: date, tz: ZoneInfo = REFERENCE_TZ) -> tuple[str, str]:
    """Civil ``[start, end)`` strings covering one reference-tz day."""
    start = datetime.combine(day, time(0, 0))
    end = start + timedelta(days=1)
    return start.strftime(CIVIL_FORMAT), end.strftime(CIVIL_FORMAT)


def month_bounds(year: int, month: int) -> tuple[str, str]:
    start = datetime(year, month, 1)
    if month == 12:
        end = datetime(year + 1, 1, 1)
    else:
        end = datetime(year, month + 1, 1)
    return start.strftime(CIVIL_FORMAT), end.strftime(CIVIL_FORMAT)
