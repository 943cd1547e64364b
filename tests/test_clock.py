import time as time_module
from datetime import datetime, timezone

import pytest

from fakes import jakarta
from xeyla.core.clock import (
    LABEL_TODAY,
    LABEL_TOMORROW,
    build_context,
    date_key,
    day_bounds,
    day_label,
    format_civil,
    minute_key,
    month_bounds,
    normalize_civil,
    parse_civil,
    resolve_tomorrow,
    to_reference,
)


def test_build_context_formats_indonesian_dates() -> None:
    ctx = build_context(jakarta(2026, 1, 13, 9, 30))

    assert ctx.today_long == "Selasa, 13 Januari 2026"
    assert ctx.tomorrow_long == "Rabu, 14 Januari 2026"
    assert ctx.today_short == "2026-01-13"
    assert ctx.tomorrow_short == "2026-01-14"
    assert ctx.time_str == "09:30"
    assert ctx.early_morning is False


def test_early_morning_tomorrow_is_next_calendar_day() -> None:
    ctx = build_context(jakarta(2026, 1, 14, 1, 30))

    assert ctx.early_morning is True
    assert ctx.tomorrow_short == "2026-01-15"
    assert resolve_tomorrow(jakarta(2026, 1, 14, 1, 30)).isoformat() == "2026-01-15"


def test_context_uses_reference_zone_not_utc() -> None:
    # 2026-01-13 18:30 UTC is already the 14th in Jakarta.
    ctx = build_context(datetime(2026, 1, 13, 18, 30, tzinfo=timezone.utc))

    assert ctx.today_short == "2026-01-14"
    assert ctx.time_str == "01:30"
    assert ctx.early_morning is True


def test_keys_ignore_host_timezone(monkeypatch) -> None:
    if not hasattr(time_module, "tzset"):
        pytest.skip("tzset not available")
    monkeypatch.setenv("TZ", "America/Los_Angeles")
    time_module.tzset()
    try:
        instant = datetime(2026, 1, 13, 17, 5, 40, tzinfo=timezone.utc)
        ctx = build_context(instant)

        assert date_key(instant) == "2026-01-14"
        assert ctx.today_short == date_key(instant)
        assert ctx.today_long == "Rabu, 14 Januari 2026"
        assert minute_key(instant) == "2026-01-14 00:05"
        assert format_civil(instant) == "2026-01-14 00:05:40"
    finally:
        monkeypatch.undo()
        time_module.tzset()


def test_to_reference_rejects_naive_datetimes() -> None:
    with pytest.raises(ValueError):
        to_reference(datetime(2026, 1, 13, 9, 30))


def test_parse_civil_accepts_minute_precision_and_t_separator() -> None:
    assert parse_civil("2026-01-14 14:00:00") == jakarta(2026, 1, 14, 14, 0)
    assert parse_civil("2026-01-14T14:00") == jakarta(2026, 1, 14, 14, 0)
    assert parse_civil("besok jam 2") is None
    assert normalize_civil("2026-01-14 14:00") == "2026-01-14 14:00:00"
    assert normalize_civil("14/01/2026") is None


def test_day_label_marks_today_and_tomorrow() -> None:
    ctx = build_context(jakarta(2026, 1, 13, 9, 30))

    assert day_label(jakarta(2026, 1, 13, 20, 0), ctx) == LABEL_TODAY
    assert day_label(jakarta(2026, 1, 14, 8, 0), ctx) == LABEL_TOMORROW
    assert day_label(jakarta(2026, 1, 16, 8, 0), ctx) == "Jumat, 16 Jan"


def test_day_and_month_bounds_are_half_open() -> None:
    assert day_bounds(jakarta(2026, 1, 13).date()) == ("2026-01-13 00:00:00", "2026-01-14 00:00:00")
    assert month_bounds(2026, 12) == ("2026-12-01 00:00:00", "2027-01-01 00:00:00")
