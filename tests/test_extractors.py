import asyncio
import json
from decimal import Decimal

import pytest

from fakes import ScriptedLLMClient, build_understanding, jakarta
from xeyla.core import replies
from xeyla.core.actions import (
    CreateSchedules,
    DeleteSchedule,
    EditSchedule,
    NeedsConfirmation,
    QueryFinance,
    RecordFinance,
    ScheduleItem,
)
from xeyla.core.clock import build_context
from xeyla.core.extractors import (
    FinanceExtractor,
    ScheduleCreateExtractor,
    ScheduleDeleteExtractor,
    ScheduleEditExtractor,
    normalize_finance_type,
    parse_amount,
)
from xeyla.core.models import Schedule

CTX = build_context(jakarta(2026, 1, 13, 9, 30))
SCHEDULES = [
    Schedule(id=4, task="olahraga", time="2026-01-13 17:00:00", user_id="42"),
    Schedule(id=7, task="meeting", time="2026-01-14 14:00:00", user_id="42"),
]


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        (2000, Decimal("2000.00")),
        (12.5, Decimal("12.50")),
        ("2k", Decimal("2000.00")),
        ("10rb", Decimal("10000.00")),
        ("1,5jt", Decimal("1500000.00")),
        ("1.5jt", Decimal("1500000.00")),
        ("Rp 25.000", Decimal("25000.00")),
        ("1.500.000", Decimal("1500000.00")),
        ("15000", Decimal("15000.00")),
    ],
)
def test_parse_amount_understands_rupiah_shorthand(raw, expected) -> None:
    assert parse_amount(raw) == expected


@pytest.mark.parametrize("raw", [0, -5, "abc", "", None, True, "1.2.3jt"])
def test_parse_amount_rejects_non_positive_or_garbage(raw) -> None:
    assert parse_amount(raw) is None


def test_normalize_finance_type() -> None:
    assert normalize_finance_type("Pengeluaran") == "expense"
    assert normalize_finance_type("pemasukan") == "income"
    assert normalize_finance_type("income") == "income"
    assert normalize_finance_type("hutang") is None
    assert normalize_finance_type(3) is None


def _create(answer) -> CreateSchedules | None:
    extractor = ScheduleCreateExtractor(build_understanding(ScriptedLLMClient(create=answer)))
    return asyncio.run(extractor.extract("Ingetin meeting besok jam 2", CTX))


def test_create_extractor_single_object() -> None:
    action = _create("{\"task\": \"meeting\", \"time\": \"2026-01-14 14:00:00\"}")

    assert action == CreateSchedules(items=(ScheduleItem(task="meeting", time="2026-01-14 14:00:00"),))


def test_create_extractor_array_drops_invalid_items() -> None:
    payload = [
        {"task": "olahraga", "time": "2026-01-14 06:00"},
        {"task": "", "time": "2026-01-14 07:00:00"},
        {"task": "rapat", "time": "besok"},
        {"task": "makan siang", "time": "2026-01-14 12:00:00"},
    ]

    action = _create(json.dumps(payload))

    assert action is not None
    assert [item.task for item in action.items] == ["olahraga", "makan siang"]
    assert action.items[0].time == "2026-01-14 06:00:00"


def test_create_extractor_question_is_none() -> None:
    assert _create("null") is None
    assert _create("Besok kamu ada meeting") is None
    assert _create(RuntimeError("offline")) is None


def test_create_prompt_carries_clock_context() -> None:
    llm = ScriptedLLMClient(create="null")
    extractor = ScheduleCreateExtractor(build_understanding(llm))
    early = build_context(jakarta(2026, 1, 14, 1, 30))

    asyncio.run(extractor.extract("ingetin besok jam 9", early))

    system = llm.messages_for("create")[0]["content"]
    assert "Rabu, 14 Januari 2026 (2026-01-14)" in system
    assert "Current Time: 01:30" in system
    assert "\"besok\" = 2026-01-15" in system


def _delete(answer, schedules=SCHEDULES):
    extractor = ScheduleDeleteExtractor(build_understanding(ScriptedLLMClient(delete=answer)))
    return asyncio.run(extractor.extract("hapus jadwal", CTX, schedules))


def test_delete_extractor_resolves_listed_id() -> None:
    assert _delete("{\"id\": 7}") == DeleteSchedule(id=7)
    assert _delete("{\"id\": \"4\"}") == DeleteSchedule(id=4)


def test_delete_extractor_ambiguous_needs_confirmation() -> None:
    action = _delete("{\"needsConfirmation\": true, \"details\": \"Ada 2 jadwal meeting.\"}")

    assert action == NeedsConfirmation(kind="delete", details="Ada 2 jadwal meeting.")


def test_delete_extractor_invented_id_needs_confirmation() -> None:
    action = _delete("{\"id\": 99}")

    assert isinstance(action, NeedsConfirmation)
    assert action.details == replies.UNKNOWN_TARGET_DETAILS


def test_delete_extractor_not_a_delete_is_none() -> None:
    assert _delete("null") is None
    assert _delete("{\"task\": \"meeting\"}") is None


def test_delete_extractor_skips_model_without_schedules() -> None:
    llm = ScriptedLLMClient(delete="{\"id\": 1}")
    extractor = ScheduleDeleteExtractor(build_understanding(llm))

    assert asyncio.run(extractor.extract("hapus jadwal", CTX, [])) is None
    assert llm.calls == []


def test_delete_prompt_lists_ids_and_day_labels() -> None:
    llm = ScriptedLLMClient(delete="null")
    extractor = ScheduleDeleteExtractor(build_understanding(llm))

    asyncio.run(extractor.extract("hapus olahraga", CTX, SCHEDULES))

    system = llm.messages_for("delete")[0]["content"]
    assert "1. [ID: 4] [🔴 HARI INI pukul 17:00] olahraga" in system
    assert "2. [ID: 7] [🔵 BESOK pukul 14:00] meeting" in system


def _edit(answer):
    extractor = ScheduleEditExtractor(build_understanding(ScriptedLLMClient(edit=answer)))
    return asyncio.run(extractor.extract("ganti meeting jadi jam 3", CTX, SCHEDULES))


def test_edit_extractor_partial_update() -> None:
    action = _edit("{\"id\": 7, \"newTask\": null, \"newTime\": \"2026-01-14 15:00:00\"}")

    assert action == EditSchedule(id=7, new_task=None, new_time="2026-01-14 15:00:00")


def test_edit_extractor_confirmation_cases() -> None:
    unclear = _edit("{\"id\": 7, \"newTime\": \"nanti sore\"}")
    missing = _edit("{\"id\": 7, \"newTask\": null, \"newTime\": null}")
    invented = _edit("{\"id\": 12, \"newTask\": \"rapat\"}")

    assert unclear == NeedsConfirmation(kind="edit", details=replies.UNCLEAR_TIME_DETAILS)
    assert missing == NeedsConfirmation(kind="edit", details=replies.MISSING_CHANGE_DETAILS)
    assert invented == NeedsConfirmation(kind="edit", details=replies.UNKNOWN_TARGET_DETAILS)


def _finance(answer):
    extractor = FinanceExtractor(build_understanding(ScriptedLLMClient(finance=answer)))
    return asyncio.run(extractor.extract("beli cilok 2k", CTX))


def test_finance_extractor_record() -> None:
    action = _finance(
        "{\"action\": \"record\", \"amount\": \"2k\", \"type\": \"pengeluaran\", "
        "\"category\": \"makanan\", \"description\": \"beli cilok\"}"
    )

    assert action == RecordFinance(
        amount=Decimal("2000.00"),
        type="expense",
        category="makanan",
        description="beli cilok",
    )


def test_finance_extractor_record_defaults_and_rejects() -> None:
    defaulted = _finance("{\"action\": \"record\", \"amount\": 5000, \"type\": \"pemasukan\"}")
    negative = _finance("{\"action\": \"record\", \"amount\": -5000, \"type\": \"pengeluaran\"}")
    unknown_type = _finance("{\"action\": \"record\", \"amount\": 5000, \"type\": \"hutang\"}")

    assert defaulted == RecordFinance(
        amount=Decimal("5000.00"),
        type="income",
        category="lainnya",
        description="-",
    )
    assert negative is None
    assert unknown_type is None


def test_finance_extractor_query() -> None:
    assert _finance("{\"action\": \"query\", \"queryType\": \"balance\"}") == QueryFinance(query_type="balance")
    assert _finance(
        "{\"action\": \"query\", \"queryType\": \"monthly_report\", \"year\": 2025, \"month\": 13}"
    ) == QueryFinance(query_type="monthly_report", year=2025, month=None)
    assert _finance("{\"action\": \"query\", \"queryType\": \"forecast\"}") is None
    assert _finance("null") is None


@pytest.mark.parametrize("year", [20260, -1, 0, 1999, "30000"])
def test_finance_extractor_drops_implausible_year(year) -> None:
    answer = json.dumps({"action": "query", "queryType": "monthly_report", "year": year, "month": 1})

    assert _finance(answer) == QueryFinance(query_type="monthly_report", year=None, month=1)
