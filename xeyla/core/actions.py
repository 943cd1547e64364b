"""Action contract between the extractors and the dispatcher.

Extractors return ``None`` when a message carries no actionable intent, one of
the action dataclasses below when it does, or ``NeedsConfirmation`` when the
request is ambiguous. ``NeedsConfirmation`` never triggers a mutation and its
``details`` text reaches the user verbatim.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Literal, Union

from xeyla.core.models import FinanceQueryType, FinanceType

ConfirmationKind = Literal["create", "delete", "edit", "finance"]


@dataclass(frozen=True)
class ScheduleItem:
    task: str
    time: str


@dataclass(frozen=True)
class CreateSchedules:
    items: tuple[ScheduleItem, ...]


@dataclass(frozen=True)
class DeleteSchedule:
    id: int


@dataclass(frozen=True)
class EditSchedule:
    id: int
    new_task: str | None = None
    new_time: str | None = None


@dataclass(frozen=True)
class NeedsConfirmation:
    kind: ConfirmationKind
    details: str


@dataclass(frozen=True)
class RecordFinance:
    amount: Decimal
    type: FinanceType
    category: str
    description: str


@dataclass(frozen=True)
class QueryFinance:
    query_type: FinanceQueryType
    year: int | None = None
    month: int | None = None


ScheduleAction = Union[CreateSchedules, DeleteSchedule, EditSchedule, NeedsConfirmation]
FinanceAction = Union[RecordFinance, QueryFinance, NeedsConfirmation]
