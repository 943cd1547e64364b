from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Literal

FinanceType = Literal["expense", "income"]
FINANCE_TYPES: tuple[str, ...] = ("expense", "income")

Domain = Literal["schedule", "finance"]

FinanceQueryType = Literal["balance", "today_expenses", "today_income", "summary", "monthly_report"]
FINANCE_QUERY_TYPES: tuple[str, ...] = ("balance", "today_expenses", "today_income", "summary", "monthly_report")


@dataclass(frozen=True)
class Schedule:
    id: int
    task: str
    time: str
    user_id: str
    is_reminded: bool = False


@dataclass(frozen=True)
class Finance:
    id: int
    user_id: str
    amount: Decimal
    type: FinanceType
    category: str
    description: str
    transaction_time: str
    created_at: str


@dataclass(frozen=True)
class CategoryTotal:
    category: str
    total: Decimal
    count: int


@dataclass(frozen=True)
class MonthlyReport:
    user_id: str
    year: int
    month: int
    income: Decimal
    expense: Decimal
    categories: list[CategoryTotal] = field(default_factory=list)
    transactions: list[Finance] = field(default_factory=list)

    @property
    def net(self) -> Decimal:
        return self.income - self.expense

    @property
    def saving_rate(self) -> Decimal:
        if self.income <= 0:
            return Decimal("0")
        return (self.net / self.income * 100).quantize(Decimal("0.1"))

    @property
    def is_empty(self) -> bool:
        return not self.transactions
