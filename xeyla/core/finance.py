"""Finance domain handlers: record a transaction, answer balance/today/summary
queries and build the monthly report.

Store failures are turned into short failure notices here; the mutation is
treated as not applied.
"""

from __future__ import annotations

import logging
import re
from decimal import Decimal
from typing import Protocol
from zoneinfo import ZoneInfo

from xeyla.core import replies
from xeyla.core.actions import QueryFinance, RecordFinance
from xeyla.core.clock import REFERENCE_TZ, ClockContext, day_bounds
from xeyla.core.models import Finance, MonthlyReport
from xeyla.core.prompts import advice_prompt
from xeyla.core.result import Attachment, DispatchResult, error, ok
from xeyla.core.understanding import LanguageUnderstandingClient
from xeyla.infra.store import RecordStore, StoreError

LOGGER = logging.getLogger(__name__)

REPORT_MIME_TYPE = "application/pdf"


class ReportRenderer(Protocol):
    def render(self, report: MonthlyReport) -> bytes:
        ...


def report_file_name(report: MonthlyReport) -> str:
    user = re.sub(r"@.*", "", report.user_id)
    return f"Financial_Report_{report.year}-{report.month:02d}_{user}.pdf"


class FinanceReporter:
    def __init__(
        self,
        store: RecordStore,
        understanding: LanguageUnderstandingClient,
        *,
        renderer: ReportRenderer | None = None,
    ) -> None:
        self._store = store
        self._understanding = understanding
        self._renderer = renderer

    def build_monthly_report(self, user_id: str, year: int, month: int) -> MonthlyReport:
        transactions = self._store.list_finance_for_month(user_id, year, month)
        income = sum((item.amount for item in transactions if item.type == "income"), Decimal("0"))
        expense = sum((item.amount for item in transactions if item.type == "expense"), Decimal("0"))
        categories = self._store.aggregate_finance_by_category_for_month(user_id, year, month)
        return MonthlyReport(
            user_id=user_id,
            year=year,
            month=month,
            income=income,
            expense=expense,
            categories=categories,
            transactions=transactions,
        )

    async def advice(self, report: MonthlyReport) -> str:
        top = ", ".join(
            f"{category.category}: Rp {replies.format_rupiah(category.total)}"
            for category in report.categories[:3]
        )
        prompt = advice_prompt(
            income=replies.format_rupiah(report.income),
            expense=replies.format_rupiah(report.expense),
            net=replies.format_rupiah(report.net),
            saving_rate=str(report.saving_rate),
            top_expenses=top or "-",
        )
        text = await self._understanding.reply("", prompt)
        return text.strip() if text else ""

    def render(self, report: MonthlyReport) -> Attachment | None:
        if self._renderer is None:
            return None
        try:
            data = self._renderer.render(report)
        except Exception:
            LOGGER.exception("finance.report render failed user_id=%s", report.user_id)
            return None
        return Attachment(name=report_file_name(report), mime_type=REPORT_MIME_TYPE, data=data)


class FinanceHandler:
    def __init__(
        self,
        store: RecordStore,
        reporter: FinanceReporter,
        *,
        tz: ZoneInfo = REFERENCE_TZ,
    ) -> None:
        self._store = store
        self._reporter = reporter
        self._tz = tz

    def record(self, user_id: str, action: RecordFinance) -> DispatchResult:
        try:
            finance_id = self._store.insert_finance(
                user_id,
                action.amount,
                action.type,
                action.category,
                action.description,
            )
        except StoreError:
            LOGGER.exception("finance.record failed user_id=%s", user_id)
            return error(replies.FINANCE_RECORD_FAILURE_TEXT, "finance.record")
        LOGGER.info(
            "finance.record ok id=%s user_id=%s type=%s amount=%s",
            finance_id,
            user_id,
            action.type,
            action.amount,
        )
        text = replies.finance_recorded_text(
            finance_type=action.type,
            description=action.description,
            amount=action.amount,
            category=action.category,
        )
        return ok(text, "finance.record", debug={"mutated": True, "finance_id": finance_id})

    async def query(self, user_id: str, action: QueryFinance, ctx: ClockContext) -> DispatchResult:
        intent = f"finance.{action.query_type}"
        try:
            if action.query_type == "balance":
                totals = self._store.aggregate_finance_totals_by_type(user_id)
                return ok(replies.balance_text(totals["income"], totals["expense"]), intent)
            if action.query_type == "today_expenses":
                return ok(self._today_text(user_id, ctx, "expense"), intent)
            if action.query_type == "today_income":
                return ok(self._today_text(user_id, ctx, "income"), intent)
            if action.query_type == "summary":
                return ok(self._summary_text(user_id, ctx), intent)
            if action.query_type == "monthly_report":
                return await self._monthly_report(user_id, action, ctx)
        except StoreError:
            LOGGER.exception("finance.query failed user_id=%s query_type=%s", user_id, action.query_type)
            if action.query_type == "monthly_report":
                return error(replies.REPORT_FAILURE_TEXT, intent)
            return error(replies.FINANCE_QUERY_FAILURE_TEXT, intent)
        return error(replies.FINANCE_QUERY_FAILURE_TEXT, intent, debug={"reason": "unknown_query"})

    def today_entries(self, user_id: str, ctx: ClockContext) -> list[Finance]:
        start, end = day_bounds(ctx.now.date(), self._tz)
        return self._store.list_finance_by_date_range(user_id, start, end)

    def _today_text(self, user_id: str, ctx: ClockContext, finance_type: str) -> str:
        entries = [item for item in self.today_entries(user_id, ctx) if item.type == finance_type]
        if not entries:
            if finance_type == "expense":
                return replies.NO_EXPENSES_TODAY_TEXT
            return replies.NO_INCOME_TODAY_TEXT
        return replies.today_entries_text(entries, finance_type=finance_type)

    def _summary_text(self, user_id: str, ctx: ClockContext) -> str:
        totals = self._store.aggregate_finance_totals_by_type(user_id)
        today = self.today_entries(user_id, ctx)
        today_income = sum((item.amount for item in today if item.type == "income"), Decimal("0"))
        today_expense = sum((item.amount for item in today if item.type == "expense"), Decimal("0"))
        return replies.summary_text(
            income=totals["income"],
            expense=totals["expense"],
            today_income=today_income,
            today_expense=today_expense,
        )

    async def _monthly_report(self, user_id: str, action: QueryFinance, ctx: ClockContext) -> DispatchResult:
        year = action.year or ctx.now.year
        month = action.month or ctx.now.month
        report = self._reporter.build_monthly_report(user_id, year, month)
        totals = self._store.aggregate_finance_totals_by_type(user_id)
        if report.is_empty and not any(totals.values()):
            return ok(replies.NO_FINANCE_DATA_TEXT, "finance.monthly_report")
        advice = await self._reporter.advice(report)
        caption = replies.report_caption(report, advice)
        attachment = self._reporter.render(report)
        LOGGER.info(
            "finance.report ok user_id=%s period=%s-%02d transactions=%s document=%s",
            user_id,
            year,
            month,
            len(report.transactions),
            attachment is not None,
        )
        return ok(caption, "finance.monthly_report", attachment=attachment)
