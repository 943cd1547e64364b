from __future__ import annotations

import logging
import sqlite3
import threading
from collections import defaultdict
from contextlib import contextmanager
from decimal import Decimal
from pathlib import Path
from typing import Any, Callable, Iterable, Iterator, TypeVar
from zoneinfo import ZoneInfo

from xeyla.core.clock import REFERENCE_TZ, Clock, format_civil, month_bounds, now_in
from xeyla.core.models import FINANCE_TYPES, CategoryTotal, Finance, FinanceType, Schedule

LOGGER = logging.getLogger(__name__)

SCHEMA_VERSION = 1

T = TypeVar("T")


class StoreError(RuntimeError):
    """A record store operation failed; the mutation must be treated as not applied."""


class RecordStore:
    """SQLite-backed Schedule/Finance store.

    One connection per process, shared by the message path and the reminder
    sweep. Every operation runs under a lock, and the reminder flag only moves
    through a conditional single-row update.
    """

    def __init__(
        self,
        db_path: Path | str,
        *,
        tz: ZoneInfo = REFERENCE_TZ,
        clock: Clock | None = None,
        timeout_seconds: float = 5.0,
    ) -> None:
        self._db_path = db_path
        self._tz = tz
        self._clock = clock or (lambda: now_in(tz))
        self._lock = threading.Lock()
        self._connection = sqlite3.connect(db_path, check_same_thread=False, timeout=timeout_seconds)
        self._connection.row_factory = sqlite3.Row
        self._ensure_schema()

    def _ensure_schema(self) -> None:
        with self._transaction() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS schedules (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    task TEXT NOT NULL,
                    time TEXT NOT NULL,
                    user_id TEXT NOT NULL,
                    is_reminded INTEGER NOT NULL DEFAULT 0
                )
                """
            )
            conn.execute("CREATE INDEX IF NOT EXISTS idx_schedules_user_time ON schedules (user_id, time)")
            conn.execute("CREATE INDEX IF NOT EXISTS idx_schedules_reminded ON schedules (is_reminded, time)")
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS finances (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id TEXT NOT NULL,
                    amount TEXT NOT NULL,
                    type TEXT NOT NULL CHECK (type IN ('expense', 'income')),
                    category TEXT NOT NULL,
                    description TEXT NOT NULL,
                    transaction_time TEXT NOT NULL,
                    created_at TEXT NOT NULL
                )
                """
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_finances_user_time ON finances (user_id, transaction_time)"
            )
            conn.execute(f"PRAGMA user_version = {SCHEMA_VERSION}")

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        with self._lock:
            try:
                yield self._connection
                self._connection.commit()
            except sqlite3.Error as exc:
                try:
                    self._connection.rollback()
                except sqlite3.Error:
                    LOGGER.warning("store.rollback failed db=%s", self._db_path)
                LOGGER.exception("store.transaction failed db=%s", self._db_path)
                raise StoreError(str(exc)) from exc

    def _read(self, func: Callable[[sqlite3.Connection], T]) -> T:
        with self._lock:
            try:
                return func(self._connection)
            except sqlite3.Error as exc:
                LOGGER.exception("store.read failed db=%s", self._db_path)
                raise StoreError(str(exc)) from exc

    # Schedules

    def insert_schedule(self, task: str, time: str, user_id: str) -> int:
        with self._transaction() as conn:
            cursor = conn.execute(
                "INSERT INTO schedules (task, time, user_id, is_reminded) VALUES (?, ?, ?, 0)",
                (task, time, user_id),
            )
            return int(cursor.lastrowid or 0)

    def insert_schedules(self, items: Iterable[tuple[str, str]], user_id: str) -> list[int]:
        """Insert ``(task, time)`` pairs in one transaction: all rows or none."""
        ids: list[int] = []
        with self._transaction() as conn:
            for task, time in items:
                cursor = conn.execute(
                    "INSERT INTO schedules (task, time, user_id, is_reminded) VALUES (?, ?, ?, 0)",
                    (task, time, user_id),
                )
                ids.append(int(cursor.lastrowid or 0))
        return ids

    def list_upcoming_schedules(self, user_id: str, *, since: str | None = None) -> list[Schedule]:
        sql = "SELECT id, task, time, user_id, is_reminded FROM schedules WHERE user_id = ?"
        params: list[Any] = [user_id]
        if since is not None:
            sql += " AND time >= ?"
            params.append(since)
        sql += " ORDER BY time ASC, id ASC"
        rows = self._read(lambda conn: conn.execute(sql, params).fetchall())
        return [_row_to_schedule(row) for row in rows]

    def get_schedule(self, schedule_id: int) -> Schedule | None:
        row = self._read(
            lambda conn: conn.execute(
                "SELECT id, task, time, user_id, is_reminded FROM schedules WHERE id = ?",
                (schedule_id,),
            ).fetchone()
        )
        return _row_to_schedule(row) if row is not None else None

    def update_schedule(self, schedule_id: int, task: str, time: str) -> bool:
        with self._transaction() as conn:
            cursor = conn.execute(
                "UPDATE schedules SET task = ?, time = ? WHERE id = ?",
                (task, time, schedule_id),
            )
            return cursor.rowcount > 0

    def delete_schedule(self, schedule_id: int) -> bool:
        with self._transaction() as conn:
            cursor = conn.execute("DELETE FROM schedules WHERE id = ?", (schedule_id,))
            return cursor.rowcount > 0

    def list_due_schedules(self, minute_key: str) -> list[Schedule]:
        """Pending rows whose time, truncated to the minute, equals ``minute_key``."""
        rows = self._read(
            lambda conn: conn.execute(
                """
                SELECT id, task, time, user_id, is_reminded
                FROM schedules
                WHERE is_reminded = 0 AND substr(time, 1, 16) = ?
                ORDER BY id ASC
                """,
                (minute_key,),
            ).fetchall()
        )
        return [_row_to_schedule(row) for row in rows]

    def mark_reminded(self, schedule_id: int) -> bool:
        """Flip Pending -> Fired. Returns False if the row is gone or already fired."""
        with self._transaction() as conn:
            cursor = conn.execute(
                "UPDATE schedules SET is_reminded = 1 WHERE id = ? AND is_reminded = 0",
                (schedule_id,),
            )
            return cursor.rowcount > 0

    # Finances

    def insert_finance(
        self,
        user_id: str,
        amount: Decimal,
        finance_type: FinanceType,
        category: str,
        description: str,
        *,
        transaction_time: str | None = None,
    ) -> int:
        if amount <= 0:
            raise ValueError("finance amount must be positive")
        if finance_type not in FINANCE_TYPES:
            raise ValueError(f"unknown finance type: {finance_type}")
        created_at = format_civil(self._clock(), self._tz)
        with self._transaction() as conn:
            cursor = conn.execute(
                """
                INSERT INTO finances (user_id, amount, type, category, description, transaction_time, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    user_id,
                    str(amount),
                    finance_type,
                    category,
                    description,
                    transaction_time or created_at,
                    created_at,
                ),
            )
            return int(cursor.lastrowid or 0)

    def list_finance_by_user(self, user_id: str) -> list[Finance]:
        rows = self._read(
            lambda conn: conn.execute(
                "SELECT * FROM finances WHERE user_id = ? ORDER BY transaction_time DESC, id DESC",
                (user_id,),
            ).fetchall()
        )
        return [_row_to_finance(row) for row in rows]

    def list_finance_by_date_range(self, user_id: str, start: str, end: str) -> list[Finance]:
        """Rows with ``start <= transaction_time < end`` (civil strings)."""
        rows = self._read(
            lambda conn: conn.execute(
                """
                SELECT * FROM finances
                WHERE user_id = ? AND transaction_time >= ? AND transaction_time < ?
                ORDER BY transaction_time DESC, id DESC
                """,
                (user_id, start, end),
            ).fetchall()
        )
        return [_row_to_finance(row) for row in rows]

    def list_finance_for_month(self, user_id: str, year: int, month: int) -> list[Finance]:
        start, end = month_bounds(year, month)
        return self.list_finance_by_date_range(user_id, start, end)

    def aggregate_finance_totals_by_type(self, user_id: str) -> dict[str, Decimal]:
        rows = self._read(
            lambda conn: conn.execute(
                "SELECT type, amount FROM finances WHERE user_id = ?",
                (user_id,),
            ).fetchall()
        )
        totals = {finance_type: Decimal("0") for finance_type in FINANCE_TYPES}
        for row in rows:
            totals[row["type"]] += Decimal(row["amount"])
        return totals

    def aggregate_finance_by_category_for_month(self, user_id: str, year: int, month: int) -> list[CategoryTotal]:
        """Expense totals per category for one month, largest first."""
        totals: dict[str, Decimal] = defaultdict(Decimal)
        counts: dict[str, int] = defaultdict(int)
        for entry in self.list_finance_for_month(user_id, year, month):
            if entry.type != "expense":
                continue
            totals[entry.category] += entry.amount
            counts[entry.category] += 1
        ordered = sorted(totals.items(), key=lambda item: (-item[1], item[0]))
        return [CategoryTotal(category=name, total=total, count=counts[name]) for name, total in ordered]

    def close(self) -> None:
        try:
            self._connection.close()
        except sqlite3.Error:
            LOGGER.exception("Failed to close record store connection")


def _row_to_schedule(row: sqlite3.Row) -> Schedule:
    return Schedule(
        id=row["id"],
        task=row["task"],
        time=row["time"],
        user_id=row["user_id"],
        is_reminded=bool(row["is_reminded"]),
    )


def _row_to_finance(row: sqlite3.Row) -> Finance:
    return Finance(
        id=row["id"],
        user_id=row["user_id"],
        amount=Decimal(row["amount"]),
        type=row["type"],
        category=row["category"],
        description=row["description"],
        transaction_time=row["transaction_time"],
        created_at=row["created_at"],
    )
