from __future__ import annotations

from decimal import Decimal
from typing import Final, Iterable

from xeyla.core.actions import ScheduleItem
from xeyla.core.clock import format_month
from xeyla.core.models import Finance, MonthlyReport, Schedule

DEFAULT_CONFIRMATION_DETAILS: Final[str] = "Aku belum yakin jadwal mana yang kamu maksud."
UNKNOWN_TARGET_DETAILS: Final[str] = "Jadwal yang kamu maksud nggak ada di daftar jadwalmu."
UNCLEAR_TIME_DETAILS: Final[str] = "Waktu barunya belum jelas, sebutin tanggal dan jamnya ya."
MISSING_CHANGE_DETAILS: Final[str] = "Mau diubah jadi apa? Sebutin tugas atau waktu barunya."

NOT_FOUND_TEXT: Final[str] = "❌ Jadwal tidak ditemukan!"
SCHEDULE_FAILURE_TEXT: Final[str] = "❌ Gagal menyimpan perubahan jadwal, coba lagi ya!"
FINANCE_RECORD_FAILURE_TEXT: Final[str] = "❌ Gagal mencatat transaksi, coba lagi ya!"
FINANCE_QUERY_FAILURE_TEXT: Final[str] = "❌ Gagal mengambil data, coba lagi ya!"
REPORT_FAILURE_TEXT: Final[str] = "❌ Yah, gagal bikin report nih. Coba lagi nanti ya!"
REPLY_FALLBACK_TEXT: Final[str] = "Maaf, aku lagi nggak bisa mikir nih. Coba tanya lagi bentar ya!"
INTERNAL_ERROR_TEXT: Final[str] = "❌ Ada yang error nih, coba lagi ya!"
NO_EXPENSES_TODAY_TEXT: Final[str] = "✅ Tidak ada pengeluaran hari ini!"
NO_INCOME_TODAY_TEXT: Final[str] = "ℹ️ Tidak ada pemasukan hari ini!"
NO_FINANCE_DATA_TEXT: Final[str] = (
    "ℹ️ Belum ada data keuangan untuk bulan ini. Mulai catat transaksi dulu ya!"
)

_RULE = "━━━━━━━━━━━━━━━━━"
_CONFIRMATION_TITLES = {
    "create": "❓ Permintaan Jadwal Tidak Jelas",
    "delete": "❓ Permintaan Hapus Tidak Jelas",
    "edit": "❓ Permintaan Edit Tidak Jelas",
    "finance": "❓ Permintaan Keuangan Tidak Jelas",
}


def format_rupiah(amount: Decimal) -> str:
    """Indonesian grouping: ``1234567.5`` -> ``1.234.567,5``."""
    negative = amount < 0
    quantized = abs(amount).quantize(Decimal("0.01"))
    whole, _, fraction = f"{quantized:f}".partition(".")
    grouped = f"{int(whole):,}".replace(",", ".")
    fraction = fraction.rstrip("0")
    text = f"{grouped},{fraction}" if fraction else grouped
    return f"-{text}" if negative else text


def created_text(items: Iterable[ScheduleItem]) -> str:
    items = list(items)
    if len(items) == 1:
        return f"Oke noted, udah aku catet ya!\n\n📝: {items[0].task}\n⏰: {items[0].time}"
    lines = [f"Oke noted, udah aku catet {len(items)} jadwal ya!", ""]
    for index, item in enumerate(items, start=1):
        lines.append(f"{index}. 📝 {item.task}\n   ⏰ {item.time}\n")
    return "\n".join(lines).rstrip()


def confirmation_text(kind: str, details: str) -> str:
    title = _CONFIRMATION_TITLES.get(kind, _CONFIRMATION_TITLES["create"])
    return f"{title}\n\n{details}\n\nTolong kasih info yang lebih jelas ya, kak!"


def deleted_text(schedule: Schedule) -> str:
    return f"✅ Jadwal berhasil dihapus!\n\n📝: {schedule.task}\n⏰: {schedule.time}"


def edited_text(before: Schedule, task: str, time: str) -> str:
    return (
        "✏️ Jadwal berhasil diubah!\n\n"
        f"📋 *SEBELUM:*\n📝: {before.task}\n⏰: {before.time}\n\n"
        f"📋 *SESUDAH:*\n📝: {task}\n⏰: {time}"
    )


def reminder_text(schedule: Schedule) -> str:
    return (
        "🔔 *PENGINGAT!*\n\n"
        f"Halo kak! Jangan lupa: *{schedule.task}* sekarang ya!\n"
        f"(Waktu: {schedule.time})"
    )


def finance_recorded_text(*, finance_type: str, description: str, amount: Decimal, category: str) -> str:
    symbol = "💸" if finance_type == "expense" else "💰"
    label = "Pengeluaran" if finance_type == "expense" else "Pemasukan"
    return (
        f"{symbol} *{label} Tercatat!*\n\n"
        f"📝: {description}\n"
        f"💵: Rp {format_rupiah(amount)}\n"
        f"🏷️: {category}"
    )


def balance_text(income: Decimal, expense: Decimal) -> str:
    return (
        "💰 *RINGKASAN SALDO*\n\n"
        f"💵 Pemasukan Total: Rp {format_rupiah(income)}\n"
        f"💸 Pengeluaran Total: Rp {format_rupiah(expense)}\n"
        f"{_RULE}\n"
        f"📊 Saldo Akhir: Rp {format_rupiah(income - expense)}"
    )


def today_entries_text(entries: list[Finance], *, finance_type: str) -> str:
    if finance_type == "expense":
        header, total_label = "💸 *PENGELUARAN HARI INI*", "Total Pengeluaran"
    else:
        header, total_label = "💰 *PEMASUKAN HARI INI*", "Total Pemasukan"
    lines = [header, ""]
    total = Decimal("0")
    for index, entry in enumerate(entries, start=1):
        total += entry.amount
        clock = entry.transaction_time[11:16]
        lines.append(
            f"{index}. {entry.description} ({entry.category})\n"
            f"   💵 Rp {format_rupiah(entry.amount)} - {clock}\n"
        )
    lines.append(_RULE)
    lines.append(f"📊 {total_label}: Rp {format_rupiah(total)}")
    return "\n".join(lines)


def summary_text(
    *,
    income: Decimal,
    expense: Decimal,
    today_income: Decimal,
    today_expense: Decimal,
) -> str:
    return (
        "📊 *RINGKASAN KEUANGAN*\n\n"
        "*TOTAL:*\n"
        f"💰 Pemasukan: Rp {format_rupiah(income)}\n"
        f"💸 Pengeluaran: Rp {format_rupiah(expense)}\n"
        f"📊 Saldo: Rp {format_rupiah(income - expense)}\n\n"
        "*HARI INI:*\n"
        f"💰 Pemasukan: Rp {format_rupiah(today_income)}\n"
        f"💸 Pengeluaran: Rp {format_rupiah(today_expense)}\n"
        f"📊 Neto: Rp {format_rupiah(today_income - today_expense)}"
    )


def report_caption(report: MonthlyReport, advice: str) -> str:
    lines = [
        f"📊 *LAPORAN KEUANGAN {format_month(report.year, report.month).upper()}*",
        "",
        f"💰 Income: Rp {format_rupiah(report.income)}",
        f"💸 Expense: Rp {format_rupiah(report.expense)}",
        f"⚖️ Net: Rp {format_rupiah(report.net)}",
    ]
    if report.categories:
        lines.append("")
        lines.append("*Top kategori:*")
        for category in report.categories[:5]:
            lines.append(f"- {category.category}: Rp {format_rupiah(category.total)}")
    if advice:
        lines.append("")
        lines.append("💡 *Suggestion dari AI:*")
        lines.append(advice)
    return "\n".join(lines)
