"""System instructions handed to the language model.

Every builder embeds the clock context verbatim so relative words ("hari
ini", "besok") resolve against the reference-timezone civil day.
"""

from __future__ import annotations

from zoneinfo import ZoneInfo

from xeyla.core.clock import (
    LABEL_TODAY,
    LABEL_TOMORROW,
    REFERENCE_TZ,
    ClockContext,
    day_label,
    parse_civil,
)
from xeyla.core.models import Schedule

NO_SCHEDULES_TEXT = "Tidak ada jadwal tersimpan."


def _context_block(ctx: ClockContext) -> str:
    lines = [
        "Context:",
        f"- Today: {ctx.today_long} ({ctx.today_short})",
        f"- Tomorrow: {ctx.tomorrow_long} ({ctx.tomorrow_short})",
        f"- Current Time: {ctx.time_str}",
    ]
    return "\n".join(lines)


def _midnight_rule(ctx: ClockContext) -> str:
    rule = (
        "MIDNIGHT RULE:\n"
        "If Current Time is between 00:00 and 04:00 and the user says \"besok\", "
        "it means the actual next calendar day (Date + 1), not the day after the night ends."
    )
    if ctx.early_morning:
        rule += f"\nRight now it is early morning: \"besok\" = {ctx.tomorrow_short}."
    return rule


def render_schedule_list(
    schedules: list[Schedule],
    ctx: ClockContext,
    *,
    with_ids: bool = True,
    tz: ZoneInfo = REFERENCE_TZ,
) -> str:
    if not schedules:
        return NO_SCHEDULES_TEXT
    lines = []
    for index, schedule in enumerate(schedules, start=1):
        moment = parse_civil(schedule.time, tz)
        if moment is None:
            label = schedule.time
        else:
            label = f"{day_label(moment, ctx, tz)} pukul {moment.strftime('%H:%M')}"
        prefix = f"{index}. [ID: {schedule.id}] " if with_ids else "- "
        lines.append(f"{prefix}[{label}] {schedule.task}")
    return "\n".join(lines)


def classifier_instruction() -> str:
    return (
        "Role: Strict Intent Classifier.\n"
        "Task: Decide which domain the user message belongs to.\n\n"
        "DOMAINS:\n"
        "- \"schedule\": reminders, agenda, appointments, tasks, asking what is on the schedule.\n"
        "- \"finance\": money spent or received, prices, balance, expenses, income, financial reports.\n\n"
        "Respond ONLY with JSON: {\"domain\": \"schedule\"} or {\"domain\": \"finance\"}."
    )


def create_instruction(ctx: ClockContext) -> str:
    return (
        f"{_context_block(ctx)}\n\n"
        "Role: Strict Schedule Extractor.\n"
        "Task: Convert user commands into JSON.\n\n"
        "RULES:\n"
        "1. IF user asks questions (e.g. \"Besok ada apa?\", \"Cek jadwal\"), RETURN null.\n"
        "2. ONLY return JSON if user EXPLICITLY wants to create a task (e.g. \"Ingetin...\", \"Jadwalin...\").\n"
        "3. Requests to delete or change an existing schedule are NOT creation: RETURN null.\n"
        "4. JSON Format: {\"task\": \"string\", \"time\": \"YYYY-MM-DD HH:mm:ss\"}\n"
        "5. If the user mentions several tasks, return an array of such objects, one per task.\n\n"
        f"{_midnight_rule(ctx)}"
    )


def delete_instruction(ctx: ClockContext, schedule_list: str) -> str:
    return (
        f"{_context_block(ctx)}\n\n"
        "USER SCHEDULES:\n"
        f"{schedule_list}\n\n"
        "Role: Strict Schedule Delete Parser.\n"
        "RULES:\n"
        "1. ONLY act if the user EXPLICITLY asks to delete/cancel a schedule (e.g. \"hapus\", \"batalin\").\n"
        "   Otherwise RETURN null.\n"
        "2. Match the task and/or time the user describes against USER SCHEDULES.\n"
        "3. If exactly one schedule matches, return {\"id\": <ID>}.\n"
        "4. If several schedules match, or the user names neither task nor time, return\n"
        "   {\"needsConfirmation\": true, \"details\": \"<short explanation in Indonesian of what is unclear>\"}.\n"
        "5. NEVER guess an ID."
    )


def edit_instruction(ctx: ClockContext, schedule_list: str) -> str:
    return (
        f"{_context_block(ctx)}\n\n"
        "USER SCHEDULES:\n"
        f"{schedule_list}\n\n"
        "Role: Strict Schedule Edit Parser.\n"
        "RULES:\n"
        "1. ONLY act if the user EXPLICITLY asks to change/move/reschedule a schedule (e.g. \"ganti\", \"ubah\", \"pindahin\").\n"
        "   Otherwise RETURN null.\n"
        "2. Match the schedule the user describes against USER SCHEDULES.\n"
        "3. If exactly one schedule matches, return\n"
        "   {\"id\": <ID>, \"newTask\": \"string or null\", \"newTime\": \"YYYY-MM-DD HH:mm:ss or null\"}.\n"
        "4. If several schedules match, the target is unclear, or the new value is missing, return\n"
        "   {\"needsConfirmation\": true, \"details\": \"<short explanation in Indonesian of what is unclear>\"}.\n"
        "5. NEVER guess an ID.\n\n"
        f"{_midnight_rule(ctx)}"
    )


def query_instruction(ctx: ClockContext, schedule_list: str) -> str:
    return (
        "You are XeylaBot.\n\n"
        "CONTEXT:\n"
        f"- Sekarang: {ctx.today_long} Jam {ctx.time_str}\n\n"
        "DATA JADWAL USER (DATABASE):\n"
        f"{schedule_list}\n\n"
        "INSTRUCTION:\n"
        "1. Answer ONLY based on \"DATA JADWAL USER\" above. Never invent schedules.\n"
        f"2. If user asks \"Hari ini ada apa?\", look for items marked with \"{LABEL_TODAY}\".\n"
        f"3. If user asks \"Besok ada apa?\", look for items marked with \"{LABEL_TOMORROW}\".\n"
        "4. If user asks \"Semua jadwal\", list EVERYTHING without filtering.\n"
        "5. Reply in Indonesian slang."
    )


def finance_instruction(ctx: ClockContext) -> str:
    return (
        "Context:\n"
        f"- Today: {ctx.today_long}\n"
        f"- Today Date: {ctx.today_short}\n\n"
        "Role: Strict Finance Parser.\n"
        "Task: Extract finance data from user input.\n\n"
        "RULES:\n"
        "1. If user is asking for balance/summary (e.g. \"berapa sisa saldo\", \"pengeluaran hari ini\"), return\n"
        "   {\"action\": \"query\", \"queryType\": \"balance|today_expenses|today_income|summary|monthly_report\"}.\n"
        "   For a monthly report you may add \"year\" and \"month\" numbers.\n"
        "2. If user is recording a transaction (e.g. \"beli cilok 2k\", \"dapat gaji 5jt\"), return\n"
        "   {\"action\": \"record\", \"amount\": number, \"type\": \"pengeluaran|pemasukan\", "
        "\"category\": \"string\", \"description\": \"string\"}.\n"
        "3. Amount must be numeric rupiah (convert \"k\", \"rb\", \"jt\").\n"
        "4. If the message has nothing to do with money, RETURN null.\n\n"
        "EXAMPLES:\n"
        "- \"beli cilok 2k\" -> {\"action\": \"record\", \"amount\": 2000, \"type\": \"pengeluaran\", "
        "\"category\": \"makanan\", \"description\": \"beli cilok\"}\n"
        "- \"dapat gaji 5jt\" -> {\"action\": \"record\", \"amount\": 5000000, \"type\": \"pemasukan\", "
        "\"category\": \"gaji\", \"description\": \"dapat gaji\"}\n"
        "- \"berapa sisa saldo\" -> {\"action\": \"query\", \"queryType\": \"balance\"}\n"
        "- \"pengeluaran hari ini\" -> {\"action\": \"query\", \"queryType\": \"today_expenses\"}\n"
        "- \"laporan bulan ini\" -> {\"action\": \"query\", \"queryType\": \"monthly_report\"}"
    )


def advice_prompt(
    *,
    income: str,
    expense: str,
    net: str,
    saving_rate: str,
    top_expenses: str,
) -> str:
    return (
        "Analyze the monthly financial data below and provide detailed financial insights "
        "with specific data references:\n\n"
        f"- Monthly Income: Rp {income}\n"
        f"- Monthly Expense: Rp {expense}\n"
        f"- Net (Remaining): Rp {net}\n"
        f"- Saving Rate: {saving_rate}%\n"
        f"- Top Expenses: {top_expenses}\n\n"
        "Provide 2-3 analytical financial observations in Indonesian, at most 50 words. "
        "Include specific numbers, percentages and categories. Suggest ways to improve. "
        "Be direct and informative, not casual. Do not use \"*\" symbols, bullets or numbering; "
        "write one paragraph."
    )
