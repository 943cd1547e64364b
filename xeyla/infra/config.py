from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv

from xeyla.infra.resilience import TimeoutConfig

LOGGER = logging.getLogger(__name__)

DEFAULT_DB_PATH = Path("data/xeyla.db")
DEFAULT_LLM_BASE_URL = "https://api.groq.com/openai/v1"
DEFAULT_LLM_MODEL = "openai/gpt-oss-120b"
DEFAULT_TIMEZONE = "Asia/Jakarta"


@dataclass(frozen=True)
class Settings:
    bot_token: str
    db_path: Path
    llm_api_key: str | None
    llm_base_url: str
    llm_model: str
    llm_timeout_seconds: float
    llm_max_retries: int
    extraction_temperature: float
    reply_temperature: float
    timezone: str
    reminders_enabled: bool
    reminder_tick_seconds: int
    reminder_delivery_attempts: int
    notifier_timeout_seconds: float
    store_timeout_seconds: float
    dry_run: bool

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    @property
    def timeouts(self) -> TimeoutConfig:
        return TimeoutConfig(
            llm_seconds=self.llm_timeout_seconds,
            notifier_seconds=self.notifier_timeout_seconds,
            store_seconds=self.store_timeout_seconds,
        )


@dataclass(frozen=True)
class StartupFeatures:
    llm_enabled: bool
    reminders_enabled: bool


def validate_startup_env(settings: Settings, *, logger: logging.Logger | None = None) -> StartupFeatures:
    log = logger or LOGGER
    if not settings.dry_run and not settings.bot_token:
        log.error("startup.env invalid: BOT_TOKEN missing")
        raise SystemExit("BOT_TOKEN is not set")
    try:
        ZoneInfo(settings.timezone)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        log.error("startup.env invalid: unknown timezone=%s", settings.timezone)
        raise SystemExit(f"BOT_TIMEZONE is invalid: {settings.timezone}") from exc

    llm_enabled = bool(settings.llm_api_key)
    if not llm_enabled:
        log.warning("startup.env llm disabled: no API key configured, every message degrades to no intent")
    if not settings.reminders_enabled:
        log.warning("startup.env reminders disabled")
    return StartupFeatures(llm_enabled=llm_enabled, reminders_enabled=settings.reminders_enabled)


def load_settings() -> Settings:
    load_dotenv()

    env = os.environ
    dry_run = _parse_optional_bool(env.get("DRY_RUN")) is True

    token = env.get("BOT_TOKEN", "")
    if not token and dry_run:
        token = "000000:DRY_RUN_TOKEN"

    db_path = Path(env.get("BOT_DB_PATH", DEFAULT_DB_PATH))
    db_path.parent.mkdir(parents=True, exist_ok=True)
    llm_api_key = env.get("LLM_API_KEY") or env.get("GROQ_API_KEY") or None
    reminders_enabled = _parse_optional_bool(env.get("REMINDERS_ENABLED"))
    if reminders_enabled is None:
        reminders_enabled = True
    return Settings(
        bot_token=token,
        db_path=db_path,
        llm_api_key=llm_api_key,
        llm_base_url=env.get("LLM_BASE_URL", DEFAULT_LLM_BASE_URL),
        llm_model=env.get("LLM_MODEL", DEFAULT_LLM_MODEL),
        llm_timeout_seconds=_parse_optional_float(env.get("LLM_TIMEOUT_SECONDS"), 30.0),
        llm_max_retries=_parse_int_with_default(env.get("LLM_MAX_RETRIES"), 1),
        extraction_temperature=_parse_optional_float(env.get("EXTRACTION_TEMPERATURE"), 0.1),
        reply_temperature=_parse_optional_float(env.get("REPLY_TEMPERATURE"), 0.5),
        timezone=env.get("BOT_TIMEZONE", DEFAULT_TIMEZONE).strip() or DEFAULT_TIMEZONE,
        reminders_enabled=reminders_enabled,
        reminder_tick_seconds=max(1, _parse_int_with_default(env.get("REMINDER_TICK_SECONDS"), 60)),
        reminder_delivery_attempts=max(1, _parse_int_with_default(env.get("REMINDER_DELIVERY_ATTEMPTS"), 2)),
        notifier_timeout_seconds=_parse_optional_float(env.get("NOTIFIER_TIMEOUT_SECONDS"), 15.0),
        store_timeout_seconds=_parse_optional_float(env.get("STORE_TIMEOUT_SECONDS"), 5.0),
        dry_run=dry_run,
    )


def _parse_optional_float(value: str | None, default: float) -> float:
    if value is None:
        return default
    trimmed = value.strip()
    if not trimmed:
        return default
    return float(trimmed)


def _parse_optional_bool(value: str | None) -> bool | None:
    if value is None:
        return None
    trimmed = value.strip().lower()
    if not trimmed:
        return None
    return trimmed in {"1", "true", "yes", "on"}


def _parse_int_with_default(value: str | None, default: int) -> int:
    if value is None:
        return default
    trimmed = value.strip()
    if not trimmed:
        return default
    return int(trimmed)
