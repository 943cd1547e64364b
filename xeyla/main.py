from __future__ import annotations

import logging

from telegram.ext import Application, CommandHandler, MessageHandler, filters

from xeyla.bot import handlers
from xeyla.core.dispatcher import Dispatcher
from xeyla.core.reminder_scheduler import ReminderScheduler
from xeyla.core.understanding import LanguageUnderstandingClient
from xeyla.infra.config import Settings, load_settings, validate_startup_env
from xeyla.infra.llm import ChatCompletionClient
from xeyla.infra.logging_config import configure_logging
from xeyla.infra.notifier import TelegramNotifier
from xeyla.infra.resilience import RetryPolicy
from xeyla.infra.store import RecordStore

LOGGER = logging.getLogger(__name__)


def build_understanding(settings: Settings) -> LanguageUnderstandingClient:
    llm_client = None
    if settings.llm_api_key:
        llm_client = ChatCompletionClient(
            api_key=settings.llm_api_key,
            model=settings.llm_model,
            base_url=settings.llm_base_url,
            timeout_seconds=settings.timeouts.llm_seconds,
            max_retries=settings.llm_max_retries,
        )
    return LanguageUnderstandingClient(
        llm_client,
        model=settings.llm_model,
        # Outer deadline covers the client's own retries.
        timeout_seconds=settings.timeouts.llm_seconds * (settings.llm_max_retries + 1) + 5,
        extraction_temperature=settings.extraction_temperature,
        reply_temperature=settings.reply_temperature,
    )


def build_application(settings: Settings, store: RecordStore) -> Application:
    application = (
        Application.builder()
        .token(settings.bot_token)
        .concurrent_updates(False)
        .post_init(_post_init)
        .post_shutdown(_post_shutdown)
        .build()
    )
    notifier = TelegramNotifier(application.bot, timeout_seconds=settings.timeouts.notifier_seconds)
    application.bot_data["settings"] = settings
    application.bot_data["store"] = store
    application.bot_data["dispatcher"] = Dispatcher(
        store=store,
        notifier=notifier,
        understanding=build_understanding(settings),
        tz=settings.tz,
    )
    if settings.reminders_enabled:
        application.bot_data["reminder_scheduler"] = ReminderScheduler(
            store=store,
            notifier=notifier,
            tz=settings.tz,
            tick_seconds=settings.reminder_tick_seconds,
            delivery_policy=RetryPolicy(max_attempts=settings.reminder_delivery_attempts),
            delivery_timeout_seconds=settings.timeouts.notifier_seconds,
        )
    application.add_handler(CommandHandler("start", handlers.start))
    application.add_handler(CommandHandler("help", handlers.start))
    application.add_handler(MessageHandler(filters.TEXT & ~filters.COMMAND, handlers.chat))
    return application


async def _post_init(application: Application) -> None:
    scheduler = application.bot_data.get("reminder_scheduler")
    if isinstance(scheduler, ReminderScheduler):
        scheduler.start()
    LOGGER.info("Bot scheduler ready")


async def _post_shutdown(application: Application) -> None:
    scheduler = application.bot_data.get("reminder_scheduler")
    if isinstance(scheduler, ReminderScheduler):
        scheduler.shutdown()
    store = application.bot_data.get("store")
    if isinstance(store, RecordStore):
        store.close()


def main() -> None:
    configure_logging()
    try:
        settings = load_settings()
    except (RuntimeError, ValueError) as exc:
        LOGGER.exception("Startup failed: %s", exc)
        raise SystemExit(str(exc)) from exc
    features = validate_startup_env(settings, logger=LOGGER)
    store = RecordStore(settings.db_path, tz=settings.tz, timeout_seconds=settings.timeouts.store_seconds)
    LOGGER.info(
        "Startup db=%s timezone=%s llm=%s reminders=%s",
        settings.db_path,
        settings.timezone,
        features.llm_enabled,
        features.reminders_enabled,
    )
    if settings.dry_run:
        LOGGER.info("DRY_RUN enabled: wiring checked, not polling")
        store.close()
        return
    application = build_application(settings, store)
    application.run_polling()


if __name__ == "__main__":
    main()
