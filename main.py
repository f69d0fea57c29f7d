from __future__ import annotations

import logging
import sys

from telegram import BotCommand, BotCommandScopeAllPrivateChats, BotCommandScopeDefault
from telegram.ext import Application, CommandHandler, MessageHandler, filters

from rowing_bot.config import (
    BACKUPS_DIR,
    REFERENCE_DIR,
    SESSIONS_DIR,
    ConfigError,
    ensure_data_dirs,
    load_config,
)
from rowing_bot.conversation import ConversationService
from rowing_bot.dialogue import DialogueMachine
from rowing_bot.handlers import (
    backup_command,
    help_command,
    reap_idle_job,
    reset_command,
    restore_command,
    snapshot_job,
    start_command,
    text_message_handler,
)
from rowing_bot.reference import ReferenceTableError, load_reference_tables
from rowing_bot.reporting import ReportBuilder
from rowing_bot.snapshots import NullSnapshotManager, SnapshotManager
from rowing_bot.storage import SessionStore

logger = logging.getLogger(__name__)

REAP_INTERVAL_SECONDS = 60 * 60


def configure_logging() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )
    # httpx logs request URLs, which contain the bot token.
    logging.getLogger("httpx").setLevel(logging.WARNING)


async def _post_init_set_commands(app: Application) -> None:
    commands = [
        BotCommand("start", "Новый расчет модели"),
        BotCommand("reset", "Сбросить текущую сессию"),
        BotCommand("backup", "Создать резервную копию"),
        BotCommand("restore", "Восстановить из резервной копии"),
        BotCommand("help", "Справка по командам"),
    ]

    for scope in (BotCommandScopeDefault(), BotCommandScopeAllPrivateChats()):
        await app.bot.set_my_commands(commands, scope=scope)

    logger.info("Telegram command menu updated for default/private scopes")


def build_application() -> Application:
    config = load_config()
    tables = load_reference_tables(REFERENCE_DIR)

    store = SessionStore()
    if ensure_data_dirs():
        snapshots: SnapshotManager | NullSnapshotManager = SnapshotManager(
            backups_dir=BACKUPS_DIR,
            sessions_dir=SESSIONS_DIR,
            retention_days=config.snapshot_retention_days,
        )
    else:
        snapshots = NullSnapshotManager()

    conversation = ConversationService(
        machine=DialogueMachine(tables),
        store=store,
        reporter=ReportBuilder(),
        snapshots=snapshots,
    )

    app = Application.builder().token(config.telegram_bot_token).post_init(_post_init_set_commands).build()

    app.bot_data["store"] = store
    app.bot_data["snapshots"] = snapshots
    app.bot_data["conversation"] = conversation
    app.bot_data["session_ttl_seconds"] = config.session_ttl_hours * 60 * 60

    app.add_handler(CommandHandler("start", start_command))
    app.add_handler(CommandHandler("help", help_command))
    app.add_handler(CommandHandler("reset", reset_command))
    app.add_handler(CommandHandler("backup", backup_command))
    app.add_handler(CommandHandler("restore", restore_command))
    app.add_handler(MessageHandler(filters.TEXT & ~filters.COMMAND, text_message_handler))

    if app.job_queue is None:
        logger.warning("JobQueue unavailable: periodic backups and idle cleanup are disabled")
    else:
        interval = config.snapshot_interval_hours * 60 * 60
        app.job_queue.run_repeating(snapshot_job, interval=interval, first=interval, name="snapshot")
        if config.session_ttl_hours > 0:
            app.job_queue.run_repeating(
                reap_idle_job,
                interval=REAP_INTERVAL_SECONDS,
                first=REAP_INTERVAL_SECONDS,
                name="reap_idle",
            )

    return app


def main() -> None:
    configure_logging()

    try:
        app = build_application()
    except (ConfigError, ReferenceTableError) as exc:
        logging.error("Startup failed: %s", exc)
        sys.exit(1)

    app.run_polling(drop_pending_updates=True)


if __name__ == "__main__":
    main()
