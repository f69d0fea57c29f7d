from __future__ import annotations

import logging
from typing import Any, Sequence

from telegram import Message, ReplyKeyboardMarkup, ReplyKeyboardRemove, Update
from telegram.ext import ContextTypes

from .constants import MESSAGES
from .conversation import ConversationService
from .snapshots import NullSnapshotManager, SnapshotManager
from .storage import SessionStore

logger = logging.getLogger(__name__)


def _service(context: ContextTypes.DEFAULT_TYPE, key: str) -> Any:
    return context.application.bot_data[key]


def _display_name(update: Update) -> str:
    user = update.effective_user
    if user is None:
        return "unknown"
    return user.username or user.first_name or f"User_{user.id}"


class TelegramSink:
    def __init__(self, message: Message) -> None:
        self.message = message

    async def send_text(self, text: str, choices: Sequence[str] = ()) -> None:
        if choices:
            markup: ReplyKeyboardMarkup | ReplyKeyboardRemove = ReplyKeyboardMarkup(
                [[choice] for choice in choices],
                one_time_keyboard=True,
                resize_keyboard=True,
            )
        else:
            markup = ReplyKeyboardRemove()
        await self.message.reply_text(text, reply_markup=markup)

    async def send_document(self, filename: str, content: bytes, caption: str | None = None) -> None:
        await self.message.reply_document(document=content, filename=filename, caption=caption)


async def start_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    if update.effective_message is None or update.effective_user is None:
        return

    conversation: ConversationService = _service(context, "conversation")
    await conversation.start(update.effective_user.id, _display_name(update), TelegramSink(update.effective_message))


async def help_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    if update.effective_message is None:
        return
    await update.effective_message.reply_text(
        "Команды:\n"
        "/start - новый расчет модели\n"
        "/reset - сбросить текущую сессию и результаты\n"
        "/backup - создать резервную копию данных\n"
        "/restore - восстановить данные из последней резервной копии\n"
        "/help - подсказка по командам\n\n"
        "Время вводится в формате СС.сс, ММ:СС.сс или ММ.СС.сс (например, 45.55, 7:45.55 или 7.45.55)."
    )


async def reset_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    if update.effective_message is None or update.effective_user is None:
        return

    conversation: ConversationService = _service(context, "conversation")
    await conversation.reset(update.effective_user.id, TelegramSink(update.effective_message))


async def backup_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    if update.effective_message is None:
        return

    store: SessionStore = _service(context, "store")
    snapshots: SnapshotManager | NullSnapshotManager = _service(context, "snapshots")

    path = snapshots.create(store)
    if path is None:
        await update.effective_message.reply_text(MESSAGES["backup_unavailable"])
        return
    await update.effective_message.reply_text(MESSAGES["backup_done"])


async def restore_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    if update.effective_message is None:
        return

    store: SessionStore = _service(context, "store")
    snapshots: SnapshotManager | NullSnapshotManager = _service(context, "snapshots")

    if not snapshots.available:
        await update.effective_message.reply_text(MESSAGES["restore_unavailable"])
        return

    latest = snapshots.latest()
    if latest is None:
        await update.effective_message.reply_text(MESSAGES["restore_empty"])
        return

    if snapshots.restore(latest, store):
        await update.effective_message.reply_text(MESSAGES["restore_done"])
    else:
        await update.effective_message.reply_text(MESSAGES["restore_failed"])


async def text_message_handler(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    if update.effective_message is None or update.effective_user is None:
        return

    text = (update.effective_message.text or "").strip()
    if not text:
        return

    conversation: ConversationService = _service(context, "conversation")
    logger.info("User %s (%s) sent message: %s", _display_name(update), update.effective_user.id, text)

    try:
        await conversation.handle_text(update.effective_user.id, text, TelegramSink(update.effective_message))
    except Exception as exc:  # pragma: no cover - defensive branch
        logger.exception("Unexpected error in message handler: %s", exc)
        await update.effective_message.reply_text(MESSAGES["generic_error"])


async def snapshot_job(context: ContextTypes.DEFAULT_TYPE) -> None:
    store: SessionStore = _service(context, "store")
    snapshots: SnapshotManager | NullSnapshotManager = _service(context, "snapshots")
    snapshots.create(store)


async def reap_idle_job(context: ContextTypes.DEFAULT_TYPE) -> None:
    store: SessionStore = _service(context, "store")
    ttl_seconds: float = _service(context, "session_ttl_seconds")

    reaped = store.reap_idle(ttl_seconds)
    if reaped:
        logger.info("Reaped %s idle conversations", len(reaped))
