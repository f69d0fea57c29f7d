from __future__ import annotations

import logging
from typing import Protocol, Sequence

from .constants import MESSAGES
from .dialogue import (
    DialogueMachine,
    Effect,
    LogAction,
    Reply,
    ReplaceLastResult,
    SaveResult,
    Transition,
    is_cancel,
)
from .models import ConversationState, WaitingModelType
from .reporting import ReportBuilder
from .snapshots import NullSnapshotManager, SnapshotManager
from .storage import SessionStore

logger = logging.getLogger(__name__)


class MessageSink(Protocol):
    async def send_text(self, text: str, choices: Sequence[str] = ()) -> None: ...

    async def send_document(self, filename: str, content: bytes, caption: str | None = None) -> None: ...


class ConversationService:
    def __init__(
        self,
        machine: DialogueMachine,
        store: SessionStore,
        reporter: ReportBuilder,
        snapshots: SnapshotManager | NullSnapshotManager,
    ) -> None:
        self.machine = machine
        self.store = store
        self.reporter = reporter
        self.snapshots = snapshots

    async def start(self, user_id: int, username: str, sink: MessageSink) -> None:
        logger.info("User %s (%s) started the bot", username, user_id)
        self.store.start_session(user_id, username)
        await self._apply(user_id, self.machine.start(), sink)

    async def reset(self, user_id: int, sink: MessageSink) -> bool:
        dropped = self.store.drop(user_id)
        await sink.send_text(MESSAGES["session_reset"] if dropped else MESSAGES["no_session"])
        return dropped

    async def handle_text(self, user_id: int, text: str, sink: MessageSink) -> None:
        self.store.touch(user_id)
        state: ConversationState = self.store.get_state(user_id) or WaitingModelType()
        session = self.store.ensure_session(user_id)

        if is_cancel(text):
            transition = self.machine.cancel(state)
        else:
            transition = self.machine.handle(state, text, session)

        if transition.export:
            await self._export(user_id, transition, sink)
            return

        await self._apply(user_id, transition, sink)

    async def _apply(self, user_id: int, transition: Transition, sink: MessageSink) -> None:
        try:
            for effect in transition.effects:
                self._apply_effect(user_id, effect)
        except Exception as exc:
            logger.exception("Failed to apply effects for user %s: %s", user_id, exc)
            transition = transition.on_failure or self.machine.reset(Reply(MESSAGES["generic_error"]))

        self.store.set_state(user_id, transition.state)
        await self._send(transition.replies, sink)

    def _apply_effect(self, user_id: int, effect: Effect) -> None:
        if isinstance(effect, LogAction):
            self.store.log_action(user_id, effect.kind, effect.details)
        elif isinstance(effect, SaveResult):
            session = self.store.add_result(user_id, effect.result)
            self.snapshots.save_session(session)
        elif isinstance(effect, ReplaceLastResult):
            session = self.store.replace_last_result(user_id, effect.result)
            self.snapshots.save_session(session)
        else:
            raise TypeError(f"Unknown effect: {effect!r}")

    async def _export(self, user_id: int, transition: Transition, sink: MessageSink) -> None:
        session = self.store.get_session(user_id)
        menu = self.machine.action_prompt()

        try:
            artifact = self.reporter.export(session) if session is not None else None
        except Exception as exc:
            logger.exception("Error creating report for user %s: %s", user_id, exc)
            await sink.send_text(MESSAGES["excel_error"], menu.choices)
            return

        if artifact is None:
            logger.info("No results to export for user %s", user_id)
            await sink.send_text(MESSAGES["no_data_for_excel"], menu.choices)
            return

        caption = MESSAGES["export_caption"].format(
            athletes=artifact.athlete_count,
            attempts=artifact.attempt_count,
            average=f"{artifact.team_average:.2f}",
        )
        try:
            await sink.send_document(artifact.filename, artifact.content, caption)
        except Exception as exc:
            logger.exception("Error delivering report to user %s: %s", user_id, exc)
            await sink.send_text(MESSAGES["excel_error"], menu.choices)
            return

        logger.info(
            "Report delivered to user %s: %s athletes, %s results",
            user_id,
            artifact.athlete_count,
            artifact.attempt_count,
        )
        self.store.drop(user_id)
        self.store.set_state(user_id, transition.state)
        await self._send(transition.replies, sink)

    @staticmethod
    async def _send(replies: Sequence[Reply], sink: MessageSink) -> None:
        for reply in replies:
            await sink.send_text(reply.text, reply.choices)
