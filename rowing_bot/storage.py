from __future__ import annotations

import logging
import time
from typing import Any, Generic, Iterator, TypeVar

from .constants import DEFAULT_SETTINGS
from .models import Action, ConversationState, Result, Session, utc_now_iso

logger = logging.getLogger(__name__)

K = TypeVar("K")
V = TypeVar("V")


class KeyValueStore(Generic[K, V]):
    """Process-memory map behind the get/set/delete/items capability.

    A datastore-backed implementation only has to provide the same methods.
    """

    def __init__(self) -> None:
        self._data: dict[K, V] = {}

    def get(self, key: K) -> V | None:
        return self._data.get(key)

    def set(self, key: K, value: V) -> None:
        self._data[key] = value

    def delete(self, key: K) -> bool:
        return self._data.pop(key, None) is not None

    def items(self) -> Iterator[tuple[K, V]]:
        return iter(list(self._data.items()))

    def clear(self) -> None:
        self._data.clear()

    def __contains__(self, key: object) -> bool:
        return key in self._data

    def __len__(self) -> int:
        return len(self._data)


class SessionStore:
    def __init__(
        self,
        sessions: KeyValueStore[int, Session] | None = None,
        states: KeyValueStore[int, ConversationState] | None = None,
        settings: KeyValueStore[int, dict[str, Any]] | None = None,
    ) -> None:
        self.sessions = sessions if sessions is not None else KeyValueStore()
        self.states = states if states is not None else KeyValueStore()
        self.settings = settings if settings is not None else KeyValueStore()
        self._last_seen: dict[int, float] = {}

    def touch(self, user_id: int, now: float | None = None) -> None:
        self._last_seen[user_id] = time.monotonic() if now is None else now

    def start_session(self, user_id: int, username: str) -> Session:
        session = Session(user_id=user_id, username=username, started_at=utc_now_iso())
        self.sessions.set(user_id, session)
        self.settings.set(user_id, dict(DEFAULT_SETTINGS))
        self.touch(user_id)
        return session

    def get_session(self, user_id: int) -> Session | None:
        return self.sessions.get(user_id)

    def ensure_session(self, user_id: int) -> Session:
        session = self.sessions.get(user_id)
        if session is None:
            logger.warning("Session not found for user %s, creating new session", user_id)
            session = Session(user_id=user_id, username=f"User_{user_id}", started_at=utc_now_iso())
            self.sessions.set(user_id, session)
        return session

    def get_settings(self, user_id: int) -> dict[str, Any]:
        settings = self.settings.get(user_id)
        if settings is None:
            settings = dict(DEFAULT_SETTINGS)
            self.settings.set(user_id, settings)
        return settings

    def log_action(self, user_id: int, kind: str, details: dict[str, Any] | None = None) -> None:
        session = self.sessions.get(user_id)
        if session is None:
            return
        session.actions.append(Action(timestamp=utc_now_iso(), kind=kind, details=dict(details or {})))

    def add_result(self, user_id: int, result: Result) -> Session:
        session = self.ensure_session(user_id)
        session.results.append(result)
        logger.info(
            "Result saved for user %s: name=%s time=%s percentage=%.2f",
            session.username,
            result.name,
            result.display_time,
            result.percentage,
        )
        return session

    def replace_last_result(self, user_id: int, result: Result) -> Session:
        session = self.sessions.get(user_id)
        if session is None or not session.results:
            raise LookupError(f"No results to edit for user {user_id}")
        session.results[-1] = result
        return session

    def get_state(self, user_id: int) -> ConversationState | None:
        return self.states.get(user_id)

    def set_state(self, user_id: int, state: ConversationState) -> None:
        self.states.set(user_id, state)

    def drop(self, user_id: int) -> bool:
        had_session = self.sessions.delete(user_id)
        self.states.delete(user_id)
        self._last_seen.pop(user_id, None)
        return had_session

    def load(
        self,
        sessions: list[tuple[int, Session]],
        states: list[tuple[int, ConversationState]],
        settings: list[tuple[int, dict[str, Any]]],
    ) -> None:
        self.sessions.clear()
        self.states.clear()
        self.settings.clear()
        self._last_seen.clear()
        for key, session in sessions:
            self.sessions.set(key, session)
        for key, state in states:
            self.states.set(key, state)
        for key, value in settings:
            self.settings.set(key, value)

    def reap_idle(self, ttl_seconds: float, now: float | None = None) -> list[int]:
        """Drop sessions, states and settings untouched for longer than ``ttl_seconds``.

        Users with no recorded activity (e.g. restored from a snapshot) start
        their idle clock at the first sweep.
        """
        now = time.monotonic() if now is None else now
        users = (
            {key for key, _ in self.sessions.items()}
            | {key for key, _ in self.states.items()}
            | {key for key, _ in self.settings.items()}
        )

        reaped: list[int] = []
        for user_id in sorted(users):
            last_seen = self._last_seen.setdefault(user_id, now)
            if now - last_seen > ttl_seconds:
                self.drop(user_id)
                self.settings.delete(user_id)
                reaped.append(user_id)
        return reaped
