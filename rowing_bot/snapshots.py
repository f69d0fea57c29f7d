from __future__ import annotations

import json
import logging
import re
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from .models import Session, state_from_dict, state_to_dict
from .storage import SessionStore

logger = logging.getLogger(__name__)

SNAPSHOT_PREFIX = "backup_"


def _file_stamp(value: str) -> str:
    return re.sub(r"[:.+]", "-", value)


def _safe_name(value: str) -> str:
    return re.sub(r"[^\w-]+", "_", value).strip("_") or "user"


def snapshot_payload(store: SessionStore, timestamp: str | None = None) -> dict[str, Any]:
    """Whole-store snapshot; each map is written as a list of [key, value] pairs."""
    return {
        "timestamp": timestamp or datetime.now(timezone.utc).isoformat(),
        "sessions": [[key, session.to_dict()] for key, session in store.sessions.items()],
        "states": [[key, state_to_dict(state)] for key, state in store.states.items()],
        "settings": [[key, dict(value)] for key, value in store.settings.items()],
    }


def load_payload(store: SessionStore, payload: dict[str, Any]) -> None:
    sessions = [(key, Session.from_dict(value)) for key, value in payload["sessions"]]
    states = [(key, state_from_dict(value)) for key, value in payload["states"]]
    settings = [(key, dict(value)) for key, value in payload["settings"]]
    store.load(sessions=sessions, states=states, settings=settings)


class SnapshotManager:
    available = True

    def __init__(self, backups_dir: Path, sessions_dir: Path, retention_days: int = 7) -> None:
        self.backups_dir = backups_dir
        self.sessions_dir = sessions_dir
        self.retention_days = retention_days

    def create(self, store: SessionStore) -> Path | None:
        if not self.backups_dir.is_dir():
            logger.warning("Backup directory %s does not exist, skipping backup", self.backups_dir)
            return None

        payload = snapshot_payload(store)
        path = self.backups_dir / f"{SNAPSHOT_PREFIX}{_file_stamp(payload['timestamp'])}.json"
        try:
            with path.open("w", encoding="utf-8") as f:
                json.dump(payload, f, indent=2, ensure_ascii=False)
        except (OSError, TypeError, ValueError) as exc:
            logger.warning("Could not create backup: %s", exc)
            return None

        logger.info("Backup created: %s", path)
        self.prune()
        return path

    def prune(self, now: float | None = None) -> list[Path]:
        cutoff = (time.time() if now is None else now) - self.retention_days * 24 * 60 * 60
        removed: list[Path] = []
        try:
            for path in self.backups_dir.glob(f"{SNAPSHOT_PREFIX}*.json"):
                if path.stat().st_mtime < cutoff:
                    path.unlink()
                    removed.append(path)
                    logger.info("Old backup deleted: %s", path.name)
        except OSError as exc:
            logger.warning("Could not cleanup old backups: %s", exc)
        return removed

    def latest(self) -> Path | None:
        if not self.backups_dir.is_dir():
            return None
        candidates = sorted(self.backups_dir.glob(f"{SNAPSHOT_PREFIX}*.json"))
        return candidates[-1] if candidates else None

    def restore(self, path: Path, store: SessionStore) -> bool:
        try:
            with path.open("r", encoding="utf-8") as f:
                payload = json.load(f)
            load_payload(store, payload)
        except (OSError, ValueError, KeyError, TypeError) as exc:
            logger.error("Error restoring from backup %s: %s", path, exc)
            return False

        logger.info("Data restored from backup: %s", path)
        return True

    def save_session(self, session: Session) -> Path | None:
        filename = f"{_safe_name(session.username)}_{session.user_id}_{_file_stamp(session.started_at)}.json"
        path = self.sessions_dir / filename
        try:
            with path.open("w", encoding="utf-8") as f:
                json.dump(session.to_dict(), f, indent=2, ensure_ascii=False)
        except (OSError, TypeError, ValueError) as exc:
            logger.warning("Could not save session for user %s: %s", session.user_id, exc)
            return None
        return path


class NullSnapshotManager:
    """Stands in when the data directories cannot be created."""

    available = False

    def create(self, store: SessionStore) -> Path | None:
        return None

    def prune(self, now: float | None = None) -> list[Path]:
        return []

    def latest(self) -> Path | None:
        return None

    def restore(self, path: Path, store: SessionStore) -> bool:
        return False

    def save_session(self, session: Session) -> Path | None:
        return None
