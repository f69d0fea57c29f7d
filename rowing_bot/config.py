from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

BASE_DIR = Path(__file__).resolve().parent.parent
DEFAULT_DATA_DIR = BASE_DIR / "data"
DEFAULT_REFERENCE_DIR = Path(__file__).resolve().parent / "data"


def _resolve_path(raw_path: str | None, default_path: Path) -> Path:
    if not raw_path:
        return default_path
    path = Path(raw_path).expanduser()
    if path.is_absolute():
        return path
    return (BASE_DIR / path).resolve()


# Load .env early so path env vars are available for module-level constants.
load_dotenv()

DATA_DIR = _resolve_path(os.getenv("DATA_DIR"), DEFAULT_DATA_DIR)
BACKUPS_DIR = DATA_DIR / "backups"
SESSIONS_DIR = DATA_DIR / "sessions"
REFERENCE_DIR = _resolve_path(os.getenv("REFERENCE_DIR"), DEFAULT_REFERENCE_DIR)


@dataclass(frozen=True)
class AppConfig:
    telegram_bot_token: str
    snapshot_interval_hours: float = 24.0
    snapshot_retention_days: int = 7
    session_ttl_hours: float = 72.0


class ConfigError(RuntimeError):
    pass


def load_config() -> AppConfig:
    load_dotenv()

    telegram_bot_token = os.getenv("TELEGRAM_BOT_TOKEN", "").strip()
    snapshot_interval_raw = os.getenv("SNAPSHOT_INTERVAL_HOURS", "24").strip()
    retention_raw = os.getenv("SNAPSHOT_RETENTION_DAYS", "7").strip()
    session_ttl_raw = os.getenv("SESSION_TTL_HOURS", "72").strip()

    if not telegram_bot_token:
        raise ConfigError("Missing TELEGRAM_BOT_TOKEN in environment/.env")

    try:
        snapshot_interval_hours = float(snapshot_interval_raw)
        if snapshot_interval_hours <= 0 or snapshot_interval_hours > 168:
            raise ValueError
    except ValueError as exc:
        raise ConfigError("SNAPSHOT_INTERVAL_HOURS must be a number in range (0, 168]") from exc

    try:
        snapshot_retention_days = int(retention_raw)
        if snapshot_retention_days < 1 or snapshot_retention_days > 365:
            raise ValueError
    except ValueError as exc:
        raise ConfigError("SNAPSHOT_RETENTION_DAYS must be an integer in range [1, 365]") from exc

    try:
        session_ttl_hours = float(session_ttl_raw)
        if session_ttl_hours < 0 or session_ttl_hours > 720:
            raise ValueError
    except ValueError as exc:
        raise ConfigError("SESSION_TTL_HOURS must be a number in range [0, 720]") from exc

    return AppConfig(
        telegram_bot_token=telegram_bot_token,
        snapshot_interval_hours=snapshot_interval_hours,
        snapshot_retention_days=snapshot_retention_days,
        session_ttl_hours=session_ttl_hours,
    )


def ensure_data_dirs() -> bool:
    try:
        BACKUPS_DIR.mkdir(parents=True, exist_ok=True)
        SESSIONS_DIR.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        logger.warning("Could not create data directories under %s: %s. Continuing without them.", DATA_DIR, exc)
        return False
    return True
