from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Dict, List

from dotenv import load_dotenv


@dataclass
class Config:
    bot_token: str
    admin_ids: List[int] = field(default_factory=list)
    database_path: str = os.path.join("data", "eventhub.db")
    log_level: str = "INFO"
    log_file: str = os.path.join("data", "eventhub.log")
    log_max_bytes: int = 5 * 1024 * 1024
    log_backup_count: int = 3
    logger_levels: Dict[str, str] = field(default_factory=dict)
    page_size: int = 10
    recent_registrations_limit: int = 10
    debug: bool = False


def _parse_admin_ids(raw: str) -> List[int]:
    ids: List[int] = []
    for chunk in raw.split(","):
        chunk = chunk.strip()
        if not chunk:
            continue
        try:
            ids.append(int(chunk))
        except ValueError:
            continue
    return ids


_LEVEL_NAMES = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _parse_logger_levels(raw: str) -> Dict[str, str]:
    """``name=LEVEL`` pairs separated by commas; bad pairs are skipped."""
    levels: Dict[str, str] = {}
    for chunk in raw.split(","):
        name, sep, level = chunk.partition("=")
        name, level = name.strip(), level.strip().upper()
        if sep and name and level in _LEVEL_NAMES:
            levels[name] = level
    return levels


def _parse_bool(raw: str | None, default: bool = False) -> bool:
    if raw is None:
        return default
    value = raw.strip().lower()
    if value in ("1", "true", "yes", "y", "on"):
        return True
    if value in ("0", "false", "no", "n", "off"):
        return False
    return default


def _parse_int(raw: str | None, default: int, minimum: int = 0) -> int:
    if raw is None:
        return default
    try:
        value = int(raw.strip())
    except ValueError:
        return default
    return value if value >= minimum else default


def load_config() -> Config:
    load_dotenv()
    token = os.getenv("BOT_TOKEN")
    if not token:
        raise RuntimeError("BOT_TOKEN is required. Set it in .env")

    db_path = os.getenv("DATABASE_PATH", os.path.join("data", "eventhub.db"))
    db_dir = os.path.dirname(db_path)
    if db_dir:
        os.makedirs(db_dir, exist_ok=True)

    return Config(
        bot_token=token,
        admin_ids=_parse_admin_ids(os.getenv("ADMIN_IDS", "")),
        database_path=db_path,
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        log_file=os.getenv("LOG_FILE", os.path.join("data", "eventhub.log")),
        log_max_bytes=_parse_int(os.getenv("LOG_MAX_BYTES"), 5 * 1024 * 1024),
        log_backup_count=_parse_int(os.getenv("LOG_BACKUP_COUNT"), 3),
        logger_levels=_parse_logger_levels(os.getenv("LOG_LEVELS", "")),
        page_size=_parse_int(os.getenv("PAGE_SIZE"), 10, minimum=1),
        recent_registrations_limit=_parse_int(os.getenv("RECENT_REGISTRATIONS_LIMIT"), 10, minimum=1),
        debug=_parse_bool(os.getenv("DEBUG"), default=False),
    )
