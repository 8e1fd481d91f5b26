# src/quickplan/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app.
- Every component also accepts an injected settings object (tests never read env).
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

ENV_PREFIX = "QUICKPLAN"

load_dotenv(override=False)


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    tasks_db_path: Path

    # ---- Store / cache tuning ----
    busy_timeout_seconds: float
    stats_ttl_seconds: float

    # ---- Start-up ----
    seed_examples: bool

    # ---- Export ----
    export_title: str
    export_filename: str

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "quickplan").strip() or "quickplan"
        log_level = _env(_k("LOG_LEVEL"), "INFO")

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/quickplan"))
        tasks_db_path = _env_path(_k("TASKS_DB_PATH"), data_dir / "tasks.sqlite3")

        busy_timeout_seconds = max(0.0, _env_float(_k("BUSY_TIMEOUT_SECONDS"), 5.0))
        stats_ttl_seconds = max(0.0, _env_float(_k("STATS_TTL_SECONDS"), 30.0))

        seed_examples = _env_bool(_k("SEED_EXAMPLES"), True)

        export_title = _env(_k("EXPORT_TITLE"), "QuickPlan report")
        export_filename = _env(_k("EXPORT_FILENAME"), "quickplan-report")

        return Settings(
            app_name=app_name,
            log_level=log_level,
            data_dir=data_dir,
            tasks_db_path=tasks_db_path,
            busy_timeout_seconds=busy_timeout_seconds,
            stats_ttl_seconds=stats_ttl_seconds,
            seed_examples=seed_examples,
            export_title=export_title,
            export_filename=export_filename,
        )


SETTINGS = Settings.from_env()


def get_settings() -> Settings:
    return SETTINGS
