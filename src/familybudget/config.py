"""Application configuration objects and helpers."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: bool = False) -> bool:
    """Interpret environment variable values as booleans."""

    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {value!r}") from None


class BaseConfig:
    """Base configuration shared across environments."""

    APP_NAME = "FamilyBudget"
    DB_FILENAME = "familybudget.db"
    SQLITE_PRAGMAS = {"journal_mode": "wal", "foreign_keys": "on"}
    DEBUG = False
    TESTING = False

    def __init__(self) -> None:
        self.SECRET_KEY = os.getenv("FAMILYBUDGET_SECRET_KEY", "replace-me")
        self.DATA_DIR = self._resolve_data_dir()
        self.DEV_MODE = _env_bool("FAMILYBUDGET_DEV_MODE", default=True)
        self.DATABASE_URL = os.getenv("FAMILYBUDGET_DATABASE_URL", self._build_sqlite_url())
        self.RECEIPTS_DIR = Path(
            os.getenv("FAMILYBUDGET_RECEIPTS_DIR", str(self.DATA_DIR / "receipts"))
        ).expanduser()

        self.MAIL_BACKEND = os.getenv("FAMILYBUDGET_MAIL_BACKEND", "memory").strip().lower()
        self.MAIL_FROM = os.getenv("FAMILYBUDGET_MAIL_FROM", "budget@familybudget.local")
        self.SMTP_HOST = os.getenv("FAMILYBUDGET_SMTP_HOST", "localhost")
        self.SMTP_PORT = _env_int("FAMILYBUDGET_SMTP_PORT", 25)
        self.SMTP_USERNAME = os.getenv("FAMILYBUDGET_SMTP_USERNAME")
        self.SMTP_PASSWORD = os.getenv("FAMILYBUDGET_SMTP_PASSWORD")
        self.SMTP_USE_TLS = _env_bool("FAMILYBUDGET_SMTP_USE_TLS", default=False)

        self.JOBS_RUN_ASYNC = _env_bool("FAMILYBUDGET_JOBS_ASYNC", default=True)
        self.SCHEDULER_ENABLED = _env_bool("FAMILYBUDGET_SCHEDULER_ENABLED", default=False)

        if not self.DEV_MODE and self.SECRET_KEY == "replace-me":
            raise ValueError("FAMILYBUDGET_SECRET_KEY must be set in non-dev mode.")
        if self.MAIL_BACKEND not in {"memory", "smtp"}:
            raise ValueError(
                f"FAMILYBUDGET_MAIL_BACKEND must be 'memory' or 'smtp', got {self.MAIL_BACKEND!r}"
            )

    def _resolve_data_dir(self) -> Path:
        """Return the directory holding the SQLite file, logs and receipts."""

        data_root = os.getenv("FAMILYBUDGET_DATA_DIR", "instance")
        path = Path(data_root).expanduser().resolve()
        path.mkdir(parents=True, exist_ok=True)
        return path

    def _build_sqlite_url(self) -> str:
        db_path = self.DATA_DIR / self.DB_FILENAME
        return f"sqlite:///{db_path}"

    def sqlalchemy_engine_options(self) -> dict[str, Any]:
        """Expose engine kwargs for SQLModel to consume."""

        if self.DATABASE_URL.startswith("sqlite"):
            return {"connect_args": {"check_same_thread": False}}
        return {"pool_pre_ping": True}


class DevConfig(BaseConfig):
    """Development configuration using local SQLite."""

    DEBUG = True
    TESTING = False


class TestConfig(BaseConfig):
    """Configuration used by the test-suite: synchronous jobs, in-memory mail."""

    DEBUG = False
    TESTING = True

    def __init__(self) -> None:
        super().__init__()
        self.MAIL_BACKEND = "memory"
        self.JOBS_RUN_ASYNC = False
        self.SCHEDULER_ENABLED = False


__all__ = ["BaseConfig", "DevConfig", "TestConfig"]
