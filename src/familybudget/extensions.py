"""Database and extension wiring for FamilyBudget."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

from flask import Flask
from flask_login import LoginManager
from sqlalchemy import event
from sqlmodel import Session, SQLModel, create_engine

from . import models  # noqa: F401  # ensure models registered with SQLModel metadata
from .config import BaseConfig

_engine = None

login_manager = LoginManager()
login_manager.login_view = "auth.login"
login_manager.login_message_category = "warning"


def init_db(app: Flask) -> None:
    """Initialize the SQLModel engine using configuration from the app."""

    config: BaseConfig = app.config["FAMILYBUDGET_CONFIG"]
    engine_options = app.config.get("SQLALCHEMY_ENGINE_OPTIONS", {})
    engine = create_engine(config.DATABASE_URL, **engine_options)

    if config.DATABASE_URL.startswith("sqlite"):
        pragmas = dict(config.SQLITE_PRAGMAS)

        @event.listens_for(engine, "connect")
        def _apply_pragmas(dbapi_connection, _record) -> None:
            cursor = dbapi_connection.cursor()
            for key, value in pragmas.items():
                cursor.execute(f"PRAGMA {key}={value}")
            cursor.close()

    global _engine
    _engine = engine

    with engine.begin() as connection:
        SQLModel.metadata.create_all(connection)


def init_login(app: Flask) -> None:
    """Bind Flask-Login and register the user loader."""

    login_manager.init_app(app)

    @login_manager.user_loader
    def _load_user(user_id: str):
        from .models import User

        try:
            key = int(user_id)
        except (TypeError, ValueError):
            return None
        with session_scope() as session:
            return session.get(User, key)


def get_engine():
    """Return the initialized SQLModel engine."""

    if _engine is None:
        raise RuntimeError("Database engine not initialized")
    return _engine


@contextmanager
def session_scope() -> Iterator[Session]:
    """Provide a transactional scope around operations."""

    session = Session(get_engine(), expire_on_commit=False)
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
