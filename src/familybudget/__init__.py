"""FamilyBudget application factory."""

from __future__ import annotations

from importlib import import_module
from typing import Iterable

from flask import Flask, redirect, url_for
from flask_login import current_user

from . import cli as _cli
from .config import BaseConfig, DevConfig, TestConfig

_CONFIG_MAP = {
    "development": DevConfig,
    "testing": TestConfig,
    "default": BaseConfig,
}


def _resolve_config(name: str | None) -> type[BaseConfig]:
    """Return the config class for the provided environment name."""

    if not name:
        return BaseConfig
    return _CONFIG_MAP.get(name.lower(), BaseConfig)


def _blueprint_paths() -> Iterable[str]:
    yield "familybudget.blueprints.auth"
    yield "familybudget.blueprints.dashboard"
    yield "familybudget.blueprints.expenses"
    yield "familybudget.blueprints.subscriptions"
    yield "familybudget.blueprints.family"
    yield "familybudget.blueprints.thresholds"


def create_app(config_name: str | None = None) -> Flask:
    """Create and configure the Flask application instance."""

    app = Flask(__name__, instance_relative_config=True)
    config_cls = _resolve_config(config_name or app.config.get("ENV"))
    config_obj = config_cls()
    app.config.from_object(config_obj)
    app.config.setdefault("SQLALCHEMY_ENGINE_OPTIONS", config_obj.sqlalchemy_engine_options())
    app.config["FAMILYBUDGET_CONFIG"] = config_obj

    # Import lazily so that importing the package does not register SQLModel tables.
    from .extensions import init_db, init_login
    from .logging_config import setup_logging
    from .services import jobs
    from .services.mailer import init_mailer

    setup_logging(config_obj)
    init_db(app)
    init_login(app)
    init_mailer(app)
    jobs.set_async_execution(config_obj.JOBS_RUN_ASYNC)

    _register_blueprints(app)
    _cli.init_app(app)

    @app.get("/")
    def index():
        if current_user.is_authenticated:
            return redirect(url_for("dashboard.index"))
        return redirect(url_for("auth.login"))

    if config_obj.SCHEDULER_ENABLED:
        from .scheduler import create_scheduler

        app.extensions["familybudget_scheduler"] = create_scheduler(app, auto_start=True)

    return app


def _register_blueprints(app: Flask) -> None:
    """Import and register all blueprints declared in `_blueprint_paths`."""

    for dotted_path in _blueprint_paths():
        module = import_module(dotted_path)
        blueprint = getattr(module, "bp")
        app.register_blueprint(blueprint)


__all__ = ["create_app"]
