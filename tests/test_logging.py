"""Tests for structured logging."""

from __future__ import annotations

import json
import logging
import logging.handlers
import sys

import pytest

from familybudget.config import BaseConfig
from familybudget.logging_config import JSONFormatter, get_logger, setup_logging


def _record(level=logging.INFO, msg="Budget check finished", exc_info=None, **extra):
    record = logging.LogRecord(
        name="familybudget.services.budget_warnings",
        level=level,
        pathname="budget_warnings.py",
        lineno=17,
        msg=msg,
        args=(),
        exc_info=exc_info,
    )
    record.module = "budget_warnings"
    record.funcName = "run_daily_budget_check"
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_formatter_structure():
    log_data = json.loads(JSONFormatter().format(_record()))

    assert log_data["level"] == "INFO"
    assert log_data["logger"] == "familybudget.services.budget_warnings"
    assert log_data["message"] == "Budget check finished"
    assert log_data["module"] == "budget_warnings"
    assert log_data["function"] == "run_daily_budget_check"
    assert log_data["line"] == 17
    assert "timestamp" in log_data
    assert "extra" not in log_data


def test_json_formatter_reports_extra_fields():
    record = _record(families=3, month="2024-05")

    log_data = json.loads(JSONFormatter().format(record))

    assert log_data["extra"] == {"families": 3, "month": "2024-05"}


def test_json_formatter_with_exception():
    try:
        raise ValueError("Family id 9 not found.")
    except ValueError:
        exc_info = sys.exc_info()

    log_data = json.loads(
        JSONFormatter().format(_record(logging.ERROR, "Job failed", exc_info=exc_info))
    )

    assert log_data["exception"]["type"] == "ValueError"
    assert "Family id 9" in log_data["exception"]["message"]
    assert log_data["exception"]["traceback"]


def test_setup_logging_writes_json_file(tmp_path, monkeypatch):
    monkeypatch.setenv("FAMILYBUDGET_DATA_DIR", str(tmp_path))
    config = BaseConfig()
    config.DATA_DIR = str(tmp_path)
    config.DEV_MODE = True

    logger = setup_logging(config)

    assert logger.name == "familybudget"
    assert logger.level == logging.INFO
    assert len(logger.handlers) == 2

    log_file = tmp_path / "logs" / "familybudget.log"
    assert log_file.exists()

    get_logger("tests").warning("Spending above budget", extra={"family_id": 4})
    for handler in logger.handlers:
        handler.flush()

    entries = [json.loads(line) for line in log_file.read_text().splitlines() if line.strip()]
    assert entries[0]["message"] == "Logging initialized"
    assert entries[-1]["message"] == "Spending above budget"
    assert entries[-1]["extra"]["family_id"] == 4


def test_get_logger_namespaces():
    assert get_logger("services.projection").name == "familybudget.services.projection"
    assert get_logger("cli") is not get_logger("jobs")


@pytest.mark.parametrize("dev_mode", [True, False])
def test_console_level_follows_dev_mode(tmp_path, monkeypatch, dev_mode):
    monkeypatch.setenv("FAMILYBUDGET_DATA_DIR", str(tmp_path))
    config = BaseConfig()
    config.DATA_DIR = str(tmp_path)
    config.DEV_MODE = dev_mode

    logger = setup_logging(config)

    console_handler = next(
        handler
        for handler in logger.handlers
        if isinstance(handler, logging.StreamHandler)
        and not isinstance(handler, logging.handlers.RotatingFileHandler)
    )
    assert console_handler.level == (logging.INFO if dev_mode else logging.WARNING)
