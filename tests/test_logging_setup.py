from __future__ import annotations

import io
import logging

import pytest

from budget_toolkit import logging_setup


@pytest.fixture
def fresh_root_logger(monkeypatch):
    root = logging.getLogger("budget_toolkit")
    saved = (list(root.handlers), root.level, root.propagate)
    monkeypatch.setattr(logging_setup, "_configured", False)
    root.handlers.clear()
    yield root
    root.handlers[:] = saved[0]
    root.setLevel(saved[1])
    root.propagate = saved[2]


@pytest.mark.parametrize(
    "level, expected",
    [
        (logging.INFO, logging.INFO),
        ("debug", logging.DEBUG),
        (" Error ", logging.ERROR),
        ("15", 15),
        (None, logging.WARNING),
        ("not-a-level", logging.WARNING),
    ],
)
def test_parse_level(level, expected):
    assert logging_setup._parse_level(level) == expected


def test_env_level_applies_when_no_explicit_level(monkeypatch):
    monkeypatch.setenv("BUDGET_TOOLKIT_LOG_LEVEL", "info")
    assert logging_setup._parse_level(None) == logging.INFO
    assert logging_setup._parse_level("debug") == logging.DEBUG


def test_configure_logging_installs_one_handler(fresh_root_logger):
    logging_setup.get_logger("budget_toolkit.test")
    assert any(isinstance(h, logging.NullHandler) for h in fresh_root_logger.handlers)

    stream = io.StringIO()
    logging_setup.configure_logging("INFO", stream=stream)
    logging_setup.configure_logging("DEBUG", stream=io.StringIO())

    assert len(fresh_root_logger.handlers) == 1
    logging_setup.get_logger("budget_toolkit.test").info("run:start tag=%r", "weekly")
    logging_setup.get_logger("budget_toolkit.test").debug("hidden")
    assert "INFO budget_toolkit.test run:start tag='weekly'" in stream.getvalue()
    assert "hidden" not in stream.getvalue()
