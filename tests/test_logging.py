"""Tests for application logging setup."""

import logging

import pytest

pytest.importorskip("PyQt6.QtWidgets")

from snapedit.app import setup_logging  # noqa: E402


@pytest.fixture(autouse=True)
def reset_logger():
    logger = logging.getLogger("snapedit")
    saved = list(logger.handlers), logger.level, logger.propagate
    logger.handlers.clear()
    yield
    logger.handlers[:] = saved[0]
    logger.setLevel(saved[1])
    logger.propagate = saved[2]


def test_level_from_environment(monkeypatch):
    monkeypatch.setenv("SNAPEDIT_LOG_LEVEL", "debug")
    assert setup_logging().level == logging.DEBUG


def test_unknown_level_falls_back(monkeypatch):
    monkeypatch.setenv("SNAPEDIT_LOG_LEVEL", "chatty")
    assert setup_logging().level == logging.WARNING


def test_single_handler(monkeypatch):
    monkeypatch.delenv("SNAPEDIT_LOG_LEVEL", raising=False)
    setup_logging()
    logger = setup_logging()
    assert len(logger.handlers) == 1
    assert logging.getLogger("snapedit.pipeline").getEffectiveLevel() == logging.WARNING
