"""Tests for logging utilities."""

import logging

from rich.logging import RichHandler

from adopr.utils.logger import ROOT_LOGGER_NAME, AdoprLogger, enable_verbose_logging, get_logger


def test_get_logger_default():
    assert get_logger() is get_logger()
    assert get_logger().logger.name == ROOT_LOGGER_NAME


def test_module_loggers_propagate_to_root():
    """Test handlers are attached once, on the adopr root logger."""
    module_logger = get_logger("adopr.integrations.git")

    assert isinstance(module_logger, AdoprLogger)
    assert module_logger.logger.handlers == []
    assert module_logger.logger.propagate
    assert any(isinstance(h, RichHandler) for h in logging.getLogger(ROOT_LOGGER_NAME).handlers)


def test_enable_verbose_logging(monkeypatch):
    root_logger = logging.getLogger(ROOT_LOGGER_NAME)
    console_handlers = [h for h in root_logger.handlers if isinstance(h, RichHandler)]
    monkeypatch.setattr(root_logger, "level", root_logger.level)
    for handler in console_handlers:
        monkeypatch.setattr(handler, "level", handler.level)

    enable_verbose_logging()

    assert root_logger.level == logging.DEBUG
    assert all(h.level == logging.DEBUG for h in console_handlers)
