"""Tests for logging setup and formatters."""

import json
import logging
import sys
from pathlib import Path

import pytest

from json_render.config import RuntimeConfig
from json_render.runtime.logging import ROOT_LOGGER, ConsoleFormatter, JSONLFormatter, setup_logging


@pytest.fixture
def restore_logger():
    """Put the json_render logger back the way it was."""
    logger = logging.getLogger(ROOT_LOGGER)
    handlers = list(logger.handlers)
    level = logger.level
    yield logger
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    for handler in handlers:
        logger.addHandler(handler)
    logger.setLevel(level)


def make_record(level=logging.INFO, msg="hello %s", args=("world",), exc_info=None, **extra):
    record = logging.LogRecord(
        name="json_render.runtime.tree_builder",
        level=level,
        pathname=__file__,
        lineno=10,
        msg=msg,
        args=args,
        exc_info=exc_info,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJSONLFormatter:
    """Test JSONL output."""

    def test_basic_entry(self):
        entry = json.loads(JSONLFormatter().format(make_record(context={"applied": 3})))
        assert entry["level"] == "INFO"
        assert entry["component"] == "tree_builder"
        assert entry["message"] == "hello world"
        assert entry["context"] == {"applied": 3}
        assert entry["timestamp"].endswith("Z")
        assert "source" not in entry

    def test_warning_has_source_and_exception(self):
        try:
            raise ValueError("bad")
        except ValueError:
            record = make_record(level=logging.WARNING, exc_info=sys.exc_info())

        entry = json.loads(JSONLFormatter().format(record))
        assert entry["source"]["line"] == 10
        assert entry["exception"] == {"type": "ValueError", "message": "bad"}


class TestConsoleFormatter:
    """Test console output."""

    def test_contains_component_and_message(self):
        text = ConsoleFormatter().format(make_record(level=logging.WARNING))
        assert "tree_builder" in text
        assert "WARNING" in text
        assert text.endswith("hello world")


class TestSetupLogging:
    """Test handler installation."""

    def test_console_only(self, restore_logger):
        logger = setup_logging("debug")
        assert logger is restore_logger
        assert logger.level == logging.DEBUG
        assert len(logger.handlers) == 1

    def test_jsonl_file(self, tmp_path: Path, restore_logger):
        log_file = tmp_path / "logs" / "render.jsonl"
        logger = setup_logging(logging.INFO, log_file=log_file)
        logging.getLogger("json_render.runtime.actions").info(
            "Action done", extra={"context": {"action": "save"}}
        )
        for handler in logger.handlers:
            handler.flush()

        lines = log_file.read_text().splitlines()
        entry = json.loads(lines[-1])
        assert entry["message"] == "Action done"
        assert entry["component"] == "actions"
        assert entry["context"] == {"action": "save"}

    def test_repeated_setup_replaces_handlers(self, restore_logger):
        setup_logging()
        logger = setup_logging()
        assert len(logger.handlers) == 1

    def test_level_from_config(self, restore_logger):
        config = RuntimeConfig(log_level="warning")
        assert setup_logging(config=config).level == logging.WARNING
        assert setup_logging("debug", config=config).level == logging.DEBUG
        assert setup_logging().level == logging.INFO
