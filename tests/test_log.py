"""Tests for logging setup."""

import io
import json
import logging

from gha.log import setup_logging


def test_default_level_is_warning():
    log = setup_logging(io.StringIO(), {})
    assert log.level == logging.WARNING


def test_debug_env_enables_debug():
    stream = io.StringIO()
    setup_logging(stream, {"GHA_DEBUG": "1"})
    logging.getLogger("gha.resolve").debug("Using installation 5 from config")
    assert "Using installation 5 from config" in stream.getvalue()


def test_json_format():
    stream = io.StringIO()
    setup_logging(stream, {"GHA_LOG_FORMAT": "json"})
    logging.getLogger("gha.proxy").warning("Unknown GHA_FORWARD_MODE")

    entry = json.loads(stream.getvalue().strip())
    assert entry["level"] == "WARNING"
    assert entry["msg"] == "Unknown GHA_FORWARD_MODE"


def test_repeated_setup_replaces_handler():
    setup_logging(io.StringIO(), {})
    log = setup_logging(io.StringIO(), {})
    assert len(log.handlers) == 1
