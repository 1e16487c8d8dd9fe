import json
import logging
import sys

from progressengine.logging_config import JsonFormatter, configure_logging


def test_json_formatter_emits_one_line() -> None:
    record = logging.LogRecord("progressengine.progress", logging.INFO, __file__, 1, "Level up: %d -> %d", (1, 2), None)
    payload = json.loads(JsonFormatter().format(record))
    assert payload["level"] == "INFO"
    assert payload["logger"] == "progressengine.progress"
    assert payload["message"] == "Level up: 1 -> 2"
    assert "exception" not in payload


def test_json_formatter_includes_exception() -> None:
    try:
        raise RuntimeError("boom")
    except RuntimeError:
        record = logging.LogRecord("x", logging.ERROR, __file__, 1, "failed", None, sys.exc_info())
    payload = json.loads(JsonFormatter().format(record))
    assert "RuntimeError: boom" in payload["exception"]


def test_configure_logging_replaces_handler() -> None:
    logger = logging.getLogger("progressengine")
    before = list(logger.handlers)
    try:
        first = configure_logging("debug", "json")
        second = configure_logging("warning", "text")
        assert logger.handlers == [second]
        assert first not in logger.handlers
        assert isinstance(first.formatter, JsonFormatter)
        assert not isinstance(second.formatter, JsonFormatter)
        assert logger.level == logging.WARNING
    finally:
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
        for handler in before:
            logger.addHandler(handler)
        logger.setLevel(logging.NOTSET)
