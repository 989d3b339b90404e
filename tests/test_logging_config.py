import logging

import pytest

from sqlite_babel.base.logging_config import (
    NO_INVOCATION,
    SQLITE3_LOGGER,
    InvocationFilter,
    current_invocation,
    invocation_context,
    setup_logging,
)


@pytest.fixture
def restore_root_logging():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    sqlite3_level = logging.getLogger(SQLITE3_LOGGER).level
    yield
    for handler in root.handlers[:]:
        root.removeHandler(handler)
        handler.close()
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)
    logging.getLogger(SQLITE3_LOGGER).setLevel(sqlite3_level)


def test_invocation_context_nests_and_resets():
    assert current_invocation() == NO_INVOCATION

    with invocation_context("sqlite_babel_execute") as outer:
        assert outer.startswith("sqlite_babel_execute#")
        with invocation_context("sqlite3") as inner:
            assert inner == f"{outer}/sqlite3"
            assert current_invocation() == inner
        assert current_invocation() == outer

    assert current_invocation() == NO_INVOCATION


def test_invocation_numbers_are_unique():
    with invocation_context("a") as first:
        pass
    with invocation_context("a") as second:
        pass

    assert first != second


def test_filter_tags_records():
    record = logging.LogRecord("x", logging.INFO, __file__, 1, "msg", None, None)

    with invocation_context("tool") as invocation:
        assert InvocationFilter().filter(record)

    assert record.invocation == invocation


def test_setup_logging_writes_invocation_to_file(tmp_path, restore_root_logging):
    setup_logging(
        log_file="test.log",
        console_log_level=logging.NOTSET,
        file_log_level=logging.INFO,
        sqlite3_log_level=logging.WARNING,
        log_dir=str(tmp_path),
    )

    with invocation_context("sqlite_babel_execute") as invocation:
        logging.getLogger(SQLITE3_LOGGER).info("hidden argv line")
        logging.getLogger(SQLITE3_LOGGER).warning("sqlite3 failed")
    for handler in logging.getLogger().handlers:
        handler.flush()

    text = (tmp_path / "test.log").read_text(encoding="utf-8")
    assert f"[{invocation}]" in text
    assert "sqlite3 failed" in text
    assert "hidden argv line" not in text
