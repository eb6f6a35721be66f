import json
import logging

from observability.logging import (
    ContextFilter,
    JsonFormatter,
    TextFormatter,
    clear_context,
    set_run_context,
    setup_logging,
)


def _record(message="Ingest started | fetched=3"):
    record = logging.LogRecord("pipeline", logging.INFO, __file__, 10, message, None, None)
    ContextFilter().filter(record)
    return record


def test_run_id_is_attached_to_records():
    set_run_context("run-42")
    try:
        assert _record().run_id == "run-42"
    finally:
        clear_context()
    assert _record().run_id == "-"


def test_json_formatter():
    set_run_context("run-42")
    try:
        data = json.loads(JsonFormatter().format(_record()))
    finally:
        clear_context()
    assert data["message"] == "Ingest started | fetched=3"
    assert data["run_id"] == "run-42"
    assert data["level"] == "INFO"
    assert "source" not in data


def test_text_formatter_includes_run_id():
    set_run_context("run-7")
    try:
        line = TextFormatter().format(_record())
    finally:
        clear_context()
    assert "[INFO] [run-7] pipeline: Ingest started" in line


def test_setup_logging_writes_file(config):
    try:
        assert setup_logging(config) is True
        assert (config.log_dir / "techpulse.log").exists()
    finally:
        for handler in logging.getLogger().handlers[:]:
            handler.close()
            logging.getLogger().removeHandler(handler)


def test_json_formatter_keeps_extra_fields_and_warning_source():
    record = _record("Summary save failed")
    record.levelno, record.levelname = logging.WARNING, "WARNING"
    record.article_id = "hn-1"
    data = json.loads(JsonFormatter().format(record))
    assert data["article_id"] == "hn-1"
    assert data["source"]["line"] == 10
    assert data["run_id"] == "-"
