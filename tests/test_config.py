from pathlib import Path

import pytest

from config import Config, HN_API_BASE


def test_defaults(monkeypatch):
    for key in ("OPENAI_API_KEY", "DB_PATH", "CRON_SECRET", "SUMMARY_MODEL", "HN_API_BASE"):
        monkeypatch.delenv(key, raising=False)
    config = Config.load()
    assert config.summary_model == "gpt-4o-mini"
    assert config.summary_batch_limit == 15
    assert config.summary_concurrency == 3
    assert config.top_stories_count == 30
    assert config.fetch_batch_size == 10
    assert config.run_timeout_seconds == 300
    assert config.hn_api_base == HN_API_BASE
    assert config.db_path == Path("techpulse.db")
    assert not config.summarizer_configured
    assert config.database_configured
    assert not config.ingest_secret_configured
    assert config.validate() is None


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    monkeypatch.setenv("TOP_STORIES_COUNT", "50")
    monkeypatch.setenv("SUMMARY_TEMPERATURE", "0.1")
    monkeypatch.setenv("CRON_SECRET", "hunter2")
    monkeypatch.setenv("HN_API_BASE", "http://localhost:9000/v0/")
    monkeypatch.setenv("ENABLE_LOGFIRE", "yes")
    monkeypatch.setenv("LOG_LEVEL", "debug")
    config = Config.load()
    assert config.summarizer_configured
    assert config.top_stories_count == 50
    assert config.summary_temperature == 0.1
    assert config.ingest_secret_configured
    assert config.hn_api_base == "http://localhost:9000/v0"
    assert config.enable_logfire
    assert config.log_level == "DEBUG"


def test_empty_db_path_disables_database(monkeypatch):
    monkeypatch.setenv("DB_PATH", "")
    assert not Config.load().database_configured
    assert not Config(db_path=None).database_configured


def test_invalid_integer_raises(monkeypatch):
    monkeypatch.setenv("PORT", "eighty")
    with pytest.raises(ValueError, match="PORT"):
        Config.load()


@pytest.mark.parametrize("field,value,message", [
    ("top_stories_count", 0, "TOP_STORIES_COUNT"),
    ("fetch_batch_size", -1, "FETCH_BATCH_SIZE"),
    ("summary_concurrency", 0, "SUMMARY_CONCURRENCY"),
    ("summary_temperature", 3.0, "SUMMARY_TEMPERATURE"),
    ("port", 70000, "PORT"),
    ("log_level", "LOUD", "LOG_LEVEL"),
    ("log_format", "xml", "LOG_FORMAT"),
])
def test_validate_rejects_bad_values(field, value, message):
    config = Config(**{field: value})
    error = config.validate()
    assert error is not None
    assert message in error
