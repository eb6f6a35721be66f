"""Configuration management for the TechPulse ingestion service.

This module provides centralized configuration for all pipeline components.
All settings are loaded from environment variables with sensible defaults.
Missing credentials are not errors: the dependent feature is reported as
"not configured" and skipped.

Environment Variables:
    Summarization (optional):
        OPENAI_API_KEY: Enables AI summaries when set
        SUMMARY_MODEL: Chat model used for summaries
        SUMMARY_TEMPERATURE: Sampling temperature (low = deterministic)
        SUMMARY_MAX_TOKENS: Output size cap per summary
        SUMMARY_BATCH_LIMIT: Articles summarized per run
        SUMMARY_CONCURRENCY: Summaries generated concurrently

    Hacker News:
        HN_API_BASE: Firebase API base URL
        TOP_STORIES_COUNT: Number of top stories fetched per run
        FETCH_BATCH_SIZE: Item requests issued concurrently per batch
        CONTENT_TIMEOUT_SECONDS: Timeout for article page fetches

    Storage:
        DB_PATH: SQLite database file path (empty = not configured)

    Ingestion:
        CRON_SECRET: Bearer secret for the ingest endpoint (optional)
        RUN_TIMEOUT_SECONDS: Ceiling for a single ingestion run
        POLL_INTERVAL_SECONDS: Delay between runs in continuous mode

    Server:
        HOST: Bind address for the HTTP server
        PORT: Bind port for the HTTP server

    Optional Features:
        ENABLE_LOGFIRE: Enable Logfire/OpenTelemetry tracing

    Logging:
        LOG_LEVEL: Logging verbosity (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        LOG_BACKUP_COUNT: Number of rotated log files to keep
        LOG_MAX_BYTES: Max log file size in bytes (0 = time-based rotation)
        LOG_FORMAT: Log format ('text' or 'json' for structured logging)
"""

import os
from dataclasses import dataclass, field
from pathlib import Path


def _env(key: str, default: str = "") -> str:
    """Get string environment variable with optional default."""
    return os.environ.get(key, default)


def _env_int(key: str, default: int) -> int:
    """Get integer environment variable with default.

    Args:
        key: Environment variable name
        default: Value to return if not set

    Returns:
        Parsed integer or default value

    Raises:
        ValueError: If value is set but cannot be parsed as integer
    """
    val = os.environ.get(key)
    if not val:
        return default
    try:
        return int(val)
    except ValueError:
        raise ValueError(f"Invalid integer value for {key}: '{val}'")


def _env_float(key: str, default: float) -> float:
    """Get float environment variable with default.

    Raises:
        ValueError: If value is set but cannot be parsed as float
    """
    val = os.environ.get(key)
    if not val:
        return default
    try:
        return float(val)
    except ValueError:
        raise ValueError(f"Invalid float value for {key}: '{val}'")


def _env_bool(key: str, default: bool = False) -> bool:
    """Get boolean environment variable with default.

    Recognizes truthy values: '1', 'true', 'yes', 'on'
    Recognizes falsy values: '0', 'false', 'no', 'off'
    """
    val = os.environ.get(key, "").lower()
    if val in ("1", "true", "yes", "on"):
        return True
    if val in ("0", "false", "no", "off"):
        return False
    return default


HN_API_BASE = "https://hacker-news.firebaseio.com/v0"


@dataclass
class Config:
    """Application configuration loaded from environment variables.

    Constructed once at process start and passed by reference into each
    component. Use Config.load() to read values from the environment.

    Example:
        >>> config = Config.load()
        >>> if error := config.validate():
        ...     print(f"Config error: {error}")
    """

    # === Summarization (optional) ===
    openai_api_key: str = ""  # OPENAI_API_KEY - enables summaries
    summary_model: str = "gpt-4o-mini"  # SUMMARY_MODEL
    summary_temperature: float = 0.3  # SUMMARY_TEMPERATURE
    summary_max_tokens: int = 200  # SUMMARY_MAX_TOKENS
    summary_batch_limit: int = 15  # SUMMARY_BATCH_LIMIT - articles per run
    summary_concurrency: int = 3  # SUMMARY_CONCURRENCY

    # === Hacker News ===
    hn_api_base: str = HN_API_BASE  # HN_API_BASE
    top_stories_count: int = 30  # TOP_STORIES_COUNT
    fetch_batch_size: int = 10  # FETCH_BATCH_SIZE
    content_timeout_seconds: float = 5.0  # CONTENT_TIMEOUT_SECONDS

    # === Database ===
    db_path: Path | None = field(default_factory=lambda: Path("techpulse.db"))  # DB_PATH

    # === Ingestion ===
    ingest_secret: str = ""  # CRON_SECRET
    run_timeout_seconds: int = 300  # RUN_TIMEOUT_SECONDS
    poll_interval_seconds: int = 3600  # POLL_INTERVAL_SECONDS

    # === Server ===
    host: str = "127.0.0.1"  # HOST
    port: int = 8000  # PORT

    # === Output Directories ===
    log_dir: Path = field(default_factory=lambda: Path("log"))  # LOG_DIR

    # === Logging Configuration ===
    log_level: str = "INFO"  # LOG_LEVEL - DEBUG, INFO, WARNING, ERROR
    log_backup_count: int = 30  # LOG_BACKUP_COUNT - Number of rotated logs to keep
    log_max_bytes: int = 0  # LOG_MAX_BYTES - Max file size (0 = time-based rotation)
    log_format: str = "text"  # LOG_FORMAT - 'text' or 'json' for structured logging

    # === Optional: Observability ===
    # Requires: pip install logfire
    enable_logfire: bool = False  # ENABLE_LOGFIRE - Enable distributed tracing
    logfire_token: str = ""  # LOGFIRE_TOKEN - Authentication token

    @classmethod
    def load(cls) -> "Config":
        """Load configuration from environment variables."""
        db_path = _env("DB_PATH", "techpulse.db")
        return cls(
            openai_api_key=_env("OPENAI_API_KEY"),
            summary_model=_env("SUMMARY_MODEL", "gpt-4o-mini"),
            summary_temperature=_env_float("SUMMARY_TEMPERATURE", 0.3),
            summary_max_tokens=_env_int("SUMMARY_MAX_TOKENS", 200),
            summary_batch_limit=_env_int("SUMMARY_BATCH_LIMIT", 15),
            summary_concurrency=_env_int("SUMMARY_CONCURRENCY", 3),
            hn_api_base=_env("HN_API_BASE", HN_API_BASE).rstrip("/"),
            top_stories_count=_env_int("TOP_STORIES_COUNT", 30),
            fetch_batch_size=_env_int("FETCH_BATCH_SIZE", 10),
            content_timeout_seconds=_env_float("CONTENT_TIMEOUT_SECONDS", 5.0),
            db_path=Path(db_path) if db_path else None,
            ingest_secret=_env("CRON_SECRET"),
            run_timeout_seconds=_env_int("RUN_TIMEOUT_SECONDS", 300),
            poll_interval_seconds=_env_int("POLL_INTERVAL_SECONDS", 3600),
            host=_env("HOST", "127.0.0.1"),
            port=_env_int("PORT", 8000),
            log_dir=Path(_env("LOG_DIR", "log")),
            enable_logfire=_env_bool("ENABLE_LOGFIRE", False),
            logfire_token=_env("LOGFIRE_TOKEN"),
            log_level=_env("LOG_LEVEL", "INFO").upper(),
            log_backup_count=_env_int("LOG_BACKUP_COUNT", 30),
            log_max_bytes=_env_int("LOG_MAX_BYTES", 0),
            log_format=_env("LOG_FORMAT", "text").lower(),
        )

    @property
    def summarizer_configured(self) -> bool:
        """Whether an AI backend is available for summaries."""
        return bool(self.openai_api_key)

    @property
    def database_configured(self) -> bool:
        """Whether a database path is configured."""
        return self.db_path is not None

    @property
    def ingest_secret_configured(self) -> bool:
        return bool(self.ingest_secret)

    def validate(self) -> str | None:
        """Validate configuration values.

        Absent credentials are never reported here; only malformed values are.

        Returns:
            Error message string if invalid, None if valid.
        """
        if self.top_stories_count <= 0:
            return "TOP_STORIES_COUNT must be positive"
        if self.fetch_batch_size <= 0:
            return "FETCH_BATCH_SIZE must be positive"
        if self.summary_concurrency <= 0:
            return "SUMMARY_CONCURRENCY must be positive"
        if self.summary_batch_limit < 0:
            return "SUMMARY_BATCH_LIMIT must be non-negative"
        if not 0.0 <= self.summary_temperature <= 2.0:
            return "SUMMARY_TEMPERATURE must be between 0 and 2"
        if self.content_timeout_seconds <= 0:
            return "CONTENT_TIMEOUT_SECONDS must be positive"
        if self.run_timeout_seconds <= 0:
            return "RUN_TIMEOUT_SECONDS must be positive"
        if self.poll_interval_seconds <= 0:
            return "POLL_INTERVAL_SECONDS must be positive"
        if not 0 < self.port < 65536:
            return f"Invalid PORT '{self.port}'"
        if self.log_level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            return f"Invalid LOG_LEVEL '{self.log_level}' - must be DEBUG, INFO, WARNING, ERROR, or CRITICAL"
        if self.log_format not in ("text", "json"):
            return f"Invalid LOG_FORMAT '{self.log_format}' - must be 'text' or 'json'"
        if self.log_backup_count < 0:
            return "LOG_BACKUP_COUNT must be non-negative"
        if self.log_max_bytes < 0:
            return "LOG_MAX_BYTES must be non-negative"
        return None
