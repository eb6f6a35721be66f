"""Ingestion run audit records."""

from dataclasses import asdict, dataclass
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class RunStatus(str, Enum):
    """Lifecycle of an ingestion run. COMPLETED and FAILED are terminal."""

    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self is not RunStatus.RUNNING


@dataclass
class IngestStats:
    """Counters accumulated during one run.

    Attributes:
        fetched: Articles assembled from the upstream feed
        inserted: New rows written
        updated: Existing rows refreshed
        summarized: Summaries persisted
        errors: Tolerated failures (storage rows, summary writes, fatal error)
        duration: Run time in seconds
    """

    fetched: int = 0
    inserted: int = 0
    updated: int = 0
    summarized: int = 0
    errors: int = 0
    duration: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        d = asdict(self)
        d["duration"] = round(d["duration"], 2)
        return d


class IngestRun(BaseModel):
    """Stored audit record of one pipeline execution."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    started_at: datetime
    completed_at: datetime | None = None
    status: RunStatus = RunStatus.RUNNING
    fetched_count: int = 0
    inserted_count: int = 0
    updated_count: int = 0
    summarized_count: int = 0
    error_count: int = 0
    error_message: str | None = None


class IngestResult(BaseModel):
    """Structured outcome returned to whoever triggered a run."""

    run_id: str
    success: bool
    stats: dict[str, Any] = Field(default_factory=dict)
    error: str | None = None

    @property
    def message(self) -> str:
        if not self.success:
            return f"Ingestion failed: {self.error}"
        return (
            f"Ingested {self.stats.get('fetched', 0)} articles "
            f"({self.stats.get('inserted', 0)} new), "
            f"{self.stats.get('summarized', 0)} summaries generated"
        )
