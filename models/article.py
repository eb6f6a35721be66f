"""Article data model for ingested news items.

Each Article is one normalized item from an upstream source. Identity is the
pair (source, external_id); the primary key ``id`` is derived from it, so the
same upstream item always resolves to the same row no matter which run
fetched it.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from models.summary import Summary, SummaryProvenance

HACKER_NEWS = "hackernews"

# Primary key prefixes per source; unknown sources use the source name
_ID_PREFIXES = {
    HACKER_NEWS: "hn",
}

MAX_TAGS = 4


def article_id(source: str, external_id: str | int) -> str:
    """Derive the primary key for an upstream item.

    >>> article_id("hackernews", 42)
    'hn-42'
    """
    prefix = _ID_PREFIXES.get(source, source)
    return f"{prefix}-{external_id}"


class Article(BaseModel):
    """A normalized news item.

    Serialized with camelCase keys (``externalId``, ``hotnessScore`` ...) for
    the HTTP API; Python code uses the snake_case field names.

    Attributes:
        id: Primary key derived from source + external_id
        source: Source identifier (e.g. 'hackernews')
        external_id: Source-local identifier
        url: Canonical destination URL
        title: Headline
        author: Submitter/author when known
        published_at: Publication time (UTC)
        fetched_at: When this version was fetched (UTC)
        tags: 1-4 topical/company labels, no duplicates
        points: Upvotes, if the source has them
        comment_count: Discussion size, if the source has it
        discussion_url: Link to the discussion thread
        summary: Structured or legacy summary, set once
        summary_source: Which inputs produced the summary
        hotness_score: Decayed popularity, recomputed every fetch
        content_text: Extracted body text (summarization context only)
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    source: str
    external_id: str
    url: str
    title: str
    author: str | None = None
    published_at: datetime
    fetched_at: datetime
    tags: list[str] = Field(default_factory=list)
    points: int | None = None
    comment_count: int | None = None
    discussion_url: str | None = None
    summary: Summary | None = None
    summary_source: SummaryProvenance | None = None
    hotness_score: float = 0.0
    content_text: str | None = None

    @field_validator("tags")
    @classmethod
    def _unique_tags(cls, tags: list[str]) -> list[str]:
        return list(dict.fromkeys(tags))

    @property
    def has_summary(self) -> bool:
        return self.summary is not None

    def __str__(self) -> str:
        return f"Article({self.id}, '{self.title[:50]}')"
