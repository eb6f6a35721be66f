"""Summary models attached to articles.

A stored summary is one of two shapes:

    StructuredSummary: what / whyItMatters / keyDetail, produced by the summarizer
    LegacySummary: free text from rows written before structured summaries

Both carry a ``kind`` discriminator so read paths branch on the variant
instead of probing for fields.
"""

from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class SummaryProvenance(str, Enum):
    """Which enrichment inputs contributed to a generated summary."""

    TITLE_ONLY = "title-only"
    WITH_CONTENT = "with-content"
    WITH_COMMENTS = "with-comments"


class SummaryPayload(BaseModel):
    """JSON object the generative backend must return.

    Field aliases are the wire names requested in the system prompt.
    Empty strings fail validation the same way missing fields do.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    what: str = Field(min_length=1, description="One sentence: what happened or what this is")
    why_it_matters: str = Field(min_length=1, description="One sentence: why tech professionals should care")
    key_detail: str | None = Field(default=None, description="A notable number, quote, or claim")


class StructuredSummary(BaseModel):
    """Three-field synopsis created by the summarizer. Immutable once stored."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    kind: Literal["structured"] = "structured"
    what: str
    why_it_matters: str
    key_detail: str | None = None

    @classmethod
    def from_payload(cls, payload: SummaryPayload) -> "StructuredSummary":
        return cls(
            what=payload.what.strip(),
            why_it_matters=payload.why_it_matters.strip(),
            key_detail=(payload.key_detail or "").strip() or None,
        )


class LegacySummary(BaseModel):
    """Plain-text summary from older rows."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["legacy"] = "legacy"
    text: str


Summary = Annotated[Union[StructuredSummary, LegacySummary], Field(discriminator="kind")]


def format_summary(summary: StructuredSummary | LegacySummary) -> str:
    """Render any summary variant as a single line of text."""
    if isinstance(summary, LegacySummary):
        return summary.text
    parts = [summary.what, summary.why_it_matters]
    if summary.key_detail:
        parts.append(summary.key_detail)
    return " ".join(p for p in parts if p)
