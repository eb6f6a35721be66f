import pytest
from pydantic import ValidationError

from conftest import make_article
from models.article import article_id
from models.run import IngestResult, IngestStats, RunStatus
from models.summary import (
    LegacySummary,
    StructuredSummary,
    SummaryPayload,
    format_summary,
)


def test_article_id_is_derived_from_identity():
    assert article_id("hackernews", 42) == "hn-42"
    assert article_id("hackernews", "42") == "hn-42"
    assert article_id("ars", "abc") == "ars-abc"


def test_article_tags_are_deduplicated():
    assert make_article(1, tags=["AI", "Web", "AI"]).tags == ["AI", "Web"]


def test_article_serializes_camel_case():
    data = make_article(1).model_dump(by_alias=True)
    assert "externalId" in data
    assert "hotnessScore" in data
    assert "summarySource" in data


def test_payload_accepts_wire_names():
    payload = SummaryPayload.model_validate({"what": "W", "whyItMatters": "Y", "keyDetail": "K"})
    summary = StructuredSummary.from_payload(payload)
    assert (summary.what, summary.why_it_matters, summary.key_detail) == ("W", "Y", "K")


@pytest.mark.parametrize("data", [
    {"what": "W"},
    {"whyItMatters": "Y"},
    {"what": "", "whyItMatters": "Y"},
])
def test_payload_requires_both_sentences(data):
    with pytest.raises(ValidationError):
        SummaryPayload.model_validate(data)


def test_blank_key_detail_becomes_none():
    payload = SummaryPayload(what=" W ", why_it_matters="Y", key_detail="  ")
    summary = StructuredSummary.from_payload(payload)
    assert summary.what == "W"
    assert summary.key_detail is None


def test_structured_summary_is_frozen():
    summary = StructuredSummary(what="W", why_it_matters="Y")
    with pytest.raises(ValidationError):
        summary.what = "changed"


def test_summary_variants_round_trip_through_article():
    structured = make_article(1, summary={"kind": "structured", "what": "W", "whyItMatters": "Y"})
    legacy = make_article(2, summary={"kind": "legacy", "text": "old"})
    assert isinstance(structured.summary, StructuredSummary)
    assert isinstance(legacy.summary, LegacySummary)
    assert structured.has_summary


def test_format_summary():
    assert format_summary(StructuredSummary(what="W.", why_it_matters="Y.", key_detail="K.")) == "W. Y. K."
    assert format_summary(StructuredSummary(what="W.", why_it_matters="Y.")) == "W. Y."
    assert format_summary(LegacySummary(text="Plain text")) == "Plain text"


def test_run_status_terminal_states():
    assert not RunStatus.RUNNING.is_terminal
    assert RunStatus.COMPLETED.is_terminal
    assert RunStatus.FAILED.is_terminal


def test_ingest_result_messages():
    ok = IngestResult(run_id="r", success=True, stats=IngestStats(fetched=3, inserted=1, summarized=2).to_dict())
    assert ok.message == "Ingested 3 articles (1 new), 2 summaries generated"
    failed = IngestResult(run_id="r", success=False, error="boom")
    assert failed.message == "Ingestion failed: boom"


def test_stats_duration_is_rounded():
    assert IngestStats(duration=1.23456).to_dict()["duration"] == 1.23
