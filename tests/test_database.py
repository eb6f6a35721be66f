from datetime import timedelta

import pytest

from conftest import NOW, make_article
from database import Database, decode_summary, encode_summary, escape_fts_query, open_database
from models.run import IngestStats, RunStatus
from models.summary import LegacySummary, StructuredSummary, SummaryProvenance

SUMMARY = StructuredSummary(what="What happened", why_it_matters="Why it matters", key_detail="42")


def test_merge_counts_inserted_and_updated(db):
    first = db.merge_upsert([make_article(1), make_article(2)])
    assert (first.inserted, first.updated, first.errors) == (2, 0, 0)

    second = db.merge_upsert([make_article(2, hotness_score=3.0), make_article(3)])
    assert (second.inserted, second.updated, second.errors) == (1, 1, 0)
    assert db.get_article("hn-2").hotness_score == 3.0


def test_merge_empty_batch(db):
    result = db.merge_upsert([])
    assert (result.inserted, result.updated, result.errors) == (0, 0, 0)


def test_exists(db):
    db.merge_upsert([make_article(5)])
    assert db.exists("hackernews", "5")
    assert not db.exists("hackernews", "6")


def test_round_trip_article(db):
    article = make_article(1, tags=["AI", "OpenAI"], author=None, comment_count=None)
    db.merge_upsert([article])
    stored = db.get_article("hn-1")
    assert stored == article


def test_existing_summary_survives_refetch(db):
    db.merge_upsert([make_article(1)])
    assert db.update_summary("hn-1", SUMMARY, SummaryProvenance.WITH_CONTENT)

    db.merge_upsert([make_article(1, points=999)])

    stored = db.get_article("hn-1")
    assert stored.points == 999
    assert stored.summary == SUMMARY
    assert stored.summary_source is SummaryProvenance.WITH_CONTENT


def test_incoming_summary_never_replaces_stored_one(db):
    db.merge_upsert([make_article(1, summary=SUMMARY, summary_source=SummaryProvenance.TITLE_ONLY)])
    other = StructuredSummary(what="Other", why_it_matters="Other")
    db.merge_upsert([make_article(1, summary=other, summary_source=SummaryProvenance.WITH_COMMENTS)])

    stored = db.get_article("hn-1")
    assert stored.summary == SUMMARY
    assert stored.summary_source is SummaryProvenance.TITLE_ONLY


def test_update_summary_writes_once(db):
    db.merge_upsert([make_article(1)])
    assert db.update_summary("hn-1", SUMMARY, SummaryProvenance.TITLE_ONLY)
    other = StructuredSummary(what="Other", why_it_matters="Other")
    assert not db.update_summary("hn-1", other, SummaryProvenance.WITH_CONTENT)
    assert db.get_article("hn-1").summary == SUMMARY
    assert not db.update_summary("hn-404", SUMMARY, SummaryProvenance.TITLE_ONLY)


def test_find_needing_summary_hottest_first(db):
    db.merge_upsert([
        make_article(1, hotness_score=1.0),
        make_article(2, hotness_score=5.0),
        make_article(3, hotness_score=3.0),
    ])
    db.update_summary("hn-3", SUMMARY, SummaryProvenance.TITLE_ONLY)
    assert [a.id for a in db.find_needing_summary(10)] == ["hn-2", "hn-1"]
    assert [a.id for a in db.find_needing_summary(1)] == ["hn-2"]


def test_query_sorting(db):
    db.merge_upsert([
        make_article(1, hotness_score=1.0, published_at=NOW - timedelta(hours=1), comment_count=None),
        make_article(2, hotness_score=3.0, published_at=NOW - timedelta(hours=5), comment_count=10),
        make_article(3, hotness_score=2.0, published_at=NOW - timedelta(hours=3), comment_count=50),
    ])
    hot, total = db.query(sort="hot", time_range="all")
    assert total == 3
    assert [a.id for a in hot] == ["hn-2", "hn-3", "hn-1"]

    new, _ = db.query(sort="new", time_range="all")
    assert [a.id for a in new] == ["hn-1", "hn-3", "hn-2"]

    discussed, _ = db.query(sort="comments", time_range="all")
    assert [a.id for a in discussed] == ["hn-3", "hn-2", "hn-1"]


def test_query_time_range_and_pagination(db):
    db.merge_upsert([
        make_article(i, published_at=NOW - timedelta(hours=i * 10), hotness_score=float(10 - i))
        for i in range(1, 6)
    ])
    recent, total = db.query(time_range="24h", now=NOW)
    assert total == 2
    assert [a.id for a in recent] == ["hn-1", "hn-2"]

    week, total = db.query(time_range="7d", limit=2, offset=2, now=NOW)
    assert total == 5
    assert [a.id for a in week] == ["hn-3", "hn-4"]


def test_query_tag_overlap(db):
    db.merge_upsert([
        make_article(1, tags=["AI", "Google"]),
        make_article(2, tags=["Security"]),
        make_article(3, tags=["Web"]),
    ])
    articles, total = db.query(time_range="all", tags=["Google", "Security"])
    assert total == 2
    assert {a.id for a in articles} == {"hn-1", "hn-2"}


def test_query_rejects_unknown_options(db):
    with pytest.raises(ValueError):
        db.query(sort="random")
    with pytest.raises(ValueError):
        db.query(time_range="1y")


def test_search_ranks_title_matches_first(db):
    db.merge_upsert([
        make_article(1, title="Weekly roundup"),
        make_article(2, title="Kubernetes scheduler rewrite"),
    ])
    db.update_summary(
        "hn-1",
        StructuredSummary(what="Mentions kubernetes once", why_it_matters="Context"),
        SummaryProvenance.TITLE_ONLY,
    )
    articles, total = db.search("kubernetes")
    assert total == 2
    assert [a.id for a in articles] == ["hn-2", "hn-1"]


def test_search_filters(db):
    db.merge_upsert([
        make_article(1, title="Rust async runtime", tags=["Programming"], published_at=NOW - timedelta(days=10)),
        make_article(2, title="Rust in the kernel", tags=["Programming"], published_at=NOW),
        make_article(3, title="Rust belt manufacturing", tags=["Business"], published_at=NOW),
    ])
    articles, total = db.search("rust", tags=["Programming"], from_date=NOW - timedelta(days=1))
    assert total == 1
    assert articles[0].id == "hn-2"

    articles, total = db.search("rust", sort="new", to_date=NOW - timedelta(days=1))
    assert [a.id for a in articles] == ["hn-1"]


def test_search_matches_legacy_summary_text(db):
    db.merge_upsert([make_article(1, title="Untitled")])
    db.update_summary("hn-1", LegacySummary(text="A piece about zeppelins"), None)
    articles, _ = db.search("zeppelins")
    assert [a.id for a in articles] == ["hn-1"]
    assert articles[0].summary == LegacySummary(text="A piece about zeppelins")


def test_search_with_only_punctuation_is_empty(db):
    db.merge_upsert([make_article(1)])
    assert db.search("?!* ()") == ([], 0)


def test_related_shares_tags_newest_first(db):
    db.merge_upsert([
        make_article(1, tags=["AI"]),
        make_article(2, tags=["AI", "Web"], published_at=NOW - timedelta(hours=5)),
        make_article(3, tags=["Web"], published_at=NOW - timedelta(hours=2)),
        make_article(4, tags=["Crypto"]),
    ])
    related = db.related("hn-1", ["AI", "Web"])
    assert [a.id for a in related] == ["hn-3", "hn-2"]
    assert db.related("hn-1", []) == []


def test_run_lifecycle(db):
    run = db.create_run("run-1")
    assert run.status is RunStatus.RUNNING

    stats = IngestStats(fetched=30, inserted=5, updated=25, summarized=4, errors=1)
    assert db.finish_run("run-1", RunStatus.COMPLETED, stats)
    # terminal runs are not modified again
    assert not db.finish_run("run-1", RunStatus.FAILED, IngestStats(), error_message="late")

    stored = db.get_run("run-1")
    assert stored.status is RunStatus.COMPLETED
    assert stored.completed_at is not None
    assert (stored.fetched_count, stored.inserted_count, stored.updated_count) == (30, 5, 25)
    assert (stored.summarized_count, stored.error_count) == (4, 1)
    assert stored.error_message is None


def test_finish_run_requires_terminal_status(db):
    db.create_run("run-1")
    with pytest.raises(ValueError):
        db.finish_run("run-1", RunStatus.RUNNING, IngestStats())


def test_recent_runs_newest_first(db):
    for i in range(7):
        db.create_run(f"run-{i}")
    runs = db.recent_runs(5)
    assert len(runs) == 5
    assert runs[0].started_at >= runs[-1].started_at


def test_stats(db):
    db.merge_upsert([make_article(1), make_article(2)])
    db.update_summary("hn-1", SUMMARY, SummaryProvenance.TITLE_ONLY)
    assert db.stats() == {"total": 2, "summarized": 1}


def test_summary_encoding():
    assert decode_summary(encode_summary(SUMMARY)) == SUMMARY
    assert decode_summary(encode_summary(LegacySummary(text="plain"))) == LegacySummary(text="plain")
    assert decode_summary("not json at all") == LegacySummary(text="not json at all")
    assert decode_summary(None) is None


def test_escape_fts_query():
    assert escape_fts_query('rust "async" OR c++') == '"rust" "async" "OR" "c"'
    assert escape_fts_query("   ") is None


def test_open_database_respects_configuration(config):
    db = open_database(config)
    assert isinstance(db, Database)
    db.close()

    config.db_path = None
    assert open_database(config) is None
