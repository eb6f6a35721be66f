"""SQLite storage for articles and ingestion runs.

Database Schema:
    articles table:
        - id (TEXT, PK): '<source-prefix>-<external_id>', e.g. 'hn-42'
        - source, external_id (TEXT): upstream identity, UNIQUE together
        - url, title, author, discussion_url (TEXT)
        - published_at, fetched_at (INTEGER): Unix epoch seconds
        - tags (TEXT): JSON array of labels
        - points, comment_count (INTEGER): engagement, NULL if unknown
        - summary (TEXT): JSON; an object for structured summaries, a JSON
          string for legacy free text, NULL when not yet summarized
        - summary_source (TEXT): provenance of the summary
        - hotness_score (REAL): recomputed on every fetch
        - content_text (TEXT): extracted body text
        - created_at, updated_at (INTEGER): row bookkeeping

    ingest_runs table:
        - id (TEXT, PK): run id
        - started_at, completed_at (REAL): Unix epoch
        - status (TEXT): running | completed | failed
        - fetched/inserted/updated/summarized/error counts
        - error_message (TEXT)

    articles_fts (FTS5 virtual table):
        - BM25 full-text search on title and summary text
        - Kept in sync with articles by triggers

Summary Protection:
    A summary is written at most once. merge_upsert keeps the stored summary
    via COALESCE inside the upsert statement itself, and update_summary only
    touches rows whose summary is still NULL, so overlapping runs cannot
    erase or replace an existing summary.
"""

import json
import logging
import sqlite3
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from config import Config
from models.article import Article
from models.run import IngestRun, IngestStats, RunStatus
from models.summary import LegacySummary, StructuredSummary, SummaryProvenance

logger = logging.getLogger(__name__)

SORT_OPTIONS = ("hot", "new", "comments")
SEARCH_SORT_OPTIONS = ("relevance",) + SORT_OPTIONS
RANGE_OPTIONS = ("24h", "7d", "30d", "all")

_ORDER_BY = {
    "hot": "a.hotness_score DESC, a.published_at DESC",
    "new": "a.published_at DESC",
    "comments": "a.comment_count IS NULL, a.comment_count DESC, a.hotness_score DESC",
}

_RANGE_SECONDS = {
    "24h": 24 * 60 * 60,
    "7d": 7 * 24 * 60 * 60,
    "30d": 30 * 24 * 60 * 60,
    "all": None,
}

# bm25 column weights: article_id (unindexed), title, summary
_BM25_RANK = "bm25(articles_fts, 0.0, 10.0, 1.0)"


@dataclass
class MergeResult:
    """Outcome of a merge_upsert call."""

    inserted: int = 0
    updated: int = 0
    errors: int = 0


def _epoch(dt: datetime) -> int:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(dt.timestamp())


def _from_epoch(value: float | None) -> datetime | None:
    if value is None:
        return None
    return datetime.fromtimestamp(value, timezone.utc)


def encode_summary(summary: StructuredSummary | LegacySummary | None) -> str | None:
    """Serialize a summary variant for the summary column."""
    if summary is None:
        return None
    if isinstance(summary, LegacySummary):
        return json.dumps(summary.text)
    return summary.model_dump_json(by_alias=True)


def decode_summary(raw: str | None) -> StructuredSummary | LegacySummary | None:
    """Map a stored summary back to its variant.

    Anything that is not a JSON object is treated as legacy text, including
    plain strings that were stored without JSON encoding.
    """
    if raw is None:
        return None
    try:
        data = json.loads(raw)
    except ValueError:
        return LegacySummary(text=raw)
    if isinstance(data, dict):
        data.setdefault("kind", "structured")
        return StructuredSummary.model_validate(data)
    if isinstance(data, str):
        return LegacySummary(text=data)
    return LegacySummary(text=raw)


def escape_fts_query(text: str) -> str | None:
    """Turn free text into an FTS5 query of quoted terms (implicit AND).

    Returns None when no searchable term remains.
    """
    escaped_terms = []
    for term in text.split():
        # Remove problematic chars and quote the term
        clean_term = "".join(c for c in term if c.isalnum() or c in "-_")
        if clean_term:
            escaped_terms.append(f'"{clean_term}"')
    return " ".join(escaped_terms) or None


class Database:
    """SQLite gateway for the ingestion pipeline and the HTTP API.

    Example:
        >>> with Database("techpulse.db") as db:
        ...     result = db.merge_upsert(articles)
        ...     top, total = db.query(sort="hot", time_range="24h", limit=10)
    """

    SCHEMA = """
    CREATE TABLE IF NOT EXISTS articles (
        id TEXT PRIMARY KEY,
        source TEXT NOT NULL,
        external_id TEXT NOT NULL,
        url TEXT NOT NULL,
        title TEXT NOT NULL,
        author TEXT,
        published_at INTEGER NOT NULL,
        fetched_at INTEGER NOT NULL,
        tags TEXT NOT NULL DEFAULT '[]',
        points INTEGER,
        comment_count INTEGER,
        discussion_url TEXT,
        summary TEXT,
        summary_source TEXT,
        hotness_score REAL NOT NULL DEFAULT 0,
        content_text TEXT,
        created_at INTEGER NOT NULL,
        updated_at INTEGER NOT NULL,
        UNIQUE (source, external_id)
    );

    CREATE INDEX IF NOT EXISTS idx_articles_hotness ON articles(hotness_score DESC);
    CREATE INDEX IF NOT EXISTS idx_articles_published ON articles(published_at DESC);
    CREATE INDEX IF NOT EXISTS idx_articles_comments ON articles(comment_count DESC);

    CREATE TABLE IF NOT EXISTS ingest_runs (
        id TEXT PRIMARY KEY,
        started_at REAL NOT NULL,
        completed_at REAL,
        status TEXT NOT NULL DEFAULT 'running'
            CHECK (status IN ('running', 'completed', 'failed')),
        fetched_count INTEGER NOT NULL DEFAULT 0,
        inserted_count INTEGER NOT NULL DEFAULT 0,
        updated_count INTEGER NOT NULL DEFAULT 0,
        summarized_count INTEGER NOT NULL DEFAULT 0,
        error_count INTEGER NOT NULL DEFAULT 0,
        error_message TEXT
    );

    CREATE INDEX IF NOT EXISTS idx_runs_started ON ingest_runs(started_at DESC);

    CREATE VIRTUAL TABLE IF NOT EXISTS articles_fts USING fts5(
        article_id UNINDEXED,
        title,
        summary,
        tokenize='porter unicode61'
    );
    """

    # Plain text of the summary column for indexing
    _SUMMARY_TEXT = """
        CASE
            WHEN NEW.summary IS NULL THEN ''
            WHEN json_valid(NEW.summary) AND json_type(NEW.summary) = 'object' THEN
                coalesce(json_extract(NEW.summary, '$.what'), '') || ' ' ||
                coalesce(json_extract(NEW.summary, '$.whyItMatters'), '') || ' ' ||
                coalesce(json_extract(NEW.summary, '$.keyDetail'), '')
            WHEN json_valid(NEW.summary) AND json_type(NEW.summary) = 'text' THEN
                json_extract(NEW.summary, '$')
            ELSE NEW.summary
        END
    """

    FTS_TRIGGERS = f"""
    CREATE TRIGGER IF NOT EXISTS articles_ai AFTER INSERT ON articles BEGIN
        INSERT INTO articles_fts(article_id, title, summary)
        VALUES (NEW.id, NEW.title, {_SUMMARY_TEXT});
    END;

    CREATE TRIGGER IF NOT EXISTS articles_ad AFTER DELETE ON articles BEGIN
        DELETE FROM articles_fts WHERE article_id = OLD.id;
    END;

    CREATE TRIGGER IF NOT EXISTS articles_au AFTER UPDATE OF title, summary ON articles BEGIN
        DELETE FROM articles_fts WHERE article_id = OLD.id;
        INSERT INTO articles_fts(article_id, title, summary)
        VALUES (NEW.id, NEW.title, {_SUMMARY_TEXT});
    END;
    """

    UPSERT = """
    INSERT INTO articles (
        id, source, external_id, url, title, author, published_at, fetched_at,
        tags, points, comment_count, discussion_url, summary, summary_source,
        hotness_score, content_text, created_at, updated_at
    ) VALUES (
        :id, :source, :external_id, :url, :title, :author, :published_at, :fetched_at,
        :tags, :points, :comment_count, :discussion_url, :summary, :summary_source,
        :hotness_score, :content_text, :now, :now
    )
    ON CONFLICT(id) DO UPDATE SET
        url = excluded.url,
        title = excluded.title,
        author = excluded.author,
        published_at = excluded.published_at,
        fetched_at = excluded.fetched_at,
        tags = excluded.tags,
        points = excluded.points,
        comment_count = excluded.comment_count,
        discussion_url = excluded.discussion_url,
        hotness_score = excluded.hotness_score,
        content_text = COALESCE(excluded.content_text, articles.content_text),
        summary = COALESCE(articles.summary, excluded.summary),
        summary_source = CASE
            WHEN articles.summary IS NULL THEN excluded.summary_source
            ELSE articles.summary_source
        END,
        updated_at = excluded.updated_at
    """

    path: Path
    conn: sqlite3.Connection

    def __init__(self, path: Path | str):
        """Open (and create if needed) the database at ``path``."""
        self.path = Path(path)
        self.conn = sqlite3.connect(str(self.path))
        self.conn.row_factory = sqlite3.Row

        # WAL mode allows concurrent readers during writes
        self.conn.execute("PRAGMA journal_mode=WAL")
        self._init_schema()
        logger.debug("Database initialized | path=%s", self.path)

    def _init_schema(self) -> None:
        self.conn.executescript(self.SCHEMA)
        self.conn.executescript(self.FTS_TRIGGERS)
        self.conn.commit()

    # ------------------------------------------------------------------
    # Row mapping
    # ------------------------------------------------------------------

    @staticmethod
    def _article_params(article: Article, now: int) -> dict[str, Any]:
        return {
            "id": article.id,
            "source": article.source,
            "external_id": article.external_id,
            "url": article.url,
            "title": article.title,
            "author": article.author,
            "published_at": _epoch(article.published_at),
            "fetched_at": _epoch(article.fetched_at),
            "tags": json.dumps(article.tags),
            "points": article.points,
            "comment_count": article.comment_count,
            "discussion_url": article.discussion_url,
            "summary": encode_summary(article.summary),
            "summary_source": article.summary_source.value if article.summary_source else None,
            "hotness_score": article.hotness_score,
            "content_text": article.content_text,
            "now": now,
        }

    @staticmethod
    def _row_to_article(row: sqlite3.Row) -> Article:
        summary_source = row["summary_source"]
        return Article(
            id=row["id"],
            source=row["source"],
            external_id=row["external_id"],
            url=row["url"],
            title=row["title"],
            author=row["author"],
            published_at=_from_epoch(row["published_at"]),
            fetched_at=_from_epoch(row["fetched_at"]),
            tags=json.loads(row["tags"] or "[]"),
            points=row["points"],
            comment_count=row["comment_count"],
            discussion_url=row["discussion_url"],
            summary=decode_summary(row["summary"]),
            summary_source=SummaryProvenance(summary_source) if summary_source else None,
            hotness_score=row["hotness_score"],
            content_text=row["content_text"],
        )

    @staticmethod
    def _row_to_run(row: sqlite3.Row) -> IngestRun:
        return IngestRun(
            id=row["id"],
            started_at=_from_epoch(row["started_at"]),
            completed_at=_from_epoch(row["completed_at"]),
            status=RunStatus(row["status"]),
            fetched_count=row["fetched_count"],
            inserted_count=row["inserted_count"],
            updated_count=row["updated_count"],
            summarized_count=row["summarized_count"],
            error_count=row["error_count"],
            error_message=row["error_message"],
        )

    # ------------------------------------------------------------------
    # Articles
    # ------------------------------------------------------------------

    def exists(self, source: str, external_id: str) -> bool:
        """Whether the upstream item is already stored."""
        cursor = self.conn.execute(
            "SELECT 1 FROM articles WHERE source = ? AND external_id = ?",
            (source, str(external_id)),
        )
        return cursor.fetchone() is not None

    def _existing_ids(self, ids: list[str]) -> set[str]:
        if not ids:
            return set()
        placeholders = ",".join("?" * len(ids))
        cursor = self.conn.execute(f"SELECT id FROM articles WHERE id IN ({placeholders})", ids)
        return {row["id"] for row in cursor.fetchall()}

    def merge_upsert(self, articles: list[Article]) -> MergeResult:
        """Insert new articles and refresh existing ones.

        Existing rows get fresh metadata and hotness, but a stored summary
        (and its provenance) is never replaced or cleared. A row that fails
        to write is counted in ``errors`` and the rest still commit.

        Args:
            articles: Freshly fetched articles

        Returns:
            MergeResult with inserted/updated/errors counts
        """
        result = MergeResult()
        if not articles:
            return result

        now = int(time.time())
        self.conn.execute("BEGIN IMMEDIATE")
        try:
            existing = self._existing_ids(list({a.id for a in articles}))
            for article in articles:
                try:
                    self.conn.execute(self.UPSERT, self._article_params(article, now))
                except sqlite3.Error as e:
                    logger.error("Article upsert failed | id=%s error=%s", article.id, e)
                    result.errors += 1
                    continue
                if article.id in existing:
                    result.updated += 1
                else:
                    result.inserted += 1
                    existing.add(article.id)
            self.conn.commit()
        except BaseException:
            self.conn.rollback()
            raise

        logger.debug(
            "Articles merged | inserted=%d updated=%d errors=%d",
            result.inserted, result.updated, result.errors,
        )
        return result

    def _filters(
        self,
        tags: list[str] | None = None,
        since: datetime | None = None,
        until: datetime | None = None,
    ) -> tuple[list[str], list[Any]]:
        clauses: list[str] = []
        params: list[Any] = []
        if since is not None:
            clauses.append("a.published_at >= ?")
            params.append(_epoch(since))
        if until is not None:
            clauses.append("a.published_at <= ?")
            params.append(_epoch(until))
        if tags:
            placeholders = ",".join("?" * len(tags))
            clauses.append(
                f"EXISTS (SELECT 1 FROM json_each(a.tags) WHERE json_each.value IN ({placeholders}))"
            )
            params.extend(tags)
        return clauses, params

    def query(
        self,
        sort: str = "hot",
        time_range: str = "24h",
        tags: list[str] | None = None,
        limit: int = 30,
        offset: int = 0,
        now: datetime | None = None,
    ) -> tuple[list[Article], int]:
        """List articles with filtering, ordering and pagination.

        Args:
            sort: 'hot' (hotness), 'new' (publish time) or 'comments'
                (comment count, unknown counts last)
            time_range: '24h', '7d', '30d' or 'all', by publish time
            tags: Keep articles sharing at least one of these tags
            limit: Page size
            offset: Rows to skip
            now: Reference time for the range cutoff

        Returns:
            (articles on this page, total matching count)

        Raises:
            ValueError: On an unknown sort or range
        """
        if sort not in _ORDER_BY:
            raise ValueError(f"Invalid sort '{sort}' - must be one of {', '.join(SORT_OPTIONS)}")
        if time_range not in _RANGE_SECONDS:
            raise ValueError(f"Invalid range '{time_range}' - must be one of {', '.join(RANGE_OPTIONS)}")

        since = None
        if _RANGE_SECONDS[time_range] is not None:
            reference = _epoch(now or datetime.now(timezone.utc))
            since = _from_epoch(reference - _RANGE_SECONDS[time_range])

        clauses, params = self._filters(tags, since)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""

        total = self.conn.execute(f"SELECT COUNT(*) FROM articles a {where}", params).fetchone()[0]
        cursor = self.conn.execute(
            f"SELECT a.* FROM articles a {where} ORDER BY {_ORDER_BY[sort]} LIMIT ? OFFSET ?",
            params + [limit, offset],
        )
        return [self._row_to_article(row) for row in cursor.fetchall()], total

    def search(
        self,
        text: str,
        tags: list[str] | None = None,
        from_date: datetime | None = None,
        to_date: datetime | None = None,
        sort: str = "relevance",
        limit: int = 30,
        offset: int = 0,
    ) -> tuple[list[Article], int]:
        """Full-text search over titles and summaries.

        Args:
            text: Free-text query; every term must match
            tags: Keep articles sharing at least one of these tags
            from_date: Earliest publish time (inclusive)
            to_date: Latest publish time (inclusive)
            sort: 'relevance' (BM25, title weighted) or a query() sort
            limit: Page size
            offset: Rows to skip

        Returns:
            (articles on this page, total matching count)
        """
        if sort not in SEARCH_SORT_OPTIONS:
            raise ValueError(f"Invalid sort '{sort}' - must be one of {', '.join(SEARCH_SORT_OPTIONS)}")

        fts_query = escape_fts_query(text)
        if fts_query is None:
            return [], 0

        clauses, params = self._filters(tags, from_date, to_date)
        clauses.insert(0, "articles_fts MATCH ?")
        params.insert(0, fts_query)
        where = " AND ".join(clauses)
        order_by = _BM25_RANK if sort == "relevance" else _ORDER_BY[sort]

        base = f"FROM articles_fts JOIN articles a ON a.id = articles_fts.article_id WHERE {where}"
        total = self.conn.execute(f"SELECT COUNT(*) {base}", params).fetchone()[0]
        cursor = self.conn.execute(
            f"SELECT a.* {base} ORDER BY {order_by} LIMIT ? OFFSET ?",
            params + [limit, offset],
        )
        articles = [self._row_to_article(row) for row in cursor.fetchall()]
        logger.debug("Search | query='%s' total=%d", text[:50], total)
        return articles, total

    def find_needing_summary(self, limit: int = 15) -> list[Article]:
        """Unsummarized articles, hottest first."""
        cursor = self.conn.execute(
            "SELECT * FROM articles WHERE summary IS NULL ORDER BY hotness_score DESC LIMIT ?",
            (limit,),
        )
        return [self._row_to_article(row) for row in cursor.fetchall()]

    def update_summary(
        self,
        article_id: str,
        summary: StructuredSummary | LegacySummary,
        provenance: SummaryProvenance | None,
    ) -> bool:
        """Attach a summary to an article that does not have one yet.

        Returns:
            True if the row was updated, False if it is missing or already
            summarized

        Raises:
            sqlite3.Error: If the write fails
        """
        cursor = self.conn.execute(
            """
            UPDATE articles
            SET summary = ?, summary_source = ?, updated_at = ?
            WHERE id = ? AND summary IS NULL
            """,
            (
                encode_summary(summary),
                provenance.value if provenance else None,
                int(time.time()),
                article_id,
            ),
        )
        self.conn.commit()
        return cursor.rowcount > 0

    def get_article(self, article_id: str) -> Article | None:
        cursor = self.conn.execute("SELECT * FROM articles WHERE id = ?", (article_id,))
        row = cursor.fetchone()
        return self._row_to_article(row) if row else None

    def related(self, article_id: str, tags: list[str], limit: int = 5) -> list[Article]:
        """Other articles sharing a tag, newest first."""
        if not tags:
            return []
        clauses, params = self._filters(tags)
        clauses.append("a.id != ?")
        params.append(article_id)
        cursor = self.conn.execute(
            f"SELECT a.* FROM articles a WHERE {' AND '.join(clauses)} "
            f"ORDER BY a.published_at DESC LIMIT ?",
            params + [limit],
        )
        return [self._row_to_article(row) for row in cursor.fetchall()]

    # ------------------------------------------------------------------
    # Ingestion runs
    # ------------------------------------------------------------------

    def create_run(self, run_id: str | None = None) -> IngestRun:
        """Record the start of an ingestion run."""
        run_id = run_id or uuid.uuid4().hex
        started_at = time.time()
        self.conn.execute(
            "INSERT INTO ingest_runs (id, started_at, status) VALUES (?, ?, ?)",
            (run_id, started_at, RunStatus.RUNNING.value),
        )
        self.conn.commit()
        return IngestRun(id=run_id, started_at=_from_epoch(started_at))

    def finish_run(
        self,
        run_id: str,
        status: RunStatus,
        stats: IngestStats,
        error_message: str | None = None,
    ) -> bool:
        """Move a running run to its terminal state.

        A run leaves 'running' once; later calls for the same run are ignored.

        Returns:
            True if the run was updated
        """
        if not status.is_terminal:
            raise ValueError(f"Cannot finish run with non-terminal status '{status.value}'")
        cursor = self.conn.execute(
            """
            UPDATE ingest_runs
            SET completed_at = ?, status = ?, fetched_count = ?, inserted_count = ?,
                updated_count = ?, summarized_count = ?, error_count = ?, error_message = ?
            WHERE id = ? AND status = 'running'
            """,
            (
                time.time(),
                status.value,
                stats.fetched,
                stats.inserted,
                stats.updated,
                stats.summarized,
                stats.errors,
                error_message,
                run_id,
            ),
        )
        self.conn.commit()
        return cursor.rowcount > 0

    def get_run(self, run_id: str) -> IngestRun | None:
        cursor = self.conn.execute("SELECT * FROM ingest_runs WHERE id = ?", (run_id,))
        row = cursor.fetchone()
        return self._row_to_run(row) if row else None

    def recent_runs(self, limit: int = 5) -> list[IngestRun]:
        cursor = self.conn.execute(
            "SELECT * FROM ingest_runs ORDER BY started_at DESC LIMIT ?",
            (limit,),
        )
        return [self._row_to_run(row) for row in cursor.fetchall()]

    def stats(self) -> dict[str, int]:
        """Article totals for status reporting."""
        row = self.conn.execute(
            """
            SELECT COUNT(*) AS total,
                   SUM(CASE WHEN summary IS NOT NULL THEN 1 ELSE 0 END) AS summarized
            FROM articles
            """
        ).fetchone()
        return {
            "total": row["total"] or 0,
            "summarized": row["summarized"] or 0,
        }

    def close(self) -> None:
        """Close the database connection."""
        self.conn.close()

    def __enter__(self) -> "Database":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


def open_database(config: Config) -> Database | None:
    """Open the configured database, or None when DB_PATH is empty."""
    if not config.database_configured:
        logger.info("Database not configured (DB_PATH empty)")
        return None
    if config.db_path.parent != Path("."):
        config.db_path.parent.mkdir(parents=True, exist_ok=True)
    return Database(config.db_path)
