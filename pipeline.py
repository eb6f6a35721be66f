"""Ingestion pipeline orchestration.

Pipeline Flow:
    1. RUN: Record an IngestRun in 'running' state
    2. FETCH: Current Hacker News top stories, tagged and scored
    3. MERGE: Upsert into storage, keeping any existing summaries
    4. SELECT: Up to SUMMARY_BATCH_LIMIT unsummarized articles, hottest first
    5. SUMMARIZE: Structured summaries with page content as context
    6. SAVE: Persist each summary on its own
    7. FINISH: Mark the run 'completed' (or 'failed') with final counts

Error Handling:
    Only FeedError (story list unavailable) and unexpected errors end a run
    early. Both are caught here, recorded on the run as 'failed' with the
    counts gathered so far, and returned as a failed IngestResult. Steps 5
    and 6 are skipped when no AI backend is configured.
"""

import asyncio
import logging
import time
import uuid
from typing import Protocol

import aiohttp

from agents.summarizer import Summarizer
from config import Config
from database import Database, open_database
from feeds import HackerNewsSource
from models.article import Article
from models.run import IngestResult, IngestStats, RunStatus
from observability.logging import clear_context, set_run_context
from observability.tracing import trace_operation
from tools.utils import create_session

logger = logging.getLogger(__name__)


class ArticleSource(Protocol):
    """Anything that can produce the latest scored articles."""

    async def fetch_latest(self) -> list[Article]: ...


class IngestPipeline:
    """Runs fetch -> merge -> summarize with run bookkeeping.

    Components may be injected; anything omitted is built from the config
    around a single HTTP session opened for the duration of each run.

    Example:
        >>> with Database("techpulse.db") as db:
        ...     result = await IngestPipeline(config, db).run_once()
        ...     print(result.message)
    """

    def __init__(
        self,
        config: Config,
        db: Database,
        source: ArticleSource | None = None,
        summarizer: Summarizer | None = None,
        session: aiohttp.ClientSession | None = None,
    ):
        self.config = config
        self.db = db
        self.source = source
        self.summarizer = summarizer
        self.session = session

    async def run_once(self) -> IngestResult:
        """Execute one ingestion run.

        Returns:
            IngestResult; never raises except on cancellation
        """
        if self.session is not None:
            return await self._run(self.session)
        async with create_session(self.config.fetch_batch_size) as session:
            return await self._run(session)

    async def _run(self, session: aiohttp.ClientSession) -> IngestResult:
        source = self.source or HackerNewsSource.from_config(self.config, session)
        summarizer = self.summarizer or Summarizer(self.config, session=session)

        run = self.db.create_run(uuid.uuid4().hex)
        set_run_context(run.id)
        start = time.time()
        stats = IngestStats()

        logger.info(
            "Ingest started | summarizer=%s",
            "configured" if summarizer.configured else "not configured",
        )

        try:
            with trace_operation("ingest.fetch") as span:
                articles = await source.fetch_latest()
                stats.fetched = len(articles)
                span["fetched"] = stats.fetched

            with trace_operation("ingest.merge", {"articles": len(articles)}):
                merged = self.db.merge_upsert(articles)
                stats.inserted = merged.inserted
                stats.updated = merged.updated
                stats.errors += merged.errors

            logger.info(
                "Articles stored | fetched=%d inserted=%d updated=%d errors=%d",
                stats.fetched, stats.inserted, stats.updated, merged.errors,
            )

            if summarizer.configured:
                with trace_operation("ingest.summarize") as span:
                    await self._summarize(summarizer, stats)
                    span["summarized"] = stats.summarized
            else:
                logger.info("Summaries skipped | reason=not configured")

            stats.duration = time.time() - start
            self.db.finish_run(run.id, RunStatus.COMPLETED, stats)

        except asyncio.CancelledError:
            stats.duration = time.time() - start
            logger.warning("Ingest cancelled | fetched=%d", stats.fetched)
            self.db.finish_run(run.id, RunStatus.FAILED, stats, error_message="cancelled")
            clear_context()
            raise
        except Exception as e:
            stats.errors += 1
            stats.duration = time.time() - start
            error = f"{type(e).__name__}: {e}"
            logger.error("Ingest failed | error=%s", error, exc_info=True)
            self.db.finish_run(run.id, RunStatus.FAILED, stats, error_message=str(e))
            clear_context()
            return IngestResult(run_id=run.id, success=False, stats=stats.to_dict(), error=str(e))

        logger.info(
            "Ingest done | duration=%.1fs fetched=%d inserted=%d updated=%d summarized=%d errors=%d",
            stats.duration, stats.fetched, stats.inserted, stats.updated,
            stats.summarized, stats.errors,
        )
        clear_context()
        return IngestResult(run_id=run.id, success=True, stats=stats.to_dict())

    async def _summarize(self, summarizer: Summarizer, stats: IngestStats) -> None:
        pending = self.db.find_needing_summary(self.config.summary_batch_limit)
        if not pending:
            logger.info("Summaries skipped | reason=nothing pending")
            return

        logger.info("Summarizing | pending=%d", len(pending))
        summarized = await summarizer.summarize_batch(
            pending,
            fetch_content=True,
            fetch_comments=False,
            concurrency=self.config.summary_concurrency,
        )

        for article in summarized:
            if article.summary is None:
                continue
            try:
                if self.db.update_summary(article.id, article.summary, article.summary_source):
                    stats.summarized += 1
            except Exception as e:
                stats.errors += 1
                logger.error("Summary save failed | id=%s error=%s", article.id, e)

    async def run_continuous(self) -> None:
        """Run ingestion every POLL_INTERVAL_SECONDS until cancelled."""
        run_count = 0
        total_inserted = 0
        total_failed = 0

        logger.info("Starting continuous mode | interval=%ds", self.config.poll_interval_seconds)

        try:
            while True:
                run_count += 1
                result = await self.run_once()
                total_inserted += result.stats.get("inserted", 0)
                if not result.success:
                    total_failed += 1

                logger.info(
                    "Run complete | run=%d success=%s total_inserted=%d failed_runs=%d",
                    run_count, result.success, total_inserted, total_failed,
                )
                await asyncio.sleep(self.config.poll_interval_seconds)

        except asyncio.CancelledError:
            logger.info(
                "Pipeline stopped | runs=%d total_inserted=%d failed_runs=%d",
                run_count, total_inserted, total_failed,
            )
            raise


async def run_once(config: Config) -> IngestResult | None:
    """One ingestion run against the configured database.

    Returns:
        IngestResult, or None when the database is not configured
    """
    db = open_database(config)
    if db is None:
        return None
    with db:
        return await IngestPipeline(config, db).run_once()
