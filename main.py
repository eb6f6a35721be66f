#!/usr/bin/env python3
"""TechPulse: Hacker News ingestion, ranking and AI summaries.

This CLI runs the ingestion pipeline, serves the HTTP API, and inspects
the article store.

Commands:
    run         Execute the ingestion pipeline (once or continuously)
    serve       Start the HTTP API server
    status      Show configuration, database statistics and recent runs
    recent      Display top stored articles
    search      Full-text search over stored articles

Examples:
    python main.py run                    # Single run
    python main.py run -c                 # Continuous polling
    python main.py serve                  # HTTP API on HOST:PORT
    python main.py recent --sort new --range 7d
    python main.py search "rust compiler"

Environment:
    OPENAI_API_KEY: Enables AI summaries (optional)
    See config.py for all configuration options
"""

import argparse
import asyncio
import json
import logging
import sys

from config import Config
from database import Database, RANGE_OPTIONS, SEARCH_SORT_OPTIONS, SORT_OPTIONS, open_database
from hotness import hotness_level
from models.article import Article
from models.summary import format_summary
from observability.logging import setup_logging
from observability.tracing import setup_tracing

logger = logging.getLogger(__name__)


def _require_database(config: Config) -> Database | None:
    db = open_database(config)
    if db is None:
        print("Database not configured: set DB_PATH", file=sys.stderr)
    return db


def _print_article(article: Article) -> None:
    level = hotness_level(article.hotness_score)
    print(f"[{level}] {article.title}")
    print(f"   {article.url}")
    print(
        f"   {article.points or 0} points | {article.comment_count or 0} comments | "
        f"hotness {article.hotness_score:.3f} | {', '.join(article.tags)}"
    )
    if article.summary is not None:
        summary = format_summary(article.summary)
        if len(summary) > 200:
            summary = summary[:200] + "..."
        print(f"   Summary: {summary}")
    print()


def cmd_run(args: argparse.Namespace, config: Config) -> int:
    """Execute the ingestion pipeline.

    Args:
        args: Parsed command line arguments
        config: Application configuration

    Returns:
        Exit code (0 for success)
    """
    from pipeline import IngestPipeline

    if args.interval:
        config.poll_interval_seconds = args.interval

    db = _require_database(config)
    if db is None:
        return 1

    with db:
        pipeline = IngestPipeline(config, db)
        try:
            if args.continuous:
                logger.info("Starting continuous mode...")
                try:
                    asyncio.run(pipeline.run_continuous())
                except KeyboardInterrupt:
                    logger.info("Stopped by user (Ctrl+C)")
                return 0

            try:
                result = asyncio.run(
                    asyncio.wait_for(pipeline.run_once(), timeout=config.run_timeout_seconds)
                )
            except asyncio.TimeoutError:
                logger.error("Ingest timed out | limit=%ss", config.run_timeout_seconds)
                return 1
            print(json.dumps(result.model_dump(), indent=2))
            return 0 if result.success else 1
        except KeyboardInterrupt:
            logger.info("Stopped by user (Ctrl+C)")
            return 130  # Standard exit code for SIGINT


def cmd_serve(args: argparse.Namespace, config: Config) -> int:
    """Start the HTTP API server."""
    from server import serve

    if args.host:
        config.host = args.host
    if args.port:
        config.port = args.port
    serve(config)
    return 0


def cmd_status(args: argparse.Namespace, config: Config) -> int:
    """Display configuration, database statistics and recent runs.

    Args:
        args: Parsed command line arguments
        config: Application configuration

    Returns:
        Exit code (0 for success)
    """
    status = {
        "config": {
            "summarizer_configured": config.summarizer_configured,
            "summary_model": config.summary_model,
            "database_configured": config.database_configured,
            "ingest_secret_configured": config.ingest_secret_configured,
            "top_stories_count": config.top_stories_count,
            "summary_batch_limit": config.summary_batch_limit,
            "poll_interval": config.poll_interval_seconds,
            "enable_logfire": config.enable_logfire,
        },
    }

    db = open_database(config)
    if db is not None:
        with db:
            db_stats = db.stats()
            runs = db.recent_runs()
        status["database"] = {
            "path": str(config.db_path),
            "total_articles": db_stats["total"],
            "articles_with_summaries": db_stats["summarized"],
        }
        status["recent_runs"] = [run.model_dump(mode="json") for run in runs]

    print(json.dumps(status, indent=2))
    return 0


def cmd_recent(args: argparse.Namespace, config: Config) -> int:
    """Display top stored articles.

    Args:
        args: Parsed command line arguments
        config: Application configuration

    Returns:
        Exit code (0 for success)
    """
    db = _require_database(config)
    if db is None:
        return 1

    with db:
        articles, total = db.query(sort=args.sort, time_range=args.range, limit=args.limit)

    if not articles:
        print(f"No articles in range '{args.range}'.")
        return 0

    print(f"\n=== Top {len(articles)} of {total} articles (sort={args.sort}, range={args.range}) ===\n")
    for article in articles:
        _print_article(article)
    return 0


def cmd_search(args: argparse.Namespace, config: Config) -> int:
    """Full-text search over stored articles."""
    db = _require_database(config)
    if db is None:
        return 1

    with db:
        articles, total = db.search(args.query, sort=args.sort, limit=args.limit)

    if not articles:
        print(f"No articles match '{args.query}'.")
        return 0

    print(f"\n=== {total} results for '{args.query}' ===\n")
    for article in articles:
        _print_article(article)
    return 0


def main() -> int:
    """Main entry point.

    Returns:
        Exit code
    """
    parser = argparse.ArgumentParser(
        description="TechPulse: Hacker News ingestion and summaries",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # run command
    run_parser = subparsers.add_parser("run", help="Run the ingestion pipeline")
    run_parser.add_argument(
        "-c", "--continuous",
        action="store_true",
        help="Run continuously with polling",
    )
    run_parser.add_argument(
        "--interval",
        type=int,
        help="Poll interval in seconds (continuous mode)",
    )

    # serve command
    serve_parser = subparsers.add_parser("serve", help="Start the HTTP API server")
    serve_parser.add_argument("--host", help="Bind address (default: config HOST)")
    serve_parser.add_argument("--port", type=int, help="Bind port (default: config PORT)")

    # status command
    subparsers.add_parser("status", help="Show configuration and statistics")

    # recent command
    recent_parser = subparsers.add_parser("recent", help="Show top stored articles")
    recent_parser.add_argument(
        "--sort",
        choices=SORT_OPTIONS,
        default="hot",
        help="Ordering (default: hot)",
    )
    recent_parser.add_argument(
        "--range",
        choices=RANGE_OPTIONS,
        default="24h",
        help="Publish-time window (default: 24h)",
    )
    recent_parser.add_argument(
        "--limit",
        type=int,
        default=20,
        help="Number of articles (default: 20)",
    )

    # search command
    search_parser = subparsers.add_parser("search", help="Search stored articles")
    search_parser.add_argument("query", help="Search terms")
    search_parser.add_argument(
        "--sort",
        choices=SEARCH_SORT_OPTIONS,
        default="relevance",
        help="Ordering (default: relevance)",
    )
    search_parser.add_argument(
        "--limit",
        type=int,
        default=20,
        help="Number of results (default: 20)",
    )

    args = parser.parse_args()

    # Load configuration
    try:
        config = Config.load()
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    # Setup logging
    setup_logging(config, verbose=args.verbose)

    # Validate configuration for commands that need it
    if args.command in ("run", "serve"):
        error = config.validate()
        if error:
            print(f"Configuration error: {error}", file=sys.stderr)
            return 1
        setup_tracing(enabled=config.enable_logfire, token=config.logfire_token)

    # Route to command handler
    commands = {
        "run": cmd_run,
        "serve": cmd_serve,
        "status": cmd_status,
        "recent": cmd_recent,
        "search": cmd_search,
    }

    if args.command in commands:
        try:
            return commands[args.command](args, config)
        except KeyboardInterrupt:
            return 130
        except Exception as e:
            logger.error("Command failed | cmd=%s error=%s", args.command, e, exc_info=True)
            print(f"Error: {e}", file=sys.stderr)
            return 1
    else:
        parser.print_help()
        return 0


if __name__ == "__main__":
    sys.exit(main())
