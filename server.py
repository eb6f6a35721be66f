"""HTTP API for triggering ingestion and reading articles.

Routes:
    POST /api/ingest          Run one ingestion (optional bearer secret)
    GET  /api/ingest          Health: configuration flags, recent runs, totals
    GET  /api/news            Ranked listing (sort, range, tags, pagination)
    GET  /api/search          Full-text search, or listing when q is empty
    GET  /api/articles/{id}   One article plus related articles

All responses are JSON. Article payloads use camelCase keys.
"""

import asyncio
import json
import logging
import math
from datetime import datetime, timezone
from typing import Any, Callable

from aiohttp import web

from config import Config
from database import Database, RANGE_OPTIONS, SEARCH_SORT_OPTIONS, SORT_OPTIONS, open_database
from models.article import Article
from pipeline import IngestPipeline

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 30
MAX_PAGE_SIZE = 100
RELATED_LIMIT = 5
RECENT_RUNS_LIMIT = 5

CONFIG_KEY = web.AppKey("config", Config)
DB_KEY = web.AppKey("db", Database)
PIPELINE_FACTORY_KEY = web.AppKey("pipeline_factory", Callable)


def _article_json(article: Article) -> dict[str, Any]:
    return article.model_dump(mode="json", by_alias=True, exclude={"content_text"})


def _error(status: int, error: str, **extra: Any) -> web.Response:
    return web.json_response({"error": error, **extra}, status=status)


def _int_param(request: web.Request, name: str, default: int, minimum: int, maximum: int | None = None) -> int:
    """Integer query parameter, falling back to ``default`` and clamped to range."""
    try:
        value = int(request.query.get(name, default))
    except ValueError:
        value = default
    value = max(value, minimum)
    if maximum is not None:
        value = min(value, maximum)
    return value


def _choice_param(request: web.Request, name: str, choices: tuple[str, ...], default: str) -> str:
    value = request.query.get(name, default)
    return value if value in choices else default


def _tags_param(request: web.Request) -> list[str] | None:
    raw = request.query.get("tags", "")
    tags = [t.strip() for t in raw.split(",") if t.strip()]
    return tags or None


def _date_param(request: web.Request, name: str) -> datetime | None:
    """ISO-8601 date or datetime query parameter (naive values are UTC).

    Raises:
        web.HTTPBadRequest: On an unparsable value
    """
    raw = request.query.get(name)
    if not raw:
        return None
    try:
        value = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        raise web.HTTPBadRequest(
            text=json.dumps({"error": f"Invalid {name} date", "value": raw}),
            content_type="application/json",
        )
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def _page_payload(articles: list[Article], total: int, page: int, limit: int) -> dict[str, Any]:
    return {
        "articles": [_article_json(a) for a in articles],
        "totalCount": total,
        "page": page,
        "totalPages": math.ceil(total / limit),
    }


@web.middleware
async def error_middleware(request: web.Request, handler) -> web.StreamResponse:
    """Turn unexpected handler errors into a JSON 500."""
    try:
        return await handler(request)
    except web.HTTPException:
        raise
    except Exception as e:
        logger.error("Request failed | path=%s error=%s", request.path, e, exc_info=True)
        return _error(500, "Request failed", details=str(e))


def _database(request: web.Request) -> Database | None:
    return request.app.get(DB_KEY)


def _not_configured() -> web.Response:
    return _error(503, "Database not configured", message="Set DB_PATH to enable storage.")


async def ingest(request: web.Request) -> web.Response:
    """POST /api/ingest: run one ingestion under the run ceiling.

    The bearer secret is only compared when the request carries an
    Authorization header and CRON_SECRET is set; otherwise the run proceeds.
    """
    config = request.app[CONFIG_KEY]
    auth = request.headers.get("Authorization")
    if auth and config.ingest_secret_configured and auth != f"Bearer {config.ingest_secret}":
        logger.warning("Ingest rejected | reason=bad secret remote=%s", request.remote)
        return _error(401, "Unauthorized")

    db = _database(request)
    if db is None:
        return _not_configured()

    pipeline = request.app[PIPELINE_FACTORY_KEY](config, db)
    try:
        result = await asyncio.wait_for(pipeline.run_once(), timeout=config.run_timeout_seconds)
    except asyncio.TimeoutError:
        logger.error("Ingest timed out | limit=%ds", config.run_timeout_seconds)
        return _error(
            504,
            "Ingestion timed out",
            details=f"Run exceeded {config.run_timeout_seconds}s",
        )

    if not result.success:
        return _error(500, "Ingestion failed", details=result.error, stats=result.stats)

    return web.json_response({
        "success": True,
        "runId": result.run_id,
        "stats": result.stats,
        "message": result.message,
    })


async def ingest_status(request: web.Request) -> web.Response:
    """GET /api/ingest: configuration and recent run history."""
    config = request.app[CONFIG_KEY]
    db = _database(request)

    runs: list[dict[str, Any]] = []
    totals = {"total": 0, "summarized": 0}
    if db is not None:
        runs = [
            run.model_dump(mode="json", by_alias=True)
            for run in db.recent_runs(RECENT_RUNS_LIMIT)
        ]
        totals = db.stats()

    return web.json_response({
        "status": "ok",
        "configured": {
            "database": db is not None,
            "summarizer": config.summarizer_configured,
            "ingestSecret": config.ingest_secret_configured,
        },
        "recentRuns": runs,
        "totalArticles": totals["total"],
        "articlesWithSummaries": totals["summarized"],
    })


async def news(request: web.Request) -> web.Response:
    """GET /api/news: ranked article listing."""
    db = _database(request)
    if db is None:
        return _not_configured()

    sort = _choice_param(request, "sort", SORT_OPTIONS, "hot")
    time_range = _choice_param(request, "range", RANGE_OPTIONS, "24h")
    page = _int_param(request, "page", 1, minimum=1)
    limit = _int_param(request, "limit", DEFAULT_PAGE_SIZE, minimum=1, maximum=MAX_PAGE_SIZE)

    articles, total = db.query(
        sort=sort,
        time_range=time_range,
        tags=_tags_param(request),
        limit=limit,
        offset=(page - 1) * limit,
    )
    logger.debug("News listed | sort=%s range=%s page=%d total=%d", sort, time_range, page, total)

    payload = _page_payload(articles, total, page, limit)
    payload["fetchedAt"] = datetime.now(timezone.utc).isoformat()
    payload["cached"] = False
    return web.json_response(payload)


async def search(request: web.Request) -> web.Response:
    """GET /api/search: full-text search.

    Without ``q`` this is the news listing (``range`` defaults to 24h and
    ``from``/``to`` are ignored).
    """
    db = _database(request)
    if db is None:
        return _not_configured()

    text = request.query.get("q", "").strip()
    tags = _tags_param(request)
    sort = _choice_param(request, "sort", SEARCH_SORT_OPTIONS, "relevance")
    page = _int_param(request, "page", 1, minimum=1)
    limit = _int_param(request, "limit", DEFAULT_PAGE_SIZE, minimum=1, maximum=MAX_PAGE_SIZE)
    offset = (page - 1) * limit

    if not text:
        articles, total = db.query(
            sort="hot" if sort == "relevance" else sort,
            time_range=_choice_param(request, "range", RANGE_OPTIONS, "24h"),
            tags=tags,
            limit=limit,
            offset=offset,
        )
        return web.json_response(_page_payload(articles, total, page, limit))

    articles, total = db.search(
        text,
        tags=tags,
        from_date=_date_param(request, "from"),
        to_date=_date_param(request, "to"),
        sort=sort,
        limit=limit,
        offset=offset,
    )
    payload = _page_payload(articles, total, page, limit)
    payload["query"] = text
    return web.json_response(payload)


async def article_detail(request: web.Request) -> web.Response:
    """GET /api/articles/{id}: one article and up to five related ones."""
    db = _database(request)
    if db is None:
        return _not_configured()

    article_id = request.match_info["id"]
    article = db.get_article(article_id)
    if article is None:
        return _error(404, "Article not found", id=article_id)

    related = db.related(article.id, article.tags, RELATED_LIMIT)
    return web.json_response({
        "article": _article_json(article),
        "related": [_article_json(a) for a in related],
    })


def create_app(
    config: Config,
    db: Database | None = None,
    pipeline_factory: Callable[[Config, Database], Any] = IngestPipeline,
) -> web.Application:
    """Build the aiohttp application.

    Args:
        config: Application configuration
        db: Open database, or None when storage is not configured
        pipeline_factory: Builds the pipeline for each ingest request
    """
    app = web.Application(middlewares=[error_middleware])
    app[CONFIG_KEY] = config
    app[DB_KEY] = db
    app[PIPELINE_FACTORY_KEY] = pipeline_factory

    app.router.add_post("/api/ingest", ingest)
    app.router.add_get("/api/ingest", ingest_status)
    app.router.add_get("/api/news", news)
    app.router.add_get("/api/search", search)
    app.router.add_get("/api/articles/{id}", article_detail)
    return app


def serve(config: Config) -> None:
    """Run the HTTP server until interrupted."""
    db = open_database(config)
    app = create_app(config, db)

    async def close_db(app: web.Application) -> None:
        if app[DB_KEY] is not None:
            app[DB_KEY].close()

    app.on_cleanup.append(close_db)
    logger.info("Server starting | host=%s port=%d database=%s", config.host, config.port, db is not None)
    web.run_app(app, host=config.host, port=config.port, print=None)
