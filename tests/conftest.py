"""Shared fixtures: in-process fakes for aiohttp sessions and sample data."""

import json
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from typing import Any

import pytest

from config import Config
from database import Database
from models.article import Article, HACKER_NEWS, article_id

API_BASE = "https://hn.test/v0"
NOW = datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)


class FakeResponse:
    """Minimal stand-in for aiohttp.ClientResponse used as an async context manager."""

    def __init__(self, status: int = 200, payload: Any = None, body: str = "", url: str = ""):
        self.status = status
        self._payload = payload
        self._body = body
        self.request_info = SimpleNamespace(real_url=url)
        self.history = ()

    async def json(self, content_type: str | None = None) -> Any:
        return self._payload

    async def text(self, errors: str = "strict") -> str:
        return self._body if self._body else json.dumps(self._payload)

    async def __aenter__(self) -> "FakeResponse":
        return self

    async def __aexit__(self, *exc) -> bool:
        return False


class FakeSession:
    """Routes GET requests to canned responses.

    A route value may be a FakeResponse, an exception instance (raised on
    request), or a callable returning either. Unknown URLs answer 404.
    """

    def __init__(self, routes: dict[str, Any] | None = None):
        self.routes = dict(routes or {})
        self.calls: list[str] = []

    def get(self, url: str, **kwargs) -> FakeResponse:
        self.calls.append(url)
        route = self.routes.get(url)
        if callable(route) and not isinstance(route, FakeResponse):
            route = route()
        if route is None:
            return FakeResponse(status=404, url=url)
        if isinstance(route, BaseException):
            raise route
        return route


def hn_item(item_id: int, **fields) -> dict[str, Any]:
    item = {
        "id": item_id,
        "title": f"Story number {item_id}",
        "url": f"https://example.com/{item_id}",
        "by": "alice",
        "time": int(NOW.timestamp()),
        "score": 10,
        "descendants": 5,
        "type": "story",
    }
    item.update(fields)
    return item


def hn_routes(items: list[dict[str, Any]], api_base: str = API_BASE) -> dict[str, Any]:
    """Routes serving ``items`` as the top-stories feed."""
    routes: dict[str, Any] = {
        f"{api_base}/topstories.json": FakeResponse(payload=[i["id"] for i in items]),
    }
    for item in items:
        routes[f"{api_base}/item/{item['id']}.json"] = FakeResponse(payload=item)
    return routes


def make_article(external_id: int | str, **fields) -> Article:
    data: dict[str, Any] = {
        "id": article_id(HACKER_NEWS, external_id),
        "source": HACKER_NEWS,
        "external_id": str(external_id),
        "url": f"https://example.com/{external_id}",
        "title": f"Story number {external_id}",
        "author": "alice",
        "published_at": NOW - timedelta(hours=1),
        "fetched_at": NOW,
        "tags": ["Tech"],
        "points": 10,
        "comment_count": 5,
        "discussion_url": f"https://news.ycombinator.com/item?id={external_id}",
        "hotness_score": 1.0,
    }
    data.update(fields)
    return Article(**data)


@pytest.fixture
def config(tmp_path) -> Config:
    return Config(
        db_path=tmp_path / "test.db",
        log_dir=tmp_path / "log",
        hn_api_base=API_BASE,
    )


@pytest.fixture
def db(tmp_path):
    database = Database(tmp_path / "test.db")
    yield database
    database.close()
