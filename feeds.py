"""Hacker News source adapter.

Turns the current Hacker News top-stories list into scored, tagged Article
objects.

Flow:
    1. GET /topstories.json and keep the first ``story_count`` ids
    2. GET /item/<id>.json in batches of ``batch_size`` concurrent requests
    3. Drop failed items and items without a destination URL (text posts)
    4. Build Articles (tags + hotness) and sort by hotness, highest first

Error Handling Strategy:
    - The top-stories call is the only fatal one: it raises FeedError
    - Any single item failure just omits that item
"""

import logging
from datetime import datetime, timezone
from typing import Any

import aiohttp

from config import Config, HN_API_BASE
from hotness import compute_hotness
from models.article import Article, HACKER_NEWS, article_id
from tags import detect_tags
from tools.utils import create_session, gather_in_batches, get_json

logger = logging.getLogger(__name__)

DEFAULT_STORY_COUNT = 30
DEFAULT_BATCH_SIZE = 10
DISCUSSION_URL = "https://news.ycombinator.com/item?id={id}"


class FeedError(Exception):
    """The upstream story list could not be retrieved."""


def build_article(item: dict[str, Any], now: datetime | None = None) -> Article | None:
    """Convert a Hacker News item into an Article.

    Args:
        item: Decoded item JSON ({id, title, url?, by, time, score, descendants, kids?})
        now: Reference time for fetched_at and hotness (defaults to now, UTC)

    Returns:
        Article, or None for items without an id, title or URL
    """
    if not item.get("url") or not item.get("title") or item.get("id") is None:
        return None

    now = now or datetime.now(timezone.utc)
    external_id = str(item["id"])
    published_at = datetime.fromtimestamp(int(item.get("time") or 0), timezone.utc)
    points = item.get("score")
    comment_count = item.get("descendants") or 0

    return Article(
        id=article_id(HACKER_NEWS, external_id),
        source=HACKER_NEWS,
        external_id=external_id,
        url=item["url"],
        title=item["title"],
        author=item.get("by"),
        published_at=published_at,
        fetched_at=now,
        tags=detect_tags(item["title"], item["url"]),
        points=points,
        comment_count=comment_count,
        discussion_url=DISCUSSION_URL.format(id=external_id),
        hotness_score=compute_hotness(published_at, points, comment_count, HACKER_NEWS, now=now),
    )


class HackerNewsSource:
    """Fetches the current top stories from the Hacker News Firebase API.

    Example:
        >>> async with create_session() as session:
        ...     source = HackerNewsSource(session)
        ...     articles = await source.fetch_latest()
    """

    name = HACKER_NEWS

    def __init__(
        self,
        session: aiohttp.ClientSession,
        api_base: str = HN_API_BASE,
        story_count: int = DEFAULT_STORY_COUNT,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ):
        self.session = session
        self.api_base = api_base.rstrip("/")
        self.story_count = story_count
        self.batch_size = batch_size

    @classmethod
    def from_config(cls, config: Config, session: aiohttp.ClientSession) -> "HackerNewsSource":
        return cls(
            session,
            api_base=config.hn_api_base,
            story_count=config.top_stories_count,
            batch_size=config.fetch_batch_size,
        )

    async def top_story_ids(self) -> list[int]:
        """Current ranked story ids.

        Raises:
            FeedError: If the list cannot be fetched or is malformed
        """
        url = f"{self.api_base}/topstories.json"
        try:
            ids = await get_json(self.session, url)
        except aiohttp.ClientResponseError as e:
            raise FeedError(f"Failed to fetch top stories: HTTP {e.status}") from e
        except Exception as e:
            raise FeedError(f"Failed to fetch top stories: {type(e).__name__}: {e}") from e

        if not isinstance(ids, list):
            raise FeedError(f"Unexpected top stories payload: {type(ids).__name__}")
        return ids

    async def get_item(self, item_id: int) -> dict[str, Any] | None:
        """Fetch one item; None on any failure."""
        try:
            item = await get_json(self.session, f"{self.api_base}/item/{item_id}.json")
        except Exception as e:
            logger.debug("Item fetch failed | id=%s error=%s: %s", item_id, type(e).__name__, e)
            return None
        return item if isinstance(item, dict) else None

    async def fetch_items(self, ids: list[int]) -> list[dict[str, Any] | None]:
        """Fetch item details in input order, ``batch_size`` at a time."""
        results = await gather_in_batches(ids, self.get_item, self.batch_size)
        return [r if isinstance(r, dict) else None for r in results]

    async def fetch_latest(self) -> list[Article]:
        """Fetch, assemble and rank the current top stories.

        Returns:
            Articles sorted by hotness, highest first

        Raises:
            FeedError: If the top-stories list is unavailable
        """
        ids = (await self.top_story_ids())[:self.story_count]
        items = await self.fetch_items(ids)

        now = datetime.now(timezone.utc)
        articles = []
        failed = skipped = 0
        for item in items:
            if item is None:
                failed += 1
                continue
            try:
                article = build_article(item, now=now)
            except (TypeError, ValueError) as e:
                logger.warning("Item skipped | id=%s error=%s", item.get("id"), e)
                article = None
            if article is None:
                skipped += 1
                continue
            articles.append(article)

        # sort() is stable: equal scores keep feed order
        articles.sort(key=lambda a: a.hotness_score, reverse=True)

        logger.info(
            "Hacker News fetched | ids=%d articles=%d failed=%d skipped=%d",
            len(ids), len(articles), failed, skipped,
        )
        return articles


async def fetch_hacker_news(config: Config) -> list[Article]:
    """Fetch the latest Hacker News articles with a private session."""
    async with create_session(config.fetch_batch_size) as session:
        return await HackerNewsSource.from_config(config, session).fetch_latest()
