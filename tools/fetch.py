"""Best-effort page and discussion fetching for summary context.

extract_content:
    GET an article page (5 s timeout) and pull Open Graph / meta fields plus a
    short excerpt of the main paragraphs.

fetch_comments:
    Text of the first N direct replies of a Hacker News thread.

Neither function raises on network, HTTP or parse problems: a failed page is
``None`` and a failed comment is simply left out. Extraction is regex based
and tolerant of malformed HTML; a pattern that does not match just leaves its
field empty.
"""

import asyncio
import html
import logging
import re
from dataclasses import dataclass

import aiohttp

from config import HN_API_BASE
from tools.utils import USER_AGENT, create_session, gather_in_batches, get_json

logger = logging.getLogger(__name__)

CONTENT_TIMEOUT_SECONDS = 5.0
MIN_PARAGRAPH_CHARS = 50
CONTENT_BUDGET_CHARS = 1000
COMMENT_MAX_CHARS = 300

# Blocks removed before looking for the main content region
_NOISE_BLOCKS = [
    re.compile(rf"<{tag}\b[^>]*>.*?</{tag}\s*>", re.IGNORECASE | re.DOTALL)
    for tag in ("script", "style", "nav", "header", "footer", "aside")
]
_ARTICLE_RE = re.compile(r"<article\b[^>]*>(.*?)</article\s*>", re.IGNORECASE | re.DOTALL)
_MAIN_RE = re.compile(r"<main\b[^>]*>(.*?)</main\s*>", re.IGNORECASE | re.DOTALL)
_PARAGRAPH_RE = re.compile(r"<p(?:\s[^>]*)?>(.*?)</p\s*>", re.IGNORECASE | re.DOTALL)
_TITLE_RE = re.compile(r"<title[^>]*>([^<]+)</title>", re.IGNORECASE)
_TAG_RE = re.compile(r"<[^>]+>")
_WS_RE = re.compile(r"\s+")


@dataclass
class ExtractedContent:
    """Fields pulled from an article page. Any of them may be None."""

    title: str | None = None
    description: str | None = None
    content: str | None = None
    image: str | None = None

    @property
    def has_text(self) -> bool:
        return bool(self.description or self.content)


def strip_tags(markup: str) -> str:
    """Remove tags, decode entities, and collapse whitespace."""
    text = _TAG_RE.sub(" ", markup)
    text = html.unescape(text)
    return _WS_RE.sub(" ", text).strip()


def extract_meta(page: str, name: str) -> str | None:
    """Find a <meta> value by ``property`` or ``name``, in either attribute order."""
    key = re.escape(name)
    patterns = (
        rf"<meta[^>]*property=[\"']{key}[\"'][^>]*content=([\"'])(.*?)\1",
        rf"<meta[^>]*name=[\"']{key}[\"'][^>]*content=([\"'])(.*?)\1",
        rf"<meta[^>]*content=([\"'])(.*?)\1[^>]*(?:property|name)=[\"']{key}[\"']",
    )
    for pattern in patterns:
        match = re.search(pattern, page, re.IGNORECASE | re.DOTALL)
        if match and match.group(2).strip():
            return html.unescape(match.group(2).strip())
    return None


def extract_main_content(page: str) -> str | None:
    """Concatenate meaningful paragraphs of the main region, up to ~1000 chars.

    The region is the first <article>, else the first <main>, else the whole
    document, after noise blocks are removed. Only paragraphs longer than
    MIN_PARAGRAPH_CHARS count; paragraphs are added whole until the next one
    would exceed the budget.
    """
    cleaned = page
    for pattern in _NOISE_BLOCKS:
        cleaned = pattern.sub("", cleaned)

    region = cleaned
    for pattern in (_ARTICLE_RE, _MAIN_RE):
        match = pattern.search(cleaned)
        if match and match.group(1).strip():
            region = match.group(1)
            break

    paragraphs = []
    for match in _PARAGRAPH_RE.finditer(region):
        text = strip_tags(match.group(1))
        if len(text) > MIN_PARAGRAPH_CHARS:
            paragraphs.append(text)

    if not paragraphs:
        return None

    result = ""
    for paragraph in paragraphs:
        if len(result) + len(paragraph) > CONTENT_BUDGET_CHARS:
            break
        result += paragraph + " "
    return result.strip() or None


def parse_html(page: str) -> ExtractedContent:
    """Extract title, description, image and excerpt from an HTML document."""
    title_match = _TITLE_RE.search(page)
    page_title = html.unescape(title_match.group(1).strip()) if title_match else None

    return ExtractedContent(
        title=extract_meta(page, "og:title") or page_title or None,
        description=(
            extract_meta(page, "og:description")
            or extract_meta(page, "twitter:description")
            or extract_meta(page, "description")
        ),
        content=extract_main_content(page),
        image=extract_meta(page, "og:image"),
    )


async def extract_content(
    url: str,
    session: aiohttp.ClientSession | None = None,
    timeout: float = CONTENT_TIMEOUT_SECONDS,
) -> ExtractedContent | None:
    """Fetch an article page and extract its metadata and excerpt.

    Args:
        url: Article URL
        session: Shared client session (a private one is opened if omitted)
        timeout: Total request timeout in seconds

    Returns:
        ExtractedContent, or None on timeout, non-2xx status, or any other failure
    """
    if session is None:
        async with create_session() as own_session:
            return await extract_content(url, own_session, timeout)

    logger.debug("Fetching article: %s", url)
    try:
        async with session.get(
            url,
            timeout=aiohttp.ClientTimeout(total=timeout),
            headers={"User-Agent": USER_AGENT, "Accept": "text/html"},
        ) as resp:
            if not 200 <= resp.status < 300:
                logger.debug("Content fetch skipped | url=%s status=%d", url, resp.status)
                return None
            page = await resp.text(errors="replace")
    except asyncio.TimeoutError:
        logger.debug("Content fetch timed out | url=%s timeout=%.0fs", url, timeout)
        return None
    except Exception as e:
        logger.debug("Content fetch failed | url=%s error=%s: %s", url, type(e).__name__, e)
        return None

    try:
        return parse_html(page)
    except Exception as e:
        logger.warning("Content parse failed | url=%s error=%s", url, e)
        return None


async def _fetch_comment(
    session: aiohttp.ClientSession,
    comment_id: int,
    api_base: str,
) -> str | None:
    try:
        comment = await get_json(session, f"{api_base}/item/{comment_id}.json")
    except Exception as e:
        logger.debug("Comment fetch failed | id=%s error=%s", comment_id, e)
        return None
    if not isinstance(comment, dict) or not comment.get("text"):
        return None
    text = strip_tags(comment["text"])
    return text[:COMMENT_MAX_CHARS] or None


async def fetch_comments(
    story_id: int,
    session: aiohttp.ClientSession | None = None,
    limit: int = 3,
    api_base: str = HN_API_BASE,
) -> list[str]:
    """Fetch the first ``limit`` direct replies to a Hacker News item.

    Comments are fetched in parallel and returned in the thread's own order.
    Deleted, empty or failed comments are dropped without retry.

    Returns:
        Plain-text comments, each at most COMMENT_MAX_CHARS long
    """
    if session is None:
        async with create_session() as own_session:
            return await fetch_comments(story_id, own_session, limit, api_base)

    try:
        story = await get_json(session, f"{api_base}/item/{story_id}.json")
    except Exception as e:
        logger.debug("Thread fetch failed | id=%s error=%s", story_id, e)
        return []

    kids = story.get("kids") if isinstance(story, dict) else None
    comment_ids = list(kids or [])[:limit]
    if not comment_ids:
        return []

    results = await gather_in_batches(
        comment_ids,
        lambda cid: _fetch_comment(session, cid, api_base),
        batch_size=len(comment_ids),
    )
    return [r for r in results if isinstance(r, str)]
