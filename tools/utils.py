"""Shared HTTP helpers for the fetch tools and the news source.

All outbound requests go through one aiohttp session per ingestion run
(create_session), and fan-out is done in fixed-size batches
(gather_in_batches) so the number of simultaneous connections stays bounded.
"""

import asyncio
import logging
import ssl
from typing import Any, Awaitable, Callable, Sequence, TypeVar

import aiohttp
import certifi

logger = logging.getLogger(__name__)

USER_AGENT = "TechPulse/1.0 (News Aggregator)"

T = TypeVar("T")
R = TypeVar("R")


def create_ssl_context() -> ssl.SSLContext:
    """SSL context verifying against the certifi CA bundle."""
    return ssl.create_default_context(cafile=certifi.where())


def create_session(max_connections: int = 10) -> aiohttp.ClientSession:
    """Open a client session with the certifi CA bundle and our User-Agent."""
    connector = aiohttp.TCPConnector(limit=max_connections, ssl=create_ssl_context())
    return aiohttp.ClientSession(connector=connector, headers={"User-Agent": USER_AGENT})


async def get_json(
    session: aiohttp.ClientSession,
    url: str,
    timeout: float | None = None,
) -> Any:
    """GET a URL and decode its JSON body.

    Raises:
        aiohttp.ClientResponseError: On a non-200 status
        aiohttp.ClientError / asyncio.TimeoutError: On transport failure
    """
    client_timeout = aiohttp.ClientTimeout(total=timeout) if timeout else None
    async with session.get(url, timeout=client_timeout) as resp:
        if resp.status != 200:
            raise aiohttp.ClientResponseError(
                resp.request_info, resp.history, status=resp.status
            )
        return await resp.json(content_type=None)


async def gather_in_batches(
    items: Sequence[T],
    worker: Callable[[T], Awaitable[R]],
    batch_size: int,
) -> list[R | BaseException]:
    """Run ``worker`` over ``items`` in consecutive concurrent batches.

    Each batch of ``batch_size`` items runs concurrently and must finish
    before the next one starts. Output order matches input order. A failing
    item does not affect the others: its exception is returned in its slot.

    Args:
        items: Inputs, processed in order
        worker: Coroutine function applied to each input
        batch_size: Maximum items in flight at once

    Returns:
        One result (or exception) per input, in input order
    """
    if batch_size <= 0:
        raise ValueError("batch_size must be positive")

    results: list[R | BaseException] = []
    total = len(items)
    for start in range(0, total, batch_size):
        batch = items[start:start + batch_size]
        batch_results = await asyncio.gather(
            *(worker(item) for item in batch),
            return_exceptions=True,
        )
        results.extend(batch_results)
        logger.debug("Batch done | items=%d-%d of %d", start + 1, start + len(batch), total)
    return results
