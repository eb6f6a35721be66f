"""Time-decaying popularity score.

    score = recency * (1 + engagement) * source_weight

    recency     = exp(-age_hours / 12)
    engagement  = ln(1 + points + 2 * comments)
    weight      = SOURCE_WEIGHTS.get(source, 1.0)

The score is recomputed from current inputs on every fetch and rounded to
three decimals. Future timestamps give negative ages and a recency above 1;
that is accepted, not an error.
"""

import math
from datetime import datetime, timezone

DECAY_HOURS = 12.0
MAX_EXPONENT = 700.0

SOURCE_WEIGHTS: dict[str, float] = {
    "hackernews": 1.3,
    "ars": 1.1,
    "techmeme": 1.2,
    "producthunt": 0.9,
}
DEFAULT_SOURCE_WEIGHT = 1.0

HOT_THRESHOLD = 5.0
WARM_THRESHOLD = 2.0


def source_weight(source: str) -> float:
    return SOURCE_WEIGHTS.get(source, DEFAULT_SOURCE_WEIGHT)


def age_hours(published_at: datetime, now: datetime | None = None) -> float:
    """Hours between publication and ``now`` (negative for future timestamps).

    Naive datetimes are treated as UTC.
    """
    now = now or datetime.now(timezone.utc)
    if published_at.tzinfo is None:
        published_at = published_at.replace(tzinfo=timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return (now - published_at).total_seconds() / 3600.0


def compute_hotness(
    published_at: datetime,
    points: int | None,
    comment_count: int | None,
    source: str,
    now: datetime | None = None,
) -> float:
    """Score an article by recency, engagement, and source.

    Args:
        published_at: Publication time
        points: Upvotes (None = 0)
        comment_count: Comments (None = 0)
        source: Source identifier for the weight table
        now: Reference time (defaults to current UTC time)

    Returns:
        Non-negative score rounded to 3 decimals

    Example:
        >>> t = datetime(2025, 1, 1, tzinfo=timezone.utc)
        >>> compute_hotness(t, 100, 50, "hackernews", now=t)
        8.194
    """
    # exp() overflows past ~709; only reachable with absurd future timestamps
    exponent = min(-age_hours(published_at, now) / DECAY_HOURS, MAX_EXPONENT)
    recency = math.exp(exponent)
    engagement = math.log1p(max(points or 0, 0) + 2 * max(comment_count or 0, 0))
    score = recency * (1.0 + engagement) * source_weight(source)
    return round(score, 3)


def hotness_level(score: float) -> str:
    """Display bucket for a score: 'hot', 'warm', or 'normal'."""
    if score > HOT_THRESHOLD:
        return "hot"
    if score > WARM_THRESHOLD:
        return "warm"
    return "normal"
