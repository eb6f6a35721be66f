"""Network tools used by the source adapter and the summarizer.

extract_content:
    Fetch an article page and pull meta fields plus a short excerpt.

fetch_comments:
    Text of the top direct replies of a Hacker News thread.

gather_in_batches:
    Order-preserving fan-out in fixed-size concurrent batches.

All fetch helpers are best-effort: failures come back as None or as an
empty list, never as exceptions.
"""

from tools.utils import USER_AGENT, create_session, create_ssl_context, gather_in_batches, get_json
from tools.fetch import ExtractedContent, extract_content, fetch_comments

__all__ = [
    "ExtractedContent",
    "extract_content",
    "fetch_comments",
    "gather_in_batches",
    "get_json",
    "create_session",
    "create_ssl_context",
    "USER_AGENT",
]
