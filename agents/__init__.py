"""PydanticAI agents for the TechPulse ingestion pipeline.

Summarizer:
    Structured three-field summaries (what / whyItMatters / keyDetail) for
    articles, with optional page content and discussion comments as context.

Example:
    >>> from agents import Summarizer
    >>> summarizer = Summarizer(config, session=session)
    >>> articles = await summarizer.summarize_batch(articles)
"""

from agents.summarizer import Summarizer, SummaryResult

__all__ = [
    "Summarizer",
    "SummaryResult",
]
