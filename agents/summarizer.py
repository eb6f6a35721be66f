"""Summarizer agent producing structured article synopses.

Each article gets one generative call that must return a JSON object with
``what``, ``whyItMatters`` and an optional ``keyDetail``. Context is built
progressively from what is available:

    title only                         -> provenance 'title-only'
    + article excerpt (page fetched)   -> provenance 'with-content'
    + top Hacker News comments         -> provenance 'with-comments'

Error Handling:
    Every failure (no API key, backend error, unparsable or incomplete JSON)
    yields "no summary" for that article. Nothing is raised to the caller.
"""

import asyncio
import logging
from dataclasses import dataclass

import aiohttp
from openai import AsyncOpenAI
from pydantic_ai import Agent, PromptedOutput, UsageLimits
from pydantic_ai.models import Model
from pydantic_ai.models.openai import OpenAIChatModel
from pydantic_ai.providers.openai import OpenAIProvider
from pydantic_ai.settings import ModelSettings

from config import Config
from models.article import Article, HACKER_NEWS
from models.summary import (
    StructuredSummary,
    SummaryPayload,
    SummaryProvenance,
    format_summary,
)
from tools.fetch import extract_content, fetch_comments
from tools.utils import gather_in_batches

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """You are a tech news summarizer. Generate a structured JSON summary with these exact fields:
{
  "what": "One sentence describing what happened or what this is about",
  "whyItMatters": "One sentence on why tech professionals should care",
  "keyDetail": "One notable number, quote, or specific claim (optional, omit if none)"
}

Rules:
- Each field should be under 25 words
- Be factual and specific, not vague
- Don't start with "This article..." or "The article..."
- Return ONLY valid JSON, no markdown or explanation"""

CONTEXT_MAX_CHARS = 800
COMMENT_LIMIT = 3
DEFAULT_CONCURRENCY = 3

SOURCE_NAMES = {
    HACKER_NEWS: "Hacker News",
    "ars": "Ars Technica",
    "techmeme": "Techmeme",
    "producthunt": "Product Hunt",
}


@dataclass
class SummaryResult:
    """A validated summary and the inputs that produced it."""

    summary: StructuredSummary
    provenance: SummaryProvenance


def _parse_model(model_str: str) -> tuple[str, str | None]:
    """Split 'model@base_url' into (model, base_url) for OpenAI-compatible servers."""
    if "@" in model_str:
        model_name, base_url = model_str.split("@", 1)
        return model_name, base_url
    return model_str, None


def _create_model(config: Config) -> Model:
    """Build the OpenAI chat model from configuration."""
    model_name, base_url = _parse_model(config.summary_model)
    if base_url:
        logger.info("Using OpenAI-compatible endpoint | model=%s base_url=%s", model_name, base_url)
    client = AsyncOpenAI(api_key=config.openai_api_key, base_url=base_url)
    return OpenAIChatModel(model_name, provider=OpenAIProvider(openai_client=client))


def _create_agent(model: Model, config: Config) -> Agent[None, SummaryPayload]:
    """Create the pydantic-ai agent.

    PromptedOutput asks for plain JSON text and validates it against
    SummaryPayload. Output retries are disabled: one request per article,
    and a response missing a required field fails the run.
    """
    return Agent(
        model,
        output_type=PromptedOutput(SummaryPayload),
        system_prompt=SYSTEM_PROMPT,
        model_settings=ModelSettings(
            temperature=config.summary_temperature,
            max_tokens=config.summary_max_tokens,
        ),
        retries=0,
    )


def build_user_message(article: Article, context: str = "") -> str:
    """Render the per-article request sent to the model."""
    source_name = SOURCE_NAMES.get(article.source, article.source)
    tags = ", ".join(article.tags) or "General Tech"
    return (
        f"Title: {article.title}\n"
        f"Source: {source_name} ({article.points or 0} points, {article.comment_count or 0} comments)\n"
        f"URL: {article.url}\n"
        f"Tags: {tags}{context}\n"
        f"\n"
        f"Generate the JSON summary:"
    )


class Summarizer:
    """Generates StructuredSummary objects for articles.

    Constructed once per process (or run). Without OPENAI_API_KEY the
    summarizer is unconfigured and every call returns no summary.

    Example:
        >>> summarizer = Summarizer(config, session=session)
        >>> result = await summarizer.summarize_one(article, fetch_content=True)
        >>> if result:
        ...     print(result.summary.what, result.provenance)
    """

    def __init__(
        self,
        config: Config,
        session: aiohttp.ClientSession | None = None,
        model: Model | None = None,
    ):
        """Initialize the summarizer.

        Args:
            config: Application configuration
            session: Shared HTTP session for content and comment fetches
            model: Explicit pydantic-ai model (overrides configuration)
        """
        self.config = config
        self.session = session
        if model is None and not config.summarizer_configured:
            self._agent = None
            logger.debug("Summarizer not configured (no OPENAI_API_KEY)")
        else:
            self._agent = _create_agent(model or _create_model(config), config)

    @property
    def configured(self) -> bool:
        return self._agent is not None

    async def _gather_context(
        self,
        article: Article,
        fetch_content: bool,
        with_comments: bool,
    ) -> tuple[str, SummaryProvenance]:
        context = ""
        provenance = SummaryProvenance.TITLE_ONLY

        if fetch_content:
            extracted = await extract_content(
                article.url,
                self.session,
                timeout=self.config.content_timeout_seconds,
            )
            if extracted and extracted.has_text:
                excerpt = f"\nArticle excerpt: {extracted.description or ''}\n{extracted.content or ''}"
                context = excerpt[:CONTEXT_MAX_CHARS]
                provenance = SummaryProvenance.WITH_CONTENT

        if with_comments and article.source == HACKER_NEWS and article.external_id.isdigit():
            comments = await fetch_comments(
                int(article.external_id),
                self.session,
                limit=COMMENT_LIMIT,
                api_base=self.config.hn_api_base,
            )
            if comments:
                context += "\n\nTop HN comments:\n" + "\n".join(f"- {c}" for c in comments)
                provenance = SummaryProvenance.WITH_COMMENTS

        return context, provenance

    async def summarize_one(
        self,
        article: Article,
        fetch_content: bool = True,
        fetch_comments: bool = False,
    ) -> SummaryResult | None:
        """Summarize a single article.

        Args:
            article: Article to summarize
            fetch_content: Fetch the article page for an excerpt
            fetch_comments: Fetch top discussion comments (Hacker News only)

        Returns:
            SummaryResult, or None if unconfigured or the call/validation failed
        """
        if self._agent is None:
            return None

        try:
            context, provenance = await self._gather_context(article, fetch_content, fetch_comments)
            result = await self._agent.run(
                build_user_message(article, context),
                usage_limits=UsageLimits(request_limit=1),
            )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error("Summary failed | id=%s title=%s error=%s: %s",
                         article.id, article.title[:50], type(e).__name__, e)
            return None

        logger.debug(
            "Summary generated | id=%s source=%s tokens=%d",
            article.id, provenance.value, result.usage().total_tokens or 0,
        )
        return SummaryResult(
            summary=StructuredSummary.from_payload(result.output),
            provenance=provenance,
        )

    async def summarize_batch(
        self,
        articles: list[Article],
        fetch_content: bool = True,
        fetch_comments: bool = False,
        concurrency: int = DEFAULT_CONCURRENCY,
    ) -> list[Article]:
        """Summarize articles in fixed-size concurrent groups.

        Args:
            articles: Articles to summarize
            fetch_content: Passed to summarize_one
            fetch_comments: Passed to summarize_one
            concurrency: Articles summarized at once

        Returns:
            Same articles in the same order; those that got a summary carry
            it in ``summary`` and ``summary_source``
        """
        if self._agent is None or not articles:
            return list(articles)

        logger.info("Batch summarization started | total=%d concurrency=%d", len(articles), concurrency)

        async def summarize(article: Article) -> SummaryResult | None:
            return await self.summarize_one(article, fetch_content, fetch_comments)

        results = await gather_in_batches(articles, summarize, concurrency)

        output = []
        succeeded = 0
        for article, result in zip(articles, results):
            if isinstance(result, SummaryResult):
                succeeded += 1
                output.append(article.model_copy(update={
                    "summary": result.summary,
                    "summary_source": result.provenance,
                }))
            else:
                if isinstance(result, BaseException):
                    logger.error("Batch summary error | id=%s error=%s", article.id, result)
                output.append(article)

        logger.info("Batch summarization complete | total=%d summarized=%d", len(articles), succeeded)
        return output

    async def summarize_simple(self, article: Article) -> str | None:
        """Title-only summary flattened to one line of text."""
        result = await self.summarize_one(article, fetch_content=False, fetch_comments=False)
        if result is None:
            return None
        return format_summary(result.summary)
