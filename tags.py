"""Keyword-based topical and company tagging.

Tags are assigned by evaluating ordered rule tables against the lower-cased
title:

    1. TOPIC_RULES, in table order
    2. COMPANY_RULES, in table order
    3. DOMAIN_RULES (hostname substring), only when 1-2 matched nothing;
       first match wins and stops
    4. FALLBACK_TAG when still empty

The result is truncated to MAX_TAGS, keeping match order. Rule order is part
of the contract: changing it changes the tag distribution.
"""

from dataclasses import dataclass
from urllib.parse import urlparse

from models.article import MAX_TAGS

FALLBACK_TAG = "Tech"


@dataclass(frozen=True)
class TagRule:
    """A label and the keywords that trigger it (substring match)."""

    label: str
    keywords: tuple[str, ...]

    def matches(self, text: str) -> bool:
        return any(keyword in text for keyword in self.keywords)


TOPIC_RULES: tuple[TagRule, ...] = (
    TagRule("AI", (
        "ai", "artificial intelligence", "machine learning", "ml", "gpt", "llm",
        "chatgpt", "claude", "neural", "deep learning", "transformer", "diffusion",
        "model", "inference", "training", "agent", "embedding",
    )),
    TagRule("Security", (
        "security", "hack", "breach", "vulnerability", "cve", "ransomware", "malware",
        "privacy", "encryption", "zero-day", "exploit", "attack", "phishing",
        "password", "auth", "ssl", "tls",
    )),
    TagRule("Cloud", (
        "aws", "azure", "gcp", "cloud", "kubernetes", "k8s", "docker", "serverless",
        "lambda", "container", "devops", "infrastructure", "deploy",
    )),
    TagRule("Web", (
        "javascript", "typescript", "react", "vue", "angular", "node", "deno", "bun",
        "nextjs", "web", "browser", "html", "css", "frontend", "dom", "http", "api",
        "rest", "graphql",
    )),
    TagRule("Mobile", (
        "ios", "android", "swift", "kotlin", "flutter", "react native", "mobile",
        "iphone", "ipad", "app store", "play store",
    )),
    TagRule("Data", (
        "database", "sql", "postgres", "mongodb", "redis", "data", "analytics",
        "warehouse", "etl", "pipeline", "spark", "kafka",
    )),
    TagRule("Startup", (
        "startup", "funding", "vc", "yc", "raised", "series a", "series b",
        "acquisition", "unicorn", "founder", "pivot", "launch",
    )),
    # "repo" alone would also match "report"
    TagRule("Open Source", (
        "open source", "open-source", "github", "gitlab", "oss", "mit license",
        "apache", "foss", "contributor", "repository",
    )),
    TagRule("Programming", (
        "rust", "golang", "python", "java", "c++", "programming", "compiler",
        "language", "code", "developer", "engineering", "algorithm", "debug", "syntax",
    )),
    TagRule("Hardware", (
        "chip", "cpu", "gpu", "nvidia", "amd", "intel", "semiconductor", "silicon",
        "quantum", "processor", "memory", "ram", "ssd",
    )),
    TagRule("Crypto", (
        "bitcoin", "ethereum", "crypto", "blockchain", "web3", "nft", "defi",
        "wallet", "token",
    )),
    TagRule("Science", (
        "research", "study", "scientist", "physics", "biology", "chemistry",
        "experiment", "discovery", "paper", "journal",
    )),
    TagRule("Business", (
        "ceo", "company", "revenue", "profit", "market", "stock", "ipo", "layoff",
        "hire", "employee", "enterprise",
    )),
    TagRule("Gaming", (
        "game", "gaming", "steam", "playstation", "nintendo", "xbox", "esports",
        "unity", "unreal",
    )),
    TagRule("Career", (
        "interview", "job", "hiring", "resume", "salary", "remote",
        "work from home", "career",
    )),
)

COMPANY_RULES: tuple[TagRule, ...] = (
    TagRule("Google", ("google", "alphabet", "deepmind", "waymo", "gmail", "chrome", "youtube", "gemini", "bard")),
    TagRule("Apple", ("apple", "iphone", "ipad", "macos", "macbook", "vision pro", "siri", "airpods", "watch")),
    TagRule("Microsoft", ("microsoft", "windows", "azure", "github", "copilot", "linkedin", "xbox", "bing", "teams", "office")),
    TagRule("Amazon", ("amazon", "aws", "alexa", "kindle", "prime", "ec2", "s3")),
    TagRule("Meta", ("meta", "facebook", "instagram", "whatsapp", "oculus", "threads", "llama", "zuckerberg")),
    TagRule("OpenAI", ("openai", "chatgpt", "gpt-4", "gpt-5", "dall-e", "sora", "sam altman")),
    TagRule("Anthropic", ("anthropic", "claude")),
    TagRule("Tesla", ("tesla", "elon musk", "spacex", "neuralink", "starlink", "cybertruck")),
    TagRule("Nvidia", ("nvidia", "cuda", "geforce", "rtx", "jensen")),
    TagRule("Netflix", ("netflix",)),
    TagRule("Spotify", ("spotify",)),
    TagRule("Uber", ("uber", "lyft")),
    TagRule("Airbnb", ("airbnb",)),
    TagRule("Stripe", ("stripe",)),
    TagRule("Cloudflare", ("cloudflare", "workers")),
    TagRule("Vercel", ("vercel", "nextjs", "next.js")),
    TagRule("X/Twitter", ("twitter", "x.com", "tweet")),
    TagRule("Discord", ("discord",)),
    TagRule("Slack", ("slack",)),
    TagRule("Reddit", ("reddit", "subreddit")),
    TagRule("LinkedIn", ("linkedin",)),
)

# (hostname fragment, label); consulted only when no keyword rule matched
DOMAIN_RULES: tuple[tuple[str, str], ...] = (
    ("arxiv.org", "Science"),
    ("nature.com", "Science"),
    ("ieee.org", "Science"),
    ("acm.org", "Programming"),
    ("medium.com", "Blog"),
    ("dev.to", "Programming"),
    ("techcrunch.com", "Startup"),
    ("wired.com", "Tech"),
    ("arstechnica.com", "Tech"),
    ("theverge.com", "Tech"),
    ("bloomberg.com", "Business"),
    ("reuters.com", "News"),
    ("nytimes.com", "News"),
    ("bbc.com", "News"),
    ("theguardian.com", "News"),
)

COMPANY_TAGS = frozenset(rule.label for rule in COMPANY_RULES)


def _hostname(url: str) -> str:
    try:
        return (urlparse(url).hostname or "").lower()
    except ValueError:
        return ""


def domain_tag(url: str | None) -> str | None:
    """Return the first domain-table label whose fragment occurs in the URL's hostname."""
    if not url:
        return None
    host = _hostname(url)
    if not host:
        return None
    for fragment, label in DOMAIN_RULES:
        if fragment in host:
            return label
    return None


def detect_tags(title: str, url: str | None = None) -> list[str]:
    """Assign 1-4 tags to an article.

    Args:
        title: Article headline
        url: Destination URL, used only for the domain fallback

    Returns:
        Tags in match order, never empty

    Example:
        >>> detect_tags("Show HN: A Rust compiler for GPUs")
        ['Programming', 'Hardware']
    """
    lowered = title.lower()
    tags = [rule.label for rule in TOPIC_RULES if rule.matches(lowered)]
    tags.extend(rule.label for rule in COMPANY_RULES if rule.matches(lowered))

    if not tags:
        fallback = domain_tag(url)
        if fallback:
            tags.append(fallback)

    if not tags:
        tags.append(FALLBACK_TAG)

    return tags[:MAX_TAGS]


def is_company_tag(tag: str) -> bool:
    return tag in COMPANY_TAGS
