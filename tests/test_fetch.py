import asyncio

import aiohttp

from conftest import API_BASE, FakeResponse, FakeSession
from tools.fetch import (
    COMMENT_MAX_CHARS,
    extract_content,
    extract_main_content,
    extract_meta,
    fetch_comments,
    parse_html,
)

LONG = "This paragraph is comfortably longer than fifty characters of text."

PAGE = f"""
<html><head>
<title>Fallback &amp; Title</title>
<meta property="og:title" content="OG Title">
<meta content="Described &quot;here&quot;" property="og:description">
<meta property="og:image" content="https://img.test/a.png">
</head><body>
<nav><p>{LONG} navigation</p></nav>
<article>
  <p>{LONG} first</p>
  <p>short</p>
  <script>var x = "<p>{LONG} script</p>";</script>
  <p>{LONG} <b>second</b></p>
</article>
<footer><p>{LONG} footer</p></footer>
</body></html>
"""


def test_parse_html_prefers_open_graph():
    content = parse_html(PAGE)
    assert content.title == "OG Title"
    assert content.description == 'Described "here"'
    assert content.image == "https://img.test/a.png"


def test_meta_fallbacks():
    page = '<title>Plain</title><meta name="twitter:description" content="From twitter">'
    content = parse_html(page)
    assert content.title == "Plain"
    assert content.description == "From twitter"
    assert content.image is None


def test_extract_meta_missing_returns_none():
    assert extract_meta("<html></html>", "og:title") is None


def test_main_content_uses_article_and_skips_noise():
    text = extract_main_content(PAGE)
    assert text == f"{LONG} first {LONG} second"
    assert "navigation" not in text
    assert "footer" not in text
    assert "script" not in text


def test_main_content_falls_back_to_main_then_document():
    page = f"<body><main><p>{LONG} main</p></main><p>{LONG} outside</p></body>"
    assert extract_main_content(page) == f"{LONG} main"
    page = f"<body><div><p>{LONG} loose</p></div></body>"
    assert extract_main_content(page) == f"{LONG} loose"


def test_main_content_respects_budget():
    paragraph = "x" * 400
    page = "".join(f"<p>{paragraph}</p>" for _ in range(5))
    text = extract_main_content(page)
    assert text == f"{paragraph} {paragraph}"


def test_main_content_tolerates_malformed_html():
    assert extract_main_content("<p>unterminated <article><div") is None


def test_extract_content_success():
    session = FakeSession({"https://site.test/a": FakeResponse(body=PAGE)})
    content = asyncio.run(extract_content("https://site.test/a", session))
    assert content is not None
    assert content.has_text
    assert content.content.startswith(LONG)


def test_extract_content_non_2xx_is_absent():
    session = FakeSession({"https://site.test/a": FakeResponse(status=503, body=PAGE)})
    assert asyncio.run(extract_content("https://site.test/a", session)) is None


def test_extract_content_network_error_is_absent():
    session = FakeSession({"https://site.test/a": aiohttp.ClientConnectionError("reset")})
    assert asyncio.run(extract_content("https://site.test/a", session)) is None


def test_extract_content_timeout_is_absent():
    session = FakeSession({"https://site.test/a": asyncio.TimeoutError()})
    assert asyncio.run(extract_content("https://site.test/a", session)) is None


def _thread_routes(kids, comments):
    routes = {f"{API_BASE}/item/1.json": FakeResponse(payload={"id": 1, "kids": kids})}
    for cid, payload in comments.items():
        routes[f"{API_BASE}/item/{cid}.json"] = payload
    return routes


def test_fetch_comments_keeps_thread_order_and_cleans_text():
    session = FakeSession(_thread_routes(
        [11, 12, 13, 14],
        {
            11: FakeResponse(payload={"id": 11, "text": "<p>First &amp; best</p>"}),
            12: FakeResponse(payload={"id": 12, "text": "y" * 500}),
            13: FakeResponse(payload={"id": 13, "text": "Third"}),
            14: FakeResponse(payload={"id": 14, "text": "Fourth"}),
        },
    ))
    comments = asyncio.run(fetch_comments(1, session, limit=3, api_base=API_BASE))
    assert comments == ["First & best", "y" * COMMENT_MAX_CHARS, "Third"]
    assert f"{API_BASE}/item/14.json" not in session.calls


def test_fetch_comments_drops_failed_and_deleted():
    session = FakeSession(_thread_routes(
        [11, 12, 13],
        {
            11: FakeResponse(status=500),
            12: FakeResponse(payload={"id": 12, "deleted": True}),
            13: FakeResponse(payload={"id": 13, "text": "Survivor"}),
        },
    ))
    assert asyncio.run(fetch_comments(1, session, api_base=API_BASE)) == ["Survivor"]


def test_fetch_comments_without_thread_is_empty():
    session = FakeSession({})
    assert asyncio.run(fetch_comments(1, session, api_base=API_BASE)) == []
