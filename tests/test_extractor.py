# tests/test_extractor.py
"""
ContentExtractor against canned HTTP responses served by httpx.MockTransport.
"""
from datetime import datetime, timezone

import httpx
import pytest

from research_hub.config import USER_AGENT
from research_hub.errors import ExtractionError, FetchError
from research_hub.extractor import ContentExtractor, parse_date

ARTICLE_HTML = """
<html>
  <head>
    <title>Site name</title>
    <meta property="og:title" content="Deep Dive Into Feeds">
    <meta name="author" content="Jane Roe">
  </head>
  <body>
    <header>Site header</header>
    <h1>Other heading</h1>
    <time datetime="2024-03-01T10:00:00Z">March 1</time>
    <article>
      <nav>Menu links</nav>
      <p>First sentence here. Second sentence here. Third sentence here. A fourth sentence makes
      the article long enough to pass the minimum content length check.</p>
      <script>var tracking = 1;</script>
    </article>
    <footer>Copyright</footer>
  </body>
</html>
"""

RSS_XML = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0">
  <channel>
    <title>Example feed</title>
    <item>
      <title>First post</title>
      <link>https://example.com/first</link>
      <description>&lt;p&gt;Hello &lt;b&gt;world&lt;/b&gt;&lt;/p&gt;</description>
      <pubDate>Mon, 01 Apr 2024 12:00:00 GMT</pubDate>
    </item>
    <item>
      <title>No description</title>
      <link>https://example.com/second</link>
    </item>
  </channel>
</rss>
"""

ATOM_XML = """<?xml version="1.0" encoding="utf-8"?>
<feed xmlns="http://www.w3.org/2005/Atom">
  <title>Example Atom</title>
  <entry>
    <title>Atom entry</title>
    <link rel="alternate" href="https://example.com/atom-entry"/>
    <updated>2024-05-02T08:30:00Z</updated>
    <summary>Summary text of the entry</summary>
  </entry>
</feed>
"""


def make_extractor(handler) -> ContentExtractor:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return ContentExtractor(http_client=client)


def serve(body: str, status_code: int = 200):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code, text=body)

    return handler


@pytest.mark.asyncio
async def test_extract_article_page():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["user_agent"] = request.headers["User-Agent"]
        return httpx.Response(200, text=ARTICLE_HTML)

    extracted = await make_extractor(handler).extract_from_url("https://example.com/post")

    assert seen["user_agent"] == USER_AGENT
    assert extracted["url"] == "https://example.com/post"
    assert extracted["title"] == "Deep Dive Into Feeds"
    assert extracted["author"] == "Jane Roe"
    assert extracted["publishedAt"] == datetime(2024, 3, 1, 10, 0, tzinfo=timezone.utc)
    assert "First sentence here." in extracted["content"]
    assert "Menu links" not in extracted["content"]
    assert "tracking" not in extracted["content"]
    assert "Copyright" not in extracted["content"]
    assert extracted["excerpt"] == "First sentence here. Second sentence here. Third sentence here."


def test_title_falls_back_to_heading():
    html = "<html><head><title>Page Title</title></head><body><h1>Heading</h1><p>Body text</p></body></html>"
    extracted = ContentExtractor().extract_from_html(html)
    assert extracted["title"] == "Heading"


def test_meta_description_is_preferred_excerpt():
    html = (
        '<html><head><meta name="description" content="A short description"></head>'
        "<body><p>One. Two. Three. Four.</p></body></html>"
    )
    assert ContentExtractor().extract_from_html(html)["excerpt"] == "A short description"


def test_short_page_uses_body_text():
    html = "<html><head><title>Short</title></head><body><nav>Nav</nav><p>Tiny body.</p></body></html>"
    extracted = ContentExtractor().extract_from_html(html)
    assert extracted["title"] == "Short"
    assert extracted["content"] == "Tiny body."
    assert extracted["excerpt"] is None
    assert extracted["publishedAt"] is None
    assert extracted["author"] is None


def test_untitled_page():
    extracted = ContentExtractor().extract_from_html("<html><body><p>Hello world text</p></body></html>")
    assert extracted["title"] == "Untitled"


@pytest.mark.asyncio
async def test_empty_page_raises_extraction_error():
    extractor = make_extractor(serve("<html><body><script>x()</script></body></html>"))
    with pytest.raises(ExtractionError) as exc_info:
        await extractor.extract_from_url("https://example.com/empty")
    assert exc_info.value.url == "https://example.com/empty"


@pytest.mark.asyncio
async def test_http_error_status_raises_fetch_error():
    extractor = make_extractor(serve("missing", status_code=404))
    with pytest.raises(FetchError) as exc_info:
        await extractor.extract_from_url("https://example.com/missing")
    assert exc_info.value.status_code == 404
    assert "HTTP 404" in str(exc_info.value)


@pytest.mark.asyncio
async def test_transport_errors_raise_fetch_error():
    def refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    def slow(request):
        raise httpx.ReadTimeout("too slow", request=request)

    with pytest.raises(FetchError):
        await make_extractor(refuse).extract_from_url("https://example.com/")

    with pytest.raises(FetchError, match="timed out"):
        await make_extractor(slow).extract_from_url("https://example.com/")


def test_parse_rss_items():
    items = ContentExtractor().parse_feed(RSS_XML)

    assert len(items) == 1
    item = items[0]
    assert item["title"] == "First post"
    assert item["content"] == "Hello world"
    assert item["url"] == "https://example.com/first"
    assert item["publishedAt"] == datetime(2024, 4, 1, 12, 0, tzinfo=timezone.utc)


def test_parse_atom_entries():
    items = ContentExtractor().parse_feed(ATOM_XML)

    assert len(items) == 1
    entry = items[0]
    assert entry["title"] == "Atom entry"
    assert entry["content"] == "Summary text of the entry"
    assert entry["url"] == "https://example.com/atom-entry"
    assert entry["publishedAt"] == datetime(2024, 5, 2, 8, 30, tzinfo=timezone.utc)


@pytest.mark.asyncio
async def test_extract_rss_items_over_http():
    items = await make_extractor(serve(RSS_XML)).extract_rss_items("https://example.com/feed.xml")
    assert [i["title"] for i in items] == ["First post"]


@pytest.mark.asyncio
async def test_validate_rss_feed():
    assert await make_extractor(serve(RSS_XML)).validate_rss_feed("https://example.com/rss")
    assert await make_extractor(serve(ATOM_XML)).validate_rss_feed("https://example.com/atom")
    assert not await make_extractor(serve(ARTICLE_HTML)).validate_rss_feed("https://example.com/page")
    assert not await make_extractor(serve("", status_code=500)).validate_rss_feed("https://example.com/down")


def test_parse_date():
    assert parse_date("2024-01-02") == datetime(2024, 1, 2, tzinfo=timezone.utc)
    assert parse_date("2024-01-02T03:00:00+02:00") == datetime(2024, 1, 2, 1, 0, tzinfo=timezone.utc)
    assert parse_date("not a date") is None
    assert parse_date("") is None
    assert parse_date(None) is None
