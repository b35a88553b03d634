from datetime import datetime, timezone
from typing import List, Optional

import httpx
from bs4 import BeautifulSoup, Tag
from dateutil import parser as dateparse

from research_hub.config import FETCH_TIMEOUT, LOGGER, MIN_CONTENT_LENGTH, USER_AGENT
from research_hub.errors import ExtractionError, FetchError
from research_hub.models import ExtractedContent
from research_hub.utils import clean_text, make_excerpt

TITLE_SELECTORS = [
    'meta[property="og:title"]',
    'meta[name="twitter:title"]',
    "h1",
    "title",
    ".title",
    ".headline",
    ".post-title",
    ".article-title",
]

CONTENT_SELECTORS = [
    "article",
    ".content",
    ".post-content",
    ".article-content",
    ".entry-content",
    ".post-body",
    ".article-body",
    "main",
    '[role="main"]',
]

DATE_SELECTORS = [
    'meta[property="article:published_time"]',
    'meta[name="date"]',
    'meta[name="publish-date"]',
    "time[datetime]",
    ".date",
    ".published",
    ".post-date",
]

AUTHOR_SELECTORS = [
    'meta[name="author"]',
    'meta[property="article:author"]',
    ".author",
    ".byline",
    ".post-author",
    '[rel="author"]',
]

NOISE_SELECTOR = "script, style, nav, header, footer, aside"
BODY_NOISE_SELECTOR = NOISE_SELECTOR + ", .navigation, .sidebar, .menu, .ads, .advertisement"
FEED_MARKERS = ("<rss", "<feed", "<channel>")


def parse_date(dt_str: Optional[str]) -> Optional[datetime]:
    """Parses a free-form date string into an aware UTC datetime, or None."""
    if not dt_str or not dt_str.strip():
        return None
    try:
        dt = dateparse.parse(dt_str.strip())
    except (ValueError, OverflowError):
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _selector_value(element: Tag, selector: str) -> str:
    if selector.startswith("meta"):
        return element.get("content") or ""
    return element.get_text(" ")


def _feed_text(element: Optional[Tag]) -> str:
    """Text of a feed element; embedded HTML (escaped or CDATA) is flattened."""
    if element is None:
        return ""
    text = element.get_text(" ")
    if "<" in text:
        text = BeautifulSoup(text, "html.parser").get_text(" ")
    return clean_text(text)


class ContentExtractor:
    """Turns web pages and RSS/Atom feeds into `ExtractedContent` records."""

    def __init__(
        self,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = FETCH_TIMEOUT,
        user_agent: str = USER_AGENT,
    ):
        self._http_client = http_client
        self.timeout = timeout
        self.headers = {"User-Agent": user_agent}

    async def _get(self, url: str) -> httpx.Response:
        """GET `url`, mapping every transport or status failure to FetchError."""
        try:
            if self._http_client is not None:
                response = await self._http_client.get(url, headers=self.headers, timeout=self.timeout)
            else:
                async with httpx.AsyncClient(timeout=self.timeout, follow_redirects=True) as client:
                    response = await client.get(url, headers=self.headers)
        except httpx.TimeoutException as e:
            raise FetchError(url, f"timed out after {self.timeout}s") from e
        except httpx.HTTPError as e:
            raise FetchError(url, str(e) or type(e).__name__) from e

        if not response.is_success:
            raise FetchError(url, f"HTTP {response.status_code}", status_code=response.status_code)
        return response

    async def extract_from_url(self, url: str) -> ExtractedContent:
        response = await self._get(url)
        try:
            extracted = self.extract_from_html(response.text)
        except ExtractionError:
            raise ExtractionError(url)
        except Exception as e:
            raise ExtractionError(url, str(e)) from e
        extracted["url"] = url
        LOGGER.debug(f"Extracted {len(extracted['content'])} chars from {url}")
        return extracted

    def extract_from_html(self, html: str) -> ExtractedContent:
        """Applies the selector fallbacks to an HTML document."""
        soup = BeautifulSoup(html, "html.parser")

        # Metadata first: content extraction strips header/footer nodes.
        title = self._extract_title(soup)
        published_at = self._extract_published_date(soup)
        author = self._extract_author(soup)
        content = self._extract_content(soup)
        if not content:
            raise ExtractionError("<document>")

        return ExtractedContent(
            title=title or "Untitled",
            content=content,
            excerpt=self._extract_excerpt(soup, content),
            publishedAt=published_at,
            author=author,
        )

    def _extract_title(self, soup: BeautifulSoup) -> str:
        for selector in TITLE_SELECTORS:
            element = soup.select_one(selector)
            if element is None:
                continue
            title = clean_text(_selector_value(element, selector))
            if title:
                return title
        return ""

    def _extract_content(self, soup: BeautifulSoup) -> str:
        for selector in CONTENT_SELECTORS:
            element = soup.select_one(selector)
            if element is None:
                continue
            for noise in element.select(NOISE_SELECTOR):
                noise.decompose()
            text = element.get_text(" ")
            if len(text.strip()) > MIN_CONTENT_LENGTH:
                return clean_text(text)

        body = soup.body or soup
        for noise in body.select(BODY_NOISE_SELECTOR):
            noise.decompose()
        return clean_text(body.get_text(" "))

    def _extract_published_date(self, soup: BeautifulSoup) -> Optional[datetime]:
        for selector in DATE_SELECTORS:
            element = soup.select_one(selector)
            if element is None:
                continue
            if selector.startswith("meta"):
                date_str = element.get("content")
            else:
                date_str = element.get("datetime") or element.get_text(" ")
            date = parse_date(date_str)
            if date is not None:
                return date
        return None

    def _extract_author(self, soup: BeautifulSoup) -> Optional[str]:
        for selector in AUTHOR_SELECTORS:
            element = soup.select_one(selector)
            if element is None:
                continue
            author = clean_text(_selector_value(element, selector))
            if author:
                return author
        return None

    def _extract_excerpt(self, soup: BeautifulSoup, content: str) -> Optional[str]:
        meta = soup.select_one('meta[name="description"]')
        if meta is not None:
            description = clean_text(meta.get("content") or "")
            if description:
                return description
        return make_excerpt(content)

    async def validate_rss_feed(self, url: str) -> bool:
        """Cheap syntactic check: does the response look like RSS or Atom?"""
        try:
            response = await self._get(url)
        except FetchError as e:
            LOGGER.warning(f"Feed validation failed: {e}")
            return False
        body = response.text
        return any(marker in body for marker in FEED_MARKERS)

    async def extract_rss_items(self, url: str) -> List[ExtractedContent]:
        response = await self._get(url)
        try:
            items = self.parse_feed(response.text)
        except Exception as e:
            raise ExtractionError(url, f"feed could not be parsed: {e}") from e
        LOGGER.info(f"Parsed {len(items)} items from feed {url}")
        return items

    def parse_feed(self, xml: str) -> List[ExtractedContent]:
        """RSS `<item>` elements win; Atom `<entry>` elements are the fallback."""
        soup = BeautifulSoup(xml, "xml")
        items: List[ExtractedContent] = []

        rss_items = soup.find_all("item")
        if rss_items:
            for item in rss_items:
                title = _feed_text(item.find("title"))
                description = _feed_text(item.find("description"))
                if not title or not description:
                    continue
                link = _feed_text(item.find("link"))
                items.append(
                    ExtractedContent(
                        title=title,
                        content=description,
                        publishedAt=parse_date(_feed_text(item.find("pubDate"))),
                        url=link or None,
                    )
                )
            return items

        for entry in soup.find_all("entry"):
            title = _feed_text(entry.find("title"))
            content = _feed_text(entry.find("content")) or _feed_text(entry.find("summary"))
            if not title or not content:
                continue
            published = _feed_text(entry.find("published")) or _feed_text(entry.find("updated"))
            items.append(
                ExtractedContent(
                    title=title,
                    content=content,
                    publishedAt=parse_date(published),
                    url=self._atom_link(entry),
                )
            )
        return items

    @staticmethod
    def _atom_link(entry: Tag) -> Optional[str]:
        for link in entry.find_all("link"):
            if link.get("rel") in (None, "alternate") and link.get("href"):
                return link.get("href")
        return None
