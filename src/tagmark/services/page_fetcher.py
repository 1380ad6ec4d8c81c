"""Service for fetching a webpage and extracting its title and logo."""

import logging
import re
from html import unescape
from urllib.parse import urljoin

import httpx
from bs4 import BeautifulSoup

from ..models.bookmark import PageMetadata

logger = logging.getLogger(__name__)

# Default timeout for HTTP requests (seconds)
DEFAULT_TIMEOUT = 10.0

# User agent to avoid being blocked
USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
    "AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

# <link rel> values that point at a site icon, best first
ICON_RELS = ("apple-touch-icon", "apple-touch-icon-precomposed", "icon", "shortcut icon", "mask-icon")

_SIZE_PATTERN = re.compile(r"(\d+)x(\d+)")


async def fetch_metadata(
    url: str,
    timeout: float = DEFAULT_TIMEOUT,
    client: httpx.AsyncClient | None = None,
) -> PageMetadata:
    """Fetch a webpage and extract its title and logo.

    Args:
        url: URL to fetch (already normalized)
        timeout: Request timeout in seconds
        client: Optional client to reuse; a short-lived one is created otherwise

    Returns:
        PageMetadata with whatever could be extracted

    Raises:
        httpx.HTTPError: On network failure or non-2xx response
    """
    if client is None:
        async with httpx.AsyncClient(
            timeout=timeout,
            follow_redirects=True,
            headers={"User-Agent": USER_AGENT},
        ) as own_client:
            response = await own_client.get(url)
    else:
        response = await client.get(url)
    response.raise_for_status()

    final_url = str(response.url)  # Use final URL after redirects
    return parse_metadata(response.text, final_url)


def parse_metadata(html: str, url: str) -> PageMetadata:
    """Extract title and logo from an HTML document."""
    soup = BeautifulSoup(html, "html.parser")
    return PageMetadata(
        url=url,
        title=_extract_title(soup),
        logo=_extract_logo(soup, url),
    )


def _extract_title(soup: BeautifulSoup) -> str | None:
    """Return the best available title: og:title, twitter:title, then <title>."""
    for attrs in ({"property": "og:title"}, {"name": "twitter:title"}):
        content = _get_meta_content(soup, attrs)
        if content:
            return content

    title_tag = soup.find("title")
    if title_tag and title_tag.string and title_tag.string.strip():
        return unescape(title_tag.string.strip())
    return None


def _extract_logo(soup: BeautifulSoup, base_url: str) -> str | None:
    """Return an absolute logo URL, preferring explicit logos over the largest icon."""
    for attrs in ({"property": "og:logo"}, {"itemprop": "logo"}):
        content = _get_meta_content(soup, attrs)
        if content:
            return urljoin(base_url, content)

    candidates: list[tuple[int, int, str]] = []
    for link in soup.find_all("link", href=True):
        rel = link.get("rel") or []
        rel_value = " ".join(rel).lower() if isinstance(rel, list) else str(rel).lower()
        if rel_value not in ICON_RELS:
            continue
        href = link["href"].strip()
        if not href:
            continue
        priority = len(ICON_RELS) - ICON_RELS.index(rel_value)
        candidates.append((_icon_size(link.get("sizes")), priority, href))

    if not candidates:
        return None

    _, _, href = max(candidates)
    return urljoin(base_url, href)


def _icon_size(sizes: str | None) -> int:
    """Largest edge declared by a ``sizes`` attribute, 0 when absent."""
    if not sizes:
        return 0
    if sizes.strip().lower() == "any":
        return 10_000
    edges = [max(int(w), int(h)) for w, h in _SIZE_PATTERN.findall(sizes)]
    return max(edges, default=0)


def _get_meta_content(soup: BeautifulSoup, attrs: dict[str, str]) -> str | None:
    """Extract the content of the first meta tag matching ``attrs``."""
    tag = soup.find("meta", attrs=attrs)
    if tag and tag.get("content") and tag["content"].strip():
        return unescape(tag["content"].strip())
    return None
