"""List view helpers: search filtering, tag suggestions and date labels."""

from datetime import datetime
from typing import Iterable

from ..models.bookmark import Bookmark


def filter_bookmarks(bookmarks: Iterable[Bookmark], query: str) -> list[Bookmark]:
    """Keep bookmarks whose title, URL or any tag contains ``query``.

    Matching is case-insensitive; a blank query keeps everything.
    """
    bookmarks = list(bookmarks)
    needle = query.strip().lower()
    if not needle:
        return bookmarks

    return [
        bookmark
        for bookmark in bookmarks
        if needle in bookmark.title.lower()
        or needle in bookmark.url.lower()
        or any(needle in tag.lower() for tag in bookmark.tags)
    ]


def suggestion_tags(bookmarks: Iterable[Bookmark]) -> list[str]:
    """Sorted distinct tags for mention autocomplete."""
    return sorted({tag for bookmark in bookmarks for tag in bookmark.tags if tag.strip()})


def format_date(created_at: float, now: datetime | None = None) -> str:
    """Format a creation timestamp (ms since epoch) for the list.

    Current year: "Dec 02". Other years: "02.12.24".
    """
    date = datetime.fromtimestamp(created_at / 1000)
    now = now or datetime.now()
    if date.year == now.year:
        return date.strftime("%b %d")
    return date.strftime("%d.%m.%y")
