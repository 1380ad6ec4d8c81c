"""Tag aggregation across all bookmarks, with a bounded-time cache."""

import logging
import time
import unicodedata
from collections import Counter
from typing import Any, Callable, Iterable

from ..models.bookmark import Bookmark
from ..models.tags import TagCount
from .bookmark_store import BookmarkStore

logger = logging.getLogger(__name__)


def normalize_tags(values: Any) -> list[str]:
    """Trim and lower-case submitted tags, dropping blanks, non-strings and repeats."""
    if not isinstance(values, list):
        return []
    tags: list[str] = []
    for value in values:
        if not isinstance(value, str):
            continue
        tag = value.strip().lower()
        if tag and tag not in tags:
            tags.append(tag)
    return tags


def _collation_key(tag: str) -> tuple[str, str]:
    """Order by base letters first, so "éclair" sorts between "apple" and "zebra"."""
    folded = tag.casefold()
    decomposed = unicodedata.normalize("NFKD", folded)
    base = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return base, folded


def aggregate_tags(
    bookmarks: Iterable[Bookmark],
    sort_by_frequency: bool = True,
    case_insensitive: bool = True,
) -> list[TagCount]:
    """Count distinct non-blank tags across bookmarks.

    Args:
        bookmarks: Bookmarks to scan
        sort_by_frequency: Order by descending count, then alphabetically;
            otherwise keep first-seen order
        case_insensitive: Treat tags differing only in case as one, keeping
            the first spelling seen

    Returns:
        One TagCount per distinct tag
    """
    counts: Counter[str] = Counter()
    spelling: dict[str, str] = {}

    for bookmark in bookmarks:
        for raw in bookmark.tags:
            tag = raw.strip()
            if not tag:
                continue
            key = tag.casefold() if case_insensitive else tag
            spelling.setdefault(key, tag)
            counts[key] += 1

    keys = list(spelling)
    if sort_by_frequency:
        keys.sort(key=lambda k: (-counts[k], _collation_key(spelling[k])))

    return [TagCount(tag=spelling[k], count=counts[k]) for k in keys]


class TagCache:
    """Holds one aggregated tag list for ``ttl_seconds``.

    The clock is injected so expiry can be driven explicitly in tests.
    """

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._value: list[TagCount] | None = None
        self._stored_at = 0.0

    def get(self) -> list[TagCount] | None:
        if self._value is None:
            return None
        if self._clock() - self._stored_at >= self.ttl_seconds:
            return None
        return self._value

    def set(self, value: list[TagCount]) -> None:
        self._value = value
        self._stored_at = self._clock()

    def invalidate(self) -> None:
        self._value = None


class TagService:
    """Serve aggregated tags from the store through a TagCache."""

    def __init__(
        self,
        store: BookmarkStore,
        cache: TagCache,
        sort_by_frequency: bool = True,
        case_insensitive: bool = True,
    ):
        self.store = store
        self.cache = cache
        self.sort_by_frequency = sort_by_frequency
        self.case_insensitive = case_insensitive

    async def get_tags(self) -> list[TagCount]:
        """Return aggregated tags, querying the store only when the cache is stale.

        Raises:
            StoreError: When the store query fails
        """
        cached = self.cache.get()
        if cached is not None:
            return cached

        bookmarks = await self.store.list_bookmarks()
        tags = aggregate_tags(
            bookmarks,
            sort_by_frequency=self.sort_by_frequency,
            case_insensitive=self.case_insensitive,
        )
        logger.info(f"Aggregated {len(tags)} tags from {len(bookmarks)} bookmarks")
        self.cache.set(tags)
        return tags

    def invalidate(self) -> None:
        self.cache.invalidate()
