"""Business logic services."""

from .bookmark_cache import BookmarkCache
from .bookmark_list import BookmarkListController
from .bookmark_store import (
    BookmarkNotFoundError,
    BookmarkStore,
    ConvexBookmarkStore,
    InMemoryBookmarkStore,
    StoreError,
    TemporaryIdError,
)
from .favicon import normalize_url, resolve_favicon
from .input_parser import TagChips, document_from_text, parse_document
from .page_fetcher import fetch_metadata
from .reconciliation import OverlayTable, reconcile
from .tag_service import TagCache, TagService, aggregate_tags

__all__ = [
    "BookmarkCache",
    "BookmarkListController",
    "BookmarkStore",
    "ConvexBookmarkStore",
    "InMemoryBookmarkStore",
    "StoreError",
    "BookmarkNotFoundError",
    "TemporaryIdError",
    "normalize_url",
    "resolve_favicon",
    "TagChips",
    "document_from_text",
    "parse_document",
    "fetch_metadata",
    "OverlayTable",
    "reconcile",
    "TagCache",
    "TagService",
    "aggregate_tags",
]
