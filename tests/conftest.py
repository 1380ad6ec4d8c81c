"""Shared fixtures for API and service tests."""

from typing import Callable, Iterator
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from src.tagmark.main import app
from src.tagmark.models.bookmark import Bookmark
from src.tagmark.routes.tags import get_tag_service
from src.tagmark.services.bookmark_store import InMemoryBookmarkStore

FROZEN_NOW = 1_700_000_000.0


@pytest.fixture
def store() -> InMemoryBookmarkStore:
    """Empty in-memory store with a frozen clock."""
    return InMemoryBookmarkStore(clock=lambda: FROZEN_NOW)


@pytest.fixture
def client(store: InMemoryBookmarkStore) -> Iterator[TestClient]:
    """Test client wired to the in-memory store."""
    get_tag_service.cache_clear()
    with patch("src.tagmark.routes.bookmarks.get_default_store", return_value=store), patch(
        "src.tagmark.routes.tags.get_default_store", return_value=store
    ), patch("src.tagmark.routes.health.get_default_store", return_value=store):
        yield TestClient(app)
    get_tag_service.cache_clear()


@pytest.fixture
def make_bookmark() -> Callable[..., Bookmark]:
    """Factory for bookmarks with sensible defaults."""

    def _make(bookmark_id: str, created_at: float = 1.0, **overrides) -> Bookmark:
        fields = {
            "url": f"https://{bookmark_id}.example.com",
            "title": f"Bookmark {bookmark_id}",
            "tags": [],
            "favicon": f"https://icons.duckduckgo.com/ip3/{bookmark_id}.example.com.ico",
        }
        fields.update(overrides)
        return Bookmark(id=bookmark_id, created_at=created_at, **fields)

    return _make
