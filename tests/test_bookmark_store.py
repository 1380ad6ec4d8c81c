"""Tests for the bookmark store clients."""

import json

import httpx
import pytest
from pydantic import ValidationError

from src.tagmark.config import Settings
from src.tagmark.models.bookmark import Bookmark, ImportRecord, new_temporary_id
from src.tagmark.services.bookmark_store import (
    BookmarkNotFoundError,
    ConvexBookmarkStore,
    InMemoryBookmarkStore,
    StoreError,
    TemporaryIdError,
    create_store,
)

DEPLOYMENT = "https://happy-otter-123.convex.cloud"


class Recorder:
    """Mock transport handler that records requests and replays one payload."""

    def __init__(self, payload: dict, status_code: int = 200):
        self.payload = payload
        self.status_code = status_code
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status_code, json=self.payload)

    @property
    def bodies(self) -> list[dict]:
        return [json.loads(request.content) for request in self.requests]


def _convex(recorder: Recorder) -> ConvexBookmarkStore:
    client = httpx.AsyncClient(transport=httpx.MockTransport(recorder))
    return ConvexBookmarkStore(DEPLOYMENT + "/", client=client)


async def test_convex_list_parses_documents() -> None:
    recorder = Recorder(
        {
            "status": "success",
            "value": [
                {
                    "_id": "abc",
                    "_creationTime": 1700000000000.5,
                    "url": "https://example.com",
                    "title": "Example",
                    "tags": ["news"],
                    "favicon": "https://icons.duckduckgo.com/ip3/example.com.ico",
                }
            ],
        }
    )

    bookmarks = await _convex(recorder).list_bookmarks()

    assert bookmarks == [
        Bookmark(
            id="abc",
            created_at=1700000000000.5,
            url="https://example.com",
            title="Example",
            tags=["news"],
            favicon="https://icons.duckduckgo.com/ip3/example.com.ico",
        )
    ]
    assert str(recorder.requests[0].url) == f"{DEPLOYMENT}/api/query"
    assert recorder.bodies[0] == {"path": "bookmarks:list", "args": {}, "format": "json"}


async def test_convex_create_sends_mutation() -> None:
    recorder = Recorder({"status": "success", "value": "new-id"})

    bookmark_id = await _convex(recorder).create_bookmark(url="https://example.com", title="Example", tags=["a"])

    assert bookmark_id == "new-id"
    assert str(recorder.requests[0].url) == f"{DEPLOYMENT}/api/mutation"
    assert recorder.bodies[0]["path"] == "bookmarks:createBookmark"
    assert recorder.bodies[0]["args"] == {"url": "https://example.com", "title": "Example", "tags": ["a"]}


async def test_convex_update_omits_unset_fields() -> None:
    """Test that a favicon-only update sends only the favicon."""
    recorder = Recorder({"status": "success", "value": None})

    await _convex(recorder).update_bookmark("abc", favicon="https://example.com/logo.png")

    assert recorder.bodies[0]["path"] == "bookmarks:updateBookmark"
    assert recorder.bodies[0]["args"] == {"id": "abc", "favicon": "https://example.com/logo.png"}


async def test_convex_error_status_raises_store_error() -> None:
    recorder = Recorder({"status": "error", "errorMessage": "Server Error"})

    with pytest.raises(StoreError) as excinfo:
        await _convex(recorder).delete_bookmark("abc")

    assert not isinstance(excinfo.value, BookmarkNotFoundError)
    assert "Server Error" in str(excinfo.value)


async def test_convex_missing_bookmark_maps_to_not_found() -> None:
    recorder = Recorder({"status": "error", "errorMessage": "Bookmark not found"})

    with pytest.raises(BookmarkNotFoundError):
        await _convex(recorder).update_bookmark("abc", title="x")


async def test_convex_http_failure_raises_store_error() -> None:
    recorder = Recorder({"detail": "boom"}, status_code=500)

    with pytest.raises(StoreError):
        await _convex(recorder).list_bookmarks()


async def test_convex_refuses_temporary_ids() -> None:
    recorder = Recorder({"status": "success", "value": None})
    store = _convex(recorder)

    with pytest.raises(TemporaryIdError):
        await store.delete_bookmark(new_temporary_id())

    assert recorder.requests == []


async def test_convex_import_returns_count() -> None:
    recorder = Recorder({"status": "success", "value": {"imported": 2}})
    records = [
        ImportRecord(title="A", url="https://a.com", tags='["x"]'),
        ImportRecord(title="B", url="https://b.com"),
    ]

    imported = await _convex(recorder).import_bookmarks(records)

    assert imported == 2
    assert recorder.bodies[0]["args"]["bookmarks"][1] == {"title": "B", "url": "https://b.com", "tags": "[]"}


async def test_memory_store_lists_newest_first(store: InMemoryBookmarkStore) -> None:
    first = await store.create_bookmark(url="https://a.com", title="A", tags=[])
    second = await store.create_bookmark(url="https://b.com", title="B", tags=[])

    assert [b.id for b in await store.list_bookmarks()] == [second, first]


async def test_memory_store_derives_favicon(store: InMemoryBookmarkStore) -> None:
    await store.create_bookmark(url="https://example.com/page", title="A", tags=[])
    await store.create_bookmark(url="https://b.com", title="B", tags=[], favicon="https://b.com/logo.png")

    favicons = {b.url: b.favicon for b in await store.list_bookmarks()}

    assert favicons == {
        "https://example.com/page": "https://icons.duckduckgo.com/ip3/example.com.ico",
        "https://b.com": "https://b.com/logo.png",
    }


async def test_memory_store_update_recomputes_favicon_on_url_change(store: InMemoryBookmarkStore) -> None:
    bookmark_id = await store.create_bookmark(url="https://a.com", title="A", tags=[], favicon="https://a.com/x.png")

    await store.update_bookmark(bookmark_id, url="https://a.com", title="Same URL")
    [same] = await store.list_bookmarks()
    assert same.favicon == "https://a.com/x.png"

    await store.update_bookmark(bookmark_id, url="https://moved.org")
    [moved] = await store.list_bookmarks()
    assert moved.favicon == "https://icons.duckduckgo.com/ip3/moved.org.ico"
    assert moved.title == "Same URL"


async def test_memory_store_update_unknown_id(store: InMemoryBookmarkStore) -> None:
    with pytest.raises(BookmarkNotFoundError):
        await store.update_bookmark("bm999999", title="x")


async def test_memory_store_pushes_to_subscribers(store: InMemoryBookmarkStore) -> None:
    pushed: list[list[Bookmark]] = []
    unsubscribe = store.subscribe(pushed.append)

    bookmark_id = await store.create_bookmark(url="https://a.com", title="A", tags=[])
    await store.delete_bookmark(bookmark_id)
    unsubscribe()
    await store.create_bookmark(url="https://b.com", title="B", tags=[])

    assert [[b.id for b in snapshot] for snapshot in pushed] == [[bookmark_id], []]


async def test_memory_store_import_parses_tag_json(store: InMemoryBookmarkStore) -> None:
    imported = await store.import_bookmarks([ImportRecord(title="A", url="https://a.com", tags='["x", "y"]')])

    [bookmark] = await store.list_bookmarks()
    assert imported == 1
    assert bookmark.tags == ["x", "y"]


def test_create_store_selects_backend() -> None:
    assert isinstance(create_store(Settings(store_backend="memory")), InMemoryBookmarkStore)
    assert create_store(Settings(store_backend="convex", store_url="")) is None
    assert isinstance(create_store(Settings(store_backend="convex", store_url=DEPLOYMENT)), ConvexBookmarkStore)


async def test_memory_store_import_is_all_or_nothing(store: InMemoryBookmarkStore) -> None:
    """Test that one undecodable record leaves the store and subscribers untouched."""
    pushed: list[list[Bookmark]] = []
    store.subscribe(pushed.append)
    records = [
        ImportRecord(title="Ok", url="https://ok.com"),
        ImportRecord.model_construct(title="Bad", url="https://bad.com", tags="not json"),
    ]

    with pytest.raises(ValueError):
        await store.import_bookmarks(records)

    assert await store.list_bookmarks() == []
    assert pushed == []


@pytest.mark.parametrize("tags", ['"abc"', '{"a": 1}', "[1, 2]", "not json"])
def test_import_record_requires_json_list_of_strings(tags: str) -> None:
    with pytest.raises(ValidationError):
        ImportRecord(title="A", url="https://a.com", tags=tags)


def test_import_record_decodes_tags() -> None:
    assert ImportRecord(title="A", url="https://a.com", tags='["x", "y"]').tag_list() == ["x", "y"]
