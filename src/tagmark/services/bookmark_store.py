"""Remote bookmark store clients.

The store is a hosted reactive document database. ``ConvexBookmarkStore``
talks to it over its HTTP API; ``InMemoryBookmarkStore`` reproduces the same
functions locally and pushes the fresh list to subscribers after every
mutation, which is what the reactive subscription does in production.
"""

import logging
import time
from abc import ABC, abstractmethod
from functools import lru_cache
from typing import Any, Callable, Iterable

import httpx

from ..config import Settings, settings
from ..models.bookmark import Bookmark, ImportRecord, decode_import_tags, is_temporary_id
from .favicon import build_favicon_url, get_hostname, resolve_favicon

logger = logging.getLogger(__name__)

Listener = Callable[[list[Bookmark]], None]


class StoreError(Exception):
    """Raised when the remote store rejects or fails a call."""


class BookmarkNotFoundError(StoreError):
    """Raised when a mutation targets an id the store does not know."""


class TemporaryIdError(StoreError):
    """Raised when a locally generated id is about to be sent to the store."""


def _ensure_real_id(bookmark_id: str) -> None:
    if is_temporary_id(bookmark_id):
        raise TemporaryIdError(f"Refusing to send temporary id {bookmark_id} to the store")


class BookmarkStore(ABC):
    """Contract of the remote bookmark collection."""

    @abstractmethod
    async def list_bookmarks(self) -> list[Bookmark]:
        """Return all bookmarks, newest first."""

    @abstractmethod
    async def create_bookmark(
        self,
        *,
        url: str,
        title: str,
        tags: list[str],
        favicon: str | None = None,
        comment: str | None = None,
    ) -> str:
        """Create a bookmark and return its id."""

    @abstractmethod
    async def update_bookmark(
        self,
        bookmark_id: str,
        *,
        url: str | None = None,
        title: str | None = None,
        tags: list[str] | None = None,
        favicon: str | None = None,
    ) -> None:
        """Patch a bookmark. A changed URL recomputes the favicon unless one is given."""

    @abstractmethod
    async def delete_bookmark(self, bookmark_id: str) -> None:
        """Delete a bookmark."""

    @abstractmethod
    async def import_bookmarks(self, records: Iterable[ImportRecord]) -> int:
        """Bulk insert exported records; returns the number imported."""

    def subscribe(self, listener: Listener) -> Callable[[], None] | None:
        """Register for pushed list updates.

        Returns an unsubscribe callable, or None when the store cannot push.
        """
        return None

    async def aclose(self) -> None:
        """Release network resources."""


class ConvexBookmarkStore(BookmarkStore):
    """Client for the ``bookmarks`` functions of a Convex deployment."""

    def __init__(
        self,
        deployment_url: str,
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ):
        """Initialize the client.

        Args:
            deployment_url: Convex deployment URL, e.g. "https://happy-otter-123.convex.cloud"
            timeout: Request timeout in seconds
            client: Optional preconfigured client (tests pass one with a mock transport)
        """
        self.deployment_url = deployment_url.rstrip("/")
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._owns_client = client is None

    async def _call(self, kind: str, path: str, args: dict[str, Any]) -> Any:
        """Invoke a query or mutation and return its value."""
        try:
            response = await self._client.post(
                f"{self.deployment_url}/api/{kind}",
                json={"path": path, "args": args, "format": "json"},
            )
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise StoreError(f"{kind} {path} failed: {e}") from e

        if payload.get("status") != "success":
            message = payload.get("errorMessage") or "unknown error"
            if "not found" in message.lower():
                raise BookmarkNotFoundError(message)
            raise StoreError(f"{kind} {path} failed: {message}")
        return payload.get("value")

    async def list_bookmarks(self) -> list[Bookmark]:
        value = await self._call("query", "bookmarks:list", {})
        return [Bookmark.model_validate(doc) for doc in value or []]

    async def create_bookmark(
        self,
        *,
        url: str,
        title: str,
        tags: list[str],
        favicon: str | None = None,
        comment: str | None = None,
    ) -> str:
        args: dict[str, Any] = {"url": url, "title": title, "tags": tags}
        if favicon is not None:
            args["favicon"] = favicon
        if comment is not None:
            args["comment"] = comment
        return str(await self._call("mutation", "bookmarks:createBookmark", args))

    async def update_bookmark(
        self,
        bookmark_id: str,
        *,
        url: str | None = None,
        title: str | None = None,
        tags: list[str] | None = None,
        favicon: str | None = None,
    ) -> None:
        _ensure_real_id(bookmark_id)
        args: dict[str, Any] = {"id": bookmark_id}
        for key, value in (("url", url), ("title", title), ("tags", tags), ("favicon", favicon)):
            if value is not None:
                args[key] = value
        await self._call("mutation", "bookmarks:updateBookmark", args)

    async def delete_bookmark(self, bookmark_id: str) -> None:
        _ensure_real_id(bookmark_id)
        await self._call("mutation", "bookmarks:deleteBookmark", {"id": bookmark_id})

    async def import_bookmarks(self, records: Iterable[ImportRecord]) -> int:
        value = await self._call(
            "mutation",
            "bookmarks:importBookmarks",
            {"bookmarks": [record.model_dump() for record in records]},
        )
        return int((value or {}).get("imported", 0))

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


class InMemoryBookmarkStore(BookmarkStore):
    """Process-local store with the remote functions' semantics."""

    def __init__(self, clock: Callable[[], float] = time.time):
        self._docs: dict[str, Bookmark] = {}
        self._listeners: list[Listener] = []
        self._clock = clock
        self._counter = 0

    def _next_id(self) -> str:
        self._counter += 1
        return f"bm{self._counter:06d}"

    def _now_ms(self) -> float:
        # Strictly increasing so ordering is stable under a frozen clock
        now = self._clock() * 1000
        latest = max((doc.created_at for doc in self._docs.values()), default=None)
        if latest is not None and now <= latest:
            now = latest + 1
        return now

    def _snapshot(self) -> list[Bookmark]:
        return sorted(self._docs.values(), key=lambda doc: doc.created_at, reverse=True)

    def _notify(self) -> None:
        snapshot = self._snapshot()
        for listener in list(self._listeners):
            try:
                listener(list(snapshot))
            except Exception:
                logger.exception("Bookmark list listener failed")

    def _insert(self, **fields: Any) -> str:
        bookmark_id = self._next_id()
        self._docs[bookmark_id] = Bookmark(id=bookmark_id, created_at=self._now_ms(), **fields)
        return bookmark_id

    async def list_bookmarks(self) -> list[Bookmark]:
        return self._snapshot()

    async def create_bookmark(
        self,
        *,
        url: str,
        title: str,
        tags: list[str],
        favicon: str | None = None,
        comment: str | None = None,
    ) -> str:
        favicon_url = favicon if favicon is not None else resolve_favicon(url)
        logger.debug(f"favicon url {favicon_url} for hostname {get_hostname(url)}")
        bookmark_id = self._insert(url=url, title=title, tags=list(tags), favicon=favicon_url, comment=comment)
        self._notify()
        return bookmark_id

    async def update_bookmark(
        self,
        bookmark_id: str,
        *,
        url: str | None = None,
        title: str | None = None,
        tags: list[str] | None = None,
        favicon: str | None = None,
    ) -> None:
        _ensure_real_id(bookmark_id)
        existing = self._docs.get(bookmark_id)
        if existing is None:
            raise BookmarkNotFoundError("Bookmark not found")

        updates: dict[str, Any] = {}
        if title is not None:
            updates["title"] = title
        if tags is not None:
            updates["tags"] = list(tags)
        if favicon is not None:
            updates["favicon"] = favicon
        # Only a changed URL is written, and only then is the favicon recomputed
        if url is not None and url != existing.url:
            updates["url"] = url
            if favicon is None:
                updates["favicon"] = build_favicon_url(get_hostname(url))

        if not updates:
            return

        self._docs[bookmark_id] = existing.model_copy(update=updates)
        self._notify()

    async def delete_bookmark(self, bookmark_id: str) -> None:
        _ensure_real_id(bookmark_id)
        self._docs.pop(bookmark_id, None)
        self._notify()

    async def import_bookmarks(self, records: Iterable[ImportRecord]) -> int:
        # All or nothing: decode every record before inserting any
        decoded = [(record, decode_import_tags(record.tags)) for record in records]
        for record, tags in decoded:
            self._insert(
                url=record.url,
                title=record.title,
                tags=tags,
                favicon=resolve_favicon(record.url),
            )
        if decoded:
            self._notify()
        return len(decoded)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe


def create_store(config: Settings) -> BookmarkStore | None:
    """Build the store the settings point at, or None when unconfigured."""
    if config.store_backend == "memory":
        return InMemoryBookmarkStore()
    if not config.store_url:
        logger.warning("Bookmark store URL not configured")
        return None
    return ConvexBookmarkStore(config.store_url, timeout=config.store_timeout)


@lru_cache(maxsize=1)
def get_default_store() -> BookmarkStore | None:
    """Store singleton for the configured backend."""
    return create_store(settings)
