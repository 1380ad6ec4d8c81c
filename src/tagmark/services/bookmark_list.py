"""Bookmark list controller with optimistic updates.

The controller owns the remote list, the cached snapshot and the overlay
table, and exposes the reconciled list the view renders. All methods run on
one asyncio event loop; every remote call is awaited independently and its
outcome is folded back through the overlay table.
"""

import logging
import time
from typing import Awaitable, Callable, Literal

from ..models.bookmark import Bookmark, BookmarkPatch, PageMetadata, new_temporary_id
from ..models.document import ParsedInput
from .bookmark_cache import BookmarkCache
from .bookmark_store import BookmarkStore, StoreError
from .favicon import normalize_url, resolve_favicon
from .input_parser import TagChips
from .page_fetcher import fetch_metadata
from .reconciliation import OverlayTable, reconcile
from .search import filter_bookmarks, suggestion_tags

logger = logging.getLogger(__name__)

CreationFailurePolicy = Literal["discard", "surface", "retry"]

MetadataFetcher = Callable[..., Awaitable[PageMetadata]]
ChangeListener = Callable[[list[Bookmark]], None]


class BookmarkListController:
    """Reconcile remote state with local optimistic overlays."""

    def __init__(
        self,
        store: BookmarkStore,
        cache: BookmarkCache | None = None,
        *,
        metadata_fetcher: MetadataFetcher | None = None,
        metadata_timeout: float = 10.0,
        failure_policy: CreationFailurePolicy = "surface",
        retry_attempts: int = 2,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize the controller.

        Args:
            store: Remote bookmark store
            cache: Local snapshot slot; None disables caching
            metadata_fetcher: Coroutine returning PageMetadata for a URL; defaults to fetch_metadata
            metadata_timeout: Timeout passed to the fetcher
            failure_policy: What a failed creation does: "discard" drops the
                entry, "surface" keeps it visible as failed, "retry" retries
                ``retry_attempts`` times and then surfaces it
            retry_attempts: Extra create attempts under the "retry" policy
            clock: Seconds since epoch, used for optimistic timestamps
        """
        self.store = store
        self.cache = cache
        self.overlays = OverlayTable()
        self._fetch = metadata_fetcher or fetch_metadata
        self._metadata_timeout = metadata_timeout
        self._failure_policy = failure_policy
        self._retry_attempts = max(0, retry_attempts)
        self._clock = clock
        self._remote: list[Bookmark] | None = None
        self._snapshot: list[Bookmark] | None = None
        self._listeners: list[ChangeListener] = []
        self._unsubscribe: Callable[[], None] | None = None
        self._creates_in_flight = 0
        # Temporary id -> stored id, for creations the store accepted
        self.stored_ids: dict[str, str] = {}

    # State

    @property
    def bookmarks(self) -> list[Bookmark]:
        """The reconciled list, in display order."""
        return reconcile(self._remote, self._snapshot, self.overlays.as_mapping())

    @property
    def is_loaded(self) -> bool:
        """True once a list has arrived from the store in this session."""
        return self._remote is not None

    @property
    def failures(self) -> dict[str, str]:
        """Error text per temporary id of creations that failed."""
        return {temp_id: o.error for temp_id, o in self.overlays.failed_creations.items()}

    def visible(self, query: str = "") -> list[Bookmark]:
        return filter_bookmarks(self.bookmarks, query)

    def all_tags(self) -> list[str]:
        return suggestion_tags(self._remote or self._snapshot or [])

    def get(self, bookmark_id: str) -> Bookmark | None:
        for bookmark in self.bookmarks:
            if bookmark.id == bookmark_id:
                return bookmark
        return None

    def _require(self, bookmark_id: str) -> Bookmark:
        bookmark = self.get(bookmark_id)
        if bookmark is None:
            raise KeyError(bookmark_id)
        return bookmark

    def on_change(self, listener: ChangeListener) -> Callable[[], None]:
        """Call ``listener`` with the reconciled list after every change."""
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener) if listener in self._listeners else None

    def _changed(self) -> None:
        if not self._listeners:
            return
        bookmarks = self.bookmarks
        for listener in list(self._listeners):
            try:
                listener(bookmarks)
            except Exception:
                logger.exception("Bookmark list change listener failed")

    # Remote list

    def load_cache(self) -> bool:
        """Show the cached snapshot until the first remote list arrives."""
        if self.cache is None or self._remote is not None:
            return False
        snapshot = self.cache.load()
        if snapshot is None:
            return False
        self._snapshot = snapshot
        self._changed()
        return True

    def attach(self) -> bool:
        """Subscribe to pushed lists; returns False when the store cannot push."""
        if self._unsubscribe is None:
            self._unsubscribe = self.store.subscribe(self.apply_remote_list)
        return self._unsubscribe is not None

    def detach(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def apply_remote_list(self, bookmarks: list[Bookmark]) -> None:
        """Replace the remote list and the cached snapshot in one step."""
        fresh = list(bookmarks)
        self._remote = fresh
        self._snapshot = fresh
        self.overlays.prune_deletions(bookmark.id for bookmark in fresh)
        if self.cache is not None:
            self.cache.save(fresh)
        # A list pushed from inside a create call already holds the stored
        # entry while its optimistic twin is still shown; announce it once
        # the creation settles
        if self._creates_in_flight:
            return
        self._changed()

    async def refresh(self) -> bool:
        """Query the store and apply the result."""
        try:
            bookmarks = await self.store.list_bookmarks()
        except StoreError as e:
            logger.error(f"Failed to load bookmarks: {e}")
            return False
        self.apply_remote_list(bookmarks)
        return True

    async def _sync_after_mutation(self) -> None:
        # Pushing stores have already delivered the new list
        if self._unsubscribe is None:
            await self.refresh()

    async def _fetch_metadata(self, url: str) -> PageMetadata | None:
        try:
            return await self._fetch(url, timeout=self._metadata_timeout)
        except Exception as e:
            logger.warning(f"Failed to fetch metadata for {url}: {e}")
            return None

    # Actions

    async def submit(self, parsed: ParsedInput, editing_id: str | None = None) -> str | bool | None:
        """Create or update from parsed input.

        Returns:
            None when the input is a search query rather than a URL, the
            temporary id for a creation, or the edit outcome
        """
        if not parsed.is_submission:
            return None
        tags = TagChips(parsed.tags).as_list()
        if editing_id is not None:
            return await self.edit(editing_id, parsed.url, tags, parsed.title or None)
        return await self.create(parsed.url, tags, parsed.title or None)

    async def create(self, url: str, tags: list[str], title: str | None = None) -> str:
        """Insert an optimistic bookmark and create it in the store.

        Returns:
            The temporary id of the optimistic entry; ``stored_ids`` maps it
            to the stored id once the store accepts it
        """
        if not url.strip():
            raise ValueError("url must not be blank")

        normalized = normalize_url(url)
        typed_title = (title or "").strip()
        optimistic = Bookmark(
            id=new_temporary_id(),
            created_at=self._clock() * 1000,
            url=normalized,
            title=typed_title or normalized,
            tags=list(tags),
            favicon=resolve_favicon(normalized),
        )
        self.overlays.begin_creation(optimistic)
        self._changed()

        await self._run_creation(optimistic, typed_title)
        return optimistic.id

    async def _run_creation(self, optimistic: Bookmark, typed_title: str) -> str | None:
        """Create ``optimistic`` in the store; returns the stored id, or None on failure."""
        metadata = await self._fetch_metadata(optimistic.url)
        metadata_title = metadata.title.strip() if metadata and metadata.title else ""
        logo = metadata.logo.strip() if metadata and metadata.logo else ""

        attempts = 1 + (self._retry_attempts if self._failure_policy == "retry" else 0)
        stored_id: str | None = None
        error: Exception | None = None
        for attempt in range(1, attempts + 1):
            self._creates_in_flight += 1
            try:
                stored_id = await self.store.create_bookmark(
                    url=optimistic.url,
                    title=typed_title or metadata_title or optimistic.url,
                    tags=list(optimistic.tags),
                    favicon=logo or None,
                )
                error = None
                break
            except Exception as e:
                error = e
                logger.warning(f"Create attempt {attempt}/{attempts} failed for {optimistic.url}: {e}")
            finally:
                self._creates_in_flight -= 1

        if error is None:
            await self._sync_after_mutation()
            self.overlays.end_creation(optimistic.id)
            self.stored_ids[optimistic.id] = stored_id
        elif self._failure_policy == "discard" or optimistic.id not in self.overlays:
            logger.error(f"Failed to create bookmark {optimistic.url}: {error}")
            self.overlays.end_creation(optimistic.id)
        else:
            logger.error(f"Failed to create bookmark {optimistic.url}, keeping it for retry: {error}")
            self.overlays.fail_creation(optimistic.id, str(error))
        self._changed()
        return stored_id if error is None else None

    async def retry_creation(self, temp_id: str) -> str | None:
        """Retry a creation that failed under the surface/retry policies.

        Returns:
            The stored id, or None when the retry failed too
        """
        failed = self.overlays.failed_creations.get(temp_id)
        if failed is None:
            raise KeyError(temp_id)
        self.overlays.retry_creation(temp_id)
        self._changed()

        bookmark = failed.bookmark
        typed_title = bookmark.title if bookmark.title != bookmark.url else ""
        return await self._run_creation(bookmark, typed_title)

    def dismiss_failure(self, temp_id: str) -> bool:
        """Drop a failed creation from view."""
        if temp_id not in self.overlays.failed_creations:
            return False
        self.overlays.end_creation(temp_id)
        self._changed()
        return True

    async def edit(
        self,
        bookmark_id: str,
        url: str,
        tags: list[str],
        title: str | None = None,
    ) -> bool:
        """Show an edit immediately and send it to the store.

        Returns:
            True when the store accepted the update
        """
        self._require(bookmark_id)
        normalized = normalize_url(url)
        typed_title = (title or "").strip()

        version = self.overlays.begin_edit(
            bookmark_id,
            BookmarkPatch(url=normalized, title=typed_title or None, tags=list(tags)),
        )
        self._changed()

        final_title = typed_title
        if not final_title:
            metadata = await self._fetch_metadata(normalized)
            final_title = (metadata.title or "").strip() if metadata else ""

        try:
            await self.store.update_bookmark(
                bookmark_id,
                url=normalized,
                title=final_title or normalized,
                tags=list(tags),
            )
            succeeded = True
        except Exception as e:
            logger.error(f"Failed to update bookmark {bookmark_id}: {e}")
            succeeded = False

        if succeeded:
            await self._sync_after_mutation()
        if self.overlays.settle_edit(bookmark_id, version):
            self._changed()
        return succeeded

    def cancel_edit(self, bookmark_id: str) -> bool:
        """Discard the pending edit, reverting to the stored content."""
        if self.overlays.cancel_edit(bookmark_id):
            self._changed()
            return True
        return False

    async def refresh_favicon(self, bookmark_id: str) -> bool:
        """Re-scrape the logo for a bookmark and store only the favicon."""
        bookmark = self._require(bookmark_id)
        metadata = await self._fetch_metadata(bookmark.url)
        logo = metadata.logo.strip() if metadata and metadata.logo else ""
        favicon = logo or resolve_favicon(bookmark.url)

        version = self.overlays.begin_edit(bookmark_id, BookmarkPatch(favicon=favicon))
        self._changed()

        try:
            await self.store.update_bookmark(bookmark_id, favicon=favicon)
            succeeded = True
        except Exception as e:
            logger.error(f"Failed to refresh favicon for {bookmark_id}: {e}")
            succeeded = False

        if succeeded:
            await self._sync_after_mutation()
        if self.overlays.settle_edit(bookmark_id, version):
            self._changed()
        return succeeded

    async def delete(self, bookmark_id: str) -> bool:
        """Hide a bookmark immediately; restore it if the store refuses.

        Returns:
            True when the store deleted the bookmark
        """
        self._require(bookmark_id)
        version = self.overlays.begin_delete(bookmark_id)
        self._changed()

        try:
            await self.store.delete_bookmark(bookmark_id)
        except Exception as e:
            logger.error(f"Failed to delete bookmark {bookmark_id}: {e}")
            if self.overlays.rollback_delete(bookmark_id, version):
                self._changed()
            return False

        if self.overlays.confirm_delete(bookmark_id, version) and self._remote is not None:
            self.overlays.prune_deletions(bookmark.id for bookmark in self._remote)
        await self._sync_after_mutation()
        self._changed()
        return True
