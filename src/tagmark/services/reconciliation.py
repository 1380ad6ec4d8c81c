"""Merge the remote bookmark list with local in-flight overlays.

Every id carries at most one overlay:

- ``Creating``: optimistic entry with a temporary id, waiting on the store
- ``CreationFailed``: a create that failed and is kept visible for retry
- ``Editing``: a patch shown over the stored bookmark
- ``Deleting``: hidden from view until the store confirms or rejects

Edits and deletions are fenced with a per-id version. A settlement only
takes effect when it carries the latest version issued for that id.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, Mapping

from ..models.bookmark import Bookmark, BookmarkPatch, is_temporary_id

logger = logging.getLogger(__name__)


class OverlayConflictError(Exception):
    """Raised when an action is not allowed given the id's current overlay."""


@dataclass(frozen=True)
class Creating:
    bookmark: Bookmark
    sequence: int


@dataclass(frozen=True)
class CreationFailed:
    bookmark: Bookmark
    sequence: int
    error: str


@dataclass(frozen=True)
class Editing:
    patch: BookmarkPatch
    version: int


@dataclass(frozen=True)
class Deleting:
    version: int
    confirmed: bool = False


Overlay = Creating | CreationFailed | Editing | Deleting


def reconcile(
    remote_list: list[Bookmark] | None,
    cache: list[Bookmark] | None,
    overlays: Mapping[str, Overlay],
) -> list[Bookmark]:
    """Produce the list the view should render.

    Args:
        remote_list: Latest list from the store, None while not loaded
        cache: Cached snapshot, preferred as base when present
        overlays: Overlay per bookmark id

    Returns:
        Pending creations newest first, followed by the base list in store
        order, with deletions removed and edits applied in place
    """
    if cache is not None:
        base = cache
    elif remote_list is not None:
        base = remote_list
    else:
        base = []

    creations = sorted(
        (o for o in overlays.values() if isinstance(o, (Creating, CreationFailed))),
        key=lambda o: o.sequence,
        reverse=True,
    )
    combined = [o.bookmark for o in creations] + list(base)

    result: list[Bookmark] = []
    for bookmark in combined:
        overlay = overlays.get(bookmark.id)
        if isinstance(overlay, Deleting):
            continue
        if isinstance(overlay, Editing):
            bookmark = overlay.patch.apply(bookmark)
        result.append(bookmark)
    return result


class OverlayTable:
    """Mutable holder of the overlay per id plus the version counters."""

    def __init__(self) -> None:
        self._overlays: dict[str, Overlay] = {}
        self._versions: dict[str, int] = {}
        self._sequence = 0

    def __contains__(self, bookmark_id: object) -> bool:
        return bookmark_id in self._overlays

    def get(self, bookmark_id: str) -> Overlay | None:
        return self._overlays.get(bookmark_id)

    def as_mapping(self) -> Mapping[str, Overlay]:
        return dict(self._overlays)

    def latest_version(self, bookmark_id: str) -> int:
        return self._versions.get(bookmark_id, 0)

    def _issue_version(self, bookmark_id: str) -> int:
        version = self._versions.get(bookmark_id, 0) + 1
        self._versions[bookmark_id] = version
        return version

    # Creation

    def begin_creation(self, bookmark: Bookmark) -> Creating:
        if not is_temporary_id(bookmark.id):
            raise ValueError(f"Optimistic bookmarks need a temporary id, got {bookmark.id}")
        self._sequence += 1
        overlay = Creating(bookmark=bookmark, sequence=self._sequence)
        self._overlays[bookmark.id] = overlay
        return overlay

    def fail_creation(self, temp_id: str, error: str) -> CreationFailed:
        """Keep a failed creation visible, in its original position."""
        overlay = self._overlays.get(temp_id)
        if not isinstance(overlay, (Creating, CreationFailed)):
            raise KeyError(temp_id)
        failed = CreationFailed(bookmark=overlay.bookmark, sequence=overlay.sequence, error=error)
        self._overlays[temp_id] = failed
        return failed

    def retry_creation(self, temp_id: str) -> Creating:
        overlay = self._overlays.get(temp_id)
        if not isinstance(overlay, CreationFailed):
            raise KeyError(temp_id)
        creating = Creating(bookmark=overlay.bookmark, sequence=overlay.sequence)
        self._overlays[temp_id] = creating
        return creating

    def end_creation(self, temp_id: str) -> None:
        overlay = self._overlays.get(temp_id)
        if isinstance(overlay, (Creating, CreationFailed)):
            del self._overlays[temp_id]

    # Edits

    def begin_edit(self, bookmark_id: str, patch: BookmarkPatch) -> int:
        """Record a pending edit and return its version.

        A newer patch merges over an older pending one, field by field.
        """
        self._reject_temporary(bookmark_id, "edit")
        current = self._overlays.get(bookmark_id)
        if isinstance(current, Deleting):
            raise OverlayConflictError(f"Bookmark {bookmark_id} is being deleted")
        if isinstance(current, Editing):
            patch = current.patch.merge(patch)
        version = self._issue_version(bookmark_id)
        self._overlays[bookmark_id] = Editing(patch=patch, version=version)
        return version

    def settle_edit(self, bookmark_id: str, version: int) -> bool:
        """Clear the pending edit if ``version`` is still the latest."""
        current = self._overlays.get(bookmark_id)
        if not isinstance(current, Editing) or current.version != version:
            logger.debug(f"Ignoring stale edit settlement for {bookmark_id} (v{version})")
            return False
        del self._overlays[bookmark_id]
        return True

    def cancel_edit(self, bookmark_id: str) -> bool:
        if isinstance(self._overlays.get(bookmark_id), Editing):
            del self._overlays[bookmark_id]
            # Bump so settlements of the cancelled edit are ignored
            self._issue_version(bookmark_id)
            return True
        return False

    # Deletions

    def begin_delete(self, bookmark_id: str) -> int:
        """Hide a bookmark; replaces any pending edit for it."""
        self._reject_temporary(bookmark_id, "delete")
        version = self._issue_version(bookmark_id)
        self._overlays[bookmark_id] = Deleting(version=version)
        return version

    def confirm_delete(self, bookmark_id: str, version: int) -> bool:
        current = self._overlays.get(bookmark_id)
        if not isinstance(current, Deleting) or current.version != version:
            return False
        self._overlays[bookmark_id] = Deleting(version=version, confirmed=True)
        return True

    def rollback_delete(self, bookmark_id: str, version: int) -> bool:
        current = self._overlays.get(bookmark_id)
        if not isinstance(current, Deleting) or current.version != version:
            logger.debug(f"Ignoring stale delete rollback for {bookmark_id} (v{version})")
            return False
        del self._overlays[bookmark_id]
        return True

    def prune_deletions(self, present_ids: Iterable[str]) -> None:
        """Drop confirmed deletions the remote list no longer contains."""
        present = set(present_ids)
        for bookmark_id, overlay in list(self._overlays.items()):
            if isinstance(overlay, Deleting) and overlay.confirmed and bookmark_id not in present:
                del self._overlays[bookmark_id]

    def _reject_temporary(self, bookmark_id: str, action: str) -> None:
        if is_temporary_id(bookmark_id):
            raise OverlayConflictError(f"Cannot {action} {bookmark_id} before it is stored")

    # Read-only views

    @property
    def pending_creations(self) -> list[Bookmark]:
        """In-flight creations, newest first."""
        creating = [o for o in self._overlays.values() if isinstance(o, Creating)]
        return [o.bookmark for o in sorted(creating, key=lambda o: o.sequence, reverse=True)]

    @property
    def failed_creations(self) -> dict[str, CreationFailed]:
        return {k: o for k, o in self._overlays.items() if isinstance(o, CreationFailed)}

    @property
    def pending_edits(self) -> dict[str, BookmarkPatch]:
        return {k: o.patch for k, o in self._overlays.items() if isinstance(o, Editing)}

    @property
    def pending_deletions(self) -> set[str]:
        return {k for k, o in self._overlays.items() if isinstance(o, Deleting)}
