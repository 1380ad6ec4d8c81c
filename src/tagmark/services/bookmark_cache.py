"""Single-slot on-disk cache of the last known-good bookmark list."""

import json
import logging
import os
from pathlib import Path

from pydantic import ValidationError

from ..models.bookmark import Bookmark

logger = logging.getLogger(__name__)


class BookmarkCache:
    """Persist the last remote bookmark list under a fixed key.

    The snapshot is always replaced wholesale. Read and write failures are
    logged and otherwise ignored so a broken cache never blocks the list.
    """

    def __init__(self, path: Path, key: str = "bookmark-cache-v1"):
        self.path = Path(path)
        self.key = key

    def load(self) -> list[Bookmark] | None:
        """Read the cached list, or None when nothing usable is stored."""
        if not self.path.exists():
            return None
        try:
            payload = json.loads(self.path.read_text(encoding="utf-8"))
            if payload.get("key") != self.key:
                logger.info(f"Ignoring cache with key {payload.get('key')!r}")
                return None
            return [Bookmark.model_validate(doc) for doc in payload["bookmarks"]]
        except (OSError, ValueError, KeyError, AttributeError, TypeError, ValidationError) as e:
            logger.error(f"Failed to read cached bookmarks: {e}")
            return None

    def save(self, bookmarks: list[Bookmark]) -> None:
        """Overwrite the cached list."""
        payload = {
            "key": self.key,
            "bookmarks": [bookmark.model_dump(by_alias=True) for bookmark in bookmarks],
        }
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(json.dumps(payload), encoding="utf-8")
            os.replace(tmp_path, self.path)
        except OSError as e:
            logger.error(f"Failed to write cached bookmarks: {e}")

    def clear(self) -> None:
        """Remove the cache file if present."""
        try:
            self.path.unlink(missing_ok=True)
        except OSError as e:
            logger.error(f"Failed to clear cached bookmarks: {e}")
