"""API route modules."""

from . import bookmarks, health, tags

__all__ = ["health", "bookmarks", "tags"]
