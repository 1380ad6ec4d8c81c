"""Bookmarks with inline @mention tags."""
