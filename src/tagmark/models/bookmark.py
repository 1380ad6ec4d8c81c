"""Bookmark models for request/response handling."""

import json
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator

TEMPORARY_ID_PREFIX = "tmp-"


def new_temporary_id() -> str:
    """Generate a locally scoped id for a bookmark that is not stored yet."""
    return f"{TEMPORARY_ID_PREFIX}{uuid4().hex}"


def is_temporary_id(bookmark_id: str) -> bool:
    """Return True for ids generated by ``new_temporary_id``."""
    return bookmark_id.startswith(TEMPORARY_ID_PREFIX)


class Bookmark(BaseModel):
    """A stored (or optimistically created) bookmark.

    The remote store names the id and creation time ``_id`` and
    ``_creationTime``; both spellings are accepted on input and the aliases
    are used when serializing for the cache.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str = Field(..., alias="_id")
    created_at: float = Field(..., alias="_creationTime", description="Milliseconds since epoch")
    url: str
    title: str
    tags: list[str] = Field(default_factory=list)
    favicon: str
    comment: str | None = None


class BookmarkPatch(BaseModel):
    """Partial update overlay; only fields that are set get applied."""

    model_config = ConfigDict(frozen=True)

    url: str | None = None
    title: str | None = None
    tags: list[str] | None = None
    favicon: str | None = None

    def merge(self, newer: "BookmarkPatch") -> "BookmarkPatch":
        """Combine with a newer patch, newer fields winning.

        A field the newer patch passes explicitly as None clears the older
        value, so an edit without a typed title drops an earlier typed one.
        """
        merged = {**self.changes(), **newer.model_dump(exclude_unset=True)}
        return BookmarkPatch(**{key: value for key, value in merged.items() if value is not None})

    def changes(self) -> dict[str, Any]:
        """Return only the fields this patch sets."""
        return self.model_dump(exclude_none=True)

    def apply(self, bookmark: Bookmark) -> Bookmark:
        """Return ``bookmark`` with this patch's fields replaced."""
        changes = self.changes()
        if not changes:
            return bookmark
        return bookmark.model_copy(update=changes)


class PageMetadata(BaseModel):
    """Metadata extracted from a webpage."""

    url: str
    title: str | None = None
    logo: str | None = None


class BookmarkCreateRequest(BaseModel):
    """Request body for ``POST /api/bookmarks``.

    Fields are loosely typed so that wrong types surface as the endpoint's
    own 400 answer instead of a schema error.
    """

    url: Any = None
    tags: Any = None


class BookmarkCreateResponse(BaseModel):
    """Response from creating a bookmark."""

    id: str


class ImportRecord(BaseModel):
    """One record of a bulk import export file."""

    title: str
    url: str
    tags: str = Field("[]", description='JSON encoded list, e.g. "[\\"tag1\\",\\"tag2\\"]"')

    @field_validator("tags")
    @classmethod
    def validate_tags(cls, value: str) -> str:
        decode_import_tags(value)
        return value

    def tag_list(self) -> list[str]:
        """Decoded tags."""
        return decode_import_tags(self.tags)


def decode_import_tags(raw: str) -> list[str]:
    """Decode an import record's tags, which must be a JSON list of strings.

    Raises:
        ValueError: On invalid JSON or any other JSON value
    """
    tags = json.loads(raw)
    if not isinstance(tags, list) or not all(isinstance(tag, str) for tag in tags):
        raise ValueError("tags must be a JSON encoded list of strings")
    return tags
