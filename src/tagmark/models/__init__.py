"""Pydantic models for request/response schemas."""

from .bookmark import (
    Bookmark,
    BookmarkCreateRequest,
    BookmarkCreateResponse,
    BookmarkPatch,
    ImportRecord,
    PageMetadata,
    is_temporary_id,
    new_temporary_id,
)
from .document import ContentPart, MentionPart, ParsedInput, TextPart
from .tags import StructuredTagsResponse, TagCount

__all__ = [
    "Bookmark",
    "BookmarkPatch",
    "BookmarkCreateRequest",
    "BookmarkCreateResponse",
    "ImportRecord",
    "PageMetadata",
    "is_temporary_id",
    "new_temporary_id",
    "ContentPart",
    "TextPart",
    "MentionPart",
    "ParsedInput",
    "TagCount",
    "StructuredTagsResponse",
]
