"""Tag aggregation models."""

from pydantic import BaseModel


class TagCount(BaseModel):
    """A distinct tag and how many bookmarks carry it."""

    tag: str
    count: int


class StructuredTagsResponse(BaseModel):
    """Response for ``GET /api/tags?format=structured``."""

    structured: list[TagCount]
    list: list[str]
