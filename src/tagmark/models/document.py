"""Models for the rich input document and its parsed form."""

from typing import Literal

from pydantic import BaseModel, Field


class TextPart(BaseModel):
    """A run of literal text."""

    kind: Literal["text"] = "text"
    value: str


class MentionPart(BaseModel):
    """An inline tag mention."""

    kind: Literal["mention"] = "mention"
    id: str


ContentPart = TextPart | MentionPart


class ParsedInput(BaseModel):
    """Structured result of parsing the input surface."""

    url: str | None = Field(None, description="URL candidate, None when the input is not a URL")
    title: str = ""
    tags: list[str] = Field(default_factory=list)
    query: str = Field("", description="All text, trimmed; used as the search string")
    parts: list[ContentPart] = Field(default_factory=list)

    @property
    def is_submission(self) -> bool:
        """True when the input should create or update a bookmark."""
        return self.url is not None
