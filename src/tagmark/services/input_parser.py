"""Extract a URL, title and tags from the rich input document.

The input surface produces a ProseMirror-style JSON tree::

    {"type": "doc", "content": [
        {"type": "paragraph", "content": [
            {"type": "text", "text": "example.com "},
            {"type": "mention", "attrs": {"id": "news"}},
            {"type": "text", "text": " cool site"},
        ]},
    ]}

Tags are structural (mention nodes), so free text that merely looks like a
tag is never treated as one.
"""

import logging
import re
from typing import Any, Iterator, Mapping

from ..models.document import ContentPart, MentionPart, ParsedInput, TextPart

logger = logging.getLogger(__name__)

URL_PATTERN = re.compile(r"^(https?://)?[\w.-]+\.[a-z]{2,}(/\S*)?$", re.IGNORECASE | re.ASCII)

DEFAULT_MAX_DEPTH = 64

# Inline nodes that read as whitespace
_BREAK_NODES = {"hardBreak"}

_MENTION_TOKEN = re.compile(r"(?<!\S)@([\w-]+)")


class DocumentTooDeepError(ValueError):
    """Raised when the document nests deeper than the allowed depth."""


def is_url(candidate: str) -> bool:
    """Check whether a single word looks like a URL."""
    return bool(candidate) and URL_PATTERN.match(candidate) is not None


def flatten_document(
    document: Mapping[str, Any],
    max_depth: int = DEFAULT_MAX_DEPTH,
) -> list[ContentPart]:
    """Flatten a document tree into text and mention parts.

    Depth-first, pre-order, left to right. Consecutive block nodes are
    separated by a single space so words from different paragraphs do not
    run together.

    Raises:
        DocumentTooDeepError: When nesting exceeds ``max_depth``
    """
    parts: list[ContentPart] = []
    # Stack of (node, depth, needs_separator)
    stack: list[tuple[Mapping[str, Any], int, bool]] = [(document, 0, False)]

    while stack:
        node, depth, needs_separator = stack.pop()
        if depth > max_depth:
            raise DocumentTooDeepError(f"Document nesting exceeds {max_depth} levels")
        if not isinstance(node, Mapping):
            continue

        if needs_separator:
            parts.append(TextPart(value=" "))

        node_type = node.get("type")
        if node_type == "text" and isinstance(node.get("text"), str):
            parts.append(TextPart(value=node["text"]))
        elif node_type == "mention":
            mention_id = (node.get("attrs") or {}).get("id")
            if isinstance(mention_id, str):
                parts.append(MentionPart(id=mention_id))
        elif node_type in _BREAK_NODES:
            parts.append(TextPart(value=" "))

        children = node.get("content")
        if isinstance(children, list):
            block_children = node_type == "doc"
            # Reverse so the leftmost child is popped first
            for index in range(len(children) - 1, -1, -1):
                stack.append((children[index], depth + 1, block_children and index > 0))

    return parts


def _iter_text_before_first_mention(parts: list[ContentPart]) -> Iterator[str]:
    for part in parts:
        if isinstance(part, MentionPart):
            return
        yield part.value


def parse_parts(parts: list[ContentPart]) -> ParsedInput:
    """Build a ParsedInput from flattened parts."""
    full_text = "".join(part.value for part in parts if isinstance(part, TextPart))
    tags = [part.id for part in parts if isinstance(part, MentionPart)]

    leading_words = "".join(_iter_text_before_first_mention(parts)).split()
    candidate = leading_words[0] if leading_words else ""

    if tags:
        last_mention = max(i for i, part in enumerate(parts) if isinstance(part, MentionPart))
        trailing = "".join(part.value for part in parts[last_mention + 1 :] if isinstance(part, TextPart))
        title = trailing.strip()
    else:
        title = " ".join(full_text.split()[1:])

    return ParsedInput(
        url=candidate if is_url(candidate) else None,
        title=title,
        tags=tags,
        query=full_text.strip(),
        parts=parts,
    )


def parse_document(document: Mapping[str, Any], max_depth: int = DEFAULT_MAX_DEPTH) -> ParsedInput:
    """Parse an input document into URL, title remainder and tags."""
    return parse_parts(flatten_document(document, max_depth=max_depth))


def document_from_text(text: str) -> dict[str, Any]:
    """Build a single-paragraph document from plain text.

    ``@word`` tokens become mention nodes; everything else stays text.
    """
    content: list[dict[str, Any]] = []
    position = 0
    for match in _MENTION_TOKEN.finditer(text):
        if match.start() > position:
            content.append({"type": "text", "text": text[position : match.start()]})
        content.append({"type": "mention", "attrs": {"id": match.group(1)}})
        position = match.end()
    if position < len(text):
        content.append({"type": "text", "text": text[position:]})

    paragraph: dict[str, Any] = {"type": "paragraph"}
    if content:
        paragraph["content"] = content
    return {"type": "doc", "content": [paragraph]}


class TagChips:
    """Ordered tag collection that ignores re-insertion of a present tag."""

    def __init__(self, tags: list[str] | None = None):
        self._tags: list[str] = []
        for tag in tags or []:
            self.add(tag)

    def add(self, tag: str) -> bool:
        """Add a tag; returns False when blank or already present."""
        tag = tag.strip()
        if not tag or tag.casefold() in {t.casefold() for t in self._tags}:
            return False
        self._tags.append(tag)
        return True

    def extend(self, tags: list[str]) -> None:
        for tag in tags:
            self.add(tag)

    def remove(self, tag: str) -> bool:
        for existing in self._tags:
            if existing.casefold() == tag.strip().casefold():
                self._tags.remove(existing)
                return True
        return False

    def clear(self) -> None:
        self._tags.clear()

    def __iter__(self) -> Iterator[str]:
        return iter(self._tags)

    def __len__(self) -> int:
        return len(self._tags)

    def __contains__(self, tag: object) -> bool:
        return isinstance(tag, str) and tag.strip().casefold() in {t.casefold() for t in self._tags}

    def as_list(self) -> list[str]:
        return list(self._tags)
