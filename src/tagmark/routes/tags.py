"""Tag aggregation endpoint for mention autocomplete."""

import logging
from functools import lru_cache
from typing import Literal

from fastapi import APIRouter, HTTPException, Response
from fastapi.responses import PlainTextResponse

from ..config import settings
from ..models.tags import StructuredTagsResponse
from ..services.bookmark_store import get_default_store
from ..services.tag_service import TagCache, TagService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/tags", tags=["tags"])


@lru_cache(maxsize=1)
def get_tag_service() -> TagService | None:
    """Get or create the TagService singleton, None when no store is configured."""
    store = get_default_store()
    if store is None:
        return None
    return TagService(
        store,
        TagCache(settings.tag_cache_ttl_seconds),
        sort_by_frequency=settings.tag_sort_by_frequency,
        case_insensitive=settings.tag_case_insensitive,
    )


def _cache_control() -> str:
    return f"s-maxage={settings.tag_cdn_s_maxage}, stale-while-revalidate={settings.tag_cdn_stale_while_revalidate}"


@router.get("", response_model=list[str] | StructuredTagsResponse)
async def list_tags(
    response: Response,
    format: Literal["list", "structured"] = "list",
) -> list[str] | StructuredTagsResponse:
    """Return the distinct tags across all bookmarks.

    **Formats:**
    - `list` (default): plain array of tag strings
    - `structured`: `{"structured": [{"tag", "count"}], "list": [...]}`
    """
    service = get_tag_service()
    if service is None:
        raise HTTPException(status_code=500, detail="Bookmark store not configured")

    try:
        tags = await service.get_tags()
    except Exception:
        logger.exception("Failed to fetch tags")
        raise HTTPException(status_code=500, detail="Internal Server Error")

    response.headers["Cache-Control"] = _cache_control()
    names = [tag.tag for tag in tags]
    if format == "structured":
        return StructuredTagsResponse(structured=tags, list=names)
    return names


@router.post("", include_in_schema=False)
async def tags_method_not_allowed() -> PlainTextResponse:
    return PlainTextResponse("Method Not Allowed", status_code=405)
