"""Bookmark creation endpoint."""

import logging

from fastapi import APIRouter, HTTPException
from fastapi.responses import PlainTextResponse

from ..config import settings
from ..models.bookmark import BookmarkCreateRequest, BookmarkCreateResponse, PageMetadata
from ..services.bookmark_store import get_default_store
from ..services.favicon import normalize_url, resolve_favicon
from ..services.page_fetcher import fetch_metadata
from ..services.tag_service import normalize_tags
from .tags import get_tag_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/bookmarks", tags=["bookmarks"])


@router.get("", include_in_schema=False)
async def bookmarks_method_not_allowed() -> PlainTextResponse:
    return PlainTextResponse("Method Not Allowed", status_code=405)


@router.post("", status_code=201, response_model=BookmarkCreateResponse)
async def create_bookmark(request: BookmarkCreateRequest) -> BookmarkCreateResponse:
    """Create a bookmark from a URL and optional tags.

    This endpoint:
    1. Normalizes the URL (adds `https://` when no scheme is given)
    2. Trims and lower-cases the tags
    3. Fetches page metadata (title, logo); failures fall back to the URL
       as title and a derived favicon
    4. Stores the bookmark and returns its id
    """
    store = get_default_store()
    if store is None:
        raise HTTPException(status_code=500, detail="Bookmark store not configured")

    if not isinstance(request.url, str) or not request.url.strip():
        raise HTTPException(status_code=400, detail="Invalid url")

    normalized_url = normalize_url(request.url)
    tags = normalize_tags(request.tags)

    metadata = PageMetadata(url=normalized_url)
    try:
        metadata = await fetch_metadata(normalized_url, timeout=settings.metadata_timeout)
    except Exception as e:
        logger.warning(f"Failed to fetch metadata for {normalized_url}: {e}")

    title = (metadata.title or "").strip() or normalized_url
    favicon = (metadata.logo or "").strip() or resolve_favicon(normalized_url)

    try:
        new_id = await store.create_bookmark(url=normalized_url, title=title, tags=tags, favicon=favicon)
    except Exception:
        logger.exception(f"Failed to create bookmark via API: {normalized_url}")
        raise HTTPException(status_code=500, detail="Internal Server Error")

    tag_service = get_tag_service()
    if tag_service is not None:
        tag_service.invalidate()

    logger.info(f"Created bookmark {new_id} for {normalized_url}")
    return BookmarkCreateResponse(id=new_id)
