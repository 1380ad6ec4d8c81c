"""Application configuration via environment variables."""

from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    environment: str = "development"
    debug: bool = False
    service_name: str = "tagmark"

    # CORS
    cors_origins: list[str] = ["*"]

    # Remote bookmark store (Convex deployment URL)
    store_backend: Literal["convex", "memory"] = "convex"
    store_url: str = ""
    store_timeout: float = 10.0

    # Metadata scraping
    metadata_timeout: float = 10.0

    # Tag aggregation endpoint
    tag_cache_ttl_seconds: float = 30.0
    tag_cdn_s_maxage: int = 30
    tag_cdn_stale_while_revalidate: int = 60 * 60 * 24 * 3
    tag_sort_by_frequency: bool = True
    tag_case_insensitive: bool = True

    # Local cache slot
    cache_path: Path = Path.home() / ".tagmark" / "bookmark-cache.json"
    cache_key: str = "bookmark-cache-v1"

    # Optimistic creation
    creation_failure_policy: Literal["discard", "surface", "retry"] = "surface"
    creation_retry_attempts: int = 2

    # Rich input
    max_document_depth: int = 64

    class Config:
        env_prefix = "TAGMARK_"
        case_sensitive = False


settings = Settings()
