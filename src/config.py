from __future__ import annotations

import os
from typing import Any, Optional

from pydantic import BaseModel, Field

from utils import mask_secret


class Configuration(BaseModel):
    # Google Places
    google_maps_api_key: Optional[str] = Field(default=None)
    places_base_url: str = Field(default="https://places.googleapis.com")
    geocode_base_url: str = Field(default="https://maps.googleapis.com")
    places_timeout: int = Field(default=15)
    places_max_results: int = Field(default=20)
    lang_default: str = Field(default="ja")

    # Search / ranking
    search_radius_m: int = Field(default=1500)
    query_timeout_sec: float = Field(default=20.0)
    max_display_items: int = Field(default=45)
    chain_ratio: float = Field(default=0.2)
    closing_buffer_min: int = Field(default=55)
    chain_closing_buffer_min: int = Field(default=30)
    tz_offset_hours: int = Field(default=9)

    # Default origin when the caller gives neither coordinates nor a query
    default_lat: float = Field(default=34.4503)
    default_lng: float = Field(default=135.4526)
    default_location_name: str = Field(default="桃山学院大学周辺")

    # Notion (persistent analysis store)
    notion_api_key: Optional[str] = Field(default=None)
    notion_database_id: Optional[str] = Field(default=None)
    notion_base_url: str = Field(default="https://api.notion.com/v1")
    notion_version: str = Field(default="2022-06-28")
    notion_timeout: int = Field(default=10)

    # Gemini (optional enrichment)
    gemini_api_key: Optional[str] = Field(default=None)
    gemini_model_id: str = Field(default="gemini-2.5-flash")
    gemini_retry_delay_sec: float = Field(default=12.0)

    # Analysis cache
    memory_cache_max_entries: Optional[int] = Field(default=None)
    write_queue_size: int = Field(default=256)
    write_drain_timeout_sec: float = Field(default=30.0)

    @classmethod
    def from_env(cls, overrides: Optional[dict[str, Any]] = None) -> "Configuration":
        raw: dict[str, Any] = {}

        env_map = {
            "google_maps_api_key": os.getenv("GOOGLE_MAPS_API_KEY"),
            "places_base_url": os.getenv("PLACES_BASE_URL"),
            "geocode_base_url": os.getenv("GEOCODE_BASE_URL"),
            "places_timeout": os.getenv("PLACES_TIMEOUT"),
            "places_max_results": os.getenv("PLACES_MAX_RESULTS"),
            "lang_default": os.getenv("LANG_DEFAULT"),
            "search_radius_m": os.getenv("SEARCH_RADIUS_M"),
            "query_timeout_sec": os.getenv("QUERY_TIMEOUT_SEC"),
            "max_display_items": os.getenv("MAX_DISPLAY_ITEMS"),
            "chain_ratio": os.getenv("CHAIN_RATIO"),
            "closing_buffer_min": os.getenv("CLOSING_BUFFER_MIN"),
            "chain_closing_buffer_min": os.getenv("CHAIN_CLOSING_BUFFER_MIN"),
            "tz_offset_hours": os.getenv("TZ_OFFSET_HOURS"),
            "default_lat": os.getenv("DEFAULT_LAT"),
            "default_lng": os.getenv("DEFAULT_LNG"),
            "default_location_name": os.getenv("DEFAULT_LOCATION_NAME"),
            # Notion
            "notion_api_key": os.getenv("NOTION_API_KEY"),
            "notion_database_id": os.getenv("NOTION_DATABASE_ID"),
            "notion_base_url": os.getenv("NOTION_BASE_URL"),
            "notion_version": os.getenv("NOTION_VERSION"),
            "notion_timeout": os.getenv("NOTION_TIMEOUT"),
            # Gemini
            "gemini_api_key": os.getenv("GEMINI_API_KEY"),
            "gemini_model_id": os.getenv("GEMINI_MODEL_ID"),
            "gemini_retry_delay_sec": os.getenv("GEMINI_RETRY_DELAY_SEC"),
            # Cache
            "memory_cache_max_entries": os.getenv("MEMORY_CACHE_MAX_ENTRIES"),
            "write_queue_size": os.getenv("WRITE_QUEUE_SIZE"),
            "write_drain_timeout_sec": os.getenv("WRITE_DRAIN_TIMEOUT_SEC"),
        }

        for k, v in env_map.items():
            if v is None or v == "":
                continue
            raw[k] = v

        if overrides:
            raw.update({k: v for k, v in overrides.items() if v is not None})

        return cls(**raw)

    def require_google(self) -> None:
        if not self.google_maps_api_key:
            raise ValueError("GOOGLE_MAPS_API_KEY is required")

    @property
    def notion_enabled(self) -> bool:
        return bool(self.notion_api_key and self.notion_database_id)

    @property
    def enrichment_enabled(self) -> bool:
        return bool(self.gemini_api_key)

    def log_summary(self) -> str:
        return (
            "google=%s radius_m=%s max_items=%s chain_ratio=%.2f notion=%s gemini=%s api_key=%s"
            % (
                bool(self.google_maps_api_key),
                self.search_radius_m,
                self.max_display_items,
                self.chain_ratio,
                self.notion_enabled,
                self.enrichment_enabled,
                mask_secret(self.google_maps_api_key),
            )
        )
