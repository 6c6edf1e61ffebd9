from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from dataclasses import asdict
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger
from pydantic import BaseModel, Field

from config import Configuration
from services.analysis_cache import AnalysisCache, MemoryTier
from services.analysis_store import NotionStore
from services.candidate_search import CandidateFetchError
from services.enrichment import GeminiEnricher
from services.google_places import GooglePlacesClient
from services.pipeline import enrich_venues, get_eligible_venues, resolve_origin
from services.write_behind import WriteBehindQueue


def build_cache(cfg: Configuration) -> AnalysisCache:
    store = NotionStore(cfg) if cfg.notion_enabled else None
    writer = WriteBehindQueue(store, maxsize=cfg.write_queue_size) if store is not None else None
    enricher = GeminiEnricher(cfg) if cfg.enrichment_enabled else None
    return AnalysisCache(
        store,
        enricher=enricher,
        writer=writer,
        memory=MemoryTier(cfg.memory_cache_max_entries),
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    cfg = Configuration.from_env()
    logger.info("cfg: {}", cfg.log_summary())
    app.state.cfg = cfg
    app.state.provider = GooglePlacesClient(cfg)
    app.state.cache = build_cache(cfg)
    try:
        yield
    finally:
        drained = app.state.cache.close(cfg.write_drain_timeout_sec)
        writer = app.state.cache.writer
        if writer is not None:
            logger.info("Write-behind shut down (drained={}): {}", drained, asdict(writer.stats))


app = FastAPI(title="Nearby Venue Finder", lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class LocationPayload(BaseModel):
    name: str
    lat: float
    lng: float


class StoresResponse(BaseModel):
    stores: List[Dict[str, Any]] = Field(default_factory=list)
    candidate_count: int = 0
    location: LocationPayload
    is_drinking_mode: bool = False
    success: bool = True
    error: Optional[str] = None


@app.get("/healthz")
def healthz() -> dict:
    cfg: Configuration = app.state.cfg
    writer = app.state.cache.writer
    return {
        "status": "ok",
        "memory_cache_size": len(app.state.cache.memory),
        "write_behind": asdict(writer.stats) if writer is not None else None,
        "notion": cfg.notion_enabled,
        "gemini": cfg.enrichment_enabled,
    }


@app.get("/stores", response_model=StoresResponse)
async def stores(
    lat: Optional[float] = None,
    lng: Optional[float] = None,
    name: Optional[str] = None,
    q: Optional[str] = None,
    drunk: str = Query("0"),
):
    cfg: Configuration = app.state.cfg
    provider = app.state.provider
    drinking_mode = drunk == "1"

    origin, location_name = await asyncio.to_thread(
        resolve_origin, cfg, provider, lat=lat, lng=lng, name=name, query=q
    )
    location = LocationPayload(name=location_name, lat=origin[0], lng=origin[1])

    try:
        listing = await get_eligible_venues(
            cfg, provider, origin, location_name, drinking_mode=drinking_mode
        )
    except CandidateFetchError as exc:
        logger.error("Store search failed: {}", exc)
        payload = StoresResponse(
            location=location, is_drinking_mode=drinking_mode, success=False, error=str(exc)
        )
        return JSONResponse(status_code=502, content=payload.model_dump())

    recommendations = await enrich_venues(app.state.cache, listing.venues, origin)
    return StoresResponse(
        stores=[asdict(r) for r in recommendations],
        candidate_count=len(listing.candidates),
        location=location,
        is_drinking_mode=drinking_mode,
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=8010, reload=True)
