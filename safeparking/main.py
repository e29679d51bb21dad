from __future__ import annotations

import logging
from functools import partial
from typing import List, Optional, Tuple

import aiohttp
from fastapi import FastAPI, HTTPException, Query

from safeparking.config import get_settings
from safeparking.errors import DirectionsError, FetchFailure
from safeparking.models import (
    Coordinate,
    LocatedEntity,
    Recommendation,
    RoutePath,
    SearchQuery,
    SearchResult,
)
from safeparking.services import datasets
from safeparking.services.cache import TTLCache, make_cache_key
from safeparking.services.directions import PRIORITIES, fetch_route_path, make_route_provider
from safeparking.services.search import (
    find_nearby,
    find_nearby_zones,
    recommend_parking,
    search_parking_by_name,
)

settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title=settings.app_name,
    version=settings.version,
    description="Nearby public parking lots and no-parking zones, ranked by distance and drive time.",
)

logger.info("Starting %s v%s", settings.app_name, settings.version)

# Parking dataset snapshot for name search; refreshed by TTL or DELETE /api/parking/cache.
parking_cache: TTLCache[Tuple[LocatedEntity, ...]] = TTLCache(
    ttl_s=settings.cache_ttl_s, max_size=settings.cache_max_size
)

PRIORITY_PATTERN = "^(" + "|".join(PRIORITIES) + ")$"


def _upstream_error(e: Exception) -> HTTPException:
    # 502: upstream outage, the client may retry
    return HTTPException(status_code=502, detail=f"Upstream error: {e}")


def _query(lat: float, lng: float, radius_km: Optional[float], limit: Optional[int], **filters) -> SearchQuery:
    return SearchQuery(
        center=Coordinate(lat=lat, lng=lng),
        radius_km=radius_km or settings.default_radius_km,
        cap=limit or settings.default_cap,
        filters=filters,
    )


@app.get("/", tags=["Root"])
async def root():
    return {"ok": True, "service": settings.app_name, "version": settings.version}


@app.get("/health", tags=["Healthcheck"])
async def health():
    return {"ok": True}


@app.get("/api/parking/nearby", response_model=SearchResult, tags=["Parking"])
async def api_parking_nearby(
    lat: float = Query(..., ge=-90.0, le=90.0),
    lng: float = Query(..., ge=-180.0, le=180.0),
    radius_km: Optional[float] = Query(None, gt=0.0, le=50.0),
    limit: Optional[int] = Query(None, ge=1, le=100),
    region: Optional[str] = Query(None, description="지역구분, e.g. 서울특별시"),
    sub_region: Optional[str] = Query(None, description="지역구분_sub, e.g. 강남구"),
):
    query = _query(lat, lng, radius_km, limit, region=region or settings.default_region, sub_region=sub_region)
    async with aiohttp.ClientSession() as session:
        try:
            return await find_nearby(partial(datasets.fetch_parking_lots, session), query)
        except FetchFailure as e:
            raise _upstream_error(e)


@app.get("/api/zones/nearby", tags=["No-parking zones"])
async def api_zones_nearby(
    lat: float = Query(..., ge=-90.0, le=90.0),
    lng: float = Query(..., ge=-180.0, le=180.0),
    radius_km: Optional[float] = Query(None, gt=0.0, le=50.0),
    limit: Optional[int] = Query(None, ge=1, le=100),
    sido: Optional[str] = Query(None, description="시도명"),
    sigungu: Optional[str] = Query(None, description="시군구명"),
):
    query = _query(
        lat, lng, radius_km or settings.zone_radius_km, limit, sido=sido or settings.default_region, sigungu=sigungu
    )
    async with aiohttp.ClientSession() as session:
        try:
            zones, total = await find_nearby_zones(partial(datasets.fetch_no_parking_zones, session), query)
        except FetchFailure as e:
            raise _upstream_error(e)

    return {"status": "ok" if zones else "no_results", "total_found": total, "items": zones}


@app.get("/api/parking/search", response_model=List[LocatedEntity], tags=["Parking"])
async def api_parking_search(
    q: str = Query(..., min_length=2, description="Parking lot name or address fragment"),
    limit: int = Query(15, ge=1, le=100),
):
    async with aiohttp.ClientSession() as session:
        loader = partial(datasets.fetch_parking_lots, session, region=settings.default_region)
        try:
            return await search_parking_by_name(
                q,
                loader,
                parking_cache,
                cache_key=make_cache_key("parking", settings.default_region),
                limit=limit,
            )
        except FetchFailure as e:
            raise _upstream_error(e)


@app.delete("/api/parking/cache", tags=["Parking"])
async def api_parking_cache_clear():
    parking_cache.clear()
    return {"ok": True}


@app.get("/api/places/search", response_model=List[LocatedEntity], tags=["Places"])
async def api_places_search(
    q: str = Query(..., min_length=1),
    lat: Optional[float] = Query(None, ge=-90.0, le=90.0),
    lng: Optional[float] = Query(None, ge=-180.0, le=180.0),
    size: int = Query(15, ge=1, le=15),
):
    near = Coordinate(lat=lat, lng=lng) if lat is not None and lng is not None else None
    async with aiohttp.ClientSession() as session:
        try:
            return await datasets.search_places(session, q, near=near, size=size)
        except FetchFailure as e:
            raise _upstream_error(e)


@app.get("/api/directions", response_model=RoutePath, tags=["Directions"])
async def api_directions(
    origin_lat: float = Query(..., ge=-90.0, le=90.0),
    origin_lng: float = Query(..., ge=-180.0, le=180.0),
    dest_lat: float = Query(..., ge=-90.0, le=90.0),
    dest_lng: float = Query(..., ge=-180.0, le=180.0),
    priority: str = Query("RECOMMEND", pattern=PRIORITY_PATTERN),
):
    origin = Coordinate(lat=origin_lat, lng=origin_lng)
    destination = Coordinate(lat=dest_lat, lng=dest_lng)
    async with aiohttp.ClientSession() as session:
        try:
            return await fetch_route_path(session, origin, destination, priority=priority)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        except DirectionsError as e:
            raise _upstream_error(e)


@app.get("/api/parking/recommend", response_model=Recommendation, tags=["Parking"])
async def api_parking_recommend(
    origin_lat: float = Query(..., ge=-90.0, le=90.0),
    origin_lng: float = Query(..., ge=-180.0, le=180.0),
    dest_lat: float = Query(..., ge=-90.0, le=90.0),
    dest_lng: float = Query(..., ge=-180.0, le=180.0),
    radius_km: Optional[float] = Query(None, gt=0.0, le=10.0),
    region: Optional[str] = Query(None),
    priority: str = Query("RECOMMEND", pattern=PRIORITY_PATTERN),
):
    """Parking lots around the destination, ranked by walking distance and driving time."""
    origin = Coordinate(lat=origin_lat, lng=origin_lng)
    query = _query(
        dest_lat,
        dest_lng,
        radius_km or settings.recommend_radius_km,
        None,
        region=region or settings.default_region,
    )
    async with aiohttp.ClientSession() as session:
        try:
            return await recommend_parking(
                partial(datasets.fetch_parking_lots, session),
                make_route_provider(session, priority),
                origin,
                query,
                shortlist=settings.route_shortlist_size,
                top=settings.recommendation_count,
                route_timeout_s=settings.route_timeout_s,
            )
        except FetchFailure as e:
            raise _upstream_error(e)
