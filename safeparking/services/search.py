from __future__ import annotations

import logging
from datetime import datetime
from typing import Awaitable, Callable, List, Optional, Sequence, Tuple

from safeparking.models import (
    Coordinate,
    LocatedEntity,
    Recommendation,
    SearchQuery,
    SearchResult,
    ZoneResult,
)
from safeparking.services.cache import TTLCache, make_cache_key
from safeparking.services.directions import RouteProvider, annotate_routes
from safeparking.services.geo import parse_coordinate
from safeparking.services.ranking import rank_within, rerank_by_distance_and_eta
from safeparking.services.zones import restriction_status

logger = logging.getLogger(__name__)

# Called with the query's filter tokens as keyword arguments, e.g. region="서울특별시".
DatasetFetcher = Callable[..., Awaitable[Sequence[LocatedEntity]]]
DatasetLoader = Callable[[], Awaitable[Sequence[LocatedEntity]]]


async def find_nearby(fetcher: DatasetFetcher, query: SearchQuery) -> SearchResult:
    """Fetch a dataset and rank it around the query center.

    A FetchFailure from the fetcher propagates untouched: an outage must not
    look like an empty neighbourhood.
    """
    entities = await fetcher(**query.filters)
    ranked, total = rank_within(query, entities)
    logger.info(
        "Nearby search at %s r=%.2fkm: %s candidates, %s within radius",
        query.center,
        query.radius_km,
        len(entities),
        total,
    )
    return SearchResult(status="ok" if ranked else "no_results", total_found=total, items=ranked)


async def find_nearby_zones(
    fetcher: DatasetFetcher,
    query: SearchQuery,
    now: Optional[datetime] = None,
) -> Tuple[List[ZoneResult], int]:
    """Nearby enforcement zones, each with its restriction status at ``now``."""
    result = await find_nearby(fetcher, query)
    zones = [ZoneResult(**item.model_dump(), restriction=restriction_status(item, now)) for item in result.items]
    return zones, result.total_found


async def load_cached(cache: TTLCache[Tuple[LocatedEntity, ...]], key: str, loader: DatasetLoader) -> Tuple[LocatedEntity, ...]:
    cached = cache.get(key)
    if cached is not None:
        return cached
    snapshot = tuple(await loader())
    cache.set(key, snapshot)
    logger.debug("Cached %s entities under %s", len(snapshot), key)
    return snapshot


async def search_parking_by_name(
    keyword: str,
    loader: DatasetLoader,
    cache: TTLCache[Tuple[LocatedEntity, ...]],
    *,
    cache_key: str = make_cache_key("parking", "all"),
    limit: int = 15,
) -> List[LocatedEntity]:
    """Case-insensitive name/address match over a lazily cached parking dataset.

    Lots that cannot be placed on a map are left out.
    """
    kw = keyword.strip().lower()
    if not kw:
        return []
    lots = await load_cached(cache, cache_key, loader)
    matches = [
        lot
        for lot in lots
        if (kw in lot.name.lower() or kw in str(lot.metadata.get("address") or "").lower())
        and parse_coordinate(lot.lat, lot.lng) is not None
    ]
    return matches[:limit]


async def recommend_parking(
    fetcher: DatasetFetcher,
    provider: RouteProvider,
    origin: Coordinate,
    query: SearchQuery,
    *,
    shortlist: int = 5,
    top: int = 3,
    route_timeout_s: Optional[float] = None,
) -> Recommendation:
    """Parking near a destination (``query.center``), ordered by walk distance and drive time.

    The closest ``shortlist`` lots get a route from ``origin``; lots whose
    route could not be computed are left out of the recommendations.
    """
    result = await find_nearby(fetcher, query)
    if not result.items:
        return Recommendation(total_found=0, recommendations=[], message="주변 주차장을 찾을 수 없습니다.")

    annotated = await annotate_routes(origin, result.items[:shortlist], provider, timeout_s=route_timeout_s)
    ranked = rerank_by_distance_and_eta(annotated)
    return Recommendation(
        total_found=result.total_found,
        recommendations=ranked[:top],
        message=f"{result.total_found}개의 주차장을 찾았습니다.",
    )
