from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

import aiohttp

from safeparking.config import get_settings
from safeparking.errors import DirectionsError
from safeparking.models import Coordinate, RankedEntity, RouteInfo, RoutePath, RouteSummary
from safeparking.services.formatting import format_distance, format_duration
from safeparking.services.geo import parse_coordinate
from safeparking.services.http import get_json

logger = logging.getLogger(__name__)

PRIORITIES = ("RECOMMEND", "TIME", "DISTANCE")

RouteProvider = Callable[[Coordinate, Coordinate], Awaitable[RouteSummary]]


def _lnglat(point: Coordinate) -> str:
    # Kakao Mobility takes "lng,lat"; distances come back in meters, durations in seconds
    return f"{point.lng},{point.lat}"


def parse_directions(data: Dict[str, Any]) -> RouteSummary:
    """Extract the first route's summary, or raise DirectionsError."""
    routes = data.get("routes") or []
    if not routes:
        raise DirectionsError("No route returned")

    route = routes[0]
    if route.get("result_code") != 0:
        raise DirectionsError(route.get("result_msg") or "Route not found")

    summary = route.get("summary") or {}
    fare = summary.get("fare") or {}
    try:
        return RouteSummary(
            distance_m=int(summary["distance"]),
            duration_s=int(summary["duration"]),
            taxi_fare=fare.get("taxi"),
            toll_fare=fare.get("toll"),
            priority=summary.get("priority"),
            sections=route.get("sections") or [],
        )
    except (KeyError, TypeError, ValueError) as e:
        raise DirectionsError(f"Invalid route summary: {e}") from e


async def get_directions(
    session: aiohttp.ClientSession,
    origin: Coordinate,
    destination: Coordinate,
    *,
    priority: str = "RECOMMEND",
    waypoints: Optional[Sequence[Coordinate]] = None,
) -> RouteSummary:
    """Driving route between two points."""
    settings = get_settings()
    if priority not in PRIORITIES:
        raise ValueError(f"Unknown priority '{priority}'. Supported: {', '.join(PRIORITIES)}")
    if not settings.kakao_rest_api_key:
        raise DirectionsError("Kakao REST API key is not configured")

    params: Dict[str, Any] = {
        "origin": _lnglat(origin),
        "destination": _lnglat(destination),
        "priority": priority,
    }
    if waypoints:
        params["waypoints"] = "|".join(_lnglat(w) for w in waypoints)

    headers = {
        "Authorization": f"KakaoAK {settings.kakao_rest_api_key}",
        "Content-Type": "application/json",
    }

    try:
        data = await get_json(
            session,
            str(settings.kakao_directions_url),
            params=params,
            headers=headers,
            timeout_s=settings.http_timeout_s,
        )
    except aiohttp.ClientResponseError as e:
        logger.error("Kakao directions returned HTTP %s", e.status)
        raise DirectionsError(f"Kakao directions error: {e.status}") from e
    except asyncio.TimeoutError as e:
        raise DirectionsError("Kakao directions request timed out") from e
    except (aiohttp.ClientError, ValueError) as e:
        logger.error("Kakao directions request failed: %s", e)
        raise DirectionsError(f"Kakao directions request failed: {e}") from e

    if not isinstance(data, dict):
        raise DirectionsError("Unexpected directions payload")
    return parse_directions(data)


def decode_route_path(sections: Sequence[Dict[str, Any]]) -> List[Coordinate]:
    # vertexes is a flat [lng, lat, lng, lat, ...] list per road
    path: List[Coordinate] = []
    for section in sections:
        for road in section.get("roads") or []:
            v = road.get("vertexes") or []
            for i in range(0, len(v) - 1, 2):
                point = parse_coordinate(v[i + 1], v[i])
                if point is not None:
                    path.append(point)
    return path


async def fetch_route_path(
    session: aiohttp.ClientSession,
    origin: Coordinate,
    destination: Coordinate,
    priority: str = "RECOMMEND",
) -> RoutePath:
    """Route summary plus the polyline for drawing it on the map."""
    summary = await get_directions(session, origin, destination, priority=priority)
    return RoutePath(
        distance_m=summary.distance_m,
        duration_s=summary.duration_s,
        distance_text=format_distance(summary.distance_m),
        duration_text=format_duration(summary.duration_s),
        path=decode_route_path(summary.sections),
    )


def make_route_provider(session: aiohttp.ClientSession, priority: str = "RECOMMEND") -> RouteProvider:
    async def provider(origin: Coordinate, destination: Coordinate) -> RouteSummary:
        return await get_directions(session, origin, destination, priority=priority)

    return provider


async def _annotate_one(
    origin: Coordinate,
    entity: RankedEntity,
    provider: RouteProvider,
    timeout_s: Optional[float],
) -> RankedEntity:
    destination = parse_coordinate(entity.lat, entity.lng)
    if destination is None:
        return entity.model_copy(update={"route": RouteInfo.unavailable("invalid coordinates")})

    try:
        if timeout_s is None:
            summary = await provider(origin, destination)
        else:
            summary = await asyncio.wait_for(provider(origin, destination), timeout=timeout_s)
    except asyncio.TimeoutError:
        logger.warning("Route lookup for %s timed out", entity.id)
        route = RouteInfo.unavailable("timeout")
    except Exception as e:  # contained per entity
        logger.warning("Route lookup for %s failed: %s", entity.id, e)
        route = RouteInfo.unavailable(str(e) or type(e).__name__)
    else:
        route = summary.to_route_info()

    return entity.model_copy(update={"route": route})


async def annotate_routes(
    origin: Coordinate,
    entities: Sequence[RankedEntity],
    provider: RouteProvider,
    timeout_s: Optional[float] = None,
) -> List[RankedEntity]:
    """Attach a road route from ``origin`` to every entity.

    Lookups run concurrently, each attempted once. Failures become an
    unavailable marker on that entity. Output order matches input order.
    """
    if not entities:
        return []
    results = await asyncio.gather(*(_annotate_one(origin, e, provider, timeout_s) for e in entities))
    return list(results)
