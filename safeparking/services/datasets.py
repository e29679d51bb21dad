from __future__ import annotations

import asyncio
import logging
import math
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Tuple

import aiohttp

from safeparking.config import get_settings
from safeparking.errors import FetchFailure
from safeparking.models import Coordinate, LocatedEntity
from safeparking.services.geo import to_float
from safeparking.services.http import get_json

logger = logging.getLogger(__name__)

PARKING_SOURCE = "parking-lots"
ZONE_SOURCE = "no-parking-zones"
PLACES_SOURCE = "kakao-local"


def _dedupe(entities: Iterable[LocatedEntity]) -> List[LocatedEntity]:
    seen: set[str] = set()
    out: List[LocatedEntity] = []
    for entity in entities:
        if entity.id in seen:
            continue
        seen.add(entity.id)
        out.append(entity)
    return out


def _hours(start: Any, end: Any) -> str:
    return f"{start or '?'} ~ {end or '?'}"


def _to_int(value: Any) -> Optional[int]:
    f = to_float(value)
    if f is None or not math.isfinite(f):
        return None
    return int(f)


async def _request(
    source: str,
    session: aiohttp.ClientSession,
    url: str,
    params: Dict[str, Any],
    headers: Optional[Dict[str, str]] = None,
) -> Any:
    settings = get_settings()
    try:
        return await get_json(session, url, params=params, headers=headers, timeout_s=settings.http_timeout_s)
    except aiohttp.ClientResponseError as e:
        logger.warning("%s returned HTTP %s", source, e.status)
        raise FetchFailure(source, f"HTTP {e.status}", status=e.status) from e
    except asyncio.TimeoutError as e:
        logger.warning("%s request timed out", source)
        raise FetchFailure(source, "request timed out") from e
    except aiohttp.ClientError as e:
        logger.warning("Network error while contacting %s: %s", source, e)
        raise FetchFailure(source, f"network error: {e}") from e
    except ValueError as e:
        logger.warning("%s returned a body that is not JSON", source)
        raise FetchFailure(source, "invalid JSON payload") from e


def _require_key(source: str, key: Optional[str]) -> str:
    if not key:
        raise FetchFailure(source, "API key is not configured")
    return key


async def _collect_pages(
    source: str,
    fetch_page: Callable[[int], Awaitable[Tuple[List[Dict[str, Any]], Optional[int]]]],
    max_pages: int,
) -> List[Dict[str, Any]]:
    rows: List[Dict[str, Any]] = []
    page = 1
    while True:
        batch, total = await fetch_page(page)
        rows.extend(batch)
        if not batch or total is None or len(rows) >= total:
            break
        if page >= max_pages:
            logger.warning(
                "%s: stopped after %s pages, %s of %s rows dropped", source, page, total - len(rows), total
            )
            break
        page += 1
    return rows


# ---------------------------------------------------------------------------
# Public parking lots (odcloud)
# ---------------------------------------------------------------------------


def map_parking_lot(raw: Dict[str, Any]) -> LocatedEntity:
    name = str(raw.get("주차장명") or "")
    address = raw.get("주차장도로명주소") or raw.get("주차장지번주소") or ""
    lot_id = raw.get("주차장관리번호") or f"{name}|{address}"
    return LocatedEntity(
        id=str(lot_id),
        name=name,
        lat=to_float(raw.get("위도")),
        lng=to_float(raw.get("경도")),
        kind="parking",
        metadata={
            "address": address,
            "lot_type": raw.get("주차장구분"),
            "capacity": _to_int(raw.get("주차구획수")) or 0,
            "fee": raw.get("요금정보"),
            "weekday_hours": _hours(raw.get("평일운영시작시각"), raw.get("평일운영종료시각")),
            "saturday_hours": _hours(raw.get("토요일운영시작시각"), raw.get("토요일운영종료시각")),
            "holiday_hours": _hours(raw.get("공휴일운영시작시각"), raw.get("공휴일운영종료시각")),
            "phone": raw.get("연락처"),
        },
    )


async def fetch_parking_lots(
    session: aiohttp.ClientSession,
    region: Optional[str] = None,
    sub_region: Optional[str] = None,
) -> List[LocatedEntity]:
    """Download public parking lots, optionally narrowed to a region (e.g. 서울특별시).

    The dataset has no location search, so callers filter by distance themselves.
    """
    settings = get_settings()
    key = _require_key(PARKING_SOURCE, settings.parking_api_key)

    async def fetch_page(page: int) -> Tuple[List[Dict[str, Any]], Optional[int]]:
        params: Dict[str, Any] = {
            "page": page,
            "perPage": settings.parking_page_size,
            "serviceKey": key,
            "cond[지역구분::EQ]": region,
            "cond[지역구분_sub::EQ]": sub_region,
        }
        data = await _request(PARKING_SOURCE, session, str(settings.parking_base_url), params)
        if not isinstance(data, dict):
            raise FetchFailure(PARKING_SOURCE, "unexpected payload shape")
        total = data.get("matchCount", data.get("totalCount"))
        return list(data.get("data") or []), _to_int(total)

    rows = await _collect_pages(PARKING_SOURCE, fetch_page, settings.parking_max_pages)
    lots = _dedupe(map_parking_lot(row) for row in rows)
    logger.info("Fetched %s parking lots (region=%s, sub_region=%s)", len(lots), region, sub_region)
    return lots


# ---------------------------------------------------------------------------
# No-parking enforcement zones (data.go.kr standard data)
# ---------------------------------------------------------------------------


def map_no_parking_zone(raw: Dict[str, Any]) -> LocatedEntity:
    name = str(raw.get("prhibtAreaNm") or "")
    return LocatedEntity(
        id=f"{raw.get('ctprvnNm') or ''}_{raw.get('signguNm') or ''}_{name}",
        name=name,
        lat=to_float(raw.get("latitude")),
        lng=to_float(raw.get("longitude")),
        kind="no_parking_zone",
        metadata={
            "address": raw.get("rdnmadr") or raw.get("lnmadr") or "",
            "zone_type": raw.get("prhibtSeNm"),
            "restricted_days": raw.get("prhibtDayNm"),
            "start_time": raw.get("operBeginHhmm"),
            "end_time": raw.get("operEndHhmm"),
            "reason": raw.get("prhibtRsnCn"),
            "authority": raw.get("institutionNm"),
            "phone": raw.get("phoneNumber"),
            "last_updated": raw.get("referenceDate"),
        },
    )


def _zone_items(body: Dict[str, Any]) -> List[Dict[str, Any]]:
    items = body.get("items") or []
    # XML-converted responses nest the list one level deeper
    if isinstance(items, dict):
        items = items.get("item") or []
    if isinstance(items, dict):
        items = [items]
    return list(items)


async def fetch_no_parking_zones(
    session: aiohttp.ClientSession,
    sido: Optional[str] = None,
    sigungu: Optional[str] = None,
) -> List[LocatedEntity]:
    settings = get_settings()
    key = _require_key(ZONE_SOURCE, settings.no_parking_zone_api_key)

    async def fetch_page(page: int) -> Tuple[List[Dict[str, Any]], Optional[int]]:
        params: Dict[str, Any] = {
            "serviceKey": key,
            "pageNo": page,
            "numOfRows": settings.zone_page_size,
            "type": "json",
            "ctprvnNm": sido,
            "signguNm": sigungu,
        }
        data = await _request(ZONE_SOURCE, session, str(settings.no_parking_zone_base_url), params)
        response = data.get("response") if isinstance(data, dict) else None
        if not isinstance(response, dict):
            raise FetchFailure(ZONE_SOURCE, "unexpected payload shape")

        header = response.get("header") or {}
        code = str(header.get("resultCode", "00"))
        if code == "03":
            # NODATA_ERROR: a valid query with nothing to return
            return [], 0
        if code != "00":
            raise FetchFailure(ZONE_SOURCE, f"result code {code}: {header.get('resultMsg', '')}")

        body = response.get("body") or {}
        return _zone_items(body), _to_int(body.get("totalCount"))

    rows = await _collect_pages(ZONE_SOURCE, fetch_page, settings.zone_max_pages)
    zones = _dedupe(map_no_parking_zone(row) for row in rows)
    logger.info("Fetched %s no-parking zones (sido=%s, sigungu=%s)", len(zones), sido, sigungu)
    return zones


# ---------------------------------------------------------------------------
# Kakao Local keyword search
# ---------------------------------------------------------------------------


def map_place(doc: Dict[str, Any]) -> LocatedEntity:
    return LocatedEntity(
        id=str(doc.get("id") or ""),
        name=str(doc.get("place_name") or ""),
        lat=to_float(doc.get("y")),
        lng=to_float(doc.get("x")),
        kind="place",
        metadata={
            "address": doc.get("road_address_name") or doc.get("address_name") or "",
            "category": doc.get("category_group_name") or "",
            "phone": doc.get("phone") or "",
            "provider_distance_m": _to_int(doc.get("distance")),
            "url": doc.get("place_url"),
        },
    )


async def search_places(
    session: aiohttp.ClientSession,
    keyword: str,
    near: Optional[Coordinate] = None,
    size: int = 15,
) -> List[LocatedEntity]:
    settings = get_settings()
    key = _require_key(PLACES_SOURCE, settings.kakao_rest_api_key)

    params: Dict[str, Any] = {"query": keyword, "size": size}
    if near is not None:
        params.update({"x": near.lng, "y": near.lat, "sort": "distance"})

    data = await _request(
        PLACES_SOURCE,
        session,
        str(settings.kakao_keyword_search_url),
        params,
        headers={"Authorization": f"KakaoAK {key}"},
    )
    if not isinstance(data, dict):
        raise FetchFailure(PLACES_SOURCE, "unexpected payload shape")
    return _dedupe(map_place(doc) for doc in data.get("documents") or [])
