from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock

import aiohttp
import pytest

from safeparking.errors import DirectionsError
from safeparking.models import Coordinate, RankedEntity, RouteSummary
from safeparking.services.directions import (
    annotate_routes,
    decode_route_path,
    fetch_route_path,
    get_directions,
    parse_directions,
)

from conftest import CITY_HALL, GANGNAM, FakeResponse, FakeSession


def _directions_payload(distance=4321, duration=900, result_code=0, result_msg="길찾기 성공"):
    return {
        "trans_id": "test",
        "routes": [
            {
                "result_code": result_code,
                "result_msg": result_msg,
                "summary": {
                    "distance": distance,
                    "duration": duration,
                    "priority": "RECOMMEND",
                    "fare": {"taxi": 8900, "toll": 0},
                },
                "sections": [
                    {
                        "roads": [
                            {"vertexes": [127.0276, 37.4979, 127.0280, 37.4985]},
                            {"vertexes": [127.0290, 37.4990]},
                        ]
                    }
                ],
            }
        ],
    }


def _shortlist():
    return [
        RankedEntity(id=str(i), name=f"lot {i}", lat=37.50 + i / 1000, lng=127.03, distance_km=i / 10)
        for i in range(1, 4)
    ]


def test_parse_directions_extracts_summary():
    summary = parse_directions(_directions_payload())
    assert summary.distance_m == 4321
    assert summary.duration_s == 900
    assert summary.taxi_fare == 8900
    assert summary.toll_fare == 0


def test_parse_directions_raises_on_result_code():
    with pytest.raises(DirectionsError, match="출발지와 도착지가 너무 가까움"):
        parse_directions(_directions_payload(result_code=104, result_msg="출발지와 도착지가 너무 가까움"))


def test_parse_directions_raises_without_routes():
    with pytest.raises(DirectionsError):
        parse_directions({"routes": []})


def test_decode_route_path_flattens_vertexes():
    sections = _directions_payload()["routes"][0]["sections"]
    path = decode_route_path(sections)
    assert path == [
        Coordinate(lat=37.4979, lng=127.0276),
        Coordinate(lat=37.4985, lng=127.0280),
        Coordinate(lat=37.4990, lng=127.0290),
    ]


@pytest.mark.asyncio
async def test_get_directions_sends_lng_lat_pairs(api_keys):
    session = FakeSession(_directions_payload())
    summary = await get_directions(session, GANGNAM, CITY_HALL, priority="TIME")

    assert summary.duration_s == 900
    call = session.calls[0]
    assert call["params"]["origin"] == f"{GANGNAM.lng},{GANGNAM.lat}"
    assert call["params"]["destination"] == f"{CITY_HALL.lng},{CITY_HALL.lat}"
    assert call["params"]["priority"] == "TIME"
    assert call["headers"]["Authorization"] == "KakaoAK kakao-test"


@pytest.mark.asyncio
async def test_get_directions_wraps_http_errors(api_keys):
    session = FakeSession(FakeResponse(status=401))
    with pytest.raises(DirectionsError):
        await get_directions(session, GANGNAM, CITY_HALL)


@pytest.mark.asyncio
async def test_get_directions_wraps_network_errors(api_keys):
    session = FakeSession(aiohttp.ClientConnectionError("connection reset"))
    with pytest.raises(DirectionsError):
        await get_directions(session, GANGNAM, CITY_HALL)


@pytest.mark.asyncio
async def test_get_directions_rejects_unknown_priority(api_keys):
    with pytest.raises(ValueError):
        await get_directions(FakeSession(), GANGNAM, CITY_HALL, priority="SCENIC")


@pytest.mark.asyncio
async def test_fetch_route_path_formats_texts(api_keys):
    session = FakeSession(_directions_payload(distance=4321, duration=3900))
    result = await fetch_route_path(session, GANGNAM, CITY_HALL)

    assert result.distance_text == "4.3km"
    assert result.duration_text == "1시간 5분"
    assert len(result.path) == 3


@pytest.mark.asyncio
async def test_annotate_isolates_a_failed_lookup():
    provider = AsyncMock(
        side_effect=[
            RouteSummary(distance_m=1200, duration_s=300),
            DirectionsError("경로를 찾을 수 없습니다"),
            RouteSummary(distance_m=2500, duration_s=600),
        ]
    )
    result = await annotate_routes(GANGNAM, _shortlist(), provider)

    assert [e.id for e in result] == ["1", "2", "3"]
    assert result[0].route.available and result[0].route.distance_m == 1200
    assert result[1].route.available is False
    assert result[1].route.reason == "경로를 찾을 수 없습니다"
    assert result[2].route.available and result[2].route.duration_s == 600
    assert provider.await_count == 3


@pytest.mark.asyncio
async def test_annotate_marks_timeouts_unavailable():
    async def provider(origin, destination):
        if destination.lat > 37.5025:
            await asyncio.sleep(5)
        return RouteSummary(distance_m=100, duration_s=60)

    result = await annotate_routes(GANGNAM, _shortlist(), provider, timeout_s=0.05)

    assert [e.route.available for e in result] == [True, True, False]
    assert result[2].route.reason == "timeout"


@pytest.mark.asyncio
async def test_annotate_runs_lookups_concurrently():
    started = []
    release = asyncio.Event()

    async def provider(origin, destination):
        started.append(destination)
        if len(started) == 3:
            release.set()
        await release.wait()
        return RouteSummary(distance_m=100, duration_s=60)

    result = await asyncio.wait_for(annotate_routes(GANGNAM, _shortlist(), provider), timeout=1)
    assert all(e.route.available for e in result)


@pytest.mark.asyncio
async def test_annotate_does_not_modify_input():
    shortlist = _shortlist()
    provider = AsyncMock(return_value=RouteSummary(distance_m=100, duration_s=60))
    await annotate_routes(GANGNAM, shortlist, provider)
    assert all(e.route is None for e in shortlist)


@pytest.mark.asyncio
async def test_annotate_empty_shortlist():
    provider = AsyncMock()
    assert await annotate_routes(GANGNAM, [], provider) == []
    provider.assert_not_awaited()
