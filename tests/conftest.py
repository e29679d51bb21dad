from __future__ import annotations

import math
from typing import Any, Dict, List, Optional
from unittest.mock import MagicMock

import aiohttp
import pytest

from safeparking.config import get_settings
from safeparking.models import Coordinate, LocatedEntity

GANGNAM = Coordinate(lat=37.497942, lng=127.027619)
CITY_HALL = Coordinate(lat=37.5665, lng=126.9780)


def north_of(center: Coordinate, km: float) -> tuple[float, float]:
    """Point ``km`` due north of ``center`` (haversine-exact for a pure latitude offset)."""
    return center.lat + km / 6371.0 * 180 / math.pi, center.lng


def entity(entity_id: str, lat: Any, lng: Any, **metadata: Any) -> LocatedEntity:
    return LocatedEntity(id=entity_id, name=f"lot {entity_id}", lat=lat, lng=lng, kind="parking", metadata=metadata)


class FakeResponse:
    def __init__(self, payload: Any = None, status: int = 200) -> None:
        self.payload = payload
        self.status = status

    async def __aenter__(self) -> "FakeResponse":
        return self

    async def __aexit__(self, *exc: Any) -> None:
        return None

    def raise_for_status(self) -> None:
        if self.status >= 400:
            raise aiohttp.ClientResponseError(MagicMock(), (), status=self.status)

    async def json(self, content_type: Optional[str] = "application/json") -> Any:
        if isinstance(self.payload, Exception):
            raise self.payload
        return self.payload


class FakeSession:
    """Stands in for aiohttp.ClientSession.get; replies are consumed in order."""

    def __init__(self, *replies: Any) -> None:
        self.replies: List[Any] = list(replies)
        self.calls: List[Dict[str, Any]] = []

    def get(self, url: str, **kwargs: Any) -> FakeResponse:
        self.calls.append({"url": url, **kwargs})
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        if isinstance(reply, FakeResponse):
            return reply
        return FakeResponse(reply)


@pytest.fixture
def api_keys(monkeypatch):
    settings = get_settings()
    monkeypatch.setattr(settings, "kakao_rest_api_key", "kakao-test")
    monkeypatch.setattr(settings, "parking_api_key", "parking-test")
    monkeypatch.setattr(settings, "no_parking_zone_api_key", "zone-test")
    return settings
