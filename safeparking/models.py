from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

EntityKind = Literal["parking", "no_parking_zone", "place"]


class Coordinate(BaseModel):
    """WGS-84 point in decimal degrees."""

    model_config = ConfigDict(frozen=True, allow_inf_nan=False)

    lat: float = Field(..., ge=-90.0, le=90.0)
    lng: float = Field(..., ge=-180.0, le=180.0)

    def __str__(self) -> str:
        return f"({self.lat}, {self.lng})"


class LocatedEntity(BaseModel):
    """A point of interest as mapped by a dataset fetcher.

    Coordinates are kept raw: real-world datasets ship NaN, blanks and
    out-of-range values, and it is the ranker that decides what to skip.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    lat: Optional[float] = None
    lng: Optional[float] = None
    kind: EntityKind = "place"
    metadata: Dict[str, Any] = Field(default_factory=dict)


class RouteInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    available: bool
    distance_m: Optional[int] = None
    duration_s: Optional[int] = None
    taxi_fare: Optional[int] = None
    toll_fare: Optional[int] = None
    reason: Optional[str] = None

    @classmethod
    def unavailable(cls, reason: str) -> "RouteInfo":
        return cls(available=False, reason=reason)

    @property
    def duration_min(self) -> Optional[float]:
        if self.duration_s is None:
            return None
        return self.duration_s / 60


class RankedEntity(LocatedEntity):
    distance_km: float = Field(..., ge=0.0)
    route: Optional[RouteInfo] = None


class SearchQuery(BaseModel):
    center: Coordinate
    radius_km: float = Field(..., gt=0.0)
    cap: int = Field(20, ge=1)
    filters: Dict[str, Optional[str]] = Field(default_factory=dict)


class SearchResult(BaseModel):
    status: Literal["ok", "no_results"]
    total_found: int
    items: List[RankedEntity]


class RouteSummary(BaseModel):
    distance_m: int
    duration_s: int
    taxi_fare: Optional[int] = None
    toll_fare: Optional[int] = None
    priority: Optional[str] = None
    sections: List[Dict[str, Any]] = Field(default_factory=list)

    def to_route_info(self) -> RouteInfo:
        return RouteInfo(
            available=True,
            distance_m=self.distance_m,
            duration_s=self.duration_s,
            taxi_fare=self.taxi_fare,
            toll_fare=self.toll_fare,
        )


class RoutePath(BaseModel):
    distance_m: int
    duration_s: int
    distance_text: str
    duration_text: str
    path: List[Coordinate]


class Recommendation(BaseModel):
    total_found: int
    recommendations: List[RankedEntity]
    message: str


class ZoneStatus(BaseModel):
    is_restricted: bool
    level: Literal["HIGH", "SAFE"]
    message: str


class ZoneResult(RankedEntity):
    restriction: Optional[ZoneStatus] = None
