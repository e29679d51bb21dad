from __future__ import annotations

import logging
from typing import Iterable, List, Sequence, Tuple

from safeparking.models import LocatedEntity, RankedEntity, SearchQuery
from safeparking.services.geo import distance_km, parse_coordinate

logger = logging.getLogger(__name__)


def rank_within(query: SearchQuery, entities: Iterable[LocatedEntity]) -> Tuple[List[RankedEntity], int]:
    """Rank entities around ``query.center``.

    Returns the capped ranking and the number of entities inside the radius
    before the cap was applied. Entities with unusable coordinates are skipped.
    """
    matched: List[RankedEntity] = []
    skipped = 0

    for entity in entities:
        point = parse_coordinate(entity.lat, entity.lng)
        if point is None:
            skipped += 1
            continue

        dist = distance_km(query.center, point)
        if dist > query.radius_km:
            continue

        data = entity.model_dump()
        data["distance_km"] = dist
        matched.append(RankedEntity(**data))

    if skipped:
        logger.debug("Skipped %s entities with malformed coordinates", skipped)

    # list.sort is stable, so equal distances keep their input order
    matched.sort(key=lambda e: e.distance_km)
    return matched[: query.cap], len(matched)


def rank_nearby(query: SearchQuery, entities: Iterable[LocatedEntity]) -> List[RankedEntity]:
    ranked, _ = rank_within(query, entities)
    return ranked


def rerank_by_distance_and_eta(
    entities: Sequence[RankedEntity],
    *,
    distance_weight: float = 0.5,
    duration_weight: float = 0.5,
) -> List[RankedEntity]:
    """Order route-annotated entities by a weighted distance/ETA score.

    score = distance_weight * distance_km + duration_weight * (duration_minutes / 60)

    i.e. straight-line kilometers from the search center blended with driving
    hours from the origin. Entities without an available route are dropped.
    """
    scored = [e for e in entities if e.route is not None and e.route.available and e.route.duration_s is not None]

    def score(e: RankedEntity) -> float:
        return distance_weight * e.distance_km + duration_weight * (e.route.duration_min / 60)

    return sorted(scored, key=score)
