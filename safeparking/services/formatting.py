from __future__ import annotations

import math


def _round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def format_distance(meters: float) -> str:
    """350 -> '350m', 1234 -> '1.2km'."""
    if meters < 1000:
        return f"{_round_half_up(meters)}m"
    return f"{meters / 1000:.1f}km"


def format_duration(seconds: float) -> str:
    """Rounded to minutes: 300 -> '5분', 3900 -> '1시간 5분'."""
    mins = _round_half_up(seconds / 60)
    hours, remain = divmod(mins, 60)
    if hours > 0:
        return f"{hours}시간 {remain}분"
    return f"{remain}분"
