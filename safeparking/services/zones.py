from __future__ import annotations

import re
from datetime import datetime
from typing import Any, Mapping, Optional, Set, Tuple

from safeparking.models import LocatedEntity, ZoneStatus

# Monday == 0, as datetime.weekday()
DAY_NAMES = "월화수목금토일"
ALL_DAYS: Set[int] = set(range(7))

_ALWAYS_WORDS = ("매일", "전일", "연중", "상시", "24시간")
_ALIASES = {"평일": "월~금", "주말": "토,일", "공휴일": ""}


def parse_restricted_days(expr: Optional[str]) -> Set[int]:
    """'월~금' -> {0..4}, '월,수,금' -> {0, 2, 4}, '매일' -> all days.

    An empty or missing expression means every day.
    """
    if not expr or not expr.strip():
        return set(ALL_DAYS)
    text = expr.strip()
    if any(word in text for word in _ALWAYS_WORDS):
        return set(ALL_DAYS)
    for alias, replacement in _ALIASES.items():
        text = text.replace(alias, f",{replacement},")
    text = re.sub(r"\s*[~\-]\s*", "~", text)

    days: Set[int] = set()
    for token in re.split(r"[,/·\s]+", text):
        token = token.replace("요일", "")
        if not token:
            continue
        m = re.fullmatch(r"([월화수목금토일])\s*[~\-]\s*([월화수목금토일])", token)
        if m:
            start, end = DAY_NAMES.index(m.group(1)), DAY_NAMES.index(m.group(2))
            i = start
            while True:
                days.add(i)
                if i == end:
                    break
                i = (i + 1) % 7
            continue
        days.update(DAY_NAMES.index(ch) for ch in token if ch in DAY_NAMES)

    return days or set(ALL_DAYS)


def _hhmm(value: Any) -> Optional[str]:
    if value is None:
        return None
    digits = re.sub(r"\D", "", str(value))
    if not digits or len(digits) > 4:
        return None
    return digits.zfill(4)


def restriction_window(metadata: Mapping[str, Any]) -> Tuple[str, str]:
    """(start, end) as HHMM strings; unknown bounds widen to the whole day."""
    start = _hhmm(metadata.get("start_time")) or "0000"
    end = _hhmm(metadata.get("end_time")) or "2400"
    return start, end


def restriction_status(zone: LocatedEntity, now: Optional[datetime] = None) -> ZoneStatus:
    """Is parking in ``zone`` currently enforced?"""
    now = now or datetime.now()
    current = now.strftime("%H%M")
    start, end = restriction_window(zone.metadata)

    days = parse_restricted_days(zone.metadata.get("restricted_days"))
    weekday = now.weekday()

    if start <= end:
        in_hours = start <= current <= end
    elif current >= start:
        # overnight window, e.g. 2200 ~ 0600, evening part
        in_hours = True
    else:
        # early-morning part belongs to the window that opened the previous day
        in_hours = current <= end
        weekday = (weekday - 1) % 7

    in_days = weekday in days

    if in_hours and in_days:
        return ZoneStatus(
            is_restricted=True,
            level="HIGH",
            message=f"현재 주정차 금지시간입니다 ({start}~{end})",
        )
    return ZoneStatus(is_restricted=False, level="SAFE", message="현재 주정차 가능 시간입니다")
