"""
Document-level consistency rules.

Everything here is a pure function of the submitted (or merged) document,
so the write path calls these explicitly and tests run without MongoDB.
"""

from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional

MAX_CAPACITY_MSG = "Maximum capacity must be greater than or equal to minimum capacity"
MAX_GUESTS_MSG = "Maximum guests must be greater than or equal to minimum guests"
MAX_SPACE_MSG = "Maximum space must be greater than or equal to minimum space"
PAST_DATE_MSG = "Event date cannot be in the past"
TIME_ORDER_MSG = "End time must be after start time"
DATE_RANGE_MSG = "End date must be greater than or equal to start date"


def _number(value: Any) -> Optional[float]:
    if value is None or value == "" or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _day(value: Any) -> Optional[date]:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value).date()
        except ValueError:
            return None
    return None


def check_min_max(low: Any, high: Any, message: str) -> Optional[str]:
    """Return `message` when both bounds are numeric and high < low."""
    lo, hi = _number(low), _number(high)
    if lo is None or hi is None:
        return None
    return message if hi < lo else None


def check_event_date(value: Any, today: date) -> Optional[str]:
    day = _day(value)
    if day is None:
        return None
    return PAST_DATE_MSG if day < today else None


def _pad(hhmm: str) -> str:
    hours, _, minutes = hhmm.partition(":")
    return f"{hours.zfill(2)}:{minutes}"


def check_time_window(start: Any, end: Any) -> Optional[str]:
    if not isinstance(start, str) or not isinstance(end, str):
        return None
    return None if _pad(end) > _pad(start) else TIME_ORDER_MSG


def check_unavailable_dates(ranges: Iterable[Dict]) -> Optional[str]:
    for r in ranges or []:
        start, end = _day(r.get("startDate")), _day(r.get("endDate"))
        if start and end and end < start:
            return DATE_RANGE_MSG
    return None


def _collect(*results: Optional[str]) -> List[str]:
    return [r for r in results if r]


def venue_problems(doc: Dict) -> List[str]:
    capacity = doc.get("capacity") or {}
    return _collect(check_min_max(capacity.get("min"), capacity.get("max"), MAX_CAPACITY_MSG))


def package_problems(doc: Dict) -> List[str]:
    return _collect(check_min_max(doc.get("minimumGuests"), doc.get("maximumGuests"), MAX_GUESTS_MSG))


def decoration_problems(doc: Dict) -> List[str]:
    dims = doc.get("dimensions") or {}
    space = None
    # a zero or empty maxSpace means "unbounded"
    if (_number(dims.get("maxSpace")) or 0) > 0:
        space = check_min_max(dims.get("minSpace"), dims.get("maxSpace"), MAX_SPACE_MSG)
    availability = doc.get("availability") or {}
    return _collect(space, check_unavailable_dates(availability.get("unavailableDates")))


def event_problems(doc: Dict, today: date, fields: Optional[Iterable[str]] = None) -> List[str]:
    """Check an event document.

    `fields` limits the checks to those touching the given top-level keys,
    which is how partial updates avoid rejecting untouched past events.
    """
    touched = set(fields) if fields is not None else {"date", "time"}
    time = doc.get("time") or {}
    return _collect(
        check_event_date(doc.get("date"), today) if "date" in touched else None,
        check_time_window(time.get("start"), time.get("end")) if "time" in touched else None,
    )


def average_rating(ratings: Iterable[Any]) -> float:
    values = [float(r) for r in ratings if _number(r) is not None]
    if not values:
        return 0
    return round(sum(values) / len(values), 1)


def apply_patch(document: Dict, patch: Dict) -> Dict:
    """Deep-merge `patch` over `document`; nested dicts merge, lists replace."""
    merged = dict(document)
    for key, value in patch.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = apply_patch(merged[key], value)
        else:
            merged[key] = value
    return merged


def flatten_patch(patch: Dict, prefix: str = "") -> Dict[str, Any]:
    """Turn a nested patch into dotted $set keys so siblings are preserved."""
    flat: Dict[str, Any] = {}
    for key, value in patch.items():
        path = f"{prefix}{key}"
        if isinstance(value, dict) and value:
            flat.update(flatten_patch(value, path + "."))
        else:
            flat[path] = value
    return flat
