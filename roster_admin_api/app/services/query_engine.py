"""
Search, filter and sort over the aggregated roster.

Filtering combines three criteria with AND: free‑text search, role
filter and activity window filter.  Within the role and activity
filters the selected tags combine with OR.

Sorting happens in two tiers.  A preset ordering is applied first; an
explicit column sort, when active, is then applied with a composite
comparator whose secondary key is the position produced by the preset
pass.  Entries that tie on the column therefore keep their preset
order.

Every function here is pure: inputs are never mutated and every input
(empty roster, missing timestamps, unknown keys) yields a result.
"""

import functools
import re
import unicodedata
from datetime import datetime, tzinfo
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from ..core.timeutils import ensure_aware, instant_key, local_now, parse_instant, start_of_day
from ..schemas.roster import (
    DATE_COLUMNS,
    NUMERIC_COLUMNS,
    STRING_COLUMNS,
    ActivityFilter,
    ActivityWindow,
    ColumnSort,
    PresetSort,
    QueryConfig,
    RosterEntry,
    SortDirection,
)

_COMBINING_MARKS = re.compile("[\u0300-\u036f]")


def normalize_text(value: Optional[str]) -> str:
    """Fold ``value`` for accent‑ and case‑insensitive matching.

    Applies canonical decomposition, strips combining diacritical marks
    and maps the Vietnamese ``đ``/``Đ``, which has no decomposition, to
    ``d``/``D`` before case folding.
    """
    if not value:
        return ""
    decomposed = unicodedata.normalize("NFD", value)
    stripped = _COMBINING_MARKS.sub("", decomposed)
    return stripped.replace("đ", "d").replace("Đ", "D").casefold()


# ---------------------------------------------------------------------------
# Filter stage
# ---------------------------------------------------------------------------

def matches_search(entry: RosterEntry, term: str, normalized_term: Optional[str] = None) -> bool:
    """Name or email contain the folded term, or the phone contains the raw term."""
    if normalized_term is None:
        normalized_term = normalize_text(term)
    if normalized_term in normalize_text(entry.full_name):
        return True
    if entry.phone and term in entry.phone:
        return True
    return bool(entry.email) and normalized_term in normalize_text(entry.email)


def activity_window_bounds(now: datetime) -> Dict[ActivityWindow, Tuple[datetime, Optional[datetime]]]:
    """Half‑open ``[start, end)`` ranges of each window; ``end`` ``None`` is open."""
    today = start_of_day(now)
    return {
        ActivityWindow.TODAY: (today, None),
        ActivityWindow.YESTERDAY: (start_of_day(now, days_back=1), today),
        ActivityWindow.WEEK: (start_of_day(now, days_back=7), None),
    }


def matches_activity(
    last_activity_at: Optional[str],
    activity_filter: ActivityFilter,
    now: datetime,
    bounds: Optional[Dict[ActivityWindow, Tuple[datetime, Optional[datetime]]]] = None,
) -> bool:
    if activity_filter.kind == "all":
        return True
    moment = parse_instant(last_activity_at, now.tzinfo)
    if moment is None:
        return False
    if bounds is None:
        bounds = activity_window_bounds(now)
    for window in activity_filter.windows:
        start, end = bounds[window]
        if moment >= start and (end is None or moment < end):
            return True
    return False


def filter_roster(
    roster: Sequence[RosterEntry],
    config: QueryConfig,
    now: Optional[datetime] = None,
) -> List[RosterEntry]:
    """Return the entries passing search AND role AND activity filters.

    ``now`` anchors the activity windows; it defaults to the current
    time in the roster timezone.  A naive ``now`` is read in that
    timezone too, and offset‑less timestamps are read in ``now``'s
    timezone.
    """
    now = local_now() if now is None else ensure_aware(now)
    term = config.search_term or ""
    normalized_term = normalize_text(term)
    bounds = activity_window_bounds(now)
    return [
        entry
        for entry in roster
        if matches_search(entry, term, normalized_term)
        and config.role_filter.matches(entry.role)
        and matches_activity(entry.last_activity_at, config.activity_filter, now, bounds)
    ]


# ---------------------------------------------------------------------------
# Sort stage
# ---------------------------------------------------------------------------

def _name_key(entry: RosterEntry) -> Tuple[str, str]:
    name = entry.full_name or ""
    return normalize_text(name), name.casefold()


# preset -> (key function, descending)
_PRESETS: Dict[str, Tuple[Callable[[RosterEntry], Any], bool]] = {
    PresetSort.NEWEST.value: (lambda e: instant_key(e.created_at), True),
    PresetSort.OLDEST.value: (lambda e: instant_key(e.created_at), False),
    PresetSort.NAME_ASC.value: (_name_key, False),
    PresetSort.NAME_DESC.value: (_name_key, True),
    PresetSort.JOIN_DATE_ASC.value: (lambda e: instant_key(e.created_at), False),
    PresetSort.LAST_ACTIVITY_DESC.value: (lambda e: instant_key(e.last_activity_at), True),
    PresetSort.TRIPS_COUNT_DESC.value: (lambda e: e.trips_count, True),
    PresetSort.BOOKINGS_COUNT_DESC.value: (lambda e: e.bookings_count, True),
}


def apply_preset_sort(entries: Sequence[RosterEntry], preset: Optional[str]) -> List[RosterEntry]:
    """Order by a named preset; an unknown preset keeps the input order."""
    if isinstance(preset, PresetSort):
        preset = preset.value
    rule = _PRESETS.get(preset or "")
    if rule is None:
        return list(entries)
    key, descending = rule
    # list.sort is stable, including with reverse=True.
    return sorted(entries, key=key, reverse=descending)


def column_value(entry: RosterEntry, key: str, tz: Optional[tzinfo] = None) -> Any:
    """Comparable value of ``entry`` for the column ``key``.

    Unknown columns yield ``None`` so every entry compares equal.
    """
    if key in DATE_COLUMNS:
        return instant_key(getattr(entry, key), tz)
    if key in NUMERIC_COLUMNS:
        return getattr(entry, key) or 0
    if key in STRING_COLUMNS:
        value = getattr(entry, key)
        if isinstance(value, Enum):
            value = value.value
        return (value or "").lower()
    return None


def _compare(a: Any, b: Any) -> int:
    if a is None or b is None or a == b:
        return 0
    return -1 if a < b else 1


def apply_column_sort(entries: Sequence[RosterEntry], column: ColumnSort) -> List[RosterEntry]:
    """Re‑order by ``column`` with the current position as tie‑breaker."""
    ordered = list(entries)
    if not column.is_active:
        return ordered
    sign = -1 if column.direction == SortDirection.DESC else 1
    keyed = [(column_value(entry, column.key), position, entry) for position, entry in enumerate(ordered)]

    def composite(left, right) -> int:
        primary = _compare(left[0], right[0]) * sign
        if primary:
            return primary
        return _compare(left[1], right[1])

    keyed.sort(key=functools.cmp_to_key(composite))
    return [entry for _, _, entry in keyed]


def sort_roster(entries: Sequence[RosterEntry], config: QueryConfig) -> List[RosterEntry]:
    """Preset order first, then the explicit column sort if one is active."""
    return apply_column_sort(apply_preset_sort(entries, config.preset_sort), config.column_sort)


def next_column_sort(current: ColumnSort, key: str) -> ColumnSort:
    """Sort state after clicking the header of ``key``.

    The same column cycles ascending, descending, then off; another
    column starts ascending.
    """
    if current.key != key:
        return ColumnSort(key=key, direction=SortDirection.ASC)
    cycle = {
        SortDirection.ASC: SortDirection.DESC,
        SortDirection.DESC: SortDirection.NONE,
        SortDirection.NONE: SortDirection.ASC,
    }
    return ColumnSort(key=key, direction=cycle[current.direction])


def query(
    roster: Sequence[RosterEntry],
    config: QueryConfig,
    now: Optional[datetime] = None,
) -> List[RosterEntry]:
    """Filter then sort; the roster itself is left untouched."""
    return sort_roster(filter_roster(roster, config, now), config)
