"""
Join trips and bookings onto profiles.

``StatsAggregator.aggregate`` turns the three flat collections supplied
by the record source into one ``RosterEntry`` per visible profile:

* ``trips_count`` — trips whose ``driver_id`` is the profile id;
* ``bookings_count`` — bookings whose ``passenger_id`` is the profile id;
* ``last_activity_at`` — the later of the newest trip and the newest
  booking, compared as instants.  The original timestamp string of the
  winning record is kept.

Deleted profiles are dropped here, once, before the join.  The roster is
always rebuilt as a whole; there is no incremental recomputation.
"""

import logging
from collections import defaultdict
from datetime import datetime, tzinfo
from typing import Dict, Iterable, List, Optional, Tuple

from ..core.timeutils import parse_instant, resolve_timezone
from ..schemas.roster import BookingRecord, Profile, RosterEntry, TripRecord

logger = logging.getLogger(__name__)

# Per‑user accumulator: (count, latest parsed instant, raw timestamp of latest).
_Stats = Tuple[int, Optional[datetime], Optional[str]]


def _collect(pairs: Iterable[Tuple[str, Optional[str]]], tz: tzinfo) -> Dict[str, _Stats]:
    """Count records per owner id and remember the newest timestamp."""
    stats: Dict[str, _Stats] = defaultdict(lambda: (0, None, None))
    for owner_id, created_at in pairs:
        count, latest, latest_raw = stats[owner_id]
        moment = parse_instant(created_at, tz)
        if moment is not None and (latest is None or moment > latest):
            latest, latest_raw = moment, created_at
        stats[owner_id] = (count + 1, latest, latest_raw)
    return stats


def _later(
    first: Tuple[Optional[datetime], Optional[str]],
    second: Tuple[Optional[datetime], Optional[str]],
) -> Optional[str]:
    """Raw timestamp of whichever side is later; ``None`` if neither exists."""
    if first[0] is None:
        return second[1]
    if second[0] is None:
        return first[1]
    return first[1] if first[0] > second[0] else second[1]


class StatsAggregator:
    """Builds the roster from profiles, trips and bookings."""

    @classmethod
    def aggregate(
        cls,
        profiles: Iterable[Profile],
        trips: Iterable[TripRecord],
        bookings: Iterable[BookingRecord],
        tz: Optional[tzinfo] = None,
    ) -> List[RosterEntry]:
        """Return one ``RosterEntry`` per non‑deleted profile, ordered by name.

        Timestamps without an offset are read in ``tz`` (default: the
        roster timezone).  Missing or malformed timestamps still count
        towards the totals but never win ``last_activity_at``.
        """
        tz = tz or resolve_timezone()
        trips = list(trips)
        bookings = list(bookings)
        trip_stats = _collect(((t.driver_id, t.created_at) for t in trips), tz)
        booking_stats = _collect(((b.passenger_id, b.created_at) for b in bookings), tz)

        roster: List[RosterEntry] = []
        skipped = 0
        for profile in profiles:
            if profile.is_deleted:
                skipped += 1
                continue
            trips_count, last_trip, last_trip_raw = trip_stats.get(profile.id, (0, None, None))
            bookings_count, last_booking, last_booking_raw = booking_stats.get(profile.id, (0, None, None))
            roster.append(
                RosterEntry(
                    **profile.model_dump(),
                    trips_count=trips_count,
                    bookings_count=bookings_count,
                    last_activity_at=_later((last_trip, last_trip_raw), (last_booking, last_booking_raw)),
                )
            )

        roster.sort(key=lambda entry: entry.full_name)
        logger.debug(
            "Aggregated %d profiles (%d deleted skipped) with %d trips and %d bookings",
            len(roster),
            skipped,
            len(trips),
            len(bookings),
        )
        return roster
