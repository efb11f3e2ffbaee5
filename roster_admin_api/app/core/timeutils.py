"""
Timestamp helpers shared by the aggregator and the query engine.

Records carry ISO‑8601 strings produced by different writers, some
with a ``Z`` suffix, some with an explicit offset and some without any
offset at all.  Comparing them as strings is only correct within a
single offset convention, so every comparison in the roster engine goes
through :func:`parse_instant`, which returns a timezone‑aware
``datetime``.  Offset‑less values are interpreted in the roster's
local timezone.  Without a configured zone that is the machine's local
time, whose UTC offset is looked up for each instant so that values on
either side of a DST change get their own offset.
"""

import logging
from datetime import datetime, timedelta, timezone, tzinfo
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .config import settings

logger = logging.getLogger(__name__)

# Sort key for records without a timestamp: earlier than any real instant.
EARLIEST = float("-inf")


class SystemLocalTime(tzinfo):
    """The machine's local time as a ``tzinfo``.

    ``datetime.now().astimezone().tzinfo`` is a fixed offset taken at the
    moment of the call.  This class asks the OS for the offset of every
    wall-clock time it is attached to instead.
    """

    @staticmethod
    def _local(dt: datetime) -> datetime:
        # Naive astimezone() goes through mktime and honours ``fold``.
        return dt.replace(tzinfo=None).astimezone()

    def utcoffset(self, dt: Optional[datetime]) -> Optional[timedelta]:
        if dt is None:
            return None
        return self._local(dt).utcoffset()

    def dst(self, dt: Optional[datetime]) -> Optional[timedelta]:
        return None

    def tzname(self, dt: Optional[datetime]) -> Optional[str]:
        if dt is None:
            return None
        return self._local(dt).tzname()

    def fromutc(self, dt: datetime) -> datetime:
        local = dt.replace(tzinfo=timezone.utc).astimezone()
        result = local.replace(tzinfo=self)
        if result.utcoffset() != local.utcoffset():
            # Second occurrence of a repeated wall-clock hour.
            result = result.replace(fold=1)
        return result

    def __repr__(self) -> str:
        return "SystemLocalTime()"


SYSTEM_LOCAL = SystemLocalTime()


def resolve_timezone(name: Optional[str] = None) -> tzinfo:
    """Return the timezone used to interpret local days.

    ``name`` defaults to ``settings.timezone``.  An empty name, or a
    name unknown to the tz database, falls back to :data:`SYSTEM_LOCAL`.
    """
    name = settings.timezone if name is None else name
    if name:
        try:
            return ZoneInfo(name)
        except (ZoneInfoNotFoundError, ValueError):
            logger.warning("Unknown timezone %r, falling back to system local time", name)
    return SYSTEM_LOCAL


def local_now(tz: Optional[tzinfo] = None) -> datetime:
    """Current time as an aware datetime in ``tz`` (default: roster timezone)."""
    return datetime.now(tz or resolve_timezone())


def ensure_aware(moment: datetime, tz: Optional[tzinfo] = None) -> datetime:
    """Attach ``tz`` to a naive datetime; aware datetimes are returned as is."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=tz or resolve_timezone())
    return moment


def parse_instant(value: Optional[str], tz: Optional[tzinfo] = None) -> Optional[datetime]:
    """Parse an ISO‑8601 timestamp into an aware datetime.

    Returns ``None`` for empty or malformed values instead of raising;
    callers treat those as "no timestamp".
    """
    if not value:
        return None
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        logger.debug("Ignoring unparseable timestamp %r", value)
        return None
    return ensure_aware(parsed, tz)


def instant_key(value: Optional[str], tz: Optional[tzinfo] = None) -> float:
    """Sortable POSIX timestamp for ``value``; absent values sort first."""
    parsed = parse_instant(value, tz)
    if parsed is None:
        return EARLIEST
    return parsed.timestamp()


def start_of_day(moment: datetime, days_back: int = 0) -> datetime:
    """Midnight of ``moment``'s local day, shifted back ``days_back`` days.

    The shift is done on the wall clock, so with a zone-aware ``tzinfo``
    (a ``ZoneInfo`` or :data:`SYSTEM_LOCAL`) a window that crosses a DST
    change still starts at local midnight.
    """
    midnight = moment.replace(hour=0, minute=0, second=0, microsecond=0)
    return midnight - timedelta(days=days_back)
