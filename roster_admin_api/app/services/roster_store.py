"""
In‑memory roster owned by a single writer.

``RosterStore`` holds the aggregated roster between full refreshes and
reflects the outcome of mutations locally:

* ``refresh()`` fetches all three collections from the record source,
  runs the stats aggregator and replaces the roster wholesale;
* ``patch()`` and ``remove()`` change one entry in place without
  re‑aggregating (trip and booking counts are never affected by a
  mutation);
* ``update_role()``, ``update_profile()`` and ``soft_delete()`` call the
  action gateway first and only touch the roster after it reports
  success.

Ordering between refreshes and patches is not left to chance.  Every
refresh takes a ticket and only the most recently started refresh may
replace the roster; patches recorded while a refresh is outstanding are
replayed onto its result, so a slow refresh cannot resurrect a deleted
user or undo a role change.
"""

import logging
from collections import Counter
from datetime import datetime, tzinfo
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol, Set, Tuple

from ..schemas.roster import (
    BookingRecord,
    MutationResult,
    Profile,
    QueryConfig,
    Role,
    RosterEntry,
    RosterEntryRead,
    RosterView,
    TripRecord,
)
from .query_engine import query
from .stats_aggregator import StatsAggregator

logger = logging.getLogger(__name__)

# Fields a local patch may change; statistics and the id are off limits.
PATCHABLE_FIELDS = frozenset({"full_name", "phone", "email", "role", "status"})

IN_PROGRESS = "in_progress"
NOT_FOUND = "not_found"
FAILED = "failed"


class RecordSource(Protocol):
    async def fetch_records(self) -> Tuple[List[Profile], List[TripRecord], List[BookingRecord]]:
        ...


class ActionGateway(Protocol):
    async def update_role(self, user_id: str, role: Role) -> None:
        ...

    async def update_profile(self, user_id: str, full_name: str, phone: Optional[str]) -> None:
        ...

    async def soft_delete(self, user_id: str) -> None:
        ...


class RosterRefreshError(RuntimeError):
    """The record source could not deliver the collections for a refresh."""


class RosterStore:
    """Single‑writer store for the aggregated roster."""

    def __init__(self, source: RecordSource, gateway: ActionGateway, tz: Optional[tzinfo] = None) -> None:
        self._source = source
        self._gateway = gateway
        self._tz = tz
        self._roster: List[RosterEntry] = []
        self._version = 0
        self._refresh_ticket = 0
        self._refreshes_running = 0
        # Counts every local write, including writes for ids not in the roster.
        self._writes = 0
        # (write number, user_id, delta); delta None means removal.
        self._journal: List[Tuple[int, str, Optional[Dict[str, Any]]]] = []
        self._in_flight: Set[str] = set()
        self.last_refreshed_at: Optional[datetime] = None

    @property
    def version(self) -> int:
        """Incremented on every change to the roster."""
        return self._version

    @property
    def loaded(self) -> bool:
        return self.last_refreshed_at is not None

    def snapshot(self) -> List[RosterEntry]:
        return list(self._roster)

    def get(self, user_id: str) -> Optional[RosterEntry]:
        for entry in self._roster:
            if entry.id == user_id:
                return entry
        return None

    def is_in_flight(self, user_id: str) -> bool:
        return user_id in self._in_flight

    # ------------------------------------------------------------------
    # Full refresh
    # ------------------------------------------------------------------
    async def refresh(self) -> bool:
        """Rebuild the roster from the record source.

        Returns ``False`` when a newer refresh was started while this one
        was waiting, in which case its result is discarded.  Raises
        ``RosterRefreshError`` if the source fails; the roster is then
        left as it was.
        """
        self._refresh_ticket += 1
        ticket = self._refresh_ticket
        started_at = self._writes
        self._refreshes_running += 1
        try:
            try:
                profiles, trips, bookings = await self._source.fetch_records()
            except Exception as exc:
                logger.exception("Roster refresh %d failed", ticket)
                raise RosterRefreshError(str(exc) or exc.__class__.__name__) from exc
            if ticket != self._refresh_ticket:
                logger.info("Discarding refresh %d, superseded by refresh %d", ticket, self._refresh_ticket)
                return False
            roster = StatsAggregator.aggregate(profiles, trips, bookings, tz=self._tz)
            replayed = 0
            for write, user_id, delta in self._journal:
                if write > started_at:
                    roster = _apply(roster, user_id, delta)
                    replayed += 1
            self._roster = roster
            self._version += 1
            self._journal.clear()
            self.last_refreshed_at = datetime.now().astimezone()
            logger.info(
                "Roster refreshed: %d entries, %d local changes replayed (version %d)",
                len(roster),
                replayed,
                self._version,
            )
            return True
        finally:
            self._refreshes_running -= 1
            if not self._refreshes_running:
                self._journal.clear()

    # ------------------------------------------------------------------
    # Local changes
    # ------------------------------------------------------------------
    def patch(self, user_id: str, delta: Dict[str, Any]) -> bool:
        """Apply ``delta`` to one entry; returns ``False`` if the id is unknown.

        Raises ``ValueError`` for fields that may not be patched.
        """
        illegal = set(delta) - PATCHABLE_FIELDS
        if illegal:
            raise ValueError(f"Cannot patch fields: {', '.join(sorted(illegal))}")
        return self._write(user_id, dict(delta))

    def remove(self, user_id: str) -> bool:
        """Drop one entry; returns ``False`` if the id is unknown."""
        return self._write(user_id, None)

    def _write(self, user_id: str, delta: Optional[Dict[str, Any]]) -> bool:
        # A refresh in progress may bring back an id missing from the current
        # roster, so the change is journaled either way.
        self._writes += 1
        if self._refreshes_running:
            self._journal.append((self._writes, user_id, delta))
        if self.get(user_id) is None:
            return False
        self._roster = _apply(self._roster, user_id, delta)
        self._version += 1
        return True

    # ------------------------------------------------------------------
    # Mutations through the gateway
    # ------------------------------------------------------------------
    async def update_role(self, user_id: str, role: Role) -> MutationResult:
        role = Role(role)
        return await self._mutate(
            user_id,
            "role update",
            lambda: self._gateway.update_role(user_id, role),
            {"role": role},
        )

    async def update_profile(self, user_id: str, full_name: str, phone: Optional[str]) -> MutationResult:
        return await self._mutate(
            user_id,
            "profile update",
            lambda: self._gateway.update_profile(user_id, full_name, phone),
            {"full_name": full_name, "phone": phone},
        )

    async def soft_delete(self, user_id: str) -> MutationResult:
        return await self._mutate(
            user_id,
            "soft delete",
            lambda: self._gateway.soft_delete(user_id),
            None,
        )

    async def _mutate(
        self,
        user_id: str,
        action: str,
        call: Callable[[], Awaitable[Any]],
        delta: Optional[Dict[str, Any]],
    ) -> MutationResult:
        if user_id in self._in_flight:
            return MutationResult(
                user_id=user_id,
                ok=False,
                code=IN_PROGRESS,
                reason=f"Another operation on user {user_id} is already in progress",
            )
        self._in_flight.add(user_id)
        try:
            await call()
        except ValueError as exc:
            logger.warning("%s for user %s rejected: %s", action.capitalize(), user_id, exc)
            return MutationResult(user_id=user_id, ok=False, code=NOT_FOUND, reason=str(exc))
        except Exception as exc:
            logger.exception("%s for user %s failed", action.capitalize(), user_id)
            return MutationResult(
                user_id=user_id,
                ok=False,
                code=FAILED,
                reason=str(exc) or exc.__class__.__name__,
            )
        finally:
            self._in_flight.discard(user_id)

        if delta is None:
            self.remove(user_id)
        else:
            self.patch(user_id, delta)
        logger.info("%s for user %s applied", action.capitalize(), user_id)
        return MutationResult(user_id=user_id, ok=True)

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------
    def view(self, config: QueryConfig, now: Optional[datetime] = None) -> RosterView:
        """Filtered, ordered roster with whole‑roster counters."""
        roster = self._roster
        entries = query(roster, config, now)
        counts = Counter(entry.role.value for entry in roster)
        return RosterView(
            total=len(roster),
            matched=len(entries),
            role_counts={role.value: counts.get(role.value, 0) for role in Role},
            version=self._version,
            entries=[RosterEntryRead.model_validate(entry.model_dump()) for entry in entries],
        )


def _apply(roster: List[RosterEntry], user_id: str, delta: Optional[Dict[str, Any]]) -> List[RosterEntry]:
    """New roster list with ``delta`` applied to ``user_id`` (``None`` removes it)."""
    if delta is None:
        return [entry for entry in roster if entry.id != user_id]
    patched = []
    for entry in roster:
        if entry.id == user_id:
            entry = RosterEntry.model_validate({**entry.model_dump(), **delta})
            if entry.is_deleted:
                continue
        patched.append(entry)
    return patched
