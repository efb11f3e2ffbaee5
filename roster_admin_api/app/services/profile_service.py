"""
SQLite record source and action gateway for the roster.

``ProfileService`` reads the ``profiles``, ``trips`` and ``bookings``
tables for full roster refreshes and executes the three mutations an
operator can trigger: role change, name/phone edit and soft delete.
Soft delete only flips ``status`` to ``deleted``; trips and bookings of
the user are kept.

Methods raise ``ValueError`` when the target user does not exist (or
is already deleted).  The roster store turns that into a "not found"
outcome for the caller.
"""

import logging
from typing import List, Optional, Tuple

from ..core.db import get_connection
from ..schemas.roster import BookingRecord, Profile, ProfileStatus, Role, TripRecord
from .roster_store import RosterStore

logger = logging.getLogger(__name__)


class ProfileService:
    """Profiles, trips and bookings stored in SQLite."""

    @classmethod
    async def fetch_records(cls) -> Tuple[List[Profile], List[TripRecord], List[BookingRecord]]:
        """Load all three collections.

        Deleted profiles are returned as well; the stats aggregator is
        the single place where they are dropped.
        """
        conn = get_connection()
        try:
            cursor = conn.cursor()
            profile_rows = cursor.execute(
                "SELECT id, full_name, phone, email, role, status, created_at FROM profiles"
            ).fetchall()
            trip_rows = cursor.execute("SELECT driver_id, created_at FROM trips").fetchall()
            booking_rows = cursor.execute("SELECT passenger_id, created_at FROM bookings").fetchall()
        finally:
            conn.close()
        profiles = [Profile.model_validate(dict(row)) for row in profile_rows]
        trips = [TripRecord(driver_id=row["driver_id"], created_at=row["created_at"]) for row in trip_rows]
        bookings = [
            BookingRecord(passenger_id=row["passenger_id"], created_at=row["created_at"])
            for row in booking_rows
        ]
        logger.debug(
            "Fetched %d profiles, %d trips, %d bookings", len(profiles), len(trips), len(bookings)
        )
        return profiles, trips, bookings

    @classmethod
    async def create_profile(cls, profile: Profile) -> Profile:
        """Insert a profile; ``created_at`` defaults to the current UTC time."""
        conn = get_connection()
        try:
            cursor = conn.cursor()
            if profile.created_at:
                cursor.execute(
                    "INSERT INTO profiles (id, full_name, phone, email, role, status, created_at) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?)",
                    (
                        profile.id,
                        profile.full_name,
                        profile.phone,
                        profile.email,
                        profile.role.value,
                        profile.status,
                        profile.created_at,
                    ),
                )
            else:
                cursor.execute(
                    "INSERT INTO profiles (id, full_name, phone, email, role, status) "
                    "VALUES (?, ?, ?, ?, ?, ?)",
                    (
                        profile.id,
                        profile.full_name,
                        profile.phone,
                        profile.email,
                        profile.role.value,
                        profile.status,
                    ),
                )
            conn.commit()
            row = cursor.execute(
                "SELECT id, full_name, phone, email, role, status, created_at FROM profiles WHERE id = ?",
                (profile.id,),
            ).fetchone()
            return Profile.model_validate(dict(row))
        finally:
            conn.close()

    @classmethod
    async def record_trip(cls, driver_id: str, created_at: Optional[str] = None) -> None:
        await cls._record_activity("trips", "driver_id", driver_id, created_at)

    @classmethod
    async def record_booking(cls, passenger_id: str, created_at: Optional[str] = None) -> None:
        await cls._record_activity("bookings", "passenger_id", passenger_id, created_at)

    @classmethod
    async def _record_activity(cls, table: str, column: str, user_id: str, created_at: Optional[str]) -> None:
        conn = get_connection()
        try:
            cursor = conn.cursor()
            if created_at:
                cursor.execute(
                    f"INSERT INTO {table} ({column}, created_at) VALUES (?, ?)", (user_id, created_at)
                )
            else:
                cursor.execute(f"INSERT INTO {table} ({column}) VALUES (?)", (user_id,))
            conn.commit()
        finally:
            conn.close()

    @classmethod
    async def update_role(cls, user_id: str, role: Role) -> None:
        """Change the role of an active user."""
        role = Role(role)
        cls._update(user_id, {"role": role.value})
        logger.info("Assigned role %s to user %s", role.value, user_id)

    @classmethod
    async def update_profile(cls, user_id: str, full_name: str, phone: Optional[str]) -> None:
        """Replace the name and phone of an active user."""
        cls._update(user_id, {"full_name": full_name, "phone": phone})
        logger.info("Updated profile of user %s", user_id)

    @classmethod
    async def soft_delete(cls, user_id: str) -> None:
        """Mark a user as deleted without touching their trips or bookings."""
        cls._update(user_id, {"status": ProfileStatus.DELETED.value})
        logger.info("Soft deleted user %s", user_id)

    @classmethod
    def _update(cls, user_id: str, updates: dict) -> None:
        conn = get_connection()
        try:
            cursor = conn.cursor()
            row = cursor.execute(
                "SELECT id FROM profiles WHERE id = ? AND status != ?",
                (user_id, ProfileStatus.DELETED.value),
            ).fetchone()
            if not row:
                raise ValueError(f"User {user_id} not found")
            fields = [f"{key} = ?" for key in updates]
            values = list(updates.values()) + [user_id]
            sql = f"UPDATE profiles SET {', '.join(fields)}, updated_at = strftime('%Y-%m-%dT%H:%M:%fZ', 'now') WHERE id = ?"
            cursor.execute(sql, tuple(values))
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()


# Shared store used by the API.  The service class itself satisfies both
# the record source and the action gateway protocols.
roster_store = RosterStore(source=ProfileService, gateway=ProfileService)
