"""
Shared fixtures for the roster tests.

All timestamps in the fixtures are interpreted in UTC so results do not
depend on the machine's timezone.
"""

import asyncio
from datetime import datetime, timezone
from typing import List, Optional

import pytest

from roster_admin_api.app.core.config import settings
from roster_admin_api.app.core.db import init_db
from roster_admin_api.app.schemas.roster import Role, RosterEntry

NOW = datetime(2024, 6, 10, 12, 0, tzinfo=timezone.utc)


def make_entry(
    user_id: str,
    full_name: str,
    role: Role = Role.USER,
    phone: Optional[str] = None,
    email: Optional[str] = None,
    created_at: Optional[str] = None,
    trips_count: int = 0,
    bookings_count: int = 0,
    last_activity_at: Optional[str] = None,
) -> RosterEntry:
    return RosterEntry(
        id=user_id,
        full_name=full_name,
        role=role,
        phone=phone,
        email=email,
        created_at=created_at,
        trips_count=trips_count,
        bookings_count=bookings_count,
        last_activity_at=last_activity_at,
    )


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def roster() -> List[RosterEntry]:
    return [
        make_entry(
            "u1",
            "Nguyễn Văn A",
            role=Role.DRIVER,
            phone="0901234567",
            email="nguyen.a@example.com",
            created_at="2024-01-05T08:00:00Z",
            trips_count=12,
            bookings_count=1,
            last_activity_at="2024-06-10T01:00:00",
        ),
        make_entry(
            "u2",
            "Duc Pham",
            role=Role.USER,
            phone="0912000111",
            email="duc@example.com",
            created_at="2024-03-01T10:00:00Z",
            trips_count=0,
            bookings_count=7,
            last_activity_at="2024-06-09T18:30:00",
        ),
        make_entry(
            "u3",
            "Trần Thị Bình",
            role=Role.MANAGER,
            created_at="2023-11-20T09:00:00Z",
            last_activity_at="2024-06-03T23:00:00",
        ),
        make_entry(
            "u4",
            "an admin",
            role=Role.ADMIN,
            email="Admin@Example.com",
            created_at=None,
            trips_count=12,
        ),
    ]


@pytest.fixture
def database(tmp_path, monkeypatch):
    """Point the application at an empty, migrated SQLite file."""
    monkeypatch.setattr(settings, "database_url", str(tmp_path / "roster.db"))
    init_db()
    return settings.database_url


def run(coro):
    """Run a coroutine from synchronous test code."""
    return asyncio.run(coro)
