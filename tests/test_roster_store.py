"""Tests for the in‑memory roster store and mutation reflection."""

import asyncio
from typing import List, Optional

import pytest

from roster_admin_api.app.schemas.roster import (
    BookingRecord,
    ColumnSort,
    Profile,
    QueryConfig,
    Role,
    RoleFilter,
    SortDirection,
    TripRecord,
)
from roster_admin_api.app.services.roster_store import (
    FAILED,
    IN_PROGRESS,
    NOT_FOUND,
    RosterRefreshError,
    RosterStore,
)
from tests.conftest import NOW


def records(extra_profile: Optional[Profile] = None):
    profiles = [
        Profile(id="u1", full_name="Nguyễn Văn A", role=Role.DRIVER, phone="0901"),
        Profile(id="u2", full_name="Duc Pham"),
        Profile(id="u3", full_name="Old Account", status="deleted"),
    ]
    if extra_profile:
        profiles.append(extra_profile)
    trips = [TripRecord(driver_id="u1", created_at="2024-06-10T01:00:00Z")]
    bookings = [BookingRecord(passenger_id="u2", created_at="2024-06-09T10:00:00Z")]
    return profiles, trips, bookings


class FakeSource:
    """Serves queued responses; a response may wait on an event first."""

    def __init__(self):
        self.responses: List[tuple] = []
        self.calls = 0

    def push(self, data, gate: Optional[asyncio.Event] = None, error: Optional[Exception] = None):
        self.responses.append((data, gate, error))

    async def fetch_records(self):
        self.calls += 1
        data, gate, error = self.responses.pop(0)
        if gate is not None:
            await gate.wait()
        if error is not None:
            raise error
        return data


class FakeGateway:
    def __init__(self):
        self.calls = []
        self.error: Optional[Exception] = None
        self.gate: Optional[asyncio.Event] = None

    async def _call(self, *args):
        self.calls.append(args)
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error

    async def update_role(self, user_id, role):
        await self._call("update_role", user_id, role)

    async def update_profile(self, user_id, full_name, phone):
        await self._call("update_profile", user_id, full_name, phone)

    async def soft_delete(self, user_id):
        await self._call("soft_delete", user_id)


@pytest.fixture
def source():
    return FakeSource()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def store(source, gateway):
    return RosterStore(source, gateway)


async def loaded(store, source):
    source.push(records())
    assert await store.refresh() is True
    return store


# ============================================================
# REFRESH
# ============================================================

class TestRefresh:
    @pytest.mark.asyncio
    async def test_refresh_builds_roster_without_deleted(self, store, source):
        await loaded(store, source)
        assert sorted(e.id for e in store.snapshot()) == ["u1", "u2"]
        assert store.get("u1").trips_count == 1
        assert store.get("u2").bookings_count == 1
        assert store.loaded
        assert store.version == 1

    @pytest.mark.asyncio
    async def test_failed_refresh_keeps_previous_roster(self, store, source):
        await loaded(store, source)
        before = store.snapshot()
        source.push(None, error=ConnectionError("store unreachable"))
        with pytest.raises(RosterRefreshError, match="store unreachable"):
            await store.refresh()
        assert store.snapshot() == before
        assert store.version == 1

    @pytest.mark.asyncio
    async def test_failed_first_load_leaves_empty_roster(self, store, source):
        source.push(None, error=RuntimeError("boom"))
        with pytest.raises(RosterRefreshError):
            await store.refresh()
        assert store.snapshot() == []
        assert not store.loaded

    @pytest.mark.asyncio
    async def test_stale_refresh_is_discarded(self, store, source):
        gate = asyncio.Event()
        source.push(records(), gate=gate)
        source.push(records(Profile(id="u9", full_name="Newer")))
        slow = asyncio.create_task(store.refresh())
        await asyncio.sleep(0)
        assert await store.refresh() is True
        gate.set()
        assert await slow is False
        assert store.get("u9") is not None

    @pytest.mark.asyncio
    async def test_patch_during_refresh_is_replayed(self, store, source):
        await loaded(store, source)
        gate = asyncio.Event()
        source.push(records(), gate=gate)
        pending = asyncio.create_task(store.refresh())
        await asyncio.sleep(0)

        result = await store.update_role("u2", Role.MANAGER)
        assert result.ok
        gate.set()
        assert await pending is True

        assert store.get("u2").role == Role.MANAGER

    @pytest.mark.asyncio
    async def test_delete_during_refresh_is_not_undone(self, store, source):
        await loaded(store, source)
        gate = asyncio.Event()
        source.push(records(), gate=gate)
        pending = asyncio.create_task(store.refresh())
        await asyncio.sleep(0)

        assert (await store.soft_delete("u1")).ok
        gate.set()
        await pending

        assert store.get("u1") is None

    @pytest.mark.asyncio
    async def test_delete_during_first_load_is_not_undone(self, store, source):
        gate = asyncio.Event()
        source.push(records(), gate=gate)
        pending = asyncio.create_task(store.refresh())
        await asyncio.sleep(0)

        assert store.get("u1") is None
        assert (await store.soft_delete("u1")).ok
        gate.set()
        assert await pending is True

        assert store.get("u1") is None
        assert store.get("u2") is not None

    @pytest.mark.asyncio
    async def test_role_update_during_first_load_is_kept(self, store, source):
        gate = asyncio.Event()
        source.push(records(), gate=gate)
        pending = asyncio.create_task(store.refresh())
        await asyncio.sleep(0)

        assert (await store.update_role("u2", Role.ADMIN)).ok
        gate.set()
        await pending

        assert store.get("u2").role == Role.ADMIN

    @pytest.mark.asyncio
    async def test_write_before_newer_refresh_started_is_not_replayed(self, store, source):
        await loaded(store, source)
        gate = asyncio.Event()
        source.push(records(), gate=gate)
        older = asyncio.create_task(store.refresh())
        await asyncio.sleep(0)

        assert store.patch("u2", {"full_name": "Local Only"})
        source.push(records())
        assert await store.refresh() is True
        assert store.get("u2").full_name == "Duc Pham"

        gate.set()
        assert await older is False


# ============================================================
# MUTATIONS
# ============================================================

class TestMutations:
    @pytest.mark.asyncio
    async def test_role_update_patches_entry(self, store, source, gateway):
        await loaded(store, source)
        result = await store.update_role("u2", "driver")
        assert result.ok and result.code is None
        assert gateway.calls == [("update_role", "u2", Role.DRIVER)]
        entry = store.get("u2")
        assert entry.role == Role.DRIVER
        assert entry.bookings_count == 1
        assert source.calls == 1

    @pytest.mark.asyncio
    async def test_profile_update_patches_name_and_phone(self, store, source):
        await loaded(store, source)
        assert (await store.update_profile("u1", "Nguyễn Văn B", "0999")).ok
        entry = store.get("u1")
        assert (entry.full_name, entry.phone) == ("Nguyễn Văn B", "0999")
        assert entry.trips_count == 1

    @pytest.mark.asyncio
    async def test_soft_delete_removes_entry_from_views(self, store, source):
        await loaded(store, source)
        assert (await store.soft_delete("u1")).ok
        view = store.view(QueryConfig(), NOW)
        assert [e.id for e in view.entries] == ["u2"]
        assert view.total == 1

    @pytest.mark.asyncio
    async def test_rejected_mutation_leaves_roster_untouched(self, store, source, gateway):
        await loaded(store, source)
        before, version = store.snapshot(), store.version
        gateway.error = ValueError("User u1 not found")
        result = await store.soft_delete("u1")
        assert not result.ok
        assert result.code == NOT_FOUND
        assert result.reason == "User u1 not found"
        assert store.snapshot() == before
        assert store.version == version

    @pytest.mark.asyncio
    async def test_gateway_error_is_reported(self, store, source, gateway):
        await loaded(store, source)
        gateway.error = ConnectionError("timeout")
        result = await store.update_role("u1", Role.ADMIN)
        assert (result.ok, result.code, result.reason) == (False, FAILED, "timeout")
        assert store.get("u1").role == Role.DRIVER
        assert not store.is_in_flight("u1")

    @pytest.mark.asyncio
    async def test_duplicate_submission_is_rejected(self, store, source, gateway):
        await loaded(store, source)
        gateway.gate = asyncio.Event()
        first = asyncio.create_task(store.update_role("u1", Role.ADMIN))
        await asyncio.sleep(0)
        assert store.is_in_flight("u1")

        second = await store.soft_delete("u1")
        assert (second.ok, second.code) == (False, IN_PROGRESS)

        gateway.gate.set()
        assert (await first).ok
        assert store.get("u1").role == Role.ADMIN
        assert len(gateway.calls) == 1

    @pytest.mark.asyncio
    async def test_success_for_unknown_local_entry(self, store, source):
        await loaded(store, source)
        assert (await store.update_role("u404", Role.ADMIN)).ok
        assert store.get("u404") is None


class TestLocalPatch:
    @pytest.mark.asyncio
    async def test_patch_rejects_statistics(self, store, source):
        await loaded(store, source)
        with pytest.raises(ValueError):
            store.patch("u1", {"trips_count": 99})

    @pytest.mark.asyncio
    async def test_patch_to_deleted_status_hides_entry(self, store, source):
        await loaded(store, source)
        assert store.patch("u2", {"status": "deleted"})
        assert store.get("u2") is None

    @pytest.mark.asyncio
    async def test_patch_and_remove_unknown_ids(self, store, source):
        await loaded(store, source)
        assert store.patch("nobody", {"full_name": "x"}) is False
        assert store.remove("nobody") is False

    @pytest.mark.asyncio
    async def test_earlier_results_are_not_mutated(self, store, source):
        await loaded(store, source)
        earlier = store.snapshot()
        store.patch("u1", {"full_name": "Renamed"})
        assert next(e for e in earlier if e.id == "u1").full_name == "Nguyễn Văn A"


# ============================================================
# VIEW
# ============================================================

class TestView:
    @pytest.mark.asyncio
    async def test_view_counts_and_display_fields(self, store, source):
        await loaded(store, source)
        config = QueryConfig(
            role_filter=RoleFilter.only([Role.DRIVER]),
            column_sort=ColumnSort(direction=SortDirection.NONE),
        )
        view = store.view(config, NOW)
        assert (view.total, view.matched) == (2, 1)
        assert view.role_counts == {"user": 1, "driver": 1, "manager": 0, "admin": 0}
        [entry] = view.entries
        assert entry.user_code == "CU1"
        assert entry.trips_level == "starter"
        assert entry.bookings_level == "inactive"
