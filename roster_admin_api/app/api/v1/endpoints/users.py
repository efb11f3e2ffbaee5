"""
Roster endpoints for API v1.

``GET /users/`` returns the searched, filtered and sorted roster.
Role changes, profile edits and soft deletes go through the roster
store, which calls the database first and only then patches the
in‑memory roster.  Outcomes are returned as ``MutationResult``; failures
are mapped to HTTP errors.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from roster_admin_api.app.core.config import settings
from roster_admin_api.app.schemas.roster import (
    ALL_TAG,
    SORTABLE_COLUMNS,
    ActivityFilter,
    ColumnSort,
    MutationResult,
    ProfileUpdate,
    QueryConfig,
    RoleFilter,
    RoleUpdate,
    RosterView,
    SortDirection,
)
from roster_admin_api.app.services.profile_service import roster_store
from roster_admin_api.app.services.query_engine import next_column_sort
from roster_admin_api.app.services.roster_store import (
    IN_PROGRESS,
    NOT_FOUND,
    RosterRefreshError,
    RosterStore,
)

router = APIRouter()


def get_roster_store() -> RosterStore:
    """Dependency returning the shared roster store."""
    return roster_store


def _raise_for_failure(result: MutationResult) -> MutationResult:
    if result.ok:
        return result
    if result.code == IN_PROGRESS:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=result.reason)
    if result.code == NOT_FOUND:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=result.reason)
    raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=result.reason)


def _check_sort_key(key: Optional[str]) -> None:
    if key and key not in SORTABLE_COLUMNS:
        raise HTTPException(status_code=422, detail=f"Unknown sort column: {key}")


@router.get("/", response_model=RosterView)
async def list_roster(
    search: str = "",
    role: List[str] = Query([ALL_TAG]),
    activity: List[str] = Query([ALL_TAG]),
    preset_sort: Optional[str] = None,
    sort_key: Optional[str] = "full_name",
    sort_direction: SortDirection = SortDirection.ASC,
    refresh: bool = False,
    store: RosterStore = Depends(get_roster_store),
) -> RosterView:
    """Search, filter and sort the roster.

    ``role`` and ``activity`` may be repeated; ``ALL`` selects
    everything regardless of other values.  ``refresh=true`` reloads the
    roster from the database first.
    """
    _check_sort_key(sort_key)
    try:
        config = QueryConfig(
            search_term=search,
            role_filter=RoleFilter.from_tags(role),
            activity_filter=ActivityFilter.from_tags(activity),
            preset_sort=preset_sort or settings.default_preset_sort,
            column_sort=ColumnSort(key=sort_key, direction=sort_direction),
        )
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    if refresh or not store.loaded:
        try:
            await store.refresh()
        except RosterRefreshError as e:
            raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))
    return store.view(config)


@router.post("/refresh")
async def refresh_roster(store: RosterStore = Depends(get_roster_store)) -> dict:
    """Rebuild the roster from the database."""
    try:
        applied = await store.refresh()
    except RosterRefreshError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))
    return {"applied": applied, "version": store.version, "total": len(store.snapshot())}


@router.get("/sort/next", response_model=ColumnSort)
async def next_sort(
    key: str,
    current_key: Optional[str] = None,
    current_direction: SortDirection = SortDirection.NONE,
) -> ColumnSort:
    """Column sort state after clicking the header of ``key``."""
    _check_sort_key(key)
    _check_sort_key(current_key)
    return next_column_sort(ColumnSort(key=current_key, direction=current_direction), key)


@router.put("/{user_id}/role", response_model=MutationResult)
async def update_role(
    user_id: str,
    body: RoleUpdate,
    store: RosterStore = Depends(get_roster_store),
) -> MutationResult:
    """Change a user's role."""
    return _raise_for_failure(await store.update_role(user_id, body.role))


@router.put("/{user_id}", response_model=MutationResult)
async def update_profile(
    user_id: str,
    body: ProfileUpdate,
    store: RosterStore = Depends(get_roster_store),
) -> MutationResult:
    """Edit a user's name and phone."""
    return _raise_for_failure(await store.update_profile(user_id, body.full_name, body.phone))


@router.delete("/{user_id}", response_model=MutationResult)
async def soft_delete_user(
    user_id: str,
    store: RosterStore = Depends(get_roster_store),
) -> MutationResult:
    """Soft delete a user.

    The profile is marked as deleted in the database and disappears from
    the roster immediately; trips and bookings are kept.
    """
    return _raise_for_failure(await store.soft_delete(user_id))
