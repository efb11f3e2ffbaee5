"""
Pydantic models for the roster.

Three flat record collections come from the store: profiles, trips and
bookings.  ``RosterEntry`` is the derived per‑user view built by the
stats aggregator; ``RosterEntryRead`` adds display‑only values for the
API.  ``QueryConfig`` describes one search/filter/sort request.

Role and activity filters are tagged values: either "everything" or a
specific set of tags.  The wire form used by clients (a list of tags
where ``"ALL"`` may appear next to real values) is converted with
``from_tags``.
"""

from enum import Enum
from typing import Dict, FrozenSet, Iterable, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator

from ..services.activity_tiers import activity_level

ALL_TAG = "ALL"


class Role(str, Enum):
    USER = "user"
    DRIVER = "driver"
    MANAGER = "manager"
    ADMIN = "admin"


class ProfileStatus(str, Enum):
    ACTIVE = "active"
    DELETED = "deleted"


class ActivityWindow(str, Enum):
    TODAY = "TODAY"
    YESTERDAY = "YESTERDAY"
    WEEK = "WEEK"


class PresetSort(str, Enum):
    NEWEST = "NEWEST"
    OLDEST = "OLDEST"
    NAME_ASC = "NAME_ASC"
    NAME_DESC = "NAME_DESC"
    JOIN_DATE_ASC = "JOIN_DATE_ASC"
    LAST_ACTIVITY_DESC = "LAST_ACTIVITY_DESC"
    TRIPS_COUNT_DESC = "TRIPS_COUNT_DESC"
    BOOKINGS_COUNT_DESC = "BOOKINGS_COUNT_DESC"


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"
    NONE = "none"


# Columns an operator can sort by, grouped by how they compare.
STRING_COLUMNS = frozenset({"full_name", "role", "phone", "email"})
DATE_COLUMNS = frozenset({"created_at", "last_activity_at"})
NUMERIC_COLUMNS = frozenset({"trips_count", "bookings_count"})
SORTABLE_COLUMNS = STRING_COLUMNS | DATE_COLUMNS | NUMERIC_COLUMNS


class Profile(BaseModel):
    """Identity record as stored.

    ``status`` is kept as a plain string so that statuses other than
    ``active`` and ``deleted`` pass through untouched.
    """

    id: str
    full_name: str = Field("", example="Nguyễn Văn A")
    phone: Optional[str] = Field(None, example="0901234567")
    email: Optional[str] = Field(None, example="a@example.com")
    role: Role = Role.USER
    status: str = ProfileStatus.ACTIVE.value
    created_at: Optional[str] = Field(None, example="2024-06-01T08:30:00+07:00")

    model_config = {"from_attributes": True}

    @field_validator("full_name", mode="before")
    @classmethod
    def _empty_name(cls, value):
        return "" if value is None else value

    @property
    def is_deleted(self) -> bool:
        return self.status == ProfileStatus.DELETED.value


class TripRecord(BaseModel):
    driver_id: str
    created_at: Optional[str] = None


class BookingRecord(BaseModel):
    passenger_id: str
    created_at: Optional[str] = None


class RosterEntry(Profile):
    """A profile joined with its trip and booking statistics."""

    trips_count: int = Field(0, ge=0)
    bookings_count: int = Field(0, ge=0)
    last_activity_at: Optional[str] = None


class RosterEntryRead(RosterEntry):
    """Roster entry as returned by the API."""

    @computed_field
    @property
    def user_code(self) -> str:
        return f"C{self.id[:5].upper()}"

    @computed_field
    @property
    def trips_level(self) -> str:
        return activity_level(self.trips_count)

    @computed_field
    @property
    def bookings_level(self) -> str:
        return activity_level(self.bookings_count)


class RoleFilter(BaseModel):
    """Either every role, or a specific set of roles (OR semantics)."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["all", "specific"] = "all"
    roles: FrozenSet[Role] = frozenset()

    @classmethod
    def all_roles(cls) -> "RoleFilter":
        return cls()

    @classmethod
    def only(cls, roles: Iterable) -> "RoleFilter":
        return cls(kind="specific", roles=frozenset(Role(r) for r in roles))

    @classmethod
    def from_tags(cls, tags: Iterable[str]) -> "RoleFilter":
        """Build a filter from wire tags; ``ALL`` anywhere wins."""
        tags = list(tags)
        if ALL_TAG in tags:
            return cls.all_roles()
        return cls.only(tags)

    def matches(self, role: Role) -> bool:
        return self.kind == "all" or role in self.roles


class ActivityFilter(BaseModel):
    """Either any activity (including none), or a set of time windows."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["all", "specific"] = "all"
    windows: FrozenSet[ActivityWindow] = frozenset()

    @classmethod
    def any_time(cls) -> "ActivityFilter":
        return cls()

    @classmethod
    def only(cls, windows: Iterable) -> "ActivityFilter":
        return cls(kind="specific", windows=frozenset(ActivityWindow(w) for w in windows))

    @classmethod
    def from_tags(cls, tags: Iterable[str]) -> "ActivityFilter":
        tags = list(tags)
        if ALL_TAG in tags:
            return cls.any_time()
        return cls.only(tags)


class ColumnSort(BaseModel):
    """User‑toggled sort on a single column with tri‑state direction."""

    model_config = ConfigDict(frozen=True)

    key: Optional[str] = "full_name"
    direction: SortDirection = SortDirection.ASC

    @property
    def is_active(self) -> bool:
        return bool(self.key) and self.direction != SortDirection.NONE


class QueryConfig(BaseModel):
    """One search, filter and sort request over the roster."""

    search_term: str = ""
    role_filter: RoleFilter = Field(default_factory=RoleFilter.all_roles)
    activity_filter: ActivityFilter = Field(default_factory=ActivityFilter.any_time)
    # Kept as a string: an unrecognised preset leaves the order unchanged.
    preset_sort: Optional[str] = PresetSort.NAME_ASC.value
    column_sort: ColumnSort = Field(default_factory=ColumnSort)


class RosterView(BaseModel):
    """Filtered and ordered roster plus whole‑roster counters."""

    total: int
    matched: int
    role_counts: Dict[str, int]
    version: int
    entries: List[RosterEntryRead]


class MutationResult(BaseModel):
    """Outcome of a role change, profile edit or soft delete."""

    user_id: str
    ok: bool
    # in_progress, not_found or failed when ok is False.
    code: Optional[str] = None
    reason: Optional[str] = None


class RoleUpdate(BaseModel):
    role: Role = Field(..., example="driver")


class ProfileUpdate(BaseModel):
    full_name: str = Field(..., example="Phạm Đức")
    phone: Optional[str] = Field(None, example="0912345678")
