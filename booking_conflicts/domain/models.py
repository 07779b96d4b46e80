"""Domain models for the booking conflict engine."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import StrEnum

from pydantic import BaseModel, Field, computed_field, field_validator, model_validator


class RangeFamily(StrEnum):
    BOOKING = "booking"
    PRICING = "pricing"


class RangeKind(StrEnum):
    CONTRACT = "CONTRACT"
    OWNER = "OWNER"
    OWNER_STAY = "OWNER_STAY"
    MAINTENANCE = "MAINTENANCE"
    BLOCKED = "BLOCKED"
    CONFIRMED = "CONFIRMED"
    TENTATIVE = "TENTATIVE"
    PRICE_PERIOD = "PRICE_PERIOD"

    @property
    def priority(self) -> int:
        return KIND_PRIORITY[self]

    @property
    def family(self) -> RangeFamily:
        if self is RangeKind.PRICE_PERIOD:
            return RangeFamily.PRICING
        return RangeFamily.BOOKING


# Higher value wins. Price periods only ever compete with each other.
KIND_PRIORITY: dict[RangeKind, int] = {
    RangeKind.MAINTENANCE: 70,
    RangeKind.BLOCKED: 60,
    RangeKind.CONTRACT: 50,
    RangeKind.OWNER: 40,
    RangeKind.OWNER_STAY: 30,
    RangeKind.CONFIRMED: 20,
    RangeKind.TENTATIVE: 10,
    RangeKind.PRICE_PERIOD: 10,
}

# Operational holds: any overlap with one of these blocks, whichever side holds it.
HOLD_KINDS = frozenset({RangeKind.MAINTENANCE, RangeKind.BLOCKED})

# Kinds whose writes are recorded in the audit trail.
SENSITIVE_KINDS = frozenset({RangeKind.OWNER, RangeKind.OWNER_STAY})

_KIND_LABELS = {
    RangeKind.CONTRACT: "Contract Booking",
    RangeKind.OWNER: "Owner",
    RangeKind.OWNER_STAY: "Owner Stay",
    RangeKind.MAINTENANCE: "Property Maintenance",
    RangeKind.BLOCKED: "Blocked",
    RangeKind.CONFIRMED: "Confirmed Booking",
    RangeKind.TENTATIVE: "Tentative Booking",
    RangeKind.PRICE_PERIOD: "Price Period",
}

# Kinds that show the guest name instead of their label when one is set.
_GUEST_LABEL_KINDS = frozenset(
    {RangeKind.CONTRACT, RangeKind.CONFIRMED, RangeKind.TENTATIVE}
)


class RangeStatus(StrEnum):
    ACTIVE = "active"
    CANCELLED = "cancelled"


class ConflictType(StrEnum):
    OVERLAP = "overlap"
    ENCOMPASSING = "encompassing"
    ENCOMPASSED = "encompassed"


class Severity(StrEnum):
    BLOCKING = "blocking"
    WARNING = "warning"


class AuditAction(StrEnum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    IMPORT = "import"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC so every comparison is between aware values."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# ---------------------------------------------------------------------------
# Core domain models
# ---------------------------------------------------------------------------


class Interval(BaseModel):
    """Half-open date interval ``[start, end)``."""

    start: datetime
    end: datetime

    @field_validator("start", "end")
    @classmethod
    def _aware(cls, value: datetime) -> datetime:
        return as_utc(value)

    @model_validator(mode="after")
    def _end_after_start(self) -> Interval:
        if self.end <= self.start:
            raise ValueError("end must be after start")
        return self

    @property
    def length(self):
        return self.end - self.start


class ScopedRange(Interval):
    """An interval bound to one property and tagged with a range kind."""

    id: str = Field(default_factory=_new_id)
    owner_id: str
    kind: RangeKind
    status: RangeStatus = RangeStatus.ACTIVE
    name: str | None = None
    guest_name: str | None = None
    notes: str | None = None
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime | None = None

    @computed_field
    @property
    def priority(self) -> int:
        return self.kind.priority

    @property
    def display_name(self) -> str:
        if self.kind in _GUEST_LABEL_KINDS and self.guest_name:
            return self.guest_name
        if self.kind is RangeKind.PRICE_PERIOD and self.name:
            return self.name
        return _KIND_LABELS[self.kind]


class ConflictDetail(BaseModel):
    range_id: str
    kind: RangeKind
    severity: Severity
    conflict_type: ConflictType


class ConflictResult(BaseModel):
    candidate: Interval
    conflicts: list[ScopedRange] = Field(default_factory=list)
    details: list[ConflictDetail] = Field(default_factory=list)
    blocking: bool = False


class GracePeriodViolation(BaseModel):
    range_id: str
    hours: float
    side: str  # "before" / "after" relative to the candidate


class AvailabilityResult(BaseModel):
    available: bool
    conflicts: list[ScopedRange] = Field(default_factory=list)


class AdvancedAvailabilityResult(BaseModel):
    available: bool
    blocking: bool
    conflicts: list[ScopedRange] = Field(default_factory=list)
    details: list[ConflictDetail] = Field(default_factory=list)
    suggestions: list[Interval] = Field(default_factory=list)
    grace_period_violations: list[GracePeriodViolation] = Field(default_factory=list)


class CandidateRow(BaseModel):
    """One extracted import row. Dates and kind stay raw until reconciliation."""

    property_id: str
    kind: str | None = None
    start: str | datetime | None = None
    end: str | datetime | None = None
    name: str | None = None
    guest_name: str | None = None
    notes: str | None = None
    # Per-row overrides of the batch policy flags.
    skip_conflicts: bool | None = None
    update_existing: bool | None = None


class ImportRowError(BaseModel):
    row: int
    error: str


class ImportResult(BaseModel):
    imported: int = 0
    updated: int = 0
    skipped: int = 0
    errors: list[ImportRowError] = Field(default_factory=list)
    # Writes for the caller to persist; not part of the JSON response.
    created_ranges: list[ScopedRange] = Field(default_factory=list, exclude=True)
    updated_ranges: list[ScopedRange] = Field(default_factory=list, exclude=True)


class Property(BaseModel):
    id: str = Field(default_factory=_new_id)
    name: str


class AuditEntry(BaseModel):
    id: str = Field(default_factory=_new_id)
    user_id: str
    action: AuditAction
    entity_type: str
    entity_id: str
    timestamp: datetime = Field(default_factory=_utcnow)
    changes: dict = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Request / Response DTOs
# ---------------------------------------------------------------------------


class CreatePropertyRequest(BaseModel):
    name: str = Field(min_length=1)


class AvailabilityRequest(Interval):
    kind: RangeKind = RangeKind.CONFIRMED
    exclude_id: str | None = None


class AdvancedAvailabilityRequest(AvailabilityRequest):
    grace_hours: float | None = Field(default=None, ge=0, le=48)
    suggest_alternatives: bool = True


class CreateRangeRequest(Interval):
    kind: RangeKind
    name: str | None = None
    guest_name: str | None = None
    notes: str | None = None
    override: bool = False


class UpdateRangeRequest(BaseModel):
    kind: RangeKind | None = None
    start: datetime | None = None
    end: datetime | None = None
    status: RangeStatus | None = None
    name: str | None = None
    guest_name: str | None = None
    notes: str | None = None
    override: bool = False


class ImportRequest(BaseModel):
    rows: list[CandidateRow] = Field(min_length=1)
    skip_conflicts: bool = False
    update_existing: bool = False
