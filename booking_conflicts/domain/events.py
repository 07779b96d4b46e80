"""Domain events emitted when dated ranges change."""

from __future__ import annotations

from pydantic import BaseModel, Field

from booking_conflicts.domain.models import RangeKind


class RangeCreated(BaseModel):
    """Fired when a new ScopedRange is persisted."""

    range_id: str
    property_id: str
    kind: RangeKind
    user_id: str
    overridden_conflict_ids: list[str] = Field(default_factory=list)


class RangeUpdated(BaseModel):
    """Fired after a ScopedRange is changed in place."""

    range_id: str
    property_id: str
    previous_kind: RangeKind
    kind: RangeKind
    user_id: str
    changes: dict = Field(default_factory=dict)


class RangeDeleted(BaseModel):
    """Fired after a ScopedRange is removed."""

    range_id: str
    property_id: str
    kind: RangeKind
    user_id: str


class ImportCompleted(BaseModel):
    """Fired once a bulk import has been reconciled and written."""

    user_id: str
    property_ids: list[str]
    imported: int
    updated: int
    skipped: int
    failed: int
