"""Conflict engine facade: availability checks and import reconciliation over a store."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime
from typing import Protocol

from pydantic import ValidationError

from booking_conflicts.config import EngineSettings
from booking_conflicts.domain.errors import NotFoundError, RangeValidationError
from booking_conflicts.domain.models import (
    AdvancedAvailabilityResult,
    AvailabilityResult,
    CandidateRow,
    ConflictResult,
    GracePeriodViolation,
    ImportResult,
    RangeKind,
    ScopedRange,
)
from booking_conflicts.services.classifier import classify, competing_ranges
from booking_conflicts.services.overlap import gap_hours, overlaps
from booking_conflicts.services.reconciliation import reconcile
from booking_conflicts.services.suggester import suggest


class RangeStore(Protocol):
    def list_ranges_by_property(self, property_id: str) -> list[ScopedRange]: ...


class PropertyDirectory(Protocol):
    def list_ids(self) -> set[str]: ...


class ConflictEngine:
    """Reads a property's ranges from the injected store and runs the pure checks.

    The engine never writes. Callers hold the per-property lock around
    check-then-write so the snapshot read here stays current.
    """

    def __init__(
        self,
        ranges: RangeStore,
        properties: PropertyDirectory,
        settings: EngineSettings | None = None,
    ) -> None:
        self.ranges = ranges
        self.properties = properties
        self.settings = settings or EngineSettings()

    @staticmethod
    def _candidate(
        property_id: str, start: datetime, end: datetime, kind: RangeKind
    ) -> ScopedRange:
        try:
            return ScopedRange(owner_id=property_id, kind=kind, start=start, end=end)
        except ValidationError as exc:
            raise RangeValidationError(exc.errors()[0]["msg"]) from None

    def _existing(self, property_id: str) -> list[ScopedRange]:
        if property_id not in self.properties.list_ids():
            raise NotFoundError(f"property {property_id!r} not found")
        return self.ranges.list_ranges_by_property(property_id)

    def check_availability(
        self,
        property_id: str,
        start: datetime,
        end: datetime,
        kind: RangeKind = RangeKind.CONFIRMED,
        exclude_id: str | None = None,
    ) -> AvailabilityResult:
        """Available only when nothing overlaps, whatever its priority."""
        candidate = self._candidate(property_id, start, end, kind)
        result = classify(candidate, self._existing(property_id), exclude_id=exclude_id)
        return AvailabilityResult(
            available=not result.conflicts, conflicts=result.conflicts
        )

    def check_advanced_availability(
        self,
        property_id: str,
        start: datetime,
        end: datetime,
        kind: RangeKind = RangeKind.CONFIRMED,
        exclude_id: str | None = None,
        grace_hours: float | None = None,
        suggest_alternatives: bool = True,
    ) -> AdvancedAvailabilityResult:
        """Classify conflicts with the grace buffer and suggest dates when blocked."""
        if grace_hours is None:
            grace_hours = self.settings.grace_hours
        existing = self._existing(property_id)
        candidate = self._candidate(property_id, start, end, kind)
        result = classify(candidate, existing, grace_hours, exclude_id)

        suggestions = []
        if suggest_alternatives and result.blocking:
            suggestions = suggest(
                candidate,
                existing,
                max_shift_days=self.settings.max_shift_days,
                grace_hours=grace_hours,
                exclude_id=exclude_id,
                limit=self.settings.max_suggestions,
            )

        return AdvancedAvailabilityResult(
            available=not result.blocking,
            blocking=result.blocking,
            conflicts=result.conflicts,
            details=result.details,
            suggestions=suggestions,
            grace_period_violations=grace_period_violations(
                candidate, existing, grace_hours, exclude_id
            ),
        )

    def classify_write(
        self, candidate: ScopedRange, exclude_id: str | None = None
    ) -> ConflictResult:
        """Classify a range about to be created or updated, with no grace buffer."""
        return classify(candidate, self._existing(candidate.owner_id), exclude_id=exclude_id)

    def reconcile_import(
        self,
        rows: list[CandidateRow],
        skip_conflicts: bool = False,
        update_existing: bool = False,
    ) -> ImportResult:
        """Reconcile rows for any number of properties. Unknown properties fail per row."""
        known = self.properties.list_ids()
        existing: list[ScopedRange] = []
        for property_id in sorted({row.property_id for row in rows} & known):
            existing.extend(self.ranges.list_ranges_by_property(property_id))
        return reconcile(
            rows,
            existing,
            skip_conflicts=skip_conflicts,
            update_existing=update_existing,
            property_ids=known,
        )


def grace_period_violations(
    candidate: ScopedRange,
    existing: Iterable[ScopedRange],
    grace_hours: float,
    exclude_id: str | None = None,
) -> list[GracePeriodViolation]:
    """Ranges that clear the candidate's dates but fall inside the turnover buffer."""
    violations: list[GracePeriodViolation] = []
    if not grace_hours:
        return violations
    for r in competing_ranges(candidate, existing, exclude_id):
        if not overlaps(candidate, r, grace_hours):
            continue
        gap = gap_hours(candidate, r)
        if gap is not None:
            hours, side = gap
            violations.append(GracePeriodViolation(range_id=r.id, hours=hours, side=side))
    return violations
