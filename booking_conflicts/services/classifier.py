"""Classify the conflicts a candidate range has with a property's existing ranges."""

from __future__ import annotations

from collections.abc import Iterable

from booking_conflicts.domain.models import (
    HOLD_KINDS,
    ConflictDetail,
    ConflictResult,
    Interval,
    RangeStatus,
    ScopedRange,
    Severity,
)
from booking_conflicts.services.overlap import conflict_type, overlaps, validate_grace_hours


def competing_ranges(
    candidate: ScopedRange,
    existing: Iterable[ScopedRange],
    exclude_id: str | None = None,
) -> list[ScopedRange]:
    """Return the existing ranges a candidate can collide with.

    Same property, same range family, not cancelled, and not the range being
    updated (``exclude_id``).
    """
    family = candidate.kind.family
    return [
        r
        for r in existing
        if r.owner_id == candidate.owner_id
        and r.kind.family == family
        and r.status != RangeStatus.CANCELLED
        and (exclude_id is None or r.id != exclude_id)
    ]


def is_blocking(candidate: ScopedRange, conflict: ScopedRange) -> bool:
    """An overlap blocks when the other range ranks at least as high as the candidate.

    Maintenance and blocked holds never share dates with anything, so an overlap
    with a hold on either side always blocks.
    """
    if candidate.kind in HOLD_KINDS or conflict.kind in HOLD_KINDS:
        return True
    return conflict.priority >= candidate.priority


def classify(
    candidate: ScopedRange,
    existing: Iterable[ScopedRange],
    grace_hours: float = 0,
    exclude_id: str | None = None,
) -> ConflictResult:
    """Return every range that overlaps *candidate* and whether any of them blocks it.

    Conflicts are ordered by start then id, independent of priority.
    """
    validate_grace_hours(grace_hours)

    conflicts = sorted(
        (
            r
            for r in competing_ranges(candidate, existing, exclude_id)
            if overlaps(candidate, r, grace_hours)
        ),
        key=lambda r: (r.start, r.id),
    )

    details = [
        ConflictDetail(
            range_id=r.id,
            kind=r.kind,
            severity=Severity.BLOCKING if is_blocking(candidate, r) else Severity.WARNING,
            conflict_type=conflict_type(candidate, r),
        )
        for r in conflicts
    ]

    return ConflictResult(
        candidate=Interval(start=candidate.start, end=candidate.end),
        conflicts=conflicts,
        details=details,
        blocking=any(d.severity == Severity.BLOCKING for d in details),
    )
