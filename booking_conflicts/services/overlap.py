"""Overlap detection between half-open date intervals."""

from __future__ import annotations

from datetime import timedelta

from booking_conflicts.domain.errors import RangeValidationError
from booking_conflicts.domain.models import ConflictType, Interval

MAX_GRACE_HOURS = 48


def validate_grace_hours(grace_hours: float) -> timedelta:
    """Return the grace period as a timedelta, rejecting values outside 0-48 hours."""
    if grace_hours < 0 or grace_hours > MAX_GRACE_HOURS:
        raise RangeValidationError(
            f"grace hours must be between 0 and {MAX_GRACE_HOURS}, got {grace_hours}"
        )
    return timedelta(hours=grace_hours)


def overlaps(a: Interval, b: Interval, grace_hours: float = 0) -> bool:
    """Return True if ``a`` and ``b`` overlap once ``b`` is padded by *grace_hours*.

    Overlap rule: a.start < b.end AND b.start < a.end.
    Exact boundary touches (a.end == b.start) are NOT overlaps without grace.
    """
    grace = validate_grace_hours(grace_hours)
    return a.start < b.end + grace and b.start - grace < a.end


def conflict_type(candidate: Interval, existing: Interval) -> ConflictType:
    """Describe how two overlapping intervals relate."""
    if candidate.start <= existing.start and candidate.end >= existing.end:
        return ConflictType.ENCOMPASSING
    if existing.start <= candidate.start and existing.end >= candidate.end:
        return ConflictType.ENCOMPASSED
    return ConflictType.OVERLAP


def gap_hours(candidate: Interval, existing: Interval) -> tuple[float, str] | None:
    """Return the free gap between two disjoint intervals and which side it is on.

    ``"before"`` means *existing* ends before the candidate starts. Returns
    ``None`` when the intervals overlap or touch; touching ranges are adjacent.
    """
    if existing.end < candidate.start:
        delta = candidate.start - existing.end
        side = "before"
    elif candidate.end < existing.start:
        delta = existing.start - candidate.end
        side = "after"
    else:
        return None
    return round(delta.total_seconds() / 3600, 1), side
