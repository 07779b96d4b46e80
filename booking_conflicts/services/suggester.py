"""Search nearby dates for a same-length, conflict-free alternative to a candidate."""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from datetime import timedelta

from booking_conflicts.domain.models import Interval, ScopedRange
from booking_conflicts.services.classifier import classify, competing_ranges
from booking_conflicts.services.overlap import overlaps

DEFAULT_MAX_SHIFT_DAYS = 14
DEFAULT_MAX_SUGGESTIONS = 3


def _offsets(max_shift_days: int) -> Iterator[int]:
    """Yield -1, +1, -2, +2, ... so the nearest shift is always tried first."""
    for days in range(1, max_shift_days + 1):
        yield -days
        yield days


def suggest(
    candidate: ScopedRange,
    existing: Iterable[ScopedRange],
    max_shift_days: int = DEFAULT_MAX_SHIFT_DAYS,
    grace_hours: float = 0,
    exclude_id: str | None = None,
    limit: int = DEFAULT_MAX_SUGGESTIONS,
) -> list[Interval]:
    """Return up to *limit* shifted copies of *candidate* that clash with nothing.

    Each shift keeps the candidate's length and is re-classified. A shift is
    kept only if it is non-blocking and overlaps none of the competing ranges.
    """
    existing = list(existing)
    competitors = competing_ranges(candidate, existing, exclude_id)
    suggestions: list[Interval] = []

    for offset in _offsets(max_shift_days):
        if len(suggestions) >= limit:
            break
        shift = timedelta(days=offset)
        shifted = candidate.model_copy(
            update={"start": candidate.start + shift, "end": candidate.end + shift}
        )
        if classify(shifted, existing, grace_hours, exclude_id).blocking:
            continue
        if any(overlaps(shifted, r, grace_hours) for r in competitors):
            continue
        suggestions.append(Interval(start=shifted.start, end=shifted.end))

    return suggestions
