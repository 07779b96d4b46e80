"""Tests for the overlap detector."""

from datetime import datetime, timezone

import pytest

from booking_conflicts.domain.errors import RangeValidationError
from booking_conflicts.domain.models import ConflictType, Interval
from booking_conflicts.services.overlap import conflict_type, gap_hours, overlaps


def _interval(start_day: int, end_day: int, month: int = 1) -> Interval:
    return Interval(
        start=datetime(2025, month, start_day, tzinfo=timezone.utc),
        end=datetime(2025, month, end_day, tzinfo=timezone.utc),
    )


def test_no_overlap():
    """Disjoint ranges do not overlap."""
    assert overlaps(_interval(1, 3), _interval(5, 8)) is False


def test_partial_overlap():
    """A range that partially covers another overlaps it."""
    assert overlaps(_interval(1, 5), _interval(3, 8)) is True


def test_exact_boundary_no_conflict():
    """When a.end == b.start, there is no overlap (boundary touch)."""
    assert overlaps(_interval(1, 5), _interval(5, 10), grace_hours=0) is False


def test_boundary_touch_overlaps_with_grace():
    """One hour of turnover buffer turns a back-to-back pair into an overlap."""
    assert overlaps(_interval(1, 5), _interval(5, 10), grace_hours=1) is True


@pytest.mark.parametrize(
    "a, b",
    [
        (_interval(1, 5), _interval(5, 10)),
        (_interval(1, 5), _interval(3, 8)),
        (_interval(1, 10), _interval(3, 4)),
        (_interval(1, 2), _interval(20, 25)),
    ],
)
def test_overlap_is_symmetric(a, b):
    assert overlaps(a, b) == overlaps(b, a)
    assert overlaps(a, b, grace_hours=30) == overlaps(b, a, grace_hours=30)


def test_interval_overlaps_itself():
    a = _interval(1, 5)
    assert overlaps(a, a) is True


@pytest.mark.parametrize("grace", [-1, 48.5, 100])
def test_grace_hours_out_of_range_rejected(grace):
    with pytest.raises(RangeValidationError):
        overlaps(_interval(1, 5), _interval(6, 10), grace_hours=grace)


def test_grace_hours_upper_bound_allowed():
    """48 hours is the largest allowed buffer; two days apart now collide."""
    assert overlaps(_interval(1, 5), _interval(7, 10), grace_hours=48) is False
    assert overlaps(_interval(1, 5), _interval(6, 10), grace_hours=48) is True


def test_zero_length_interval_is_invalid():
    with pytest.raises(ValueError):
        _interval(5, 5)


def test_naive_datetimes_read_as_utc():
    naive = Interval(start=datetime(2025, 1, 1), end=datetime(2025, 1, 5))
    assert naive.start.tzinfo is timezone.utc
    assert overlaps(naive, _interval(4, 6)) is True


def test_conflict_type():
    assert conflict_type(_interval(1, 10), _interval(3, 4)) == ConflictType.ENCOMPASSING
    assert conflict_type(_interval(3, 4), _interval(1, 10)) == ConflictType.ENCOMPASSED
    assert conflict_type(_interval(1, 5), _interval(3, 8)) == ConflictType.OVERLAP


def test_gap_hours():
    assert gap_hours(_interval(6, 8), _interval(1, 5)) == (24.0, "before")
    assert gap_hours(_interval(1, 5), _interval(6, 8)) == (24.0, "after")
    assert gap_hours(_interval(1, 5), _interval(3, 8)) is None


def test_touching_intervals_have_no_gap():
    assert gap_hours(_interval(5, 8), _interval(1, 5)) is None
    assert gap_hours(_interval(1, 5), _interval(5, 8)) is None
