"""Bulk-import reconciliation: decide per row whether to create, skip, update or reject."""

from __future__ import annotations

from collections.abc import Collection, Iterable
from datetime import datetime, timezone

from dateutil.parser import isoparse
from pydantic import ValidationError

from booking_conflicts.domain.errors import (
    ConflictEngineError,
    NotFoundError,
    RangeValidationError,
)
from booking_conflicts.domain.models import (
    CandidateRow,
    ImportResult,
    ImportRowError,
    RangeKind,
    ScopedRange,
    as_utc,
)
from booking_conflicts.services.classifier import classify

CONFLICT_ERROR = "date range conflicts with existing range"
UPDATE_CONFLICT_ERROR = "updated range conflicts with existing range"


def _parse_date(raw: str | datetime | None, field: str) -> datetime:
    if raw is None:
        raise RangeValidationError(f"missing {field} date")
    if isinstance(raw, datetime):
        return as_utc(raw)
    try:
        return as_utc(isoparse(raw.strip()))
    except (ValueError, OverflowError):
        raise RangeValidationError(
            f"invalid {field} date {raw!r}, use YYYY-MM-DD"
        ) from None


def _parse_kind(raw: str | None) -> RangeKind:
    if raw is None:
        raise RangeValidationError("missing range kind")
    try:
        return RangeKind(raw.strip().upper())
    except ValueError:
        raise RangeValidationError(f"unknown range kind {raw!r}") from None


def build_range(
    row: CandidateRow, property_ids: Collection[str] | None = None
) -> ScopedRange:
    """Turn a raw import row into a ScopedRange, raising on any invalid field."""
    if property_ids is not None and row.property_id not in property_ids:
        raise NotFoundError(f"property {row.property_id!r} not found")

    kind = _parse_kind(row.kind)
    start = _parse_date(row.start, "start")
    end = _parse_date(row.end, "end")
    if end <= start:
        raise RangeValidationError("end date must be after start date")

    return ScopedRange(
        owner_id=row.property_id,
        kind=kind,
        start=start,
        end=end,
        name=row.name,
        guest_name=row.guest_name,
        notes=row.notes,
    )


def _row_error(exc: Exception) -> str:
    if isinstance(exc, ValidationError):
        first = exc.errors()[0]
        path = ".".join(str(p) for p in first["loc"])
        return f"validation error: {path} - {first['msg']}" if path else first["msg"]
    return str(exc)


def reconcile(
    rows: Iterable[CandidateRow],
    existing: Iterable[ScopedRange],
    skip_conflicts: bool = False,
    update_existing: bool = False,
    property_ids: Collection[str] | None = None,
    grace_hours: float = 0,
) -> ImportResult:
    """Reconcile import rows against existing ranges, one row at a time.

    Rows run in input order and each row sees the ranges accepted before it, so
    conflicts inside the batch are caught too. A bad row is recorded in
    ``errors`` and never stops the batch. Row numbers are 1-based.

    When a row conflicts, ``skip_conflicts`` wins over ``update_existing``; with
    neither flag the row is rejected. A row may override either batch flag.
    Updates overwrite the first conflicting range in classifier order, and are
    rejected if the rewritten range would be blocked by any other range.

    Nothing is persisted: the created and overwritten ranges come back on
    ``created_ranges`` / ``updated_ranges`` for the caller to write.
    """
    result = ImportResult()
    working: dict[str, ScopedRange] = {r.id: r for r in existing}
    created: dict[str, ScopedRange] = {}
    overwritten: dict[str, ScopedRange] = {}

    for index, row in enumerate(rows, start=1):
        try:
            candidate = build_range(row, property_ids)
        except (ConflictEngineError, ValidationError) as exc:
            result.errors.append(ImportRowError(row=index, error=_row_error(exc)))
            continue

        outcome = classify(candidate, working.values(), grace_hours)
        skip = skip_conflicts if row.skip_conflicts is None else row.skip_conflicts
        update = update_existing if row.update_existing is None else row.update_existing

        if not outcome.conflicts:
            working[candidate.id] = candidate
            created[candidate.id] = candidate
            result.imported += 1
        elif skip:
            result.skipped += 1
        elif update:
            target = outcome.conflicts[0]
            replacement = target.model_copy(
                update={
                    "kind": candidate.kind,
                    "start": candidate.start,
                    "end": candidate.end,
                    "name": candidate.name,
                    "guest_name": candidate.guest_name,
                    "notes": candidate.notes,
                    "updated_at": datetime.now(timezone.utc),
                }
            )
            if classify(replacement, working.values(), grace_hours, exclude_id=target.id).blocking:
                result.errors.append(ImportRowError(row=index, error=UPDATE_CONFLICT_ERROR))
                continue
            working[target.id] = replacement
            if target.id in created:
                created[target.id] = replacement
            else:
                overwritten[target.id] = replacement
            result.updated += 1
        else:
            result.errors.append(ImportRowError(row=index, error=CONFLICT_ERROR))

    result.created_ranges = list(created.values())
    result.updated_ranges = list(overwritten.values())
    return result
