"""FastAPI application: HTTP layer over the booking conflict engine."""

from __future__ import annotations

import logging
from contextlib import ExitStack
from datetime import datetime, timezone

from fastapi import Depends, FastAPI, Header, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from booking_conflicts.config import EngineSettings
from booking_conflicts.domain.bus import EventBus
from booking_conflicts.domain.errors import NotFoundError, RangeValidationError
from booking_conflicts.domain.events import (
    ImportCompleted,
    RangeCreated,
    RangeDeleted,
    RangeUpdated,
)
from booking_conflicts.domain.handlers import HandlerRegistry
from booking_conflicts.domain.models import (
    AdvancedAvailabilityRequest,
    AdvancedAvailabilityResult,
    AvailabilityRequest,
    AvailabilityResult,
    ConflictResult,
    CreatePropertyRequest,
    CreateRangeRequest,
    ImportRequest,
    ImportResult,
    Property,
    RangeStatus,
    ScopedRange,
    UpdateRangeRequest,
)
from booking_conflicts.logs import configure_logging
from booking_conflicts.repos.memory import (
    AuditLogRepository,
    PropertyLocks,
    PropertyRepository,
    RangeRepository,
)
from booking_conflicts.services.engine import ConflictEngine

settings = EngineSettings.from_environment()
configure_logging(level=settings.log_level)
logger = logging.getLogger(__name__)

app = FastAPI(title="Booking Conflict Service")

# ── Singletons (created at import time for simplicity) ────────────────
event_bus = EventBus()
property_repo = PropertyRepository()
range_repo = RangeRepository()
audit_repo = AuditLogRepository()
property_locks = PropertyLocks()
engine = ConflictEngine(ranges=range_repo, properties=property_repo, settings=settings)

handler_registry = HandlerRegistry(
    bus=event_bus,
    range_repo=range_repo,
    audit_repo=audit_repo,
)


# ── Error mapping ─────────────────────────────────────────────────────


@app.exception_handler(NotFoundError)
async def _not_found(request: Request, exc: NotFoundError) -> JSONResponse:
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(RangeValidationError)
async def _invalid_range(request: Request, exc: RangeValidationError) -> JSONResponse:
    return JSONResponse(status_code=422, content={"detail": str(exc)})


def require_user(x_user_id: str | None = Header(default=None)) -> str:
    """Mutating routes need a caller identity."""
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return x_user_id


# Fields an import row rewrites on the range it updates.
_IMPORT_UPDATE_FIELDS = {"kind", "start", "end", "name", "guest_name", "notes"}


def _conflict_response(result: ConflictResult) -> HTTPException:
    return HTTPException(
        status_code=409,
        detail={
            "message": "date range conflicts with existing range",
            "conflicts": [c.model_dump(mode="json") for c in result.conflicts],
            "details": [d.model_dump(mode="json") for d in result.details],
        },
    )


# ── Routes ────────────────────────────────────────────────────────────


@app.post("/properties", response_model=Property, status_code=201)
def create_property(body: CreatePropertyRequest, user_id: str = Depends(require_user)) -> Property:
    prop = Property(name=body.name)
    property_repo.add(prop)
    logger.info("property %s created by %s", prop.id, user_id)
    return prop


@app.get("/properties/{property_id}/ranges", response_model=list[ScopedRange])
def list_ranges(property_id: str) -> list[ScopedRange]:
    """Return all ranges of a property ordered by start date."""
    if property_repo.get(property_id) is None:
        raise NotFoundError(f"property {property_id!r} not found")
    return range_repo.list_ranges_by_property(property_id)


@app.post("/properties/{property_id}/availability", response_model=AvailabilityResult)
def check_availability(property_id: str, body: AvailabilityRequest) -> AvailabilityResult:
    return engine.check_availability(
        property_id, body.start, body.end, kind=body.kind, exclude_id=body.exclude_id
    )


@app.post(
    "/properties/{property_id}/availability/advanced",
    response_model=AdvancedAvailabilityResult,
)
def check_advanced_availability(
    property_id: str, body: AdvancedAvailabilityRequest
) -> AdvancedAvailabilityResult:
    """Classified conflicts, grace-period violations and alternative dates."""
    return engine.check_advanced_availability(
        property_id,
        body.start,
        body.end,
        kind=body.kind,
        exclude_id=body.exclude_id,
        grace_hours=body.grace_hours,
        suggest_alternatives=body.suggest_alternatives,
    )


@app.post("/properties/{property_id}/ranges", response_model=ScopedRange, status_code=201)
def create_range(
    property_id: str, body: CreateRangeRequest, user_id: str = Depends(require_user)
) -> ScopedRange:
    """Create a range; a blocking conflict is rejected unless ``override`` is set."""
    if property_repo.get(property_id) is None:
        raise NotFoundError(f"property {property_id!r} not found")
    candidate = ScopedRange(
        owner_id=property_id,
        kind=body.kind,
        start=body.start,
        end=body.end,
        name=body.name,
        guest_name=body.guest_name,
        notes=body.notes,
    )
    with property_locks.for_property(property_id):
        result = engine.classify_write(candidate)
        if result.blocking and not body.override:
            logger.info("rejected %s range on property %s: conflicts", body.kind, property_id)
            raise _conflict_response(result)
        range_repo.add(candidate)
        event_bus.publish(
            RangeCreated(
                range_id=candidate.id,
                property_id=property_id,
                kind=candidate.kind,
                user_id=user_id,
                overridden_conflict_ids=[c.id for c in result.conflicts] if result.blocking else [],
            )
        )
    logger.info("range %s created on property %s", candidate.id, property_id)
    return candidate


@app.patch("/ranges/{range_id}", response_model=ScopedRange)
def update_range(
    range_id: str, body: UpdateRangeRequest, user_id: str = Depends(require_user)
) -> ScopedRange:
    """Update a range in place, re-classifying it against everything but itself."""
    current = range_repo.get(range_id)
    if current is None:
        raise NotFoundError(f"range {range_id!r} not found")

    changes = body.model_dump(exclude_unset=True, exclude={"override"})
    with property_locks.for_property(current.owner_id):
        current = range_repo.get(range_id)
        if current is None:
            raise NotFoundError(f"range {range_id!r} not found")
        try:
            updated = ScopedRange.model_validate(
                {
                    **current.model_dump(exclude={"priority"}),
                    **changes,
                    "updated_at": datetime.now(timezone.utc),
                }
            )
        except ValidationError as exc:
            raise RangeValidationError(exc.errors()[0]["msg"]) from None

        if updated.status != RangeStatus.CANCELLED:
            result = engine.classify_write(updated, exclude_id=range_id)
            if result.blocking and not body.override:
                raise _conflict_response(result)

        range_repo.replace(updated)
        event_bus.publish(
            RangeUpdated(
                range_id=range_id,
                property_id=updated.owner_id,
                previous_kind=current.kind,
                kind=updated.kind,
                user_id=user_id,
                changes=body.model_dump(mode="json", exclude_unset=True, exclude={"override"}),
            )
        )
    logger.info("range %s updated", range_id)
    return updated


@app.delete("/ranges/{range_id}", status_code=200)
def delete_range(range_id: str, user_id: str = Depends(require_user)) -> dict:
    current = range_repo.get(range_id)
    if current is None:
        raise NotFoundError(f"range {range_id!r} not found")
    with property_locks.for_property(current.owner_id):
        range_repo.delete(range_id)
        event_bus.publish(
            RangeDeleted(
                range_id=range_id,
                property_id=current.owner_id,
                kind=current.kind,
                user_id=user_id,
            )
        )
    logger.info("range %s deleted", range_id)
    return {"status": "deleted"}


@app.post("/imports", response_model=ImportResult)
def import_ranges(body: ImportRequest, user_id: str = Depends(require_user)) -> ImportResult:
    """Reconcile a batch of extracted rows and persist the accepted writes."""
    if len(body.rows) > settings.import_max_rows:
        raise RangeValidationError(
            f"at most {settings.import_max_rows} rows per import, got {len(body.rows)}"
        )

    # Rows for unknown properties fail on their own; only known ones are locked.
    property_ids = {row.property_id for row in body.rows} & property_repo.list_ids()
    with ExitStack() as stack:
        for lock in property_locks.for_properties(property_ids):
            stack.enter_context(lock)

        result = engine.reconcile_import(
            body.rows,
            skip_conflicts=body.skip_conflicts,
            update_existing=body.update_existing,
        )
        for scoped_range in result.created_ranges:
            range_repo.add(scoped_range)
            event_bus.publish(
                RangeCreated(
                    range_id=scoped_range.id,
                    property_id=scoped_range.owner_id,
                    kind=scoped_range.kind,
                    user_id=user_id,
                )
            )
        for scoped_range in result.updated_ranges:
            previous = range_repo.get(scoped_range.id)
            range_repo.replace(scoped_range)
            event_bus.publish(
                RangeUpdated(
                    range_id=scoped_range.id,
                    property_id=scoped_range.owner_id,
                    previous_kind=previous.kind if previous else scoped_range.kind,
                    kind=scoped_range.kind,
                    user_id=user_id,
                    changes=scoped_range.model_dump(
                        mode="json", include=_IMPORT_UPDATE_FIELDS
                    ),
                )
            )

        event_bus.publish(
            ImportCompleted(
                user_id=user_id,
                property_ids=sorted(property_ids),
                imported=result.imported,
                updated=result.updated,
                skipped=result.skipped,
                failed=len(result.errors),
            )
        )
    return result
