"""Domain event handlers that keep the audit trail, wired up at application startup."""

from __future__ import annotations

import logging

from booking_conflicts.domain.bus import EventBus
from booking_conflicts.domain.events import (
    ImportCompleted,
    RangeCreated,
    RangeDeleted,
    RangeUpdated,
)
from booking_conflicts.domain.models import SENSITIVE_KINDS, AuditAction, AuditEntry
from booking_conflicts.repos.memory import AuditLogRepository, RangeRepository

logger = logging.getLogger(__name__)


class HandlerRegistry:
    """Wires range-event handlers to the bus with access to the repositories."""

    def __init__(
        self,
        bus: EventBus,
        range_repo: RangeRepository,
        audit_repo: AuditLogRepository,
    ) -> None:
        self.bus = bus
        self.range_repo = range_repo
        self.audit_repo = audit_repo
        self._register()

    def _register(self) -> None:
        self.bus.subscribe(RangeCreated, self.on_range_created)
        self.bus.subscribe(RangeUpdated, self.on_range_updated)
        self.bus.subscribe(RangeDeleted, self.on_range_deleted)
        self.bus.subscribe(ImportCompleted, self.on_import_completed)

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    def on_range_created(self, event: RangeCreated) -> None:
        stored = self.range_repo.get(event.range_id)
        if stored is None:
            return

        if event.overridden_conflict_ids:
            logger.warning(
                "range %s on property %s created over conflicts %s",
                event.range_id,
                event.property_id,
                event.overridden_conflict_ids,
            )

        if event.kind not in SENSITIVE_KINDS:
            return

        self.audit_repo.add(
            AuditEntry(
                user_id=event.user_id,
                action=AuditAction.CREATE,
                entity_type="range",
                entity_id=event.range_id,
                changes={
                    "created": stored.model_dump(mode="json"),
                    "summary": f"Created {event.kind} range for property {event.property_id}",
                },
            )
        )

    def on_range_updated(self, event: RangeUpdated) -> None:
        # Either side of the change being sensitive is enough to audit it.
        if event.previous_kind not in SENSITIVE_KINDS and event.kind not in SENSITIVE_KINDS:
            return

        self.audit_repo.add(
            AuditEntry(
                user_id=event.user_id,
                action=AuditAction.UPDATE,
                entity_type="range",
                entity_id=event.range_id,
                changes={
                    "changes": event.changes,
                    "summary": f"Updated {event.kind} range for property {event.property_id}",
                },
            )
        )

    def on_range_deleted(self, event: RangeDeleted) -> None:
        if event.kind not in SENSITIVE_KINDS:
            return

        self.audit_repo.add(
            AuditEntry(
                user_id=event.user_id,
                action=AuditAction.DELETE,
                entity_type="range",
                entity_id=event.range_id,
                changes={
                    "summary": f"Deleted {event.kind} range for property {event.property_id}",
                },
            )
        )

    def on_import_completed(self, event: ImportCompleted) -> None:
        summary = (
            f"Imported ranges: {event.imported} created, {event.updated} updated, "
            f"{event.skipped} skipped, {event.failed} errors"
        )
        logger.info(summary)
        self.audit_repo.add(
            AuditEntry(
                user_id=event.user_id,
                action=AuditAction.IMPORT,
                entity_type="ranges",
                entity_id="bulk_import",
                changes={"property_ids": event.property_ids, "summary": summary},
            )
        )
