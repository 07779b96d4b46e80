"""In-memory repositories for properties, dated ranges and the audit trail."""

from __future__ import annotations

import threading
from collections import defaultdict

from booking_conflicts.domain.models import AuditEntry, Property, ScopedRange


class PropertyRepository:
    """Dict-backed store for Property instances, keyed by id."""

    def __init__(self) -> None:
        self._store: dict[str, Property] = {}

    def add(self, prop: Property) -> None:
        self._store[prop.id] = prop

    def get(self, property_id: str) -> Property | None:
        return self._store.get(property_id)

    def list_ids(self) -> set[str]:
        return set(self._store)


class RangeRepository:
    """Dict-backed store for ScopedRange instances, keyed by id."""

    def __init__(self) -> None:
        self._store: dict[str, ScopedRange] = {}

    def add(self, scoped_range: ScopedRange) -> None:
        self._store[scoped_range.id] = scoped_range

    def replace(self, scoped_range: ScopedRange) -> None:
        self._store[scoped_range.id] = scoped_range

    def get(self, range_id: str) -> ScopedRange | None:
        return self._store.get(range_id)

    def list_ranges_by_property(self, property_id: str) -> list[ScopedRange]:
        return sorted(
            (r for r in self._store.values() if r.owner_id == property_id),
            key=lambda r: (r.start, r.id),
        )

    def delete(self, range_id: str) -> None:
        self._store.pop(range_id, None)


class AuditLogRepository:
    """List-backed store for AuditEntry instances."""

    def __init__(self) -> None:
        self._entries: list[AuditEntry] = []

    def add(self, entry: AuditEntry) -> None:
        self._entries.append(entry)

    def list_for_entity(self, entity_id: str) -> list[AuditEntry]:
        return sorted(
            [e for e in self._entries if e.entity_id == entity_id],
            key=lambda e: e.timestamp,
        )

    def list_all(self) -> list[AuditEntry]:
        return list(self._entries)


class PropertyLocks:
    """One lock per property id; serializes read -> classify -> write per property."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = defaultdict(threading.Lock)

    def for_property(self, property_id: str) -> threading.Lock:
        with self._guard:
            return self._locks[property_id]

    def for_properties(self, property_ids: set[str]) -> list[threading.Lock]:
        """Locks for several properties, in a fixed order so batches cannot deadlock."""
        return [self.for_property(pid) for pid in sorted(property_ids)]
