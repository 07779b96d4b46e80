"""Error types raised by the conflict engine.

Conflicts themselves are not errors; they come back as data on
``ConflictResult`` or as per-row import errors.
"""

from __future__ import annotations


class ConflictEngineError(Exception):
    """Base class for every error the engine raises."""


class RangeValidationError(ConflictEngineError, ValueError):
    """Malformed interval, out-of-range grace hours or unknown range kind."""


class NotFoundError(ConflictEngineError, LookupError):
    """A referenced property or range does not exist."""
