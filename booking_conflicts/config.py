"""Engine configuration read from the environment."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass

from booking_conflicts.services.overlap import MAX_GRACE_HOURS


class ConfigurationError(RuntimeError):
    """Raised when configuration values are invalid."""


def _env_number(name: str, default: float, *, integer: bool = True) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw) if integer else float(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from None


@dataclass(frozen=True)
class EngineSettings:
    """Defaults applied by the facade and the HTTP layer."""

    grace_hours: float = 2
    max_shift_days: int = 14
    max_suggestions: int = 3
    import_max_rows: int = 100
    log_level: int = logging.INFO

    def __post_init__(self) -> None:
        if not 0 <= self.grace_hours <= MAX_GRACE_HOURS:
            raise ConfigurationError(
                f"grace_hours must be between 0 and {MAX_GRACE_HOURS}"
            )
        if self.max_shift_days < 1:
            raise ConfigurationError("max_shift_days must be at least 1")
        if self.max_suggestions < 1:
            raise ConfigurationError("max_suggestions must be at least 1")
        if self.import_max_rows < 1:
            raise ConfigurationError("import_max_rows must be at least 1")

    @classmethod
    def from_environment(cls) -> EngineSettings:
        level_name = os.getenv("LOG_LEVEL", "INFO").strip().upper()
        level = logging.getLevelName(level_name)
        if not isinstance(level, int):
            raise ConfigurationError(f"unknown LOG_LEVEL {level_name!r}")
        return cls(
            grace_hours=_env_number("CONFLICT_GRACE_HOURS", 2, integer=False),
            max_shift_days=int(_env_number("CONFLICT_MAX_SHIFT_DAYS", 14)),
            max_suggestions=int(_env_number("CONFLICT_MAX_SUGGESTIONS", 3)),
            import_max_rows=int(_env_number("IMPORT_MAX_ROWS", 100)),
            log_level=level,
        )
