"""Domain errors raised by the recurring task engine."""
from __future__ import annotations

from uuid import UUID


class RecurrenceError(Exception):
    """Base class for engine errors."""


class PatternValidationError(RecurrenceError):
    """A recurrence definition or request parameter is invalid."""

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.field = field

    def as_detail(self) -> dict:
        return {"message": self.message, "field": self.field}


class PatternNotFoundError(RecurrenceError):
    def __init__(self, pattern_id: UUID) -> None:
        super().__init__(f"Recurring task {pattern_id} not found")
        self.pattern_id = pattern_id


class ConcurrencyConflict(RecurrenceError):
    """Optimistic update kept losing to concurrent writers."""

    def __init__(self, pattern_id: UUID, attempts: int) -> None:
        super().__init__(f"Recurring task {pattern_id} changed concurrently ({attempts} attempts)")
        self.pattern_id = pattern_id
        self.attempts = attempts


class GenerationSafetyLimitExceeded(RecurrenceError):
    """Logged, never raised: generation stopped early and returned partial results."""

    def __init__(self, pattern_id: UUID, advances: int, produced: int, requested: int) -> None:
        super().__init__(
            f"Recurring task {pattern_id} hit the generation safety limit after "
            f"{advances} advances ({produced}/{requested} tasks)"
        )
        self.pattern_id = pattern_id
        self.advances = advances
        self.produced = produced
        self.requested = requested
