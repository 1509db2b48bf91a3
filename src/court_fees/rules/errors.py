"""Exceptions raised by the court fee rules."""
from __future__ import annotations

__all__ = [
    "FeeValidationError",
    "ScheduleConfigurationError",
    "MissingScheduleField",
]


class FeeValidationError(ValueError):
    """Raised when caller-supplied input cannot be used for a calculation."""

    def __init__(self, message: str, *, field: str | None = None):
        super().__init__(message)
        self.field = field


class ScheduleConfigurationError(RuntimeError):
    """Raised when a tariff table is defective (gap, overlap or bad bounds)."""


class MissingScheduleField(KeyError):
    """Raised when an expected field is missing from the schedule registry."""

    def __init__(self, field_path: str):
        super().__init__(field_path)
        self.field_path = field_path

    def __str__(self) -> str:  # pragma: no cover - inherited KeyError repr is noisy
        return f"missing required schedule field: {self.field_path}"
