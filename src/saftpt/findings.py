"""Validation findings and their severities."""

from __future__ import annotations

from enum import Enum
from typing import Any


class Severity(str, Enum):
    CRITICAL = "critical"
    ERROR = "error"
    WARNING = "warning"

    @property
    def blocking(self) -> bool:
        """Critical and error findings make a file invalid; warnings never do."""

        return self is not Severity.WARNING


class Finding:
    """Representation of a problem detected during validation."""

    def __init__(
        self,
        message: str,
        *,
        code: str,
        severity: Severity = Severity.ERROR,
        location: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message
        self.code = code
        self.severity = Severity(severity)
        self.location = location
        self.details = details or {}

    def __repr__(self) -> str:
        return f"Finding({self.code!r}, {self.severity.value!r}, {self.location!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Finding):
            return NotImplemented
        return (self.code, self.severity, self.location, self.message) == (
            other.code,
            other.severity,
            other.location,
            other.message,
        )

    def as_cells(self) -> list[str]:
        """Serialise the finding for tabular export."""

        return [self.code, self.severity.value, self.location or "", self.message]

    def to_dict(self) -> dict[str, str]:
        payload = {"code": self.code, "message": self.message}
        if self.location:
            payload["location"] = self.location
        payload["severity"] = self.severity.value
        return payload


__all__ = ["Finding", "Severity"]
