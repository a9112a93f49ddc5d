"""Diagnostics and validation results with YAML source position tracking."""

from __future__ import annotations

from enum import StrEnum
from typing import Literal

from pydantic import BaseModel


class Severity(StrEnum):
    ERROR = "error"
    WARNING = "warning"


class SourceSpan(BaseModel):
    """Points to exact location in YAML source for error reporting."""

    file: str
    line: int
    column: int
    end_line: int | None = None
    end_column: int | None = None


class Diagnostic(BaseModel):
    """One consistency finding.

    Error-severity diagnostics are blocking; warnings are informational and
    never affect the overall status.
    """

    severity: Severity
    rule: str
    message: str
    path: str | None = None

    @classmethod
    def error(cls, rule: str, message: str, path: str | None = None) -> Diagnostic:
        return cls(severity=Severity.ERROR, rule=rule, message=message, path=path)

    @classmethod
    def warning(cls, rule: str, message: str, path: str | None = None) -> Diagnostic:
        return cls(severity=Severity.WARNING, rule=rule, message=message, path=path)

    @property
    def is_error(self) -> bool:
        return self.severity == Severity.ERROR

    def to_wire(self) -> dict[str, str]:
        """Serialise to the ``{severity, rule, message}`` shape consumed by editors."""
        return {"severity": self.severity.value, "rule": self.rule, "message": self.message}

    def __str__(self) -> str:
        label = "error" if self.is_error else "warning"
        return f"{label}[{self.rule}]: {self.message}"


class ValidationResult(BaseModel):
    """Result of validating one USML document."""

    file: str | None = None
    status: Literal["ok", "error"] = "ok"
    diagnostics: list[Diagnostic] = []

    @classmethod
    def from_diagnostics(
        cls, diagnostics: list[Diagnostic], file: str | None = None
    ) -> ValidationResult:
        status: Literal["ok", "error"] = (
            "error" if any(d.is_error for d in diagnostics) else "ok"
        )
        return cls(file=file, status=status, diagnostics=diagnostics)

    @property
    def valid(self) -> bool:
        return self.status == "ok"

    @property
    def errors(self) -> list[Diagnostic]:
        return [d for d in self.diagnostics if d.is_error]

    @property
    def warnings(self) -> list[Diagnostic]:
        return [d for d in self.diagnostics if not d.is_error]

    def to_wire(self) -> dict[str, object]:
        return {
            "file": self.file,
            "status": self.status,
            "diagnostics": [d.to_wire() for d in self.diagnostics],
        }
