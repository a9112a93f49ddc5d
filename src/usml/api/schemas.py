"""API request/response Pydantic schemas."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

from usml.models.errors import Severity


class ValidateRequest(BaseModel):
    """Request body for POST /validate."""

    document_yaml: str = Field(description="USML document content to validate")
    resolve: bool = Field(
        default=False,
        description="Resolve DBML/OpenAPI imports against the server's schema root",
    )


class DiagnosticDetail(BaseModel):
    """A single diagnostic."""

    severity: Severity
    rule: str
    message: str
    path: str | None = None


class ValidateResponse(BaseModel):
    """Response body for POST /validate."""

    status: Literal["ok", "error"]
    valid: bool
    diagnostics: list[DiagnosticDetail] = []


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "ok"
    version: str = ""
