"""Validation endpoint: POST /validate."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from usml.api.deps import get_loader, get_settings, get_validator
from usml.api.schemas import DiagnosticDetail, ValidateRequest, ValidateResponse
from usml.models.errors import Diagnostic, ValidationResult
from usml.parser.loader import DocumentParseError, TrackedLoader, load_document_string
from usml.parser.validator import SemanticValidator
from usml.settings import Settings

logger = logging.getLogger("usml.api")

router = APIRouter()


@router.post("", response_model=ValidateResponse)
async def validate_document(
    body: ValidateRequest,
    loader: TrackedLoader = Depends(get_loader),  # noqa: B008
    validator: SemanticValidator = Depends(get_validator),  # noqa: B008
    settings: Settings = Depends(get_settings),  # noqa: B008
) -> ValidateResponse:
    """Validate a USML document; parse failures are reported as a ``parse`` diagnostic."""
    try:
        doc, _ = load_document_string(body.document_yaml, loader=loader)
    except DocumentParseError as exc:
        logger.info("validate: document rejected by parser: %s", exc)
        diagnostics = [Diagnostic.error("parse", str(exc))]
    else:
        if body.resolve:
            diagnostics = validator.validate_with_resolve(doc, settings.schema_root)
        else:
            diagnostics = validator.validate(doc)

    result = ValidationResult.from_diagnostics(diagnostics)
    return ValidateResponse(
        status=result.status,
        valid=result.valid,
        diagnostics=[DiagnosticDetail(**d.model_dump()) for d in result.diagnostics],
    )
