"""Pydantic domain models for USML documents and diagnostics."""

from usml.models.document import (
    Aggregate,
    CaseWhen,
    FieldKind,
    Filter,
    FilterTarget,
    Import,
    Join,
    JoinChainEntry,
    ResponseMapping,
    Transform,
    TransformCondition,
    Usecase,
    UsmlDocument,
)
from usml.models.errors import Diagnostic, Severity, SourceSpan, ValidationResult
from usml.models.schema import DbmlTable, OpenapiResponse, ResolvedSchema

__all__ = [
    "Aggregate",
    "CaseWhen",
    "DbmlTable",
    "Diagnostic",
    "FieldKind",
    "Filter",
    "FilterTarget",
    "Import",
    "Join",
    "JoinChainEntry",
    "OpenapiResponse",
    "ResolvedSchema",
    "ResponseMapping",
    "Severity",
    "SourceSpan",
    "Transform",
    "TransformCondition",
    "Usecase",
    "UsmlDocument",
    "ValidationResult",
]
