"""USML parsing, import resolution and semantic validation."""

from usml.parser.loader import (
    DocumentParseError,
    SourceMap,
    TrackedLoader,
    load_document,
    load_document_string,
    parse_document,
)
from usml.parser.resolver import ReferenceResolver
from usml.parser.validator import SemanticValidator

__all__ = [
    "DocumentParseError",
    "ReferenceResolver",
    "SemanticValidator",
    "SourceMap",
    "TrackedLoader",
    "load_document",
    "load_document_string",
    "parse_document",
]
