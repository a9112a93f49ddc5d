"""Failures raised while resolving DBML / OpenAPI import references.

None of these abort validation: the resolver turns each one into a single
warning diagnostic and carries on without the missing facts.
"""

from __future__ import annotations


class ResolverError(Exception):
    """Base class for import resolution failures."""


class ResolverIOError(ResolverError):
    def __init__(self, path: str, cause: OSError | UnicodeDecodeError) -> None:
        self.path = path
        self.cause = cause
        super().__init__(f"failed to read '{path}': {cause}")


class DbmlParseError(ResolverError):
    def __init__(self, source: str, detail: str) -> None:
        self.source = source
        self.detail = detail
        super().__init__(f"DBML parse error in '{source}': {detail}")


class OpenapiParseError(ResolverError):
    def __init__(self, source: str, detail: str) -> None:
        self.source = source
        self.detail = detail
        super().__init__(f"OpenAPI parse error in '{source}': {detail}")


class ReferenceNotFoundError(ResolverError):
    def __init__(self, description: str) -> None:
        self.description = description
        super().__init__(f"reference not found: {description}")
