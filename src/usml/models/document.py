"""USML document model: imports, usecase, response mapping tree, filters, transforms."""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field, field_validator

SUPPORTED_VERSION = "0.1"


class FieldKind(StrEnum):
    ARRAY = "array"


class FilterTarget(StrEnum):
    WHERE = "WHERE"
    ORDER_BY = "ORDER_BY"
    PAGINATION = "PAGINATION"


class TransformKind(StrEnum):
    COALESCE = "COALESCE"
    CONCAT = "CONCAT"
    CASE = "CASE"
    MASK = "MASK"
    CONDITIONAL_SOURCE = "CONDITIONAL_SOURCE"


class AggregateKind(StrEnum):
    COUNT = "COUNT"
    SUM = "SUM"
    AVG = "AVG"
    MIN = "MIN"
    MAX = "MAX"


class Import(BaseModel):
    """References to the external OpenAPI and DBML documents."""

    openapi: str | None = None
    dbml: list[str] = []

    @field_validator("dbml", mode="before")
    @classmethod
    def _none_as_empty(cls, value: Any) -> Any:
        return [] if value is None else value


class Join(BaseModel):
    """Join from the root table to the table a field is read from.

    ``on`` is a free-text SQL-like condition; it is only scanned for
    ``table.column`` tokens, never parsed.
    """

    table: str
    on: str
    join_kind: str | None = Field(None, alias="type")
    alias: str | None = None

    model_config = {"populate_by_name": True}


class JoinChainEntry(BaseModel):
    """One step of a multi-hop join; the last step is the field's data source."""

    table: str
    on: str


class Aggregate(BaseModel):
    kind: str = Field(alias="type")
    group_by: str | None = None

    model_config = {"populate_by_name": True}


class ResponseMapping(BaseModel):
    """Maps one response field to its database source.

    Array fields (``type: array``) carry their element fields in ``fields``,
    one nesting level deeper.
    """

    field: str
    source: str | None = None
    kind: str | None = Field(None, alias="type")
    source_table: str | None = None
    join: Join | None = None
    join_chain: list[JoinChainEntry] | None = None
    aggregate: Aggregate | None = None
    children: list[ResponseMapping] | None = Field(None, alias="fields")

    model_config = {"populate_by_name": True}

    @property
    def is_array(self) -> bool:
        return self.kind == FieldKind.ARRAY

    def walk(self) -> list[ResponseMapping]:
        """Return this mapping and all its descendants in depth-first order."""
        nodes = [self]
        for child in self.children or []:
            nodes.extend(child.walk())
        return nodes


class Filter(BaseModel):
    """Maps a request parameter onto the query (WHERE, ORDER_BY, PAGINATION)."""

    param: str
    maps_to: str
    condition: str | None = None
    # Pagination
    strategy: str | None = None
    page_size: int | None = None
    limit_param: str | None = None
    max_page_size: int | None = None
    cursor_field: str | None = None
    # Sorting
    default_column: str | None = None
    default_direction: str | None = None
    allowed_columns: list[str] | None = None
    allowed_directions: list[str] | None = None


class CaseWhen(BaseModel):
    value: str
    then: str


class TransformCondition(BaseModel):
    """Applicability condition of a transform.

    Exactly one of ``param`` (request parameter), ``field`` (response field)
    or ``source`` (database column) is expected to be set.
    """

    param: str | None = None
    field: str | None = None
    source: str | None = None
    operator: str
    value: str


class Transform(BaseModel):
    """Value-level post-processing applied to a mapped response field."""

    target: str
    kind: str = Field(alias="type")
    source: str | None = None
    sources: list[str] | None = None
    fallback: str | None = None
    separator: str | None = None
    when_clauses: list[CaseWhen] | None = Field(None, alias="when")
    else_value: str | None = None
    mask_pattern: str | None = None
    conditions: list[TransformCondition] | None = Field(None, alias="condition")
    then_source: str | None = None
    else_source: str | None = None

    model_config = {"populate_by_name": True}


class Usecase(BaseModel):
    name: str
    summary: str | None = None
    output_name: str | None = Field(None, alias="output")
    response_mapping: list[ResponseMapping]
    filters: list[Filter] = []
    transforms: list[Transform] = []

    model_config = {"populate_by_name": True}

    @field_validator("filters", "transforms", mode="before")
    @classmethod
    def _none_as_empty(cls, value: Any) -> Any:
        return [] if value is None else value

    def all_mappings(self) -> list[ResponseMapping]:
        """Every mapping node of the response tree, depth-first."""
        nodes: list[ResponseMapping] = []
        for mapping in self.response_mapping:
            nodes.extend(mapping.walk())
        return nodes


class UsmlDocument(BaseModel):
    """Root of a USML document: version, imports and one usecase."""

    version: str
    import_: Import = Field(alias="import")
    usecase: Usecase

    model_config = {"populate_by_name": True}

    @field_validator("version", mode="before")
    @classmethod
    def _version_as_string(cls, value: Any) -> Any:
        # ``version: 0.1`` without quotes arrives as a float
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value
