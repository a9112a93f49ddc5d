"""Semantic validation: import coverage, join integrity, filters, transforms.

Self-contained rules only look at the document. Schema-aware rules compare it
with the facts resolved from the imported OpenAPI and DBML files and run only
from ``validate_with_resolve``.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from usml.models.document import FilterTarget, ResponseMapping, UsmlDocument
from usml.models.errors import Diagnostic
from usml.models.schema import ResolvedSchema
from usml.parser.references import parse_dbml_ref
from usml.parser.resolver import ReferenceResolver

logger = logging.getLogger("usml.validator")

# Rule identifiers as reported in diagnostics
RULE_IMPORT_DBML = "import.dbml"
RULE_JOIN_ON = "join.on"
RULE_JOIN_CHAIN_ON = "join_chain.on"
RULE_JOIN_ALIAS = "join.alias"
RULE_AGGREGATE_GROUP_BY = "aggregate.group_by"
RULE_SOURCE_TABLE = "source_table"
RULE_FILTER_CONDITION = "filters.condition"
RULE_FILTER_ALLOWED_COLUMNS = "filters.allowed_columns"
RULE_TRANSFORM_TARGET = "transforms.target"
RULE_TRANSFORM_CONDITION_PARAM = "transforms.condition.param"
RULE_OPENAPI_FIELDS = "openapi.fields"
RULE_DBML_COLUMNS = "dbml.columns"


@dataclass
class ValidationContext:
    """Mutable state of one validation call, passed through the tree walk."""

    imported_tables: list[str]
    schema: ResolvedSchema | None = None
    diagnostics: list[Diagnostic] = field(default_factory=list)
    # join table -> (first seen ``on``, first seen alias)
    join_registry: dict[str, tuple[str, str | None]] = field(default_factory=dict)

    def emit(self, diagnostic: Diagnostic) -> None:
        self.diagnostics.append(diagnostic)

    @property
    def has_openapi(self) -> bool:
        return self.schema is not None and self.schema.openapi is not None


class SemanticValidator:
    """Applies the consistency rules to a USML document."""

    def __init__(self, resolver: ReferenceResolver | None = None) -> None:
        self._resolver = resolver or ReferenceResolver()

    def validate(self, doc: UsmlDocument) -> list[Diagnostic]:
        """Run the self-contained rules and return diagnostics in emission order."""
        ctx = ValidationContext(imported_tables=imported_tables(doc))
        self._run_self_contained(doc, ctx)
        logger.debug("validate(%s): %d diagnostics", doc.usecase.name, len(ctx.diagnostics))
        return ctx.diagnostics

    def validate_with_resolve(self, doc: UsmlDocument, base_dir: str | Path) -> list[Diagnostic]:
        """Resolve imports against ``base_dir``, then run every rule.

        Order: self-contained diagnostics, resolution warnings, schema-aware
        diagnostics.
        """
        schema, resolve_warnings = self._resolver.resolve(doc, base_dir)
        ctx = ValidationContext(imported_tables=imported_tables(doc), schema=schema)
        self._run_self_contained(doc, ctx)
        ctx.diagnostics.extend(resolve_warnings)
        self._run_schema_aware(doc, ctx)
        logger.debug(
            "validate_with_resolve(%s): %d diagnostics", doc.usecase.name, len(ctx.diagnostics)
        )
        return ctx.diagnostics

    # -- passes ---------------------------------------------------------------

    def _run_self_contained(self, doc: UsmlDocument, ctx: ValidationContext) -> None:
        self._check_import_coverage(doc, ctx)
        self._check_mappings(doc.usecase.response_mapping, "usecase.response_mapping", ctx)
        self._check_filters(doc, ctx)
        self._check_transforms(doc, ctx)

    def _run_schema_aware(self, doc: UsmlDocument, ctx: ValidationContext) -> None:
        if ctx.schema is None:
            return
        self._check_openapi_fields(doc, ctx)
        self._check_dbml_columns(doc.usecase.response_mapping, "usecase.response_mapping", ctx)
        self._check_transform_condition_params(doc, ctx)

    # -- self-contained rules -------------------------------------------------

    def _check_import_coverage(self, doc: UsmlDocument, ctx: ValidationContext) -> None:
        """Every table used by source/join/join_chain must be imported."""
        for table in collect_used_tables(doc.usecase.response_mapping):
            if table not in ctx.imported_tables:
                ctx.emit(
                    Diagnostic.error(
                        RULE_IMPORT_DBML,
                        f"table '{table}' is not included in import.dbml",
                        path="import.dbml",
                    )
                )

    def _check_mappings(
        self,
        mappings: list[ResponseMapping],
        prefix: str,
        ctx: ValidationContext,
    ) -> None:
        """Depth-first walk of the response mapping tree.

        The join registry in ``ctx`` is shared by siblings and descendants.
        """
        for i, mapping in enumerate(mappings):
            path = f"{prefix}[{i}]"

            join = mapping.join
            if join is not None:
                registered = ctx.join_registry.get(join.table)
                if registered is None:
                    ctx.join_registry[join.table] = (join.on, join.alias)
                else:
                    first_on, first_alias = registered
                    if first_on != join.on and join.alias is None and first_alias is None:
                        ctx.emit(
                            Diagnostic.error(
                                RULE_JOIN_ALIAS,
                                f"table '{join.table}' is joined more than once with "
                                f"different conditions but no alias is given",
                                path=f"{path}.join",
                            )
                        )

                for table, _column in extract_table_refs(join.on):
                    if join.alias is not None and table == join.alias:
                        continue
                    if table not in ctx.imported_tables:
                        ctx.emit(
                            Diagnostic.error(
                                RULE_JOIN_ON,
                                f"table '{table}' referenced in join.on is not "
                                f"included in import.dbml",
                                path=f"{path}.join.on",
                            )
                        )

            for j, entry in enumerate(mapping.join_chain or []):
                for table, _column in extract_table_refs(entry.on):
                    if table not in ctx.imported_tables:
                        ctx.emit(
                            Diagnostic.error(
                                RULE_JOIN_CHAIN_ON,
                                f"table '{table}' referenced in join_chain.on is not "
                                f"included in import.dbml",
                                path=f"{path}.join_chain[{j}].on",
                            )
                        )

            aggregate = mapping.aggregate
            if aggregate is not None and aggregate.group_by is None:
                ctx.emit(
                    Diagnostic.warning(
                        RULE_AGGREGATE_GROUP_BY,
                        f"field '{mapping.field}' uses aggregate ({aggregate.kind}) without "
                        f"group_by; the root table's primary key is applied implicitly",
                        path=f"{path}.aggregate",
                    )
                )

            if mapping.is_array and mapping.source_table is not None and join is not None:
                # With a join chain the last step is the real source
                actual = mapping.join_chain[-1].table if mapping.join_chain else join.table
                if mapping.source_table != actual:
                    ctx.emit(
                        Diagnostic.error(
                            RULE_SOURCE_TABLE,
                            f"array field '{mapping.field}' has source_table "
                            f"'{mapping.source_table}' but its join reads from '{actual}'",
                            path=f"{path}.source_table",
                        )
                    )

            if mapping.children:
                self._check_mappings(mapping.children, f"{path}.fields", ctx)

    def _check_filters(self, doc: UsmlDocument, ctx: ValidationContext) -> None:
        filters = doc.usecase.filters
        declared = [f.param for f in filters]

        for i, fltr in enumerate(filters):
            path = f"usecase.filters[{i}]"

            if fltr.condition is not None:
                for param in extract_condition_params(fltr.condition):
                    if param not in declared:
                        ctx.emit(
                            Diagnostic.error(
                                RULE_FILTER_CONDITION,
                                f"parameter ':{param}' used in condition is not declared "
                                f"in filters[].param",
                                path=f"{path}.condition",
                            )
                        )

            if (
                fltr.maps_to == FilterTarget.ORDER_BY
                and fltr.allowed_columns is not None
                and fltr.default_column is not None
                and fltr.default_column not in fltr.allowed_columns
            ):
                ctx.emit(
                    Diagnostic.error(
                        RULE_FILTER_ALLOWED_COLUMNS,
                        f"ORDER_BY default_column '{fltr.default_column}' is not in "
                        f"allowed_columns",
                        path=f"{path}.default_column",
                    )
                )

    def _check_transforms(self, doc: UsmlDocument, ctx: ValidationContext) -> None:
        # Names from every nesting level, flattened
        field_names = {m.field for m in doc.usecase.all_mappings()}

        for i, transform in enumerate(doc.usecase.transforms):
            path = f"usecase.transforms[{i}]"
            if transform.target not in field_names:
                ctx.emit(
                    Diagnostic.error(
                        RULE_TRANSFORM_TARGET,
                        f"transform target '{transform.target}' does not match any "
                        f"response_mapping field",
                        path=f"{path}.target",
                    )
                )

            if ctx.has_openapi:
                # Checked against the resolved parameters by the schema-aware pass
                continue
            for j, condition in enumerate(transform.conditions or []):
                if condition.param is not None:
                    ctx.emit(
                        Diagnostic.warning(
                            RULE_TRANSFORM_CONDITION_PARAM,
                            f"transform '{transform.target}' condition uses param "
                            f"'{condition.param}'; its existence cannot be checked "
                            f"without a resolved OpenAPI document",
                            path=f"{path}.condition[{j}].param",
                        )
                    )

    # -- schema-aware rules ---------------------------------------------------

    def _check_openapi_fields(self, doc: UsmlDocument, ctx: ValidationContext) -> None:
        """Top-level response fields must exist in the OpenAPI response."""
        if ctx.schema is None or ctx.schema.openapi is None:
            return
        response_fields = set(ctx.schema.openapi.fields)
        for i, mapping in enumerate(doc.usecase.response_mapping):
            if mapping.field not in response_fields:
                ctx.emit(
                    Diagnostic.error(
                        RULE_OPENAPI_FIELDS,
                        f"field '{mapping.field}' is not defined in the OpenAPI response",
                        path=f"usecase.response_mapping[{i}].field",
                    )
                )

    def _check_dbml_columns(
        self,
        mappings: list[ResponseMapping],
        prefix: str,
        ctx: ValidationContext,
    ) -> None:
        """``table.column`` sources must name a column of a resolved table."""
        if ctx.schema is None:
            return
        for i, mapping in enumerate(mappings):
            path = f"{prefix}[{i}]"
            if mapping.source is not None:
                table_name, sep, column = mapping.source.partition(".")
                table = ctx.schema.table(table_name) if sep else None
                if table is not None and column not in table.columns:
                    ctx.emit(
                        Diagnostic.error(
                            RULE_DBML_COLUMNS,
                            f"column '{column}' does not exist in table '{table_name}'",
                            path=f"{path}.source",
                        )
                    )
            if mapping.children:
                self._check_dbml_columns(mapping.children, f"{path}.fields", ctx)

    def _check_transform_condition_params(
        self, doc: UsmlDocument, ctx: ValidationContext
    ) -> None:
        if ctx.schema is None or ctx.schema.openapi is None:
            return
        parameters = set(ctx.schema.openapi.parameters)
        for i, transform in enumerate(doc.usecase.transforms):
            for j, condition in enumerate(transform.conditions or []):
                if condition.param is not None and condition.param not in parameters:
                    ctx.emit(
                        Diagnostic.error(
                            RULE_TRANSFORM_CONDITION_PARAM,
                            f"transform '{transform.target}' condition param "
                            f"'{condition.param}' is not a parameter of the OpenAPI operation",
                            path=f"usecase.transforms[{i}].condition[{j}].param",
                        )
                    )


# ---------------------------------------------------------------------------
# Token scanning helpers
# ---------------------------------------------------------------------------


def _is_word_char(c: str) -> bool:
    return c.isalnum() or c == "_"


def _is_ref_char(c: str) -> bool:
    return c.isalnum() or c == "." or c == "_"


def _strip(token: str, keep: Callable[[str], bool], *, leading: bool = True) -> str:
    start, end = 0, len(token)
    if leading:
        while start < end and not keep(token[start]):
            start += 1
    while end > start and not keep(token[end - 1]):
        end -= 1
    return token[start:end]


def extract_table_refs(expression: str) -> list[tuple[str, str]]:
    """Best-effort ``table.column`` extraction from a join condition.

    Whitespace-separated tokens are trimmed of surrounding punctuation; a
    token counts when it has one ``.`` with a non-empty table and a column of
    word characters only.
    """
    refs: list[tuple[str, str]] = []
    for token in expression.split():
        clean = _strip(token, _is_ref_char)
        table, sep, column = clean.partition(".")
        if sep and table and column and all(_is_word_char(c) for c in column):
            refs.append((table, column))
    return refs


def extract_condition_params(condition: str) -> list[str]:
    """``:name`` parameter markers of a filter condition, in order of appearance."""
    params: list[str] = []
    for token in condition.split():
        if not token.startswith(":"):
            continue
        name = _strip(token[1:], _is_word_char, leading=False)
        if name:
            params.append(name)
    return params


def table_of_source(source: str) -> str:
    """Table part of a ``table.column`` source (the whole string without a dot)."""
    return source.split(".", 1)[0]


def collect_used_tables(mappings: list[ResponseMapping]) -> list[str]:
    """Distinct tables named by source / join / join_chain, in first-use order."""
    tables: list[str] = []

    def _add(table: str) -> None:
        if table not in tables:
            tables.append(table)

    for mapping in mappings:
        if mapping.source is not None:
            _add(table_of_source(mapping.source))
        if mapping.join is not None:
            _add(mapping.join.table)
        for entry in mapping.join_chain or []:
            _add(entry.table)
        if mapping.children:
            for table in collect_used_tables(mapping.children):
                _add(table)
    return tables


def imported_tables(doc: UsmlDocument) -> list[str]:
    """Table names declared by the ``import.dbml`` references."""
    tables: list[str] = []
    for reference in doc.import_.dbml:
        parsed = parse_dbml_ref(reference)
        if parsed is not None:
            tables.append(parsed.table)
    return tables
