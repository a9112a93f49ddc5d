"""Schema facts extracted from the imported DBML and OpenAPI documents."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class DbmlTable:
    """A DBML table reduced to its name and column names (declaration order)."""

    name: str
    columns: list[str] = field(default_factory=list)


@dataclass
class OpenapiResponse:
    """Top-level response field names and parameter names of one operation."""

    fields: list[str] = field(default_factory=list)
    parameters: list[str] = field(default_factory=list)


@dataclass
class ResolvedSchema:
    """Facts obtained while resolving a document's imports.

    Built once per validation call. ``openapi`` is ``None`` when the OpenAPI
    reference was absent or could not be resolved.
    """

    openapi: OpenapiResponse | None = None
    dbml_tables: list[DbmlTable] = field(default_factory=list)

    @property
    def has_openapi(self) -> bool:
        return self.openapi is not None

    def table(self, name: str) -> DbmlTable | None:
        for table in self.dbml_tables:
            if table.name == name:
                return table
        return None

    def add_table(self, table: DbmlTable) -> bool:
        """Merge a table; the first definition of a name wins."""
        if self.table(table.name) is not None:
            return False
        self.dbml_tables.append(table)
        return True
