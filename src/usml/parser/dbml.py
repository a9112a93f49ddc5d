"""DBML extraction: table names and their column names."""

from __future__ import annotations

from pathlib import Path

from pydbml import PyDBML

from usml.models.schema import DbmlTable
from usml.parser.errors import DbmlParseError, ResolverIOError


def resolve_dbml(file_path: str | Path) -> list[DbmlTable]:
    """Read a DBML file and extract its tables."""
    path = Path(file_path)
    try:
        content = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ResolverIOError(str(path), exc) from exc
    return parse_dbml_content(content, str(path))


def parse_dbml_content(content: str, source: str) -> list[DbmlTable]:
    """Parse DBML text and project every table to ``DbmlTable``.

    Columns keep their declaration order; repeated names are kept once.
    Indexes, notes and table settings are ignored.
    """
    try:
        database = PyDBML(content)
    except Exception as e:
        # pydbml surfaces pyparsing errors as well as its own reference errors
        raise DbmlParseError(source, str(e) or type(e).__name__) from e

    tables: list[DbmlTable] = []
    for table in database.tables:
        columns: list[str] = []
        for column in table.columns:
            if column.name not in columns:
                columns.append(column.name)
        tables.append(DbmlTable(name=table.name, columns=columns))
    return tables
