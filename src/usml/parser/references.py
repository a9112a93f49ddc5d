"""Parsers for the two import reference micro-grammars.

DBML:    ``<path>#tables["<name>"]``
OpenAPI: ``<path>#paths["<api-path>"].<method>.responses["<status>"]``

Both parsers are total: any string that does not match exactly yields
``None``, which callers treat as "skip resolution".
"""

from __future__ import annotations

from typing import NamedTuple

_TABLES_PREFIX = 'tables["'
_PATHS_PREFIX = 'paths["'
_QUOTE_CLOSE = '"]'
_PATH_CLOSE = '"].'
_RESPONSES_OPEN = '.responses["'


class DbmlRef(NamedTuple):
    path: str
    table: str


class OpenapiRef(NamedTuple):
    path: str
    api_path: str
    method: str
    status_code: str


def parse_dbml_ref(reference: str) -> DbmlRef | None:
    """Split ``./schema.dbml#tables["users"]`` into ``("./schema.dbml", "users")``."""
    path, sep, fragment = reference.partition("#")
    if not sep:
        return None
    if not fragment.startswith(_TABLES_PREFIX) or not fragment.endswith(_QUOTE_CLOSE):
        return None
    if len(fragment) < len(_TABLES_PREFIX) + len(_QUOTE_CLOSE):
        return None
    table = fragment[len(_TABLES_PREFIX) : -len(_QUOTE_CLOSE)]
    return DbmlRef(path, table)


def parse_openapi_ref(reference: str) -> OpenapiRef | None:
    """Split an OpenAPI response reference into file, api path, method and status.

    The api path ends at the first ``"].`` and the method at the first
    ``.responses["`` after it, so dots inside the api path are kept.
    """
    path, sep, fragment = reference.partition("#")
    if not sep or not fragment.startswith(_PATHS_PREFIX):
        return None
    rest = fragment[len(_PATHS_PREFIX) :]

    api_path, sep, rest = rest.partition(_PATH_CLOSE)
    if not sep:
        return None
    method, sep, rest = rest.partition(_RESPONSES_OPEN)
    if not sep or not rest.endswith(_QUOTE_CLOSE):
        return None
    status_code = rest[: -len(_QUOTE_CLOSE)]
    return OpenapiRef(path, api_path, method, status_code)
