"""OpenAPI extraction: response field names and parameter names of one operation."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError, field_validator
from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from usml.models.schema import OpenapiResponse
from usml.parser.errors import OpenapiParseError, ReferenceNotFoundError, ResolverIOError

SUPPORTED_METHODS = ("get", "post", "put", "delete", "patch")

_JSON_MEDIA_TYPE = "application/json"
_COMPONENT_SCHEMA_PREFIX = "#/components/schemas/"

# ---------------------------------------------------------------------------
# Thin OpenAPI 3 projection: only what the rules need
# ---------------------------------------------------------------------------


class SchemaObject(BaseModel):
    # OpenAPI 3.1 allows a list of types
    type: str | list[str] | None = None
    properties: dict[str, Any] | None = None
    ref: str | None = Field(None, alias="$ref")

    model_config = {"populate_by_name": True}


class MediaType(BaseModel):
    schema_: SchemaObject | None = Field(None, alias="schema")

    model_config = {"populate_by_name": True}


class Response(BaseModel):
    description: str | None = None
    content: dict[str, MediaType] | None = None


class Parameter(BaseModel):
    name: str | None = None
    location: str | None = Field(None, alias="in")

    model_config = {"populate_by_name": True}


class Operation(BaseModel):
    parameters: list[Parameter] | None = None
    # Validated per status code on lookup
    responses: dict[str, Any] | None = None

    @field_validator("responses", mode="before")
    @classmethod
    def _status_codes_as_strings(cls, value: Any) -> Any:
        # Unquoted ``200:`` keys load as integers
        if isinstance(value, dict):
            return {str(k): v for k, v in value.items()}
        return value


# ---------------------------------------------------------------------------
# Extraction
# ---------------------------------------------------------------------------


def resolve_openapi(
    file_path: str | Path,
    path: str,
    method: str,
    status_code: str,
) -> OpenapiResponse:
    """Read an OpenAPI file and extract facts for ``path``/``method``/``status_code``."""
    source = Path(file_path)
    try:
        content = source.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ResolverIOError(str(source), exc) from exc
    return parse_openapi_content(content, str(source), path, method, status_code)


def parse_openapi_content(
    content: str,
    source: str,
    path: str,
    method: str,
    status_code: str,
) -> OpenapiResponse:
    """Extract parameter names and top-level JSON response properties.

    Only the objects on the ``paths[path].method.responses[status_code]``
    lookup (and the component schemas it references) are validated, so a
    malformed unrelated operation does not hide this one.

    Raises ``OpenapiParseError`` for unreadable documents and
    ``ReferenceNotFoundError`` naming the first missing element of the
    lookup.
    """
    document = _load_document(content, source)

    paths = document.get("paths")
    if paths is None:
        raise ReferenceNotFoundError("OpenAPI document defines no paths")
    if not isinstance(paths, dict):
        raise OpenapiParseError(source, "'paths' must be a mapping")

    path_item = paths.get(path)
    if path_item is None:
        raise ReferenceNotFoundError(f"path {path} not found")
    if not isinstance(path_item, dict):
        raise OpenapiParseError(source, f"paths.{path} must be a mapping")

    if method not in SUPPORTED_METHODS:
        raise ReferenceNotFoundError(f"method {method} is not supported")
    raw_operation = path_item.get(method)
    if raw_operation is None:
        raise ReferenceNotFoundError(f"path {path} has no {method} operation")
    operation = _validate(Operation, raw_operation, source)

    parameters = [p.name for p in operation.parameters or [] if p.name is not None]

    if operation.responses is None:
        raise ReferenceNotFoundError(f"{path}.{method} defines no responses")
    raw_response = operation.responses.get(status_code)
    if raw_response is None:
        raise ReferenceNotFoundError(f"{path}.{method} has no response {status_code}")
    response = _validate(Response, raw_response, source)

    return OpenapiResponse(
        fields=_response_fields(response, document, source), parameters=parameters
    )


def _load_document(content: str, source: str) -> dict[str, Any]:
    yaml = YAML(typ="safe", pure=True)
    try:
        data = yaml.load(content)
    except YAMLError as exc:
        raise OpenapiParseError(source, str(exc)) from exc
    except RecursionError as exc:
        raise OpenapiParseError(source, "document is nested too deeply") from exc
    if not isinstance(data, dict):
        raise OpenapiParseError(source, "document root must be a mapping")
    return data


def _validate(model: type[BaseModel], data: Any, source: str) -> Any:
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        raise OpenapiParseError(source, str(exc)) from exc


def _response_fields(response: Response, document: dict[str, Any], source: str) -> list[str]:
    if not response.content:
        return []
    media_type = response.content.get(_JSON_MEDIA_TYPE)
    if media_type is None or media_type.schema_ is None:
        return []
    schema = _follow_ref(media_type.schema_, _component_schemas(document), source)
    types = schema.type if isinstance(schema.type, list) else [schema.type]
    if "object" in types and schema.properties:
        return list(schema.properties)
    return []


def _component_schemas(document: dict[str, Any]) -> dict[str, Any]:
    components = document.get("components")
    if not isinstance(components, dict):
        return {}
    schemas = components.get("schemas")
    return schemas if isinstance(schemas, dict) else {}


def _follow_ref(schema: SchemaObject, schemas: dict[str, Any], source: str) -> SchemaObject:
    """Follow local ``#/components/schemas/...`` references; cycles stop where they loop."""
    seen: set[str] = set()
    while schema.ref is not None and schema.ref.startswith(_COMPONENT_SCHEMA_PREFIX):
        if schema.ref in seen:
            break
        seen.add(schema.ref)
        target = schemas.get(schema.ref[len(_COMPONENT_SCHEMA_PREFIX) :])
        if target is None:
            break
        schema = _validate(SchemaObject, target, source)
    return schema
