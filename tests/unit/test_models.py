"""Tests for Pydantic domain models."""

from __future__ import annotations

from usml.models.document import (
    AggregateKind,
    FieldKind,
    FilterTarget,
    Join,
    ResponseMapping,
    TransformKind,
    Usecase,
    UsmlDocument,
)
from usml.models.errors import Diagnostic, Severity, SourceSpan, ValidationResult
from usml.models.schema import DbmlTable, OpenapiResponse, ResolvedSchema


class TestEnums:
    def test_field_kind(self) -> None:
        assert FieldKind.ARRAY == "array"

    def test_filter_targets(self) -> None:
        assert FilterTarget.WHERE == "WHERE"
        assert FilterTarget.ORDER_BY == "ORDER_BY"
        assert FilterTarget.PAGINATION == "PAGINATION"

    def test_transform_and_aggregate_kinds(self) -> None:
        assert TransformKind.CONDITIONAL_SOURCE == "CONDITIONAL_SOURCE"
        assert AggregateKind.COUNT == "COUNT"


class TestResponseMapping:
    def test_aliases(self) -> None:
        mapping = ResponseMapping.model_validate(
            {
                "field": "comments",
                "type": "array",
                "source_table": "comments",
                "join": {"table": "comments", "on": "posts.id = comments.post_id", "type": "LEFT JOIN"},
                "fields": [{"field": "id", "source": "comments.id"}],
            }
        )
        assert mapping.is_array
        assert mapping.join is not None
        assert mapping.join.join_kind == "LEFT JOIN"
        assert mapping.children is not None
        assert mapping.children[0].field == "id"

    def test_unknown_kind_preserved(self) -> None:
        mapping = ResponseMapping(field="meta", kind="object")
        assert mapping.kind == "object"
        assert not mapping.is_array

    def test_walk_depth_first(self) -> None:
        tree = ResponseMapping(
            field="a",
            children=[
                ResponseMapping(field="b", children=[ResponseMapping(field="c")]),
                ResponseMapping(field="d"),
            ],
        )
        assert [m.field for m in tree.walk()] == ["a", "b", "c", "d"]

    def test_populate_by_name(self) -> None:
        join = Join(table="users", on="a.id = users.id", join_kind="INNER JOIN")
        assert join.join_kind == "INNER JOIN"


class TestUsecase:
    def test_all_mappings(self) -> None:
        usecase = Usecase.model_validate(
            {
                "name": "Test",
                "output": "UserList",
                "response_mapping": [
                    {"field": "id"},
                    {"field": "posts", "type": "array", "fields": [{"field": "title"}]},
                ],
                "transforms": None,
            }
        )
        assert usecase.output_name == "UserList"
        assert [m.field for m in usecase.all_mappings()] == ["id", "posts", "title"]
        assert usecase.transforms == []

    def test_transform_condition_alias(self) -> None:
        usecase = Usecase.model_validate(
            {
                "name": "Test",
                "response_mapping": [{"field": "status"}],
                "transforms": [
                    {
                        "target": "status",
                        "type": "CASE",
                        "source": "users.status",
                        "when": [{"value": "1", "then": "active"}],
                        "else_value": "unknown",
                        "condition": [{"field": "status", "operator": "neq", "value": ""}],
                    }
                ],
            }
        )
        transform = usecase.transforms[0]
        assert transform.when_clauses is not None
        assert transform.when_clauses[0].then == "active"
        assert transform.conditions is not None
        assert transform.conditions[0].param is None


class TestUsmlDocument:
    def test_numeric_version_coerced(self) -> None:
        doc = UsmlDocument.model_validate(
            {
                "version": 0.1,
                "import": {},
                "usecase": {"name": "Test", "response_mapping": []},
            }
        )
        assert doc.version == "0.1"
        assert doc.import_.dbml == []


class TestDiagnostics:
    def test_constructors(self) -> None:
        error = Diagnostic.error("join.on", "bad join", path="usecase.response_mapping[0].join.on")
        warning = Diagnostic.warning("aggregate.group_by", "implicit key")
        assert error.severity == Severity.ERROR
        assert error.is_error
        assert warning.severity == Severity.WARNING
        assert not warning.is_error
        assert warning.path is None

    def test_wire_shape(self) -> None:
        diagnostic = Diagnostic.error("import.dbml", "missing", path="import.dbml")
        assert diagnostic.to_wire() == {
            "severity": "error",
            "rule": "import.dbml",
            "message": "missing",
        }

    def test_str(self) -> None:
        assert str(Diagnostic.warning("source_table", "x")) == "warning[source_table]: x"

    def test_source_span(self) -> None:
        span = SourceSpan(file="model.usml.yaml", line=10, column=5)
        assert span.end_line is None


class TestValidationResult:
    def test_empty_is_ok(self) -> None:
        result = ValidationResult.from_diagnostics([], file="a.usml.yaml")
        assert result.status == "ok"
        assert result.valid
        assert result.to_wire() == {"file": "a.usml.yaml", "status": "ok", "diagnostics": []}

    def test_warnings_only_is_ok(self) -> None:
        result = ValidationResult.from_diagnostics([Diagnostic.warning("aggregate.group_by", "w")])
        assert result.valid
        assert len(result.warnings) == 1
        assert result.errors == []

    def test_any_error_is_error(self) -> None:
        result = ValidationResult.from_diagnostics(
            [Diagnostic.warning("aggregate.group_by", "w"), Diagnostic.error("join.alias", "e")]
        )
        assert result.status == "error"
        assert not result.valid
        assert [d.rule for d in result.errors] == ["join.alias"]


class TestResolvedSchema:
    def test_first_table_definition_wins(self) -> None:
        schema = ResolvedSchema()
        assert schema.add_table(DbmlTable(name="users", columns=["id"]))
        assert not schema.add_table(DbmlTable(name="users", columns=["id", "name"]))
        users = schema.table("users")
        assert users is not None
        assert users.columns == ["id"]

    def test_has_openapi(self) -> None:
        schema = ResolvedSchema()
        assert not schema.has_openapi
        schema.openapi = OpenapiResponse(fields=["id"], parameters=[])
        assert schema.has_openapi
        assert schema.table("missing") is None
