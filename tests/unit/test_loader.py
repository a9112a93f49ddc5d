"""Tests for the position-tracking YAML loader and USML document parsing."""

from __future__ import annotations

from pathlib import Path

import pytest
from ruamel.yaml.error import YAMLError

from usml.models.errors import SourceSpan
from usml.parser.loader import (
    _MAX_DOCUMENT_SIZE,
    DocumentParseError,
    SourceMap,
    TrackedLoader,
    UnsupportedVersionError,
    YAMLSafetyError,
    load_document,
    load_document_string,
    parse_document,
)
from tests.conftest import SAMPLE_DOCUMENT_YAML, USERS_DOCUMENT


class TestTrackedLoader:
    def test_load_string(self, loader: TrackedLoader) -> None:
        raw, source_map = loader.load_string(SAMPLE_DOCUMENT_YAML)
        assert raw["version"] == "0.1"
        assert "import" in raw
        assert raw["usecase"]["name"] == "List users"
        assert len(source_map.paths) > 0

    def test_load_string_empty(self, loader: TrackedLoader) -> None:
        raw, source_map = loader.load_string("")
        assert raw == {}
        assert source_map.paths == []

    def test_plain_python_values(self, loader: TrackedLoader) -> None:
        raw, _ = loader.load_string(SAMPLE_DOCUMENT_YAML)
        assert type(raw["usecase"]) is dict
        assert type(raw["usecase"]["response_mapping"]) is list
        assert type(raw["version"]) is str

    def test_positions_are_one_based(self, loader: TrackedLoader) -> None:
        _, source_map = loader.load_string(SAMPLE_DOCUMENT_YAML, "sample.usml.yaml")
        assert source_map.get("version") == SourceSpan(file="sample.usml.yaml", line=1, column=1)
        name = source_map.get("usecase.name")
        assert name is not None
        assert (name.line, name.column) == (8, 3)

    def test_sequence_item_positions(self, loader: TrackedLoader) -> None:
        _, source_map = loader.load_string(SAMPLE_DOCUMENT_YAML)
        second = source_map.get("usecase.response_mapping[1]")
        assert second is not None
        assert second.line == 12
        join_on = source_map.get("usecase.response_mapping[1].join.on")
        assert join_on is not None
        assert join_on.line == 16

    def test_load_file(self, loader: TrackedLoader) -> None:
        raw, source_map = loader.load(USERS_DOCUMENT)
        assert raw["usecase"]["name"] == "List users"
        span = source_map.get("usecase")
        assert span is not None
        assert span.file == str(USERS_DOCUMENT)


class TestSourceMap:
    def test_nearest_exact(self) -> None:
        source_map = SourceMap()
        span = SourceSpan(file="f", line=3, column=5)
        source_map.add("usecase.filters[0].condition", span)
        assert source_map.nearest("usecase.filters[0].condition") == span

    def test_nearest_falls_back_to_ancestor(self) -> None:
        source_map = SourceMap()
        item = SourceSpan(file="f", line=10, column=7)
        source_map.add("usecase.response_mapping[2]", item)
        assert source_map.nearest("usecase.response_mapping[2].aggregate") == item
        assert source_map.nearest("usecase.response_mapping[2].join.on") == item

    def test_nearest_missing(self) -> None:
        source_map = SourceMap()
        source_map.add("version", SourceSpan(file="f", line=1, column=1))
        assert source_map.nearest("import.dbml") is None
        assert source_map.nearest("") is None

    def test_merge(self) -> None:
        first, second = SourceMap(), SourceMap()
        first.add("a", SourceSpan(file="f", line=1, column=1))
        second.add("b", SourceSpan(file="f", line=2, column=1))
        first.merge(second)
        assert first.paths == ["a", "b"]


class TestAnchorRejection:
    """USML never uses YAML anchors/aliases: reject them entirely."""

    def test_billion_laughs_rejected(self, loader: TrackedLoader) -> None:
        yaml = (
            "a: &a ['lol','lol','lol','lol','lol']\n"
            "b: &b [*a,*a,*a,*a,*a]\n"
            "c: &c [*b,*b,*b,*b,*b]\n"
        )
        with pytest.raises(YAMLSafetyError, match="anchors/aliases"):
            loader.load_string(yaml)

    def test_anchor_in_sequence(self, loader: TrackedLoader) -> None:
        yaml = "dbml:\n  - &users ./schema.dbml#tables[\"users\"]\n  - *users\n"
        with pytest.raises(YAMLSafetyError, match="anchors/aliases"):
            loader.load_string(yaml)

    def test_ampersand_in_comment_not_rejected(self, loader: TrackedLoader) -> None:
        yaml = "# see R&D notes\nkey: value\n"
        raw, _ = loader.load_string(yaml)
        assert raw["key"] == "value"

    def test_anchor_surfaces_as_parse_error(self) -> None:
        with pytest.raises(DocumentParseError, match="anchors/aliases"):
            load_document_string("a: &a [1, 2]\nb: *a\n")


class TestSizeLimits:
    def test_oversized_document_rejected(self, loader: TrackedLoader) -> None:
        yaml = "key: " + "x" * (_MAX_DOCUMENT_SIZE + 1) + "\n"
        with pytest.raises(YAMLSafetyError, match="maximum size"):
            loader.load_string(yaml)

    def test_excessive_node_count_rejected(self, loader: TrackedLoader) -> None:
        yaml = "\n".join(f"k{i}: v{i}" for i in range(50_001))
        with pytest.raises(YAMLSafetyError, match="node count"):
            loader.load_string(yaml)


class TestParseDocument:
    def test_sample_document(self) -> None:
        doc, _ = load_document_string(SAMPLE_DOCUMENT_YAML)
        assert doc.version == "0.1"
        assert doc.import_.openapi == './api.yaml#paths["/users"].get.responses["200"]'
        assert len(doc.import_.dbml) == 2
        assert doc.usecase.response_mapping[1].join is not None
        assert doc.usecase.transforms[0].kind == "COALESCE"

    def test_unquoted_version(self) -> None:
        content = SAMPLE_DOCUMENT_YAML.replace('version: "0.1"', "version: 0.1")
        doc, _ = load_document_string(content)
        assert doc.version == "0.1"

    @pytest.mark.parametrize("version", ['"0.2"', '"1.0"', "1"])
    def test_unsupported_version(self, version: str) -> None:
        content = SAMPLE_DOCUMENT_YAML.replace('version: "0.1"', f"version: {version}")
        with pytest.raises(UnsupportedVersionError, match="expected '0.1'"):
            load_document_string(content)

    def test_missing_usecase(self) -> None:
        with pytest.raises(DocumentParseError, match="usecase"):
            load_document_string('version: "0.1"\nimport:\n  dbml: []\n')

    def test_missing_field_name(self) -> None:
        content = """\
version: "0.1"
import:
  dbml: []
usecase:
  name: Test
  response_mapping:
    - source: users.id
"""
        with pytest.raises(DocumentParseError, match="response_mapping.0.field"):
            load_document_string(content)

    def test_invalid_yaml(self) -> None:
        with pytest.raises(DocumentParseError, match="YAML parse error"):
            load_document_string("usecase: [unclosed\n")

    def test_empty_document(self) -> None:
        with pytest.raises(DocumentParseError):
            load_document_string("")

    def test_parse_document_from_dict(self) -> None:
        doc = parse_document(
            {
                "version": "0.1",
                "import": {"dbml": None},
                "usecase": {
                    "name": "Minimal",
                    "response_mapping": [{"field": "id", "source": "users.id"}],
                    "filters": None,
                },
            }
        )
        assert doc.import_.dbml == []
        assert doc.import_.openapi is None
        assert doc.usecase.filters == []
        assert doc.usecase.transforms == []

    def test_load_document_file(self) -> None:
        doc, source_map = load_document(USERS_DOCUMENT)
        assert doc.usecase.name == "List users"
        assert source_map.get("usecase.filters[2].allowed_columns") is not None

    def test_load_document_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(OSError):
            load_document(tmp_path / "missing.usml.yaml")


class TestDepthLimit:
    """Reject deeply nested YAML structures."""

    def test_deep_flow_nesting_rejected(self, loader: TrackedLoader) -> None:
        yaml = "a: " + "[" * 3000 + "]" * 3000 + "\n"
        # ruamel raises its own error type when it enforces max_depth itself
        with pytest.raises((YAMLSafetyError, YAMLError)):
            loader.load_string(yaml)

    def test_deep_block_nesting_rejected(self, loader: TrackedLoader) -> None:
        yaml = ""
        for i in range(40):
            yaml += "  " * i + f"level{i}:\n"
        yaml += "  " * 40 + "value: deep\n"
        with pytest.raises((YAMLSafetyError, YAMLError)):
            loader.load_string(yaml)

    def test_deep_nesting_surfaces_as_parse_error(self) -> None:
        with pytest.raises(DocumentParseError):
            load_document_string("a: " + "[" * 3000 + "]" * 3000)

    def test_nested_array_fields_accepted(self) -> None:
        levels = 5
        lines = [
            'version: "0.1"',
            "import:",
            "  dbml: []",
            "usecase:",
            "  name: Nested",
            "  response_mapping:",
        ]
        indent = "    "
        for level in range(levels):
            lines += [
                f"{indent}- field: level{level}",
                f"{indent}  type: array",
                f"{indent}  fields:",
            ]
            indent += "    "
        lines.append(f"{indent}- field: leaf")
        doc, _ = load_document_string("\n".join(lines) + "\n")
        assert len(doc.usecase.all_mappings()) == levels + 1


class TestEncoding:
    def test_non_utf8_file_is_parse_error(self, tmp_path: Path) -> None:
        path = tmp_path / "latin1.usml.yaml"
        path.write_bytes(b'version: "0.1"\n# caf\xe9\n')
        with pytest.raises(DocumentParseError, match="UTF-8"):
            load_document(path)
