"""Tests for JSON/YAML description conversion."""

from pathlib import Path

import pytest
from specgen.core.exceptions import ArtifactIOError, MalformedInputError
from specgen.services import converter

SAMPLE_JSON = '{"openapi":"3.0.1","info":{"title":"Test API","version":"1.0.0"}}'

PETSTORE = {
    "openapi": "3.0.1",
    "info": {"title": "Pet Store", "version": "2.0", "description": "Pets: cats & dogs\nMultiline"},
    "servers": [{"url": "http://localhost:8080"}],
    "paths": {
        "/pets/{id}": {
            "get": {
                "operationId": "getPet",
                "parameters": [{"name": "id", "in": "path", "required": True, "schema": {"type": "integer"}}],
                "responses": {
                    "200": {"description": "OK"},
                    "404": {"description": "Not found"},
                },
            }
        }
    },
    "components": {
        "schemas": {
            "Pet": {
                "type": "object",
                "required": ["id", "name"],
                "properties": {
                    "id": {"type": "integer", "format": "int64", "minimum": 0},
                    "name": {"type": "string", "example": "yes"},
                    "tag": {"type": "string", "nullable": True, "default": None},
                    "weight": {"type": "number", "example": 1.5},
                    "born": {"type": "string", "example": "2024-01-01"},
                    "code": {"type": "string", "example": "007"},
                    "emoji": {"type": "string", "example": "🐈 ünïcode"},
                },
            }
        }
    },
    "tags": [],
    "x-empty": {},
}


class TestToConvertedText:
    """Tests for YAML serialization."""

    def test_converts_simple_document(self) -> None:
        """Test the canonical example converts with plain scalars in order."""
        yaml_text = converter.to_converted_text(converter.parse(SAMPLE_JSON))

        assert yaml_text == "openapi: 3.0.1\ninfo:\n  title: Test API\n  version: 1.0.0\n"

    def test_no_document_start_marker(self) -> None:
        """Test output never begins with a '---' marker."""
        yaml_text = converter.to_converted_text(PETSTORE)

        assert not yaml_text.startswith("---")

    def test_preserves_key_order(self) -> None:
        """Test keys are emitted in insertion order, not sorted."""
        yaml_text = converter.to_converted_text(converter.parse('{"b":1,"a":2}'))

        assert yaml_text == "b: 1\na: 2\n"

    def test_preserves_nested_key_order(self) -> None:
        """Test nested mappings keep their order after conversion."""
        yaml_text = converter.to_converted_text(PETSTORE)

        assert yaml_text.index("openapi:") < yaml_text.index("info:") < yaml_text.index("paths:")
        assert yaml_text.index("components:") < yaml_text.index("tags:")

    def test_indents_sequences_with_indicator(self) -> None:
        """Test block sequences are indented beneath their key."""
        yaml_text = converter.to_converted_text({"servers": [{"url": "http://a"}, {"url": "http://b"}]})

        assert yaml_text == "servers:\n  - url: http://a\n  - url: http://b\n"

    def test_quotes_only_ambiguous_scalars(self) -> None:
        """Test strings that would read as another type are quoted, others are not."""
        yaml_text = converter.to_converted_text(
            {"a": "yes", "b": "007", "c": "2024-01-01", "d": "null", "e": "plain text", "f": "1.5"}
        )

        assert "a: 'yes'" in yaml_text
        assert "b: '007'" in yaml_text
        assert "c: '2024-01-01'" in yaml_text
        assert "d: 'null'" in yaml_text
        assert "e: plain text" in yaml_text
        assert "f: '1.5'" in yaml_text

    def test_numeric_response_codes_stay_strings(self) -> None:
        """Test numeric-looking keys survive as strings."""
        yaml_text = converter.to_converted_text({"responses": {"200": {"description": "OK"}}})

        assert "'200':" in yaml_text
        assert converter.parse_converted(yaml_text) == {"responses": {"200": {"description": "OK"}}}

    def test_does_not_wrap_long_strings(self) -> None:
        """Test long descriptions stay on one line."""
        long_text = "word " * 60
        yaml_text = converter.to_converted_text({"description": long_text.strip()})

        assert yaml_text.count("\n") == 1

    def test_keeps_unicode(self) -> None:
        """Test non-ASCII characters are written as-is, not escaped."""
        yaml_text = converter.to_converted_text({"name": "ünïcode 🐈"})

        assert yaml_text == "name: ünïcode 🐈\n"

    def test_null_document(self) -> None:
        """Test the null document converts to the null token."""
        yaml_text = converter.to_converted_text(converter.parse("null"))

        assert yaml_text.strip() == "null"
        assert "..." not in yaml_text


class TestParse:
    """Tests for JSON parsing."""

    def test_parse_null(self) -> None:
        """Test 'null' is a valid document."""
        assert converter.parse("null") is None

    def test_parse_preserves_order(self) -> None:
        """Test parsed mappings keep document order."""
        document = converter.parse('{"z":1,"m":2,"a":3}')

        assert list(document) == ["z", "m", "a"]

    @pytest.mark.parametrize(
        "text",
        [
            "not valid json",
            "",
            "{",
            '{"openapi": }',
            "{'single': 'quotes'}",
            "[1, 2,]",
            "NaN",
            "Infinity",
            "-Infinity",
            '{"x": NaN}',
        ],
    )
    def test_parse_invalid_raises(self, text: str) -> None:
        """Test malformed JSON raises MalformedInputError instead of returning a partial document."""
        with pytest.raises(MalformedInputError, match="Malformed JSON"):
            converter.parse(text)

    def test_parse_deeply_nested_raises(self) -> None:
        """Test input nested past the recursion limit raises MalformedInputError, not RecursionError."""
        with pytest.raises(MalformedInputError, match="nesting too deep"):
            converter.parse("[" * 200000)

    def test_parse_converted_invalid_raises(self) -> None:
        """Test malformed YAML raises MalformedInputError."""
        with pytest.raises(MalformedInputError, match="Malformed YAML"):
            converter.parse_converted("key: [unclosed")


class TestRoundTrip:
    """Round-trip properties through both textual forms."""

    @pytest.mark.parametrize(
        "document",
        [
            PETSTORE,
            None,
            {},
            [],
            {"b": 1, "a": 2},
            {"list": [1, "two", 3.0, True, None, {"nested": []}]},
            "just a string",
            42,
        ],
    )
    def test_round_trip_through_yaml(self, document: object) -> None:
        """Test parse_converted(to_converted_text(D)) == D."""
        assert converter.parse_converted(converter.to_converted_text(document)) == document

    @pytest.mark.parametrize("document", [PETSTORE, None, {"b": 1, "a": 2}, [1, [2, [3]]]])
    def test_round_trip_through_json(self, document: object) -> None:
        """Test parse(to_source_text(D)) == D."""
        assert converter.parse(converter.to_source_text(document)) == document

    def test_round_trip_keeps_key_order(self) -> None:
        """Test key order survives JSON -> YAML -> JSON."""
        json_text = converter.converted_to_source(converter.source_to_converted('{"b":1,"a":{"y":1,"x":2}}'))
        document = converter.parse(json_text)

        assert list(document) == ["b", "a"]
        assert list(document["a"]) == ["y", "x"]


class TestConvertedToSource:
    """Tests for YAML -> JSON conversion."""

    def test_yaml_to_json(self) -> None:
        """Test a hand-written YAML description converts to JSON."""
        json_text = converter.converted_to_source("openapi: 3.0.1\ninfo:\n  title: Test API\n  version: 1.0.0")

        assert '"openapi": "3.0.1"' in json_text
        assert '"title": "Test API"' in json_text
        assert json_text.endswith("\n")


class TestConvertFile:
    """Tests for file-to-file conversion."""

    def test_convert_file(self, tmp_path: Path) -> None:
        """Test a JSON file is converted into a YAML file."""
        json_path = tmp_path / "openapi.json"
        yaml_path = tmp_path / "openapi.yaml"
        json_path.write_text(SAMPLE_JSON, encoding="utf-8")

        result = converter.convert_file(json_path, yaml_path)

        assert result == yaml_path
        assert yaml_path.read_text(encoding="utf-8").startswith("openapi: 3.0.1\n")
        assert json_path.exists()

    def test_convert_missing_file_raises(self, tmp_path: Path) -> None:
        """Test a missing input file raises ArtifactIOError."""
        with pytest.raises(ArtifactIOError, match="JSON file does not exist"):
            converter.convert_file(tmp_path / "missing.json", tmp_path / "out.yaml")

    def test_convert_unwritable_destination_raises(self, tmp_path: Path) -> None:
        """Test an unwritable destination raises ArtifactIOError."""
        json_path = tmp_path / "openapi.json"
        json_path.write_text(SAMPLE_JSON, encoding="utf-8")

        with pytest.raises(ArtifactIOError, match="Failed to write"):
            converter.convert_file(json_path, tmp_path / "no-such-dir" / "openapi.yaml")

    def test_convert_malformed_file_raises(self, tmp_path: Path) -> None:
        """Test a file with invalid JSON raises MalformedInputError."""
        json_path = tmp_path / "openapi.json"
        json_path.write_text("not valid json", encoding="utf-8")

        with pytest.raises(MalformedInputError):
            converter.convert_file(json_path, tmp_path / "openapi.yaml")
