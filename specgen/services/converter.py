"""Order-preserving conversion between JSON and YAML descriptions.

Both parsers build plain dicts in document order, so key order survives every
direction of conversion. Nothing here sorts keys.
"""

import json
from pathlib import Path
from typing import Any, NoReturn

import yaml

from specgen.core.exceptions import ArtifactIOError, MalformedInputError

# A parsed description: nested dicts/lists of str, int, float, bool or None
Document = Any

_DOCUMENT_END_MARKER = "...\n"


class _IndentedSequenceDumper(yaml.SafeDumper):
    """SafeDumper that indents block sequences under their parent mapping key."""

    def increase_indent(self, flow: bool = False, indentless: bool = False) -> None:  # noqa: FBT001, FBT002
        return super().increase_indent(flow, False)


def parse(text: str) -> Document:
    """
    Parse JSON text into the structural document model.

    Args:
        text: JSON text; the literal ``null`` is a valid document

    Returns:
        The parsed document (None for ``null``)

    Raises:
        MalformedInputError: If the text is not valid JSON
    """
    try:
        return json.loads(text, parse_constant=_reject_constant)
    except json.JSONDecodeError as e:
        msg = f"Malformed JSON at line {e.lineno} column {e.colno}: {e.msg}"
        raise MalformedInputError(msg) from e
    except RecursionError as e:
        msg = "Malformed JSON: nesting too deep"
        raise MalformedInputError(msg) from e


def _reject_constant(name: str) -> NoReturn:
    # NaN, Infinity and -Infinity are Python extensions, not JSON
    msg = f"Malformed JSON: {name} is not a valid value"
    raise MalformedInputError(msg)


def parse_converted(text: str) -> Document:
    """
    Parse YAML text into the structural document model.

    Raises:
        MalformedInputError: If the text is not valid YAML
    """
    try:
        return yaml.safe_load(text)
    except yaml.YAMLError as e:
        msg = f"Malformed YAML: {e}"
        raise MalformedInputError(msg) from e


def to_converted_text(document: Document) -> str:
    """
    Serialize a document as YAML.

    Output keeps insertion order, has no leading ``---`` marker, quotes a
    scalar only when YAML would otherwise read it as something else, indents
    block sequences with their ``-`` indicator and never wraps long strings.
    """
    text = yaml.dump(
        document,
        Dumper=_IndentedSequenceDumper,
        sort_keys=False,
        default_flow_style=False,
        allow_unicode=True,
        explicit_start=False,
        width=float("inf"),
    )
    # Scalar roots (e.g. null) get an explicit document end marker we don't want
    if text.endswith(_DOCUMENT_END_MARKER):
        text = text[: -len(_DOCUMENT_END_MARKER)]
    return text


def to_source_text(document: Document) -> str:
    """Serialize a document as indented JSON with a trailing newline."""
    return json.dumps(document, indent=2, ensure_ascii=False) + "\n"


def source_to_converted(json_text: str) -> str:
    """Convert JSON text to YAML text."""
    return to_converted_text(parse(json_text))


def converted_to_source(yaml_text: str) -> str:
    """Convert YAML text to JSON text."""
    return to_source_text(parse_converted(yaml_text))


def convert_file(json_path: Path, yaml_path: Path) -> Path:
    """
    Convert a JSON description file into a YAML file.

    Args:
        json_path: Existing JSON file to read
        yaml_path: Destination YAML file (overwritten)

    Returns:
        The path of the written YAML file

    Raises:
        ArtifactIOError: If the JSON file is missing or either file cannot be accessed
        MalformedInputError: If the JSON file does not contain valid JSON
    """
    if not json_path.exists():
        msg = f"JSON file does not exist: {json_path.absolute()}"
        raise ArtifactIOError(msg)

    try:
        json_text = json_path.read_text(encoding="utf-8")
    except OSError as e:
        msg = f"Failed to read {json_path}: {e}"
        raise ArtifactIOError(msg) from e

    yaml_text = source_to_converted(json_text)

    try:
        yaml_path.write_text(yaml_text, encoding="utf-8")
    except OSError as e:
        msg = f"Failed to write {yaml_path}: {e}"
        raise ArtifactIOError(msg) from e
    return yaml_path
