"""Target project metadata used to build the launch plan."""

import tomllib
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import structlog

from specgen.core.exceptions import ConfigurationError

logger = structlog.get_logger(__name__)

PYPROJECT_FILENAME = "pyproject.toml"
TOOL_TABLE = "specgen"

# Project properties that name the module to run, in lookup order
START_MODULE_PROPERTIES = ("start-module", "start-class")


@dataclass(frozen=True)
class ProjectMetadata:
    """
    What the generator needs to know about the target project.

    The source root, test root and dependency paths become the subprocess
    search path in that order. The test root is included so that test-only
    wiring (e.g. mocked repositories for the generation profile) is importable
    by the target.
    """

    artifact_name: str
    source_root: Path
    test_root: Path
    group: str | None = None
    dependency_paths: tuple[Path, ...] = ()
    properties: Mapping[str, str] = field(default_factory=dict)
    project_dir: Path | None = None

    @property
    def start_module(self) -> str | None:
        """Module named by the project's start property, if any."""
        for key in START_MODULE_PROPERTIES:
            value = self.properties.get(key)
            if value:
                return value
        return None


def _resolve(project_dir: Path, value: str | None, default: str) -> Path:
    path = Path(value) if value else Path(default)
    return path if path.is_absolute() else (project_dir / path).resolve()


def load_project_metadata(project_dir: Path) -> ProjectMetadata:
    """
    Load target project metadata from its pyproject.toml.

    ``[project].name`` gives the artifact name. The optional ``[tool.specgen]``
    table supplies ``group``, ``source-root`` (default ``src`` when it exists,
    else the project directory), ``test-root`` (default ``tests``),
    ``dependency-paths`` and any other string properties such as
    ``start-module``.

    Args:
        project_dir: Directory containing pyproject.toml

    Returns:
        ProjectMetadata with all paths resolved against project_dir

    Raises:
        ConfigurationError: If pyproject.toml is missing, unreadable or has no project name
    """
    project_dir = project_dir.resolve()
    pyproject_path = project_dir / PYPROJECT_FILENAME

    try:
        with pyproject_path.open("rb") as f:
            data: dict[str, Any] = tomllib.load(f)
    except FileNotFoundError as e:
        msg = f"No {PYPROJECT_FILENAME} found in {project_dir}"
        raise ConfigurationError(msg) from e
    except (OSError, tomllib.TOMLDecodeError) as e:
        msg = f"Cannot read {pyproject_path}: {e}"
        raise ConfigurationError(msg) from e

    name = data.get("project", {}).get("name")
    if not name:
        msg = f"{pyproject_path} has no [project].name"
        raise ConfigurationError(msg)

    tool: dict[str, Any] = data.get("tool", {}).get(TOOL_TABLE, {})

    default_source = "src" if (project_dir / "src").is_dir() else "."
    dependency_paths = tuple(_resolve(project_dir, str(p), ".") for p in tool.get("dependency-paths", []))
    properties = {key: str(value) for key, value in tool.items() if isinstance(value, str | int | float | bool)}

    metadata = ProjectMetadata(
        artifact_name=name,
        group=tool.get("group"),
        source_root=_resolve(project_dir, tool.get("source-root"), default_source),
        test_root=_resolve(project_dir, tool.get("test-root"), "tests"),
        dependency_paths=dependency_paths,
        properties=properties,
        project_dir=project_dir,
    )
    logger.debug(
        "project_metadata_loaded",
        artifact_name=metadata.artifact_name,
        group=metadata.group,
        source_root=str(metadata.source_root),
        test_root=str(metadata.test_root),
        dependency_count=len(dependency_paths),
    )
    return metadata
