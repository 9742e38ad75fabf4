"""Pytest configuration and fixtures."""

import os

# Keep tracing off and logging predictable BEFORE any specgen imports
# This must be done before specgen.core.config loads settings
os.environ["OTEL_ENABLED"] = "false"
os.environ.pop("SPECGEN_OUTPUT_FORMAT", None)

from collections.abc import Callable, Generator
from pathlib import Path
from typing import Any

import pytest
from specgen.core.logging import configure_logging
from specgen.helpers.project_metadata import ProjectMetadata, load_project_metadata
from specgen.services.subprocess_controller import SubprocessController, SubprocessHandle

from tests.helpers.network import find_free_port

pytest_plugins = ["tests.fixtures.otel"]

FIXTURES_DIR = Path(__file__).parent / "fixtures"
CATALOG_PROJECT_DIR = FIXTURES_DIR / "catalog_service"


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging() -> None:
    """Route structlog through stdlib logging so caplog/capsys see events."""
    configure_logging(log_level="DEBUG")


@pytest.fixture
def catalog_project() -> ProjectMetadata:
    """Metadata for the catalog_service fixture project."""
    return load_project_metadata(CATALOG_PROJECT_DIR)


@pytest.fixture
def free_port() -> int:
    """A TCP port nothing is currently listening on."""
    return find_free_port()


@pytest.fixture
def make_config(tmp_path: Path, free_port: int) -> Callable[..., dict[str, Any]]:
    """
    Factory for raw generation settings.

    Defaults write into a fresh temporary directory on a free port; keyword
    arguments override individual fields.
    """

    def _make(**overrides: Any) -> dict[str, Any]:
        values: dict[str, Any] = {
            "output_directory": tmp_path / "build",
            "description_path": "/v3/api-docs",
            "output_format": "yaml",
            "activation_profile": "openapi-generation",
            "listen_port": free_port,
            "startup_timeout_seconds": 30,
            "fail_fast": True,
        }
        values.update(overrides)
        return values

    return _make


@pytest.fixture
def controller() -> Generator[SubprocessController]:
    """
    SubprocessController that kills anything it started when the test ends.

    Keeps a failing test from leaking target processes.
    """
    started: list[SubprocessHandle] = []
    instance = SubprocessController(shutdown_grace_seconds=5)
    original_start = instance.start

    def _tracking_start(plan: Any) -> SubprocessHandle:  # noqa: ANN401
        handle = original_start(plan)
        started.append(handle)
        return handle

    instance.start = _tracking_start  # type: ignore[method-assign]
    yield instance

    for handle in started:
        if handle.is_alive:
            handle.process.kill()
            handle.process.wait()
