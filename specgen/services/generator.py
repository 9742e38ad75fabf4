"""Generation orchestrator.

Runs one generation end to end:

    validate config -> ensure output dir -> start target -> wait ready
    -> fetch -> persist -> stop target

The target is always stopped once it has been started, whichever step
fails. The first error is reported as "Failed to generate description: ..."
and either raised (fail fast) or logged and returned.
"""

import enum
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import structlog
from opentelemetry.trace import SpanKind

from specgen.core.config import GenerationConfig, OutputFormat, resolve_fail_fast, validate_generation_config
from specgen.core.exceptions import ArtifactIOError, GenerationError, LaunchError
from specgen.core.telemetry import stage_span
from specgen.helpers.project_metadata import ProjectMetadata
from specgen.services import converter
from specgen.services.http_probe import DescriptionDocument, HttpProbe
from specgen.services.readiness import ReadinessPoller
from specgen.services.subprocess_controller import SubprocessController, SubprocessHandle

logger = structlog.get_logger(__name__)


class GenerationState(enum.StrEnum):
    """Progress of a generation run. Runs only move forward through this list."""

    IDLE = "idle"
    CONFIG_VALIDATED = "config_validated"
    PROCESS_STARTED = "process_started"
    READY = "ready"
    FETCHED = "fetched"
    PERSISTED = "persisted"
    STOPPED = "stopped"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class GeneratedArtifact:
    """A description file written by a run."""

    format: OutputFormat
    path: Path
    size: int


@dataclass
class GenerationResult:
    """Outcome of a run that did not raise."""

    succeeded: bool
    state: GenerationState
    artifacts: list[GeneratedArtifact] = field(default_factory=list)
    error: BaseException | None = None

    @property
    def message(self) -> str | None:
        if self.error is None:
            return None
        return f"Failed to generate description: {self.error}"


class DescriptionGenerator:
    """Composes the subprocess controller, readiness poller and fetcher into one run."""

    def __init__(
        self,
        controller: SubprocessController | None = None,
        probe: HttpProbe | None = None,
        poller: ReadinessPoller | None = None,
    ) -> None:
        self.controller = controller or SubprocessController()
        self.probe = probe or HttpProbe()
        self.poller = poller or ReadinessPoller(self.probe)
        self.state = GenerationState.IDLE
        self.handle: SubprocessHandle | None = None

    def _advance(self, state: GenerationState) -> None:
        logger.debug("generation_state_changed", previous=self.state.value, state=state.value)
        self.state = state

    def run(self, config: GenerationConfig | dict[str, Any], project: ProjectMetadata) -> GenerationResult:
        """
        Execute a full generation run.

        Args:
            config: Generation settings, validated here before anything starts
            project: Target project metadata

        Returns:
            GenerationResult; unsuccessful only when fail_fast is off

        Raises:
            GenerationError: If any step fails and fail_fast is on
        """
        self.state = GenerationState.IDLE
        self.handle = None
        fail_fast = resolve_fail_fast(config)

        with stage_span("generation.run", artifact=project.artifact_name) as span:
            try:
                artifacts = self._generate(config, project)
            except Exception as e:
                span.set_attribute("generation.failed_after", self.state.value)
                span.set_attribute("error.type", type(e).__name__)
                self._advance(GenerationState.FAILED)
                if fail_fast:
                    raise GenerationError(e) from e
                logger.error(
                    "generation_failed",
                    error=f"Failed to generate description: {e}",
                    error_type=type(e).__name__,
                )
                return GenerationResult(succeeded=False, state=self.state, error=e)

        self._advance(GenerationState.SUCCEEDED)
        logger.info("generation_completed", artifacts=[str(a.path) for a in artifacts])
        return GenerationResult(succeeded=True, state=self.state, artifacts=artifacts)

    def _generate(
        self, raw_config: GenerationConfig | dict[str, Any], project: ProjectMetadata
    ) -> list[GeneratedArtifact]:
        config = validate_generation_config(raw_config)
        self._advance(GenerationState.CONFIG_VALIDATED)
        logger.info(
            "generation_started",
            output_directory=str(config.output_directory.absolute()),
            output_format=config.output_format.value,
            activation_profile=config.activation_profile,
        )

        _ensure_directory(config.output_directory)

        plan = self.controller.build_launch_plan(config, project)
        self.handle = self.controller.start(plan)
        self._advance(GenerationState.PROCESS_STARTED)

        try:
            url = config.description_url
            with stage_span("generation.wait_ready", "target-app", kind=SpanKind.CLIENT, url=url):
                self.poller.wait_until_ready(url, config.startup_timeout_seconds, abort_check=self._check_alive)
            self._advance(GenerationState.READY)

            with stage_span("generation.fetch", "target-app", kind=SpanKind.CLIENT, url=url):
                document = self.probe.fetch(url)
            self._advance(GenerationState.FETCHED)

            with stage_span("generation.persist", format=config.output_format.value):
                artifacts = persist(document, config)
            self._advance(GenerationState.PERSISTED)
        finally:
            self.controller.stop(self.handle)
            self._advance(GenerationState.STOPPED)

        return artifacts

    def _check_alive(self) -> None:
        """Stop waiting as soon as the target exits on its own."""
        if self.handle is not None and not self.handle.is_alive:
            msg = f"Application exited with code {self.handle.exit_code} before becoming ready"
            raise LaunchError(msg, exit_code=self.handle.exit_code)


def _ensure_directory(directory: Path) -> None:
    try:
        directory.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        msg = f"Failed to create output directory: {directory} ({e})"
        raise ArtifactIOError(msg) from e


def _write(path: Path, text: str) -> int:
    try:
        path.write_text(text, encoding="utf-8")
    except OSError as e:
        msg = f"Failed to write {path}: {e}"
        raise ArtifactIOError(msg) from e
    return path.stat().st_size


def _remove_temporary(path: Path) -> None:
    # Runs while a conversion error may be propagating, so it must not raise
    try:
        path.unlink(missing_ok=True)
    except OSError as e:
        logger.warning("temporary_file_not_removed", path=str(path.absolute()), error=str(e))


def persist(document: DescriptionDocument, config: GenerationConfig) -> list[GeneratedArtifact]:
    """
    Write the description in the configured format(s).

    YAML is converted from the JSON file on disk. When only YAML is requested
    that JSON file is temporary and removed afterwards.

    Returns:
        The artifacts that remain on disk
    """
    output_format = config.output_format
    json_path = config.output_directory / f"{config.artifact_name}.json"
    yaml_path = config.output_directory / f"{config.artifact_name}.yaml"
    artifacts: list[GeneratedArtifact] = []

    json_size = _write(json_path, converter.to_source_text(document.content))
    if output_format.writes_json:
        artifacts.append(GeneratedArtifact(format=OutputFormat.JSON, path=json_path, size=json_size))
        logger.info("artifact_written", format="json", path=str(json_path.absolute()))

    if output_format.writes_yaml:
        try:
            converter.convert_file(json_path, yaml_path)
        finally:
            if output_format is OutputFormat.YAML:
                _remove_temporary(json_path)
        artifacts.append(GeneratedArtifact(format=OutputFormat.YAML, path=yaml_path, size=yaml_path.stat().st_size))
        logger.info("artifact_written", format="yaml", path=str(yaml_path.absolute()))

    return artifacts
