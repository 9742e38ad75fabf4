"""Lifecycle management for the target application's process.

The target runs as a separate interpreter so that its dependencies and
configuration never mix with ours. It gets an isolated search path, a forced
activation profile and port, and the description endpoint switched on at the
configured path. Everything it prints is drained on a daemon thread so the
child never blocks on a full pipe.
"""

import os
import subprocess
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import IO

import structlog

from specgen.core.config import GenerationConfig
from specgen.core.exceptions import LaunchError
from specgen.helpers.project_metadata import ProjectMetadata

logger = structlog.get_logger(__name__)

# Grace window between the termination request and a forced kill
SHUTDOWN_GRACE_SECONDS = 10

# Environment variables the target application is expected to honor
PROFILE_ENV = "APP_PROFILE"
PORT_ENV = "SERVER_PORT"
DOCS_ENABLED_ENV = "API_DOCS_ENABLED"
DOCS_PATH_ENV = "API_DOCS_PATH"
SEARCH_PATH_ENV = "PYTHONPATH"

CONVENTIONAL_MODULE = "application"


@dataclass(frozen=True)
class LaunchPlan:
    """Everything needed to start the target: command line, environment and search path."""

    command: list[str]
    environment: dict[str, str]
    search_path: str
    entry_point: str
    working_directory: Path | None = None

    @property
    def display_command(self) -> str:
        return " ".join(self.command)


@dataclass
class SubprocessHandle:
    """A running target process and the thread draining its output."""

    process: subprocess.Popen[str]
    drain_thread: threading.Thread | None = field(default=None, repr=False)

    @property
    def pid(self) -> int:
        return self.process.pid

    @property
    def is_alive(self) -> bool:
        return self.process.poll() is None

    @property
    def exit_code(self) -> int | None:
        return self.process.poll()


def resolve_entry_point(config: GenerationConfig, project: ProjectMetadata) -> str:
    """
    Decide which module to run.

    An explicit entry point wins, then the project's start property. Failing
    both, guess ``{group}.{artifact}.application`` with hyphens removed from
    the artifact name. The guess is logged as a warning and not verified.
    """
    if config.entry_point:
        return config.entry_point

    if start_module := project.start_module:
        logger.debug("entry_point_from_project", entry_point=start_module)
        return start_module

    package = project.artifact_name.replace("-", "")
    parts = [project.group, package, CONVENTIONAL_MODULE] if project.group else [package, CONVENTIONAL_MODULE]
    guess = ".".join(parts)

    logger.warning(
        "entry_point_guessed",
        entry_point=guess,
        hint="Entry point not specified; set --entry-point or [tool.specgen] start-module if this is incorrect",
    )
    return guess


class SubprocessController:
    """Owns the target application's process for one generation run."""

    def __init__(self, shutdown_grace_seconds: float = SHUTDOWN_GRACE_SECONDS) -> None:
        self.shutdown_grace_seconds = shutdown_grace_seconds

    def build_search_path(self, project: ProjectMetadata) -> str:
        """Join source root, test root and dependency paths with the platform path separator."""
        entries = [project.source_root, project.test_root, *project.dependency_paths]
        search_path = os.pathsep.join(str(entry) for entry in entries)
        logger.debug("search_path_built", search_path=search_path)
        return search_path

    def build_launch_plan(
        self,
        config: GenerationConfig,
        project: ProjectMetadata,
        base_environment: dict[str, str] | None = None,
    ) -> LaunchPlan:
        """
        Build the command line and environment for the target.

        Args:
            config: Validated generation config
            project: Target project metadata
            base_environment: Environment to start from (defaults to os.environ)

        Returns:
            LaunchPlan ready to pass to start()
        """
        entry_point = resolve_entry_point(config, project)
        search_path = self.build_search_path(project)

        environment = dict(os.environ if base_environment is None else base_environment)
        inherited = environment.get(SEARCH_PATH_ENV)
        environment[SEARCH_PATH_ENV] = os.pathsep.join([search_path, inherited]) if inherited else search_path
        environment[PROFILE_ENV] = config.activation_profile
        environment[PORT_ENV] = str(config.listen_port)
        environment[DOCS_ENABLED_ENV] = "true"
        environment[DOCS_PATH_ENV] = config.description_path

        return LaunchPlan(
            command=[config.runtime_executable, "-m", entry_point],
            environment=environment,
            search_path=search_path,
            entry_point=entry_point,
            working_directory=project.project_dir,
        )

    def start(self, plan: LaunchPlan) -> SubprocessHandle:
        """
        Spawn the target with stderr merged into stdout and start draining its output.

        Raises:
            LaunchError: If the runtime executable cannot be started
        """
        logger.info("starting_target", command=plan.display_command, entry_point=plan.entry_point)
        try:
            process = subprocess.Popen(  # noqa: S603  # Argument list, no shell
                plan.command,
                env=plan.environment,
                cwd=plan.working_directory,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                bufsize=1,
                errors="replace",
            )
        except OSError as e:
            msg = f"Cannot start '{plan.command[0]}': {e}"
            raise LaunchError(msg) from e

        drain_thread = threading.Thread(
            target=_drain_output,
            args=(process.stdout, process.pid),
            name=f"target-output-{process.pid}",
            daemon=True,
        )
        drain_thread.start()
        logger.info("target_started", pid=process.pid)
        return SubprocessHandle(process=process, drain_thread=drain_thread)

    def stop(self, handle: SubprocessHandle | None) -> None:
        """
        Stop the target: terminate, wait for the grace window, then kill.

        Safe to call with None or with a process that has already exited.
        Errors are logged and never raised.
        """
        if handle is None or not handle.is_alive:
            return

        process = handle.process
        logger.info("stopping_target", pid=process.pid)
        try:
            process.terminate()
            try:
                process.wait(timeout=self.shutdown_grace_seconds)
            except subprocess.TimeoutExpired:
                logger.warning(
                    "target_kill_forced",
                    pid=process.pid,
                    grace_seconds=self.shutdown_grace_seconds,
                )
                process.kill()
                process.wait()
        except OSError:
            logger.exception("target_stop_failed", pid=process.pid)
            return

        logger.info("target_stopped", pid=process.pid, exit_code=process.returncode)


def _drain_output(stream: IO[str] | None, pid: int) -> None:
    """Log each output line of the target until its stream closes."""
    if stream is None:
        return
    try:
        with stream:
            for line in stream:
                logger.debug("target_output", pid=pid, line=line.rstrip("\n"))
    except (OSError, ValueError):
        # ValueError: stream closed underneath us during shutdown
        logger.exception("target_output_drain_failed", pid=pid)
