"""Error taxonomy for generation runs.

Every error is local to one run. Each one names the stage that failed and
carries the underlying cause, either as structured attributes or via
exception chaining.
"""


class SpecGenError(Exception):
    """Base exception for description generation errors."""

    pass


class ConfigurationError(SpecGenError):
    """
    Raised when generation settings are invalid.

    Always detected before any subprocess is started.
    """

    pass


class LaunchError(SpecGenError):
    """Raised when the target application cannot be started or dies before it is ready."""

    def __init__(self, message: str, *, exit_code: int | None = None) -> None:
        self.exit_code = exit_code
        super().__init__(message)


class StartupTimeoutError(SpecGenError):
    """Raised when the description endpoint does not become ready in time."""

    def __init__(self, timeout_seconds: int | float) -> None:
        self.timeout_seconds = timeout_seconds
        super().__init__(f"Application failed to start within {timeout_seconds} seconds")


class FetchError(SpecGenError):
    """
    Raised when the description cannot be retrieved.

    Carries either the HTTP status code of a non-200 response or the
    transport/decoding failure that prevented reading the body.
    """

    def __init__(self, *, status_code: int | None = None, cause: BaseException | None = None) -> None:
        self.status_code = status_code
        self.cause = cause
        if status_code is not None:
            message = f"Failed to fetch description. Status: {status_code}"
        else:
            message = f"Failed to fetch description: {cause}"
        super().__init__(message)


class MalformedInputError(SpecGenError):
    """Raised when a document cannot be parsed into the structural model."""

    pass


class ArtifactIOError(SpecGenError):
    """Raised when the output directory or an artifact file cannot be created, written or read."""

    pass


class GenerationError(SpecGenError):
    """
    Raised when a fail-fast run fails.

    Wraps the first error encountered so that the enclosing build aborts with
    a single descriptive message.
    """

    def __init__(self, cause: BaseException) -> None:
        self.cause = cause
        super().__init__(f"Failed to generate description: {cause}")
