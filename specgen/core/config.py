"""Generator configuration."""

import enum
import logging
import sys
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, PositiveInt, TypeAdapter, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from specgen.core.exceptions import ConfigurationError

DEFAULT_DESCRIPTION_PATH = "/v3/api-docs"
DEFAULT_ACTIVATION_PROFILE = "openapi-generation"
DEFAULT_ARTIFACT_NAME = "openapi"


class OutputFormat(enum.StrEnum):
    """Textual encodings written by a generation run."""

    JSON = "json"  # Source form, as served by the target
    YAML = "yaml"  # Converted form
    BOTH = "both"

    @classmethod
    def parse(cls, value: "str | OutputFormat") -> "OutputFormat":
        """Resolve a format name case-insensitively."""
        if isinstance(value, OutputFormat):
            return value
        normalized = str(value).strip().lower()
        try:
            return cls(normalized)
        except ValueError:
            valid = ", ".join(member.value for member in cls)
            msg = f"Invalid output format '{value}'. Must be one of: {valid}"
            raise ValueError(msg) from None

    @property
    def writes_json(self) -> bool:
        return self in (OutputFormat.JSON, OutputFormat.BOTH)

    @property
    def writes_yaml(self) -> bool:
        return self in (OutputFormat.YAML, OutputFormat.BOTH)


class Settings(BaseSettings):
    """Generator settings from environment variables.

    Every value can be overridden on the command line; these are the defaults
    a build picks up when it only sets environment variables.
    """

    model_config = SettingsConfigDict(
        env_prefix="SPECGEN_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Generation defaults
    OUTPUT_DIRECTORY: str = "build"
    DESCRIPTION_PATH: str = DEFAULT_DESCRIPTION_PATH
    OUTPUT_FORMAT: str = OutputFormat.YAML.value
    ACTIVATION_PROFILE: str = DEFAULT_ACTIVATION_PROFILE
    FAIL_FAST: bool = True
    LISTEN_PORT: int = 8080
    STARTUP_TIMEOUT_SECONDS: int = 60
    ENTRY_POINT: str | None = None
    RUNTIME_EXECUTABLE: str = sys.executable
    ARTIFACT_NAME: str = DEFAULT_ARTIFACT_NAME

    # HTTP client timeout for each probe/fetch request (seconds)
    HTTP_TIMEOUT_SECONDS: float = 5.0

    # OpenTelemetry Settings (off by default for build tooling)
    OTEL_ENABLED: bool = Field(default=False, validation_alias="OTEL_ENABLED")
    OTEL_SERVICE_NAME: str = Field(default="specgen", validation_alias="OTEL_SERVICE_NAME")
    OTEL_EXPORTER_OTLP_TRACES_ENDPOINT: str | None = Field(
        default=None, validation_alias="OTEL_EXPORTER_OTLP_TRACES_ENDPOINT"
    )
    OTEL_EXPORTER_OTLP_HEADERS: str | None = Field(default=None, validation_alias="OTEL_EXPORTER_OTLP_HEADERS")

    # Logging Settings
    LOG_LEVEL: str = "INFO"

    @field_validator("LOG_LEVEL", mode="after")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate and normalize log level."""
        normalized = v.upper()
        valid_levels = logging.getLevelNamesMapping()
        if normalized not in valid_levels:
            msg = f"Invalid LOG_LEVEL '{v}'. Must be one of: {', '.join(sorted(valid_levels.keys()))}"
            raise ValueError(msg)
        return normalized


settings = Settings()


class GenerationConfig(BaseModel):
    """Immutable settings for a single generation run."""

    model_config = ConfigDict(frozen=True)

    output_directory: Path
    description_path: str = DEFAULT_DESCRIPTION_PATH
    output_format: OutputFormat = OutputFormat.YAML
    activation_profile: str = Field(default=DEFAULT_ACTIVATION_PROFILE, min_length=1)
    listen_port: PositiveInt = Field(default=8080, le=65535)
    startup_timeout_seconds: PositiveInt = 60
    entry_point: str | None = None
    fail_fast: bool = True
    runtime_executable: str = sys.executable
    artifact_name: str = Field(default=DEFAULT_ARTIFACT_NAME, min_length=1)

    @field_validator("output_format", mode="before")
    @classmethod
    def parse_output_format(cls, v: Any) -> OutputFormat:  # noqa: ANN401  # Raw user input
        """Accept format names in any case."""
        return OutputFormat.parse(v)

    @field_validator("description_path", mode="after")
    @classmethod
    def validate_description_path(cls, v: str) -> str:
        """Require an absolute endpoint path."""
        if not v.startswith("/"):
            msg = f"description_path must start with '/', got '{v}'"
            raise ValueError(msg)
        return v

    @field_validator("entry_point", mode="after")
    @classmethod
    def blank_entry_point_is_unset(cls, v: str | None) -> str | None:
        """Treat an empty entry point as not configured."""
        if v is None or not v.strip():
            return None
        return v.strip()

    @property
    def description_url(self) -> str:
        return f"http://localhost:{self.listen_port}{self.description_path}"


def config_values_from_settings(source: Settings | None = None, **overrides: Any) -> dict[str, Any]:  # noqa: ANN401
    """
    Collect raw generation values from environment settings.

    Overrides that are not None take precedence. The result is not validated;
    pass it to validate_generation_config() (the generator does this itself).
    """
    source = source or settings
    values: dict[str, Any] = {
        "output_directory": source.OUTPUT_DIRECTORY,
        "description_path": source.DESCRIPTION_PATH,
        "output_format": source.OUTPUT_FORMAT,
        "activation_profile": source.ACTIVATION_PROFILE,
        "listen_port": source.LISTEN_PORT,
        "startup_timeout_seconds": source.STARTUP_TIMEOUT_SECONDS,
        "entry_point": source.ENTRY_POINT,
        "fail_fast": source.FAIL_FAST,
        "runtime_executable": source.RUNTIME_EXECUTABLE,
        "artifact_name": source.ARTIFACT_NAME,
    }
    values.update({key: value for key, value in overrides.items() if value is not None})
    return values


def validate_generation_config(raw: "GenerationConfig | dict[str, Any]") -> GenerationConfig:
    """
    Validate raw generation settings.

    Args:
        raw: An existing config (returned unchanged) or a mapping of field values

    Returns:
        The validated, immutable config

    Raises:
        ConfigurationError: If any field is missing or invalid
    """
    if isinstance(raw, GenerationConfig):
        return raw
    try:
        return GenerationConfig.model_validate(raw)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in error['loc']) or 'config'}: {error['msg']}" for error in e.errors()
        )
        msg = f"Invalid configuration: {problems}"
        raise ConfigurationError(msg) from e


def resolve_fail_fast(raw: "GenerationConfig | dict[str, Any]") -> bool:
    """
    Read the fail-fast switch before the rest of the config is validated.

    Raw values are coerced the way GenerationConfig coerces them ("false",
    "0", "off" are False). An uncoercible value means fail fast.
    """
    if isinstance(raw, GenerationConfig):
        return raw.fail_fast
    try:
        return TypeAdapter(bool).validate_python(raw.get("fail_fast", True))
    except ValidationError:
        return True
