"""Config file loading and auto-discovery for the transparency sandbox.

Searches for ``transparency-sandbox.yaml`` in the current directory and
parent directories, parses it, applies environment variable overrides,
and validates the result.  Parsing is purely local: no network access.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from transparency_sandbox.models import LogLevel

CONFIG_FILENAME = "transparency-sandbox.yaml"

# env var -> (section, key)
ENV_OVERRIDES: dict[str, tuple[str, str]] = {
    "APP_NAME": ("app", "name"),
    "APP_ENV": ("app", "environment"),
    "LOG_LEVEL": ("app", "log_level"),
    "TELEMETRY_ENABLED": ("telemetry", "enabled"),
    "TELEMETRY_SERVICE_NAME": ("telemetry", "service_name"),
    "TELEMETRY_ENDPOINT": ("telemetry", "endpoint"),
    "TELEMETRY_SAMPLE_RATE": ("telemetry", "sample_rate"),
    "TELEMETRY_JSON_LOGS": ("telemetry", "json_logs"),
    "SANDBOX_TIMEOUT_MS": ("sandbox", "timeout_ms"),
    "DIAGNOSTIC_TIMEOUT_MS": ("sandbox", "diagnostic_timeout_ms"),
    "SIMULATION_TIMEOUT_MS": ("sandbox", "simulation_timeout_ms"),
}


class ConfigError(Exception):
    """Raised when configuration is malformed or fails validation."""


# --- Schema ---


class AppSettings(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = "transparency-logic-time-machine-bots"
    environment: Literal["development", "staging", "production"] = "development"
    log_level: LogLevel = LogLevel.INFO


class TelemetrySettings(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    enabled: bool = False
    service_name: str | None = None
    endpoint: str | None = None
    sample_rate: float = Field(default=0.1, ge=0.0, le=1.0)
    json_logs: bool = True

    @field_validator("endpoint")
    @classmethod
    def _endpoint_is_url(cls, v: str | None) -> str | None:
        if v is not None and not v.startswith(("http://", "https://")):
            raise ValueError("endpoint must be an http(s) URL")
        return v


class SandboxSettings(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    timeout_ms: int = Field(default=30_000, gt=0)
    diagnostic_timeout_ms: int = Field(default=60_000, gt=0)
    simulation_timeout_ms: int = Field(default=120_000, gt=0)


class SandboxConfig(BaseModel):
    """Parsed and validated sandbox configuration."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    config_path: Path | None = None
    app: AppSettings = Field(default_factory=AppSettings)
    telemetry: TelemetrySettings = Field(default_factory=TelemetrySettings)
    sandbox: SandboxSettings = Field(default_factory=SandboxSettings)

    @property
    def service_name(self) -> str:
        return self.telemetry.service_name or self.app.name


@dataclass(frozen=True)
class ConfigValidation:
    """Outcome of ``validate_config()``."""

    success: bool
    errors: list[str] = field(default_factory=list)


# --- Discovery and loading ---


def find_config(start: Path | None = None) -> Path | None:
    """Walk from *start* (default ``cwd()``) up to the filesystem root.

    Returns the first ``transparency-sandbox.yaml`` found, or ``None``.
    """
    current = (start or Path.cwd()).resolve()
    while True:
        candidate = current / CONFIG_FILENAME
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            return None
        current = parent


def load_config(
    path: str | Path | None = None,
    *,
    auto_discover: bool = True,
    env: Mapping[str, str] | None = None,
) -> SandboxConfig:
    """Load the sandbox configuration.

    Resolution order:

    1. Explicit *path* (error if it doesn't exist).
    2. Auto-discover by walking parent directories.
    3. No file: defaults only.

    Environment variables (*env*, default ``os.environ``) override values
    from the file.

    Raises:
        ConfigError: If the file is not a mapping or validation fails.
    """
    config_path: Path | None = None

    if path is not None:
        config_path = Path(path).resolve()
        if not config_path.is_file():
            msg = f"Config file not found: {config_path}"
            raise FileNotFoundError(msg)
    elif auto_discover:
        config_path = find_config()

    data = _read_config_file(config_path) if config_path is not None else {}
    data = _apply_env(data, os.environ if env is None else env)

    try:
        return SandboxConfig(config_path=config_path, **data)
    except ValidationError as e:
        raise ConfigError(
            "Invalid configuration:\n" + "\n".join(_format_errors(e))
        ) from e
    except TypeError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e


def validate_config(data: Any) -> ConfigValidation:
    """Validate a raw configuration mapping without raising."""
    if not isinstance(data, Mapping):
        return ConfigValidation(
            success=False,
            errors=[f"Expected a mapping, got {type(data).__name__}"],
        )
    try:
        SandboxConfig(**data)
    except ValidationError as e:
        return ConfigValidation(success=False, errors=_format_errors(e))
    except TypeError as e:
        return ConfigValidation(success=False, errors=[str(e)])
    return ConfigValidation(success=True)


def _read_config_file(config_path: Path) -> dict[str, Any]:
    """Read and parse a YAML config file."""
    try:
        text = config_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigError(f"Cannot read {config_path}: {e}") from e
    try:
        data = yaml.safe_load(text) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {config_path}: {e}") from e

    if not isinstance(data, dict):
        msg = f"Expected a YAML mapping in {config_path}, got {type(data).__name__}"
        raise ConfigError(msg)
    return data


def _apply_env(data: dict[str, Any], env: Mapping[str, str]) -> dict[str, Any]:
    """Overlay environment variables onto the file data (non-mutating)."""
    merged: dict[str, Any] = {
        key: dict(value) if isinstance(value, dict) else value
        for key, value in data.items()
    }
    for var, (section, key) in ENV_OVERRIDES.items():
        value = env.get(var)
        if value is None or value == "":
            continue
        target = merged.setdefault(section, {})
        if not isinstance(target, dict):
            raise ConfigError(f"Config section '{section}' must be a mapping")
        target[key] = value
    return merged


def _format_errors(error: ValidationError) -> list[str]:
    return [
        f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}"
        for err in error.errors()
    ]
