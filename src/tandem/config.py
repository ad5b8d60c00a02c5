"""Host configuration — model selection, peer command, timeouts.

Settings come from an optional YAML file; CLI flags override individual
values.  Environment variables in the form ``${VAR}`` or ``$VAR`` are
expanded before parsing.

Example YAML::

    peer_command: ["python", "-m", "tandem", "serve", "--data", "users.json"]
    request_timeout: 300
    auto_approve: false
    model:
      model: gemini/gemini-2.0-flash
      api_key: ${GEMINI_API_KEY}
    telemetry:
      enabled: true
      otlp_endpoint: http://localhost:4317
"""

from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError

DEFAULT_MODEL = "gemini/gemini-2.0-flash"


class SettingsError(Exception):
    """Raised when a settings file cannot be read or fails validation."""


class ModelConfig(BaseModel):
    """Configuration for a specific model/provider combination.

    The ``model`` field uses LiteLLM's naming convention:
    ``provider/model_name`` (e.g. ``gemini/gemini-2.0-flash``).
    """

    model: str = DEFAULT_MODEL
    api_key: str | None = None
    api_base: str | None = None
    extra: dict[str, Any] = Field(default_factory=lambda: dict[str, Any]())

    @property
    def provider(self) -> str:
        """Extract the provider prefix from the model string."""
        if "/" in self.model:
            return self.model.split("/", 1)[0]
        return "openai"


class TelemetrySettings(BaseModel):
    """Optional telemetry configuration."""

    enabled: bool = False
    export_to_console: bool = False
    otlp_endpoint: str | None = None


def default_peer_command() -> list[str]:
    """Run the bundled peer with the current interpreter."""
    return [sys.executable, "-m", "tandem", "serve"]


class HostSettings(BaseModel):
    """Everything ``tandem host`` needs to start."""

    peer_command: list[str] = Field(default_factory=default_peer_command)
    request_timeout: float | None = Field(
        default=300.0,
        description="Seconds to wait for any response; null waits forever.",
    )
    approval_timeout: float = Field(
        default=300.0,
        description="Seconds to wait for the operator before declining a sampling request.",
    )
    auto_approve: bool = False
    max_query_steps: int = Field(default=5, ge=1)
    model: ModelConfig = Field(default_factory=ModelConfig)
    telemetry: TelemetrySettings = Field(default_factory=TelemetrySettings)


def load_settings(path: Path | None) -> HostSettings:
    """Read YAML, interpolate env vars, and validate.

    Raises:
        SettingsError: On read errors, YAML parse errors, or schema failures.
    """
    if path is None:
        return HostSettings()

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise SettingsError(f"Cannot read {path}: {exc}") from exc

    expanded = os.path.expandvars(raw)

    try:
        data: Any = yaml.safe_load(expanded)
    except yaml.YAMLError as exc:
        raise SettingsError(f"YAML parse error: {exc}") from exc

    if data is None:
        return HostSettings()
    if not isinstance(data, dict):
        raise SettingsError("Settings YAML must be a mapping")

    try:
        return HostSettings.model_validate(data)
    except ValidationError as exc:
        raise SettingsError(str(exc)) from exc
