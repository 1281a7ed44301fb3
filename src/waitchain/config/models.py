"""Pydantic configuration models with code-baked defaults.

Sparse TOML contract: defaults baked here, waitchain.toml only contains overrides.
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class ObserverConfig(BaseModel):
    """[observer] section."""

    model_config = {"frozen": True}

    coalesce_delay_ms: float = Field(default=0, ge=0)
    teardown_delay_ms: float = Field(default=0, ge=0)


class TelemetryConfig(BaseModel):
    """[telemetry] section."""

    model_config = {"frozen": True}

    enabled: bool = False
    max_completed: int = Field(default=100, ge=1)


class LoggingConfig(BaseModel):
    """[logging] section.

    ``configure`` makes ``WaitEngine`` install the structlog handler itself;
    leave it off when the host application owns logging setup.
    """

    model_config = {"frozen": True}

    configure: bool = False
    verbose: bool = False
    json_output: bool = False
    propagate: bool = True


class PluginsConfig(BaseModel):
    """[plugins] section."""

    model_config = {"frozen": True}

    discover: bool = True
