"""Configuration — settings, TOML discovery and logging setup."""

from waitchain.config.logging import configure_logging
from waitchain.config.settings import WaitSettings

__all__ = ["WaitSettings", "configure_logging"]
