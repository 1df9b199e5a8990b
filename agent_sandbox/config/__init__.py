"""Configuration module for agent-sandbox."""

from .logging import configure_logging, get_logger
from .settings import Settings, get_settings, settings

__all__ = ["settings", "Settings", "get_settings", "configure_logging", "get_logger"]
