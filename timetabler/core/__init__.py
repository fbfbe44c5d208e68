"""Configuration, logging and database plumbing."""

from .config import EngineConfig, Settings, settings
from .logging import setup_logging

__all__ = [
    "EngineConfig",
    "Settings",
    "settings",
    "setup_logging",
]
