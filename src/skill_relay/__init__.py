"""Skill Relay: voice-assistant to camera-backend command relay."""

__version__ = "1.0.0"

from .exceptions import (
    ConfigError,
    ForwardError,
    InvalidInput,
    RelayError,
    Unauthorized,
)

__all__ = [
    "__version__",
    "RelayError",
    "InvalidInput",
    "ForwardError",
    "Unauthorized",
    "ConfigError",
]
