"""Configuration loading and validation."""

from __future__ import annotations

import os
import re
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, ValidationError

from .exceptions import ConfigError

DEFAULT_CONFIG_PATH = "~/.skill-relay/config.yaml"


class ServerConfig(BaseModel):
    host: str = "0.0.0.0"
    port: int = Field(default=3000, ge=1, le=65535)


class AuthConfig(BaseModel):
    api_key: str = ""  # Shared secret expected in X-API-Key (empty = protected routes closed)


class BackendConfig(BaseModel):
    default_url: str = "http://localhost:5000"
    default_client_id: str = "default"
    forward_timeout_seconds: float = Field(default=5.0, gt=0)


class SweeperConfig(BaseModel):
    interval_seconds: float = Field(default=60.0, gt=0)
    stale_after_seconds: float = Field(default=300.0, gt=0)  # 5 minutes


class LoggingConfig(BaseModel):
    level: str = "INFO"
    file: str = ""  # Optional rotating log file path


class RelayConfig(BaseModel):
    server: ServerConfig = Field(default_factory=ServerConfig)
    auth: AuthConfig = Field(default_factory=AuthConfig)
    backend: BackendConfig = Field(default_factory=BackendConfig)
    sweeper: SweeperConfig = Field(default_factory=SweeperConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def _interpolate_env_vars(text: str) -> str:
    """Replace ${VAR_NAME} with environment variable values."""

    def replacer(match: re.Match) -> str:
        var_name = match.group(1)
        return os.environ.get(var_name, "")

    return re.sub(r"\$\{(\w+)\}", replacer, text)


def _config_from_env() -> RelayConfig:
    """Build config from environment variables (for Docker/cloud deployment).

    Falls back to sane defaults when env vars are not set.
    """
    try:
        return RelayConfig(
            server=ServerConfig(
                host=os.environ.get("HOST", "0.0.0.0"),
                port=int(os.environ.get("PORT", "3000")),
            ),
            auth=AuthConfig(api_key=os.environ.get("API_KEY", "")),
            backend=BackendConfig(
                default_url=os.environ.get(
                    "DEFAULT_RASPBERRY_PI_URL", "http://localhost:5000"
                ),
                forward_timeout_seconds=float(
                    os.environ.get("FORWARD_TIMEOUT_SECONDS", "5")
                ),
            ),
            logging=LoggingConfig(level=os.environ.get("LOG_LEVEL", "INFO")),
        )
    except (ValueError, ValidationError) as e:
        raise ConfigError(f"Invalid environment configuration: {e}") from e


def _resolve_path(path: str | Path | None) -> Path:
    if path is None:
        return Path(DEFAULT_CONFIG_PATH).expanduser()
    return Path(path).expanduser()


def load_config(path: str | Path | None = None) -> RelayConfig:
    """Load config from YAML file, env vars, or defaults.

    Priority: config.yaml (with ${ENV} interpolation) > env vars > defaults.
    """
    path = _resolve_path(path)

    if not path.exists():
        return _config_from_env()

    try:
        raw_text = path.read_text()
        data = yaml.safe_load(_interpolate_env_vars(raw_text))
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Could not read config file {path}: {e}") from e

    if data is None:
        return _config_from_env()
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping")
    try:
        return RelayConfig(**data)
    except ValidationError as e:
        raise ConfigError(f"Invalid config file {path}: {e}") from e


def save_config(config: RelayConfig, path: str | Path | None = None) -> Path:
    """Save config to YAML file."""
    path = _resolve_path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    data = config.model_dump()
    path.write_text(yaml.dump(data, default_flow_style=False, sort_keys=False))
    return path


def mask_secret(value: str) -> str:
    """Short preview of a secret, safe for terminal output and logs."""
    if not value:
        return ""
    if len(value) <= 10:
        return "*" * len(value)
    return f"{value[:6]}...{value[-4:]}"
