"""Configuration loading and validation."""

from __future__ import annotations

import os
import re
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, ValidationError

from .exceptions import ConfigError

DEFAULT_CONFIG_PATH = "~/.camera-relay/config.yaml"


class ServerConfig(BaseModel):
    host: str = "0.0.0.0"
    port: int = 3000


class ScanConfig(BaseModel):
    port: int = 554  # RTSP
    timeout_seconds: float = 0.5  # Per-host connect timeout


class RelayConfig(BaseModel):
    binary: str = "mediamtx"
    config_path: str = "mediamtx.yml"  # Read by the relay at its own startup
    default_credentials: str = "admin:admin"  # Used only if no source URL has any

    def command(self) -> list[str]:
        """Argv used to launch the relay against its config file."""
        return [self.binary, str(Path(self.config_path).expanduser())]


class CameraRelayConfig(BaseModel):
    server: ServerConfig = Field(default_factory=ServerConfig)
    scan: ScanConfig = Field(default_factory=ScanConfig)
    relay: RelayConfig = Field(default_factory=RelayConfig)


def _interpolate_env_vars(text: str) -> str:
    """Replace ${VAR_NAME} with environment variable values."""

    def replacer(match: re.Match) -> str:
        var_name = match.group(1)
        return os.environ.get(var_name, "")

    return re.sub(r"\$\{(\w+)\}", replacer, text)


def _config_from_env() -> CameraRelayConfig:
    """Build config from environment variables, falling back to defaults."""
    config = CameraRelayConfig()
    if os.environ.get("CAMERA_RELAY_HOST"):
        config.server.host = os.environ["CAMERA_RELAY_HOST"]
    if os.environ.get("CAMERA_RELAY_PORT"):
        try:
            config.server.port = int(os.environ["CAMERA_RELAY_PORT"])
        except ValueError as e:
            raise ConfigError(f"CAMERA_RELAY_PORT must be an integer: {e}") from e
    if os.environ.get("RELAY_BINARY"):
        config.relay.binary = os.environ["RELAY_BINARY"]
    if os.environ.get("RELAY_CONFIG"):
        config.relay.config_path = os.environ["RELAY_CONFIG"]
    return config


def load_config(path: str | Path | None = None) -> CameraRelayConfig:
    """Load config from YAML file, env vars, or defaults.

    Priority: config.yaml (with ${ENV} interpolation) > env vars > defaults.
    """
    path = Path(path or DEFAULT_CONFIG_PATH).expanduser()

    if not path.exists():
        return _config_from_env()

    try:
        raw_text = path.read_text()
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(_interpolate_env_vars(raw_text))
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        return CameraRelayConfig()
    if not isinstance(data, dict):
        raise ConfigError(f"{path} must contain a mapping at the top level")

    try:
        return CameraRelayConfig(**data)
    except ValidationError as e:
        raise ConfigError(f"Invalid config in {path}: {e}") from e


def save_config(config: CameraRelayConfig, path: str | Path | None = None) -> Path:
    """Save config to YAML file."""
    path = Path(path or DEFAULT_CONFIG_PATH).expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        yaml.dump(config.model_dump(), default_flow_style=False, sort_keys=False)
    )
    return path
