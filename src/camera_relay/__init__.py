"""camera-relay: find RTSP cameras on the LAN and feed one to a relay."""

__version__ = "0.3.0"

from .exceptions import (
    CameraRelayError,
    ConfigError,
    ConfigFormatError,
    ConfigIOError,
    InvalidAddressError,
    RelayError,
    RelaySpawnError,
    SourceConfigError,
)

__all__ = [
    "__version__",
    "CameraRelayError",
    "ConfigError",
    "SourceConfigError",
    "ConfigIOError",
    "ConfigFormatError",
    "InvalidAddressError",
    "RelayError",
    "RelaySpawnError",
]
