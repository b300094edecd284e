"""Custom exception hierarchy for camera-relay.

All camera-relay exceptions inherit from CameraRelayError, allowing callers
to catch broad or specific errors:

    try:
        apply_source_address("mediamtx.yml", "192.168.1.50")
    except ConfigFormatError as e:
        print(f"Relay config has no source line: {e}")
    except CameraRelayError as e:
        print(f"camera-relay error: {e}")
"""

from __future__ import annotations


class CameraRelayError(Exception):
    """Base exception for all camera-relay errors."""


class ConfigError(CameraRelayError):
    """Raised when the camera-relay settings file is invalid."""


class SourceConfigError(CameraRelayError):
    """Raised when the relay config document cannot be updated."""


class ConfigIOError(SourceConfigError):
    """Raised when the relay config file cannot be read or written."""


class ConfigFormatError(SourceConfigError):
    """Raised when the relay config has no ``source:`` line to rewrite."""


class InvalidAddressError(CameraRelayError, ValueError):
    """Raised when a camera address is not a valid IPv4 address."""


class RelayError(CameraRelayError):
    """Raised when the relay process cannot be managed."""


class RelaySpawnError(RelayError):
    """Raised when the relay binary cannot be started."""
