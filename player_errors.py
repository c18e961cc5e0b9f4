"""
Error types shared by discovery, the device clients and the command surfaces.
"""

from typing import Optional


class PlayerError(Exception):
    """Base class for all StreamPlayer errors."""


class DiscoveryError(PlayerError):
    """Network discovery could not produce a usable device list."""


class NoInterfacesError(DiscoveryError):
    """No IPv4 interface worth scanning (or interfaces could not be listed)."""


class NoDevicesError(DiscoveryError):
    """A full scan completed without finding a single player."""


class PlayerRequestError(PlayerError):
    """A device request failed: timeout, refused connection or non-200 reply."""

    def __init__(self, message: str, status_code: Optional[int] = None, endpoint: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.endpoint = endpoint


class PlayerParseError(PlayerError):
    """The device answered, but the XML or SOAP payload could not be read."""


class PlayerValidationError(PlayerError, ValueError):
    """Bad input rejected before anything was sent to a device."""


class UnsupportedOperationError(PlayerError):
    """The device family does not offer this operation."""
