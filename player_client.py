"""
Device client contract shared by the BluOS (REST) and Sonos (SOAP) clients.

Every operation either returns its result or raises a PlayerError subclass.
Clients are bound to one address and one DeviceFamily for their whole life.
"""

from abc import ABC, abstractmethod
from typing import List

from player_errors import PlayerValidationError
from player_models import DeviceFamily, DiscoveredDevice, PlaybackStatus, PresetEntry


def validate_volume(level) -> int:
    """Return level as int if it is a valid 0-100 volume, raise otherwise."""
    if isinstance(level, bool) or not isinstance(level, int):
        raise PlayerValidationError(f"volume must be an integer, got {level!r}")
    if not 0 <= level <= 100:
        raise PlayerValidationError("volume must be between 0 and 100")
    return level


def validate_preset_id(preset_id) -> int:
    if isinstance(preset_id, bool) or not isinstance(preset_id, int) or preset_id < 1:
        raise PlayerValidationError(f"invalid preset id: {preset_id!r}")
    return preset_id


class PlayerClient(ABC):
    """Uniform control surface over one networked player."""

    family: DeviceFamily

    def __init__(self, ip: str):
        self.ip = ip

    @abstractmethod
    def list_presets(self) -> List[PresetEntry]:
        """Presets (BluOS) or radio favorites (Sonos), ordinals starting at 1."""

    @abstractmethod
    def get_status(self) -> PlaybackStatus:
        """Current transport state, track and volume."""

    @abstractmethod
    def play_preset(self, preset_id: int) -> None:
        """Start playback of the preset with the given ordinal."""

    @abstractmethod
    def play(self) -> None:
        """Start or resume playback."""

    @abstractmethod
    def pause(self) -> None:
        """Pause playback."""

    @abstractmethod
    def stop(self) -> None:
        """Stop playback."""

    @abstractmethod
    def set_volume(self, level: int) -> None:
        """Set volume (0-100). Out-of-range values never reach the device."""

    @abstractmethod
    def next(self) -> None:
        """Skip to the next track."""

    @abstractmethod
    def previous(self) -> None:
        """Go back to the previous track."""

    @abstractmethod
    def add_slave(self, slave_ip: str) -> None:
        """Add another player as slave of this one."""

    @abstractmethod
    def remove_slave(self, slave_ip: str) -> None:
        """Remove a slave from this player's group."""

    @abstractmethod
    def remove_all_slaves(self) -> None:
        """Dissolve this player's group."""

    @abstractmethod
    def leave_group(self) -> None:
        """Leave the group this player is a slave of."""

    @abstractmethod
    def diagnose(self) -> str:
        """One-line summary of which device endpoints respond."""

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.ip})"


def create_client(device: DiscoveredDevice, timeout: float = None) -> PlayerClient:
    """Build the client matching the family detected at discovery time."""
    # Imported here: both client modules import this one for the contract
    from bluos_client import BluOSClient
    from sonos_client import SonosClient

    if device.family is DeviceFamily.BLUOS:
        return BluOSClient(device.address, timeout=timeout)
    if device.family is DeviceFamily.SONOS:
        return SonosClient(device.address, timeout=timeout)
    raise PlayerValidationError(f"unsupported device family: {device.family!r}")
