"""
Controlling session: the discovered players, the active output and its client.

Command surfaces (CLI, HTTP API) hold one PlayerSession and call into it
instead of sharing process-wide state.
"""

import logging
from typing import Callable, List, Optional, Tuple

from player_client import PlayerClient, create_client
from player_discovery import PlayerDiscovery
from player_errors import PlayerValidationError
from player_group import PlayerGroupManager, parse_group_spec
from player_models import DiscoveredDevice, PlaybackStatus, PresetEntry

logger = logging.getLogger(__name__)


class PlayerSession:
    """One user's view of the network: device list plus the selected player."""

    def __init__(self, devices: List[DiscoveredDevice], selected: int = 1,
                 client_factory: Callable[[DiscoveredDevice], PlayerClient] = create_client):
        """
        Args:
            devices: Discovery result (ordinals are 1-based positions in this list)
            selected: Ordinal of the initially active player
            client_factory: Builds a client for a device (replaceable in tests)
        """
        if not devices:
            raise PlayerValidationError("a session needs at least one player")
        self.devices = list(devices)
        self.client_factory = client_factory
        self.device: Optional[DiscoveredDevice] = None
        self.client: Optional[PlayerClient] = None
        self.select(selected)

    @classmethod
    def discover(cls, scanner: Optional[PlayerDiscovery] = None, **kwargs) -> "PlayerSession":
        """Run a discovery scan and start a session on the first player found."""
        scanner = scanner or PlayerDiscovery()
        return cls(scanner.scan(), **kwargs)

    @property
    def groups(self) -> PlayerGroupManager:
        return PlayerGroupManager(self.devices, self.client_factory)

    def select(self, ordinal: int) -> PlayerClient:
        """Switch the active output to another discovered player."""
        if not 1 <= ordinal <= len(self.devices):
            raise PlayerValidationError(f"invalid player id: {ordinal}")
        self.device = self.devices[ordinal - 1]
        self.client = self.client_factory(self.device)
        logger.info("Switched to %s (%s) [%s]", self.device.name, self.device.address, self.device.family.label)
        return self.client

    def _select_device(self, device: DiscoveredDevice) -> None:
        self.select(self.devices.index(device) + 1)

    @property
    def selected_ordinal(self) -> int:
        return self.devices.index(self.device) + 1

    def status(self) -> PlaybackStatus:
        return self.client.get_status()

    def presets(self) -> List[PresetEntry]:
        return self.client.list_presets()

    def refresh_presets(self) -> List[PresetEntry]:
        """Reload presets, discarding any cached Sonos favorites first."""
        refresh = getattr(self.client, 'refresh_favorites', None)
        if refresh is not None:
            refresh()
        return self.client.list_presets()

    def play_preset(self, preset_id: int) -> None:
        self.client.play_preset(preset_id)

    def group(self, spec: str) -> DiscoveredDevice:
        """Group two players ("master+slave") and make the master the active output."""
        master_ordinal, slave_ordinal = parse_group_spec(spec)
        master = self.groups.create_group(master_ordinal, slave_ordinal)
        self._select_device(master)
        return master

    def ungroup(self) -> int:
        return self.groups.ungroup_all(self.device)

    def group_combinations(self) -> List[Tuple[int, int]]:
        return self.groups.combinations()

    def diagnose(self) -> str:
        return self.client.diagnose()
