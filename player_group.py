"""
Multi-room grouping for BluOS players.

Players are addressed by their 1-based position in the latest discovery
result. Only BluOS players can be grouped.
"""

import logging
from typing import Callable, List, Tuple

from player_client import PlayerClient, create_client
from player_errors import (
    PlayerError,
    PlayerRequestError,
    PlayerValidationError,
    UnsupportedOperationError,
)
from player_models import DeviceFamily, DiscoveredDevice

logger = logging.getLogger(__name__)


def parse_group_spec(spec: str) -> Tuple[int, int]:
    """
    Parse a "master+slave" group specification, e.g. "1+2".

    Returns:
        (master_ordinal, slave_ordinal)
    """
    parts = spec.strip().split('+')
    if len(parts) != 2:
        raise PlayerValidationError(f"invalid group format: {spec!r} (expected e.g. 1+2)")
    try:
        return int(parts[0]), int(parts[1])
    except ValueError:
        raise PlayerValidationError(f"invalid group format: {spec!r} (expected e.g. 1+2)")


class PlayerGroupManager:
    """Helper class for managing master/slave groups of BluOS players."""

    def __init__(self, devices: List[DiscoveredDevice],
                 client_factory: Callable[[DiscoveredDevice], PlayerClient] = create_client):
        """
        Initialize group manager.

        Args:
            devices: Latest discovery result; ordinals refer to this list
            client_factory: Builds the client used to talk to a device
        """
        self.devices = devices
        self.client_factory = client_factory

    def _device(self, ordinal: int) -> DiscoveredDevice:
        if not 1 <= ordinal <= len(self.devices):
            raise PlayerValidationError(f"player {ordinal} does not exist (1-{len(self.devices)})")
        return self.devices[ordinal - 1]

    def combinations(self) -> List[Tuple[int, int]]:
        """All (master, slave) ordinal pairs that could be grouped."""
        pairs = []
        for i, master in enumerate(self.devices, 1):
            for j, slave in enumerate(self.devices, 1):
                if i != j and master.family is DeviceFamily.BLUOS and slave.family is DeviceFamily.BLUOS:
                    pairs.append((i, j))
        return pairs

    def create_group(self, master_ordinal: int, slave_ordinal: int) -> DiscoveredDevice:
        """
        Make one player the slave of another.

        Args:
            master_ordinal: Position of the master in the device list
            slave_ordinal: Position of the slave in the device list

        Returns:
            The master device (callers usually switch to it)
        """
        if master_ordinal == slave_ordinal:
            raise PlayerValidationError("a player cannot be grouped with itself")

        master = self._device(master_ordinal)
        slave = self._device(slave_ordinal)

        if master.family is not DeviceFamily.BLUOS or slave.family is not DeviceFamily.BLUOS:
            raise UnsupportedOperationError("Grouping only supported for BluOS devices")

        self.client_factory(master).add_slave(slave.address)
        logger.info("Grouped %s (master) with %s", master.name, slave.name)
        return master

    def ungroup_all(self, current: DiscoveredDevice) -> int:
        """
        Best-effort dissolution of every group involving the known players.

        For each other BluOS player the current player removes it as slave and
        it removes the current player as slave; afterwards every BluOS player
        gets the alternate standalone/reset endpoints. The protocol offers no
        way to confirm standalone state, so any successful call counts.

        Returns:
            Number of successful calls

        Raises:
            UnsupportedOperationError: current player is not a BluOS player
            PlayerRequestError: not a single call succeeded
        """
        if current.family is not DeviceFamily.BLUOS:
            raise UnsupportedOperationError("Ungrouping only supported for BluOS devices")

        success_count = 0
        current_client = self.client_factory(current)

        for peer in self.devices:
            if peer == current or peer.family is not DeviceFamily.BLUOS:
                continue
            peer_client = self.client_factory(peer)
            for client, slave_ip in ((current_client, peer.address), (peer_client, current.address)):
                try:
                    client.remove_slave(slave_ip)
                    success_count += 1
                except PlayerError as e:
                    logger.debug("RemoveSlave %s on %s failed: %s", slave_ip, client.ip, e)

        for device in self.devices:
            if device.family is not DeviceFamily.BLUOS:
                continue
            client = current_client if device == current else self.client_factory(device)
            if client.reset_standalone():
                success_count += 1

        if not success_count:
            raise PlayerRequestError("ungrouping failed (RemoveSlave approach failed)")

        logger.info("Ungrouped players (%d successful calls)", success_count)
        return success_count
