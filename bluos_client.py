"""
BluOS Player Client
REST/XML control of BluOS players (Bluesound, NAD, ...).

BluOS HTTP API (port 11000, every call is a GET, XML responses):
  /SyncStatus                        - identity (name, brand, model attributes)
  /Presets                           - <presets><preset id name url image/></presets>
  /Status                            - <status><state/><song/><artist/><album/><volume/></status>
  /Preset?id=N                       - play preset N
  /Play  /Pause  /Stop  /Skip  /Back - transport
  /Volume?level=N                    - volume 0-100
  /AddSlave?slave=IP  /RemoveSlave?slave=IP  /RemoveAllSlaves  /LeaveGroup
"""

import logging
import xml.etree.ElementTree as ET
from typing import Dict, List, Optional

import requests

from player_client import PlayerClient, validate_preset_id, validate_volume
from player_config import settings
from player_errors import PlayerError, PlayerParseError, PlayerRequestError
from player_models import DeviceFamily, PlaybackStatus, PresetEntry

logger = logging.getLogger(__name__)


class BluOSClient(PlayerClient):
    """Control a BluOS player over its HTTP API."""

    family = DeviceFamily.BLUOS

    DIAGNOSTIC_ENDPOINTS = ["/Status", "/SyncStatus", "/Presets", "/RemoveSlave", "/AddSlave", "/Slaves"]
    STANDALONE_ENDPOINTS = ["/Standalone", "/Reset", "/ClearSlaves"]

    def __init__(self, ip: str, port: int = None, timeout: float = None):
        """
        Initialize the client.

        Args:
            ip: IP address of the BluOS player
            port: Port (default: settings.BLUOS_PORT, 11000)
            timeout: HTTP timeout in seconds (default: settings.REQUEST_TIMEOUT)
        """
        super().__init__(ip)
        self.port = port or settings.BLUOS_PORT
        self.base_url = f"http://{ip}:{self.port}"
        self.timeout = timeout or settings.REQUEST_TIMEOUT

    def _request(self, endpoint: str, params: Optional[Dict] = None) -> bytes:
        """
        GET an endpoint and return the raw body.

        Raises:
            PlayerRequestError: on transport errors and non-200 replies
        """
        url = f"{self.base_url}{endpoint}"
        try:
            response = requests.get(url, params=params, timeout=self.timeout)
        except requests.RequestException as e:
            raise PlayerRequestError(f"request failed: {e}", endpoint=endpoint) from e

        if response.status_code != 200:
            raise PlayerRequestError(
                f"API returned status {response.status_code}",
                status_code=response.status_code,
                endpoint=endpoint,
            )
        return response.content

    def _request_xml(self, endpoint: str, params: Optional[Dict] = None) -> ET.Element:
        body = self._request(endpoint, params)
        try:
            return ET.fromstring(body)
        except ET.ParseError as e:
            raise PlayerParseError(f"failed to parse {endpoint} XML: {e}") from e

    def list_presets(self) -> List[PresetEntry]:
        """Get the presets stored on the player, in device order."""
        root = self._request_xml("/Presets")
        if root.tag != 'presets':
            raise PlayerParseError(f"expected <presets> document, got <{root.tag}>")

        presets = []
        for item in root.findall('preset'):
            try:
                preset_id = int(item.get('id', ''))
            except ValueError:
                raise PlayerParseError(f"invalid preset id: {item.get('id')!r}")
            presets.append(PresetEntry(
                preset_id=preset_id,
                name=item.get('name', ''),
                url=item.get('url', ''),
                image=item.get('image', ''),
            ))
        return presets

    def get_status(self) -> PlaybackStatus:
        """Get the current playback status from /Status."""
        return PlaybackStatus(self._request_xml("/Status"))

    def play_preset(self, preset_id: int) -> None:
        validate_preset_id(preset_id)
        self._request("/Preset", {'id': preset_id})
        logger.info("Playing preset %d on %s", preset_id, self.ip)

    def play(self) -> None:
        self._request("/Play")

    def pause(self) -> None:
        self._request("/Pause")

    def stop(self) -> None:
        self._request("/Stop")

    def set_volume(self, level: int) -> None:
        """
        Set volume level.

        Args:
            level: Volume level 0-100

        Raises:
            PlayerValidationError: level outside 0-100 (nothing is sent)
        """
        validate_volume(level)
        self._request("/Volume", {'level': level})

    def next(self) -> None:
        self._request("/Skip")

    def previous(self) -> None:
        self._request("/Back")

    def add_slave(self, slave_ip: str) -> None:
        self._request("/AddSlave", {'slave': slave_ip})
        logger.info("Added %s as slave of %s", slave_ip, self.ip)

    def remove_slave(self, slave_ip: str) -> None:
        self._request("/RemoveSlave", {'slave': slave_ip})

    def remove_all_slaves(self) -> None:
        self._request("/RemoveAllSlaves")

    def leave_group(self) -> None:
        self._request("/LeaveGroup")

    def reset_standalone(self) -> bool:
        """
        Try the alternate standalone/reset endpoints in order.

        Not every firmware knows these, so the first endpoint that answers
        with 200 wins and the rest are skipped.

        Returns:
            True if one of the endpoints succeeded
        """
        for endpoint in self.STANDALONE_ENDPOINTS:
            try:
                self._request(endpoint)
                return True
            except PlayerRequestError as e:
                logger.debug("%s on %s failed: %s", endpoint, self.ip, e)
        return False

    def diagnose(self) -> str:
        results = []
        for endpoint in self.DIAGNOSTIC_ENDPOINTS:
            try:
                self._request(endpoint)
                results.append(f"{endpoint}: OK")
            except PlayerError:
                results.append(f"{endpoint}: FAILED")
        return f"BluOS API Test: {' | '.join(results)}"
