"""
Sonos Player Client
SOAP/UPnP control of Sonos players (port 1400).

Transport and track info go through AVTransport, volume through
RenderingControl and favorites through ContentDirectory (see upnp_helper).
Sonos grouping is not supported by this client.
"""

import logging
from typing import List, Optional

from player_client import PlayerClient, validate_preset_id, validate_volume
from player_errors import (
    PlayerError,
    PlayerRequestError,
    PlayerValidationError,
    UnsupportedOperationError,
)
from player_models import DeviceFamily, PlaybackStatus, PresetEntry, find_preset
from sonos_favorites import FavoritesResolver
from upnp_helper import UPnPHelper, broadcast_metadata, parse_track_metadata, wrap_didl

logger = logging.getLogger(__name__)

# URIs that Sonos may refuse in SetAVTransportURI but accepts through the queue
QUEUE_FALLBACK_MARKERS = ("x-sonosapi", "x-rincon-mp3radio", "radio")

GROUPING_UNSUPPORTED = "Grouping is only supported for BluOS players"


class SonosClient(PlayerClient):
    """Control a Sonos player through its UPnP services."""

    family = DeviceFamily.SONOS

    def __init__(self, ip: str, port: int = None, timeout: float = None, radio_roots=None):
        """
        Initialize the client.

        Args:
            ip: IP address of the Sonos player
            port: UPnP port (default: settings.SONOS_PORT, 1400)
            timeout: HTTP timeout in seconds (default: settings.REQUEST_TIMEOUT)
            radio_roots: ContentDirectory containers searched for radio favorites
        """
        super().__init__(ip)
        self.upnp = UPnPHelper(ip, port=port, timeout=timeout)
        self.resolver = FavoritesResolver(self.upnp, radio_roots)
        # Lazily filled by load_favorites(), kept until refresh_favorites()
        self.favorites: Optional[List[PresetEntry]] = None

    # ── Favorites ──

    def load_favorites(self) -> List[PresetEntry]:
        if self.favorites is None:
            self.favorites = self.resolver.resolve()
        return self.favorites

    def refresh_favorites(self) -> None:
        """Drop the cached favorites so the next access browses again."""
        self.favorites = None

    def list_presets(self) -> List[PresetEntry]:
        return list(self.load_favorites())

    # ── Status ──

    def get_status(self) -> PlaybackStatus:
        """
        Get the playback status from three SOAP calls.

        Transport state, position info and volume are queried in that order.
        A failing call keeps whatever was already collected; if the transport
        state itself cannot be read the player is reported as stopped.
        """
        try:
            transport = self.upnp.call('AVTransport', 'GetTransportInfo', [('InstanceID', 0)])
        except PlayerError as e:
            logger.debug("GetTransportInfo failed on %s: %s", self.ip, e)
            return PlaybackStatus.stopped()

        state = transport.get('CurrentTransportState', '').lower() or 'stopped'

        try:
            position = self.upnp.call('AVTransport', 'GetPositionInfo', [('InstanceID', 0)])
        except PlayerError as e:
            logger.debug("GetPositionInfo failed on %s: %s", self.ip, e)
            return PlaybackStatus(state=state)

        song, artist, album = parse_track_metadata(position.get('TrackMetaData', ''))

        volume = 0
        try:
            result = self.upnp.call('RenderingControl', 'GetVolume', [
                ('InstanceID', 0),
                ('Channel', 'Master'),
            ])
            volume = int(result.get('CurrentVolume', '0') or 0)
        except (PlayerError, ValueError) as e:
            logger.debug("GetVolume failed on %s: %s", self.ip, e)

        return PlaybackStatus(state=state, song=song, artist=artist, album=album, volume=volume)

    # ── Playback dispatch ──

    def play_preset(self, preset_id: int) -> None:
        """
        Play a radio favorite.

        Sets the favorite as current transport URI and starts playback. When
        the player rejects the URI and it looks like a radio stream, the
        favorite is delivered through the queue instead.

        Raises:
            PlayerValidationError: unknown id, placeholder entry or missing URI
        """
        validate_preset_id(preset_id)
        favorite = find_preset(self.load_favorites(), preset_id)

        if favorite is None:
            raise PlayerValidationError(f"favorite {preset_id} not found")
        if favorite.is_info:
            raise PlayerValidationError("this is an info entry, not playable")
        if not favorite.url:
            raise PlayerValidationError("no URI available for this favorite")

        if favorite.metadata:
            metadata = wrap_didl(favorite.metadata)
        else:
            metadata = broadcast_metadata(favorite.name)

        try:
            self.upnp.call('AVTransport', 'SetAVTransportURI', [
                ('InstanceID', 0),
                ('CurrentURI', favorite.url),
                ('CurrentURIMetaData', metadata),
            ])
        except PlayerRequestError as e:
            if e.status_code is None or not self._needs_queue(favorite.url):
                raise
            logger.info("SetAVTransportURI rejected (%s), queueing %s instead", e.status_code, favorite.name)
            self._play_via_queue(favorite)
            return

        self.play()
        logger.info("Playing favorite %d (%s) on %s", preset_id, favorite.name, self.ip)

    @staticmethod
    def _needs_queue(uri: str) -> bool:
        uri = uri.lower()
        return any(marker in uri for marker in QUEUE_FALLBACK_MARKERS)

    def _queue_steps(self, favorite: PresetEntry):
        """(action, arguments, required) steps that put a stream into the queue."""
        return [
            ('RemoveAllTracksFromQueue', [('InstanceID', 0)], False),
            ('SetPlayMode', [('InstanceID', 0), ('NewPlayMode', 'NORMAL')], False),
            ('AddURIToQueue', [
                ('InstanceID', 0),
                ('EnqueuedURI', favorite.url),
                ('EnqueuedURIMetaData', broadcast_metadata(favorite.name)),
                ('DesiredFirstTrackNumberEnqueued', 1),
                ('EnqueueAsNext', 0),
            ], True),
            ('Seek', [('InstanceID', 0), ('Unit', 'TRACK_NR'), ('Target', 1)], False),
        ]

    def _play_via_queue(self, favorite: PresetEntry) -> None:
        for action, arguments, required in self._queue_steps(favorite):
            try:
                self.upnp.call('AVTransport', action, arguments)
            except PlayerError as e:
                if required:
                    raise PlayerRequestError(
                        f"failed to add radio to queue: {e}",
                        status_code=getattr(e, 'status_code', None),
                        endpoint=f"AVTransport#{action}",
                    ) from e
                logger.warning("%s failed on %s, continuing: %s", action, self.ip, e)
        self.play()

    # ── Transport ──

    def play(self) -> None:
        self.upnp.call('AVTransport', 'Play', [('InstanceID', 0), ('Speed', 1)])

    def pause(self) -> None:
        self.upnp.call('AVTransport', 'Pause', [('InstanceID', 0)])

    def stop(self) -> None:
        self.upnp.call('AVTransport', 'Stop', [('InstanceID', 0)])

    def set_volume(self, level: int) -> None:
        validate_volume(level)
        self.upnp.call('RenderingControl', 'SetVolume', [
            ('InstanceID', 0),
            ('Channel', 'Master'),
            ('DesiredVolume', level),
        ])

    def next(self) -> None:
        self.upnp.call('AVTransport', 'Next', [('InstanceID', 0)])

    def previous(self) -> None:
        self.upnp.call('AVTransport', 'Previous', [('InstanceID', 0)])

    # ── Grouping (not available for Sonos) ──

    def add_slave(self, slave_ip: str) -> None:
        raise UnsupportedOperationError(GROUPING_UNSUPPORTED)

    def remove_slave(self, slave_ip: str) -> None:
        raise UnsupportedOperationError(GROUPING_UNSUPPORTED)

    def remove_all_slaves(self) -> None:
        raise UnsupportedOperationError(GROUPING_UNSUPPORTED)

    def leave_group(self) -> None:
        raise UnsupportedOperationError(GROUPING_UNSUPPORTED)

    # ── Diagnostics ──

    def _service_ok(self, service: str, action: str, arguments) -> bool:
        try:
            self.upnp.call(service, action, arguments)
            return True
        except PlayerError:
            return False

    def diagnose(self) -> str:
        if not self.upnp.is_reachable():
            return f"Sonos Debug: Device not reachable at {self.upnp.base_url}"

        checks = [
            ('AVTransport', 'GetTransportInfo', [('InstanceID', 0)]),
            ('RenderingControl', 'GetVolume', [('InstanceID', 0), ('Channel', 'Master')]),
            ('ContentDirectory', 'Browse', [
                ('ObjectID', '0'),
                ('BrowseFlag', 'BrowseMetadata'),
                ('Filter', '*'),
                ('StartingIndex', 0),
                ('RequestedCount', 1),
                ('SortCriteria', ''),
            ]),
        ]
        results = []
        for service, action, arguments in checks:
            status = "OK" if self._service_ok(service, action, arguments) else "FAILED"
            results.append(f"{service}: {status}")

        self.refresh_favorites()
        favorites = [f for f in self.load_favorites() if not f.is_info]
        results.append(f"Radio Favorites: {len(favorites)} found")

        return f"Sonos Debug: {' | '.join(results)}"
