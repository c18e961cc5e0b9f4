"""
Sonos radio favorites.

Browses a fixed list of ContentDirectory containers that may hold radio
stations, keeps the items that look like radio streams, removes duplicates
and numbers the survivors 1..N. When nothing is found two informational
placeholder entries are returned instead of an empty list.
"""

import logging
from typing import Iterable, List, Optional

from player_config import settings
from player_errors import PlayerError
from player_models import INFO_MARKER, PresetEntry
from upnp_helper import UPnPHelper, parse_didl_items

logger = logging.getLogger(__name__)

# Container id -> description, browsed in settings.RADIO_ROOTS order
ROOT_NAMES = {
    "R:0/0": "Sonos Radio",
    "R:0/1": "Radio Stations",
    "FV:2": "Favorites",
    "A:RADIO": "Radio",
    "SQ:": "Sonos Playlists",
}

RADIO_URI_PREFIXES = (
    "x-sonosapi-stream:",
    "x-sonosapi-radio:",
    "x-rincon-mp3radio:",
    "http://",
    "https://",
    "mms://",
    "rtsp://",
    "x-sonos-http:",
)

RADIO_CLASS_MARKERS = (
    "object.item.audioItem.audioBroadcast",
    "object.item.audioItem.radio",
    "radioBroadcast",
)

RADIO_NAME_KEYWORDS = ("radio", "fm", "am", "stream", "live")

INFO_ENTRIES = (
    f"{INFO_MARKER} No Sonos Radio favorites found",
    f"{INFO_MARKER} Add radio stations in the Sonos app",
)


def is_radio_station(name: str, uri: str, metadata: str = "") -> bool:
    """
    Decide whether a browsed item is a radio station.

    Checked in order: stream URI scheme, DIDL class marker, station-like name.
    """
    if uri.startswith(RADIO_URI_PREFIXES):
        return True

    if any(marker in metadata for marker in RADIO_CLASS_MARKERS):
        return True

    name_lower = name.lower()
    return any(keyword in name_lower for keyword in RADIO_NAME_KEYWORDS)


def info_entries() -> List[PresetEntry]:
    return [PresetEntry(preset_id=i, name=name) for i, name in enumerate(INFO_ENTRIES, 1)]


class FavoritesResolver:
    """Collects radio favorites from a Sonos player's ContentDirectory."""

    def __init__(self, upnp: UPnPHelper, roots: Optional[Iterable[str]] = None):
        self.upnp = upnp
        self.roots = list(roots) if roots is not None else list(settings.RADIO_ROOTS)

    def browse_root(self, object_id: str) -> List[dict]:
        """Items of one container; a failing browse counts as an empty container."""
        try:
            didl = self.upnp.browse(object_id)
        except PlayerError as e:
            logger.debug("Browse of %s (%s) failed: %s", object_id, ROOT_NAMES.get(object_id, "?"), e)
            return []
        return parse_didl_items(didl)

    def resolve(self) -> List[PresetEntry]:
        """
        Browse every root and build the favorites list.

        Returns:
            Radio favorites numbered 1..N, or the informational placeholders
            when no root produced a single radio station
        """
        favorites = []
        seen = set()

        for object_id in self.roots:
            for item in self.browse_root(object_id):
                if not is_radio_station(item['title'], item['uri'], item['meta']):
                    continue
                key = (item['title'], item['uri'])
                if key in seen:
                    continue
                seen.add(key)
                favorites.append(item)

        if not favorites:
            logger.info("No radio favorites found on %s", self.upnp.device_ip)
            return info_entries()

        logger.info("Found %d radio favorites on %s", len(favorites), self.upnp.device_ip)
        return [
            PresetEntry(preset_id=i, name=item['title'], url=item['uri'], metadata=item['meta'])
            for i, item in enumerate(favorites, 1)
        ]
