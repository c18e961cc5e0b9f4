"""
Data model shared by discovery, both device clients and the session.

DiscoveredDevice - result of a successful probe (equality by address only)
PresetEntry      - one playable preset/favorite with its 1-based ordinal
PlaybackStatus   - transport state, current track and volume of a player
"""

import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from player_errors import PlayerParseError

# Name prefix of placeholder presets that cannot be played
INFO_MARKER = "[INFO]"


class DeviceFamily(str, Enum):
    """The two supported control protocols."""

    BLUOS = "bluos"  # REST/XML over HTTP GET
    SONOS = "sonos"  # SOAP/UPnP control point

    @property
    def label(self) -> str:
        return "BluOS" if self is DeviceFamily.BLUOS else "Sonos"


@dataclass(frozen=True)
class DiscoveredDevice:
    """A player found on the network. Two devices are equal when their addresses are."""

    address: str
    name: str = field(default="", compare=False)
    brand: str = field(default="", compare=False)
    model: str = field(default="", compare=False)
    family: DeviceFamily = field(default=DeviceFamily.BLUOS, compare=False)

    def to_dict(self) -> dict:
        return {
            'ip': self.address,
            'name': self.name,
            'brand': self.brand,
            'model': self.model,
            'family': self.family.value,
        }


@dataclass(frozen=True)
class PresetEntry:
    """A preset (BluOS) or radio favorite (Sonos)."""

    preset_id: int
    name: str
    url: str = ""
    image: str = ""
    # Original DIDL <item> markup from the favorites browse (Sonos only)
    metadata: str = field(default="", repr=False)

    @property
    def is_info(self) -> bool:
        """True for informational placeholders that must never be dispatched."""
        return self.name.startswith(INFO_MARKER)

    def to_dict(self) -> dict:
        return {
            'id': self.preset_id,
            'name': self.name,
            'url': self.url,
            'image': self.image,
        }


class PlaybackStatus:
    """
    Current playback status of a player.
    Built either from a BluOS /Status XML element or from keyword arguments.
    Missing track fields are empty strings, never errors.
    """

    def __init__(self, root: ET.Element = None, **kwargs):
        """
        Initialize from XML Element or from kwargs.

        Args:
            root: XML Element from the BluOS /Status response
            **kwargs: state, song, artist, album, volume
        """
        self._state = "stopped"
        self._song = ""
        self._artist = ""
        self._album = ""
        self._volume = 0

        if root is not None:
            self._parse_xml(root)
        else:
            self._state = kwargs.get('state', 'stopped')
            self._song = kwargs.get('song', '')
            self._artist = kwargs.get('artist', '')
            self._album = kwargs.get('album', '')
            self._volume = kwargs.get('volume', 0)

    @classmethod
    def stopped(cls) -> "PlaybackStatus":
        """Default status used when a player cannot report anything."""
        return cls(state="stopped")

    def _parse_xml(self, root: ET.Element):
        if root.tag != 'status':
            raise PlayerParseError(f"expected <status> document, got <{root.tag}>")

        self._state = root.findtext('state', '') or ''
        # Older firmware puts the title in <name>/<title1> instead of <song>
        self._song = (root.findtext('song') or root.findtext('name')
                      or root.findtext('title1') or '')
        self._artist = root.findtext('artist') or root.findtext('title2') or ''
        self._album = root.findtext('album') or root.findtext('title3') or ''

        volume_text = (root.findtext('volume') or '').strip()
        if volume_text:
            try:
                self._volume = int(volume_text)
            except ValueError:
                raise PlayerParseError(f"invalid volume in status: {volume_text!r}")

    @property
    def state(self) -> str:
        """Transport state as reported by the device (e.g. 'play', 'playing', 'stopped')."""
        return self._state

    @property
    def song(self) -> str:
        """Current track title."""
        return self._song

    @property
    def artist(self) -> str:
        return self._artist

    @property
    def album(self) -> str:
        return self._album

    @property
    def volume(self) -> int:
        """Volume in percent (0-100)."""
        return self._volume

    @property
    def has_track(self) -> bool:
        return bool(self._song)

    def to_dict(self) -> dict:
        return {
            'state': self._state,
            'song': self._song,
            'artist': self._artist,
            'album': self._album,
            'volume': self._volume,
        }

    def __eq__(self, other) -> bool:
        if not isinstance(other, PlaybackStatus):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __repr__(self) -> str:
        return f"PlaybackStatus({self._artist} - {self._song} [{self._state}, vol {self._volume}])"


def find_preset(presets, preset_id: int) -> Optional[PresetEntry]:
    """Return the preset with the given ordinal, or None."""
    for preset in presets:
        if preset.preset_id == preset_id:
            return preset
    return None
