"""
UPnP/SOAP Helper for Sonos Players
Builds SOAP 1.1 envelopes, posts them to the player's control endpoints and
unpacks the action responses. Also handles ContentDirectory browsing and the
DIDL-Lite metadata that travels escaped inside SOAP arguments.
"""

import html
import logging
import re
import xml.etree.ElementTree as ET
from typing import Dict, List, Sequence, Tuple
from xml.sax.saxutils import escape

import requests

from player_config import settings
from player_errors import PlayerParseError, PlayerRequestError

logger = logging.getLogger(__name__)

SOAP_ENV_NS = "http://schemas.xmlsoap.org/soap/envelope/"
SOAP_ENCODING = "http://schemas.xmlsoap.org/soap/encoding/"

DIDL_NAMESPACES = (
    'xmlns:dc="http://purl.org/dc/elements/1.1/" '
    'xmlns:upnp="urn:schemas-upnp-org:metadata-1-0/upnp/" '
    'xmlns:r="urn:schemas-rinconnetworks-com:metadata-1-0/" '
    'xmlns="urn:schemas-upnp-org:metadata-1-0/DIDL-Lite/"'
)

BROADCAST_CLASS = "object.item.audioItem.audioBroadcast"

# Logical service -> (control path, service type URN)
SERVICES = {
    'AVTransport': (
        "/MediaRenderer/AVTransport/Control",
        "urn:schemas-upnp-org:service:AVTransport:1",
    ),
    'RenderingControl': (
        "/MediaRenderer/RenderingControl/Control",
        "urn:schemas-upnp-org:service:RenderingControl:1",
    ),
    'ContentDirectory': (
        "/MediaServer/ContentDirectory/Control",
        "urn:schemas-upnp-org:service:ContentDirectory:1",
    ),
}

_ITEM_RE = re.compile(r'<item[^>]*\bid="([^"]*)"[^>]*>(.*?)</item>', re.S)
_TITLE_RE = re.compile(r'<dc:title[^>]*>(.*?)</dc:title>', re.S)
_CREATOR_RE = re.compile(r'<dc:creator[^>]*>(.*?)</dc:creator>', re.S)
_ALBUM_RE = re.compile(r'<upnp:album[^>]*>(.*?)</upnp:album>', re.S)
_RES_RE = re.compile(r'<res[^>]*>(.*?)</res>', re.S)

Arguments = Sequence[Tuple[str, object]]


def build_envelope(service_type: str, action: str, arguments: Arguments = ()) -> str:
    """
    Build a SOAP envelope for one UPnP action.

    Argument values are XML-escaped exactly once, so DIDL-Lite metadata is
    passed in as plain markup and ends up escaped inside the envelope.
    """
    args_xml = "".join(
        f"<{name}>{escape(str(value))}</{name}>" for name, value in arguments
    )
    return (
        '<?xml version="1.0" encoding="utf-8"?>\n'
        f'<s:Envelope xmlns:s="{SOAP_ENV_NS}" s:encodingStyle="{SOAP_ENCODING}">'
        '<s:Body>'
        f'<u:{action} xmlns:u="{service_type}">{args_xml}</u:{action}>'
        '</s:Body>'
        '</s:Envelope>'
    )


def unescape_didl(text: str) -> str:
    """
    Undo the extra escaping layers of an embedded DIDL-Lite document.

    ElementTree already removes one layer when reading the SOAP envelope;
    some firmware escapes the Result twice, which leaves '&lt;DIDL-Lite'.
    """
    text = (text or "").strip()
    while text and not text.startswith('<') and '&' in text:
        unescaped = html.unescape(text).strip()
        if unescaped == text:
            break
        text = unescaped
    return text


def parse_didl_items(didl: str) -> List[Dict[str, str]]:
    """
    Split a DIDL-Lite document into its <item> entries.

    Returns a list of dicts with id, title, uri and the original item markup
    (key 'meta'). Items without a title are skipped.
    """
    items = []
    for match in _ITEM_RE.finditer(didl):
        content = match.group(2)
        title_match = _TITLE_RE.search(content)
        title = html.unescape(title_match.group(1)).strip() if title_match else ""
        if not title:
            continue
        res_match = _RES_RE.search(content)
        uri = html.unescape(res_match.group(1)).strip() if res_match else ""
        items.append({
            'id': match.group(1),
            'title': title,
            'uri': uri,
            'meta': match.group(0),
        })
    return items


def parse_track_metadata(metadata: str) -> Tuple[str, str, str]:
    """Extract (title, artist, album) from a TrackMetaData DIDL fragment."""
    metadata = unescape_didl(metadata)
    values = []
    for pattern in (_TITLE_RE, _CREATOR_RE, _ALBUM_RE):
        match = pattern.search(metadata)
        values.append(html.unescape(match.group(1)).strip() if match else "")
    return values[0], values[1], values[2]


def wrap_didl(item_markup: str) -> str:
    """Wrap a single <item> element into a DIDL-Lite document."""
    return f"<DIDL-Lite {DIDL_NAMESPACES}>{item_markup}</DIDL-Lite>"


def broadcast_metadata(title: str, item_id: str = "R:0/0") -> str:
    """Minimal DIDL-Lite metadata describing a radio broadcast."""
    return wrap_didl(
        f'<item id="{escape(item_id)}">'
        f'<dc:title>{html.escape(title)}</dc:title>'
        f'<upnp:class>{BROADCAST_CLASS}</upnp:class>'
        '</item>'
    )


class UPnPHelper:
    """SOAP control point for the AVTransport, RenderingControl and ContentDirectory services."""

    def __init__(self, device_ip: str, port: int = None, timeout: float = None):
        """
        Initialize UPnP helper.

        Args:
            device_ip: IP of the Sonos player
            port: UPnP HTTP port (default: settings.SONOS_PORT, 1400)
            timeout: HTTP timeout in seconds (default: settings.REQUEST_TIMEOUT)
        """
        self.device_ip = device_ip
        self.port = port or settings.SONOS_PORT
        self.base_url = f"http://{device_ip}:{self.port}"
        self.timeout = timeout or settings.REQUEST_TIMEOUT

    def call(self, service: str, action: str, arguments: Arguments = ()) -> Dict[str, str]:
        """
        Invoke a UPnP action and return the response arguments.

        Args:
            service: Logical service name (key of SERVICES)
            action: Action name, e.g. "GetTransportInfo"
            arguments: Ordered (name, value) pairs

        Returns:
            Dict mapping output argument names to their text

        Raises:
            PlayerRequestError: transport error or non-200 reply
            PlayerParseError: reply is not a SOAP envelope with the action response
        """
        path, service_type = SERVICES[service]
        soap_body = build_envelope(service_type, action, arguments)

        headers = {
            'Content-Type': 'text/xml; charset=utf-8',
            'SOAPACTION': f'"{service_type}#{action}"',
        }

        url = f"{self.base_url}{path}"
        logger.debug("SOAP %s#%s -> %s", service, action, url)
        try:
            response = requests.post(url, data=soap_body.encode('utf-8'), headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            raise PlayerRequestError(f"SOAP request failed: {e}", endpoint=f"{service}#{action}") from e

        if response.status_code != 200:
            raise PlayerRequestError(
                f"SOAP {action} failed with status {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
                endpoint=f"{service}#{action}",
            )

        try:
            root = ET.fromstring(response.content)
        except ET.ParseError as e:
            raise PlayerParseError(f"invalid SOAP response for {action}: {e}") from e

        result = root.find(f'.//{{{service_type}}}{action}Response')
        if result is None:
            # Some firmware drops the service namespace on the response element
            result = root.find(f'.//{{*}}{action}Response')
        if result is None:
            raise PlayerParseError(f"no {action}Response element in SOAP reply")

        return {child.tag.rsplit('}', 1)[-1]: (child.text or "") for child in result}

    def browse(self, object_id: str = "0", browse_flag: str = "BrowseDirectChildren",
               requested_count: int = None) -> str:
        """
        Browse the ContentDirectory via SOAP.

        Returns the unescaped DIDL-Lite XML string (empty if the result is empty).
        """
        result = self.call('ContentDirectory', 'Browse', [
            ('ObjectID', object_id),
            ('BrowseFlag', browse_flag),
            ('Filter', '*'),
            ('StartingIndex', 0),
            ('RequestedCount', requested_count or settings.BROWSE_PAGE_SIZE),
            ('SortCriteria', ''),
        ])
        return unescape_didl(result.get('Result', ''))

    def is_reachable(self) -> bool:
        """Quick check whether the device description can be fetched."""
        try:
            response = requests.get(f"{self.base_url}/xml/device_description.xml", timeout=self.timeout)
            return response.status_code == 200
        except requests.RequestException:
            return False

