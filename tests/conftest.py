"""Shared fixtures: fake HTTP responses and canned device documents."""

from unittest.mock import MagicMock

import pytest

from player_models import DeviceFamily, DiscoveredDevice


def make_response(body="", status_code=200):
    """A stand-in for requests.Response carrying a text body."""
    response = MagicMock()
    response.status_code = status_code
    response.text = body
    response.content = body.encode("utf-8")
    return response


def soap_response(action, service_type, values=None):
    """A SOAP envelope holding <u:{action}Response> with the given output arguments."""
    from xml.sax.saxutils import escape

    args = "".join(f"<{k}>{escape(str(v))}</{k}>" for k, v in (values or {}).items())
    return make_response(
        '<?xml version="1.0"?>'
        '<s:Envelope xmlns:s="http://schemas.xmlsoap.org/soap/envelope/">'
        f'<s:Body><u:{action}Response xmlns:u="{service_type}">{args}</u:{action}Response></s:Body>'
        '</s:Envelope>'
    )


PRESETS_XML = (
    '<presets prid="2">'
    '<preset id="1" name="Spotify Daily Mix" url="Spotify:play/daily" image="/img/1.png"/>'
    '<preset id="2" name="Radio Paradise" url="RadioParadise:/0:20" image="/img/2.png"/>'
    '<preset id="3" name="Classical WQXR" url="TuneIn:s21606" image="/img/3.png"/>'
    '</presets>'
)

STATUS_XML = (
    '<status etag="abc">'
    '<album>Kind of Blue</album>'
    '<artist>Miles Davis</artist>'
    '<song>So What</song>'
    '<state>play</state>'
    '<volume>35</volume>'
    '</status>'
)

SYNC_STATUS_XML = (
    '<SyncStatus name="Living Room" brand="Bluesound" model="N130" '
    'modelName="NODE 2i" id="192.168.1.100:11000"/>'
)

SONOS_DESCRIPTION = (
    '<?xml version="1.0"?>'
    '<root xmlns="urn:schemas-upnp-org:device-1-0"><device>'
    '<deviceType>urn:schemas-upnp-org:device:ZonePlayer:1</deviceType>'
    '<friendlyName>192.168.1.50 - Kitchen - RINCON_000E58123456</friendlyName>'
    '<manufacturer>Sonos, Inc.</manufacturer>'
    '<modelName>Sonos One</modelName>'
    '</device></root>'
)


@pytest.fixture
def bluos_device():
    return DiscoveredDevice("192.168.1.100", "Living Room", "Bluesound", "N130", DeviceFamily.BLUOS)


@pytest.fixture
def sonos_device():
    return DiscoveredDevice("192.168.1.50", "Kitchen", "Sonos", "Sonos One", DeviceFamily.SONOS)
