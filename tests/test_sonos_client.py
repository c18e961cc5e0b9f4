"""Tests for the Sonos UPnP client."""

import xml.etree.ElementTree as ET
from unittest.mock import MagicMock, patch

import pytest

from player_errors import (
    PlayerParseError,
    PlayerRequestError,
    PlayerValidationError,
    UnsupportedOperationError,
)
from player_models import PlaybackStatus, PresetEntry
from sonos_client import SonosClient
from sonos_favorites import info_entries
from upnp_helper import parse_didl_items

TRACK_META = (
    '<DIDL-Lite><item id="-1"><dc:title>So What</dc:title>'
    '<dc:creator>Miles Davis</dc:creator><upnp:album>Kind of Blue</upnp:album></item></DIDL-Lite>'
)

JAZZ_ITEM = (
    '<item id="FV:2/10"><dc:title>Jazz FM</dc:title>'
    '<res>x-sonosapi-stream:s1234?sid=254</res></item>'
)


@pytest.fixture
def client():
    client = SonosClient("192.168.1.50")
    client.upnp = MagicMock()
    client.upnp.base_url = "http://192.168.1.50:1400"
    return client


def actions(client):
    return [c[0][1] for c in client.upnp.call.call_args_list]


def upnp_replies(replies):
    """call() side effect: look up (service, action) in replies; exceptions are raised."""
    def call(service, action, arguments=()):
        reply = replies.get(action, {})
        if isinstance(reply, Exception):
            raise reply
        return reply
    return call


# ── Status ──

def test_get_status_collects_all_three_calls(client):
    client.upnp.call.side_effect = upnp_replies({
        'GetTransportInfo': {'CurrentTransportState': 'PLAYING'},
        'GetPositionInfo': {'TrackMetaData': TRACK_META},
        'GetVolume': {'CurrentVolume': '27'},
    })

    status = client.get_status()

    assert status == PlaybackStatus(state="playing", song="So What", artist="Miles Davis",
                                    album="Kind of Blue", volume=27)
    assert actions(client) == ['GetTransportInfo', 'GetPositionInfo', 'GetVolume']


def test_get_status_transport_failure_is_stopped(client):
    client.upnp.call.side_effect = upnp_replies({
        'GetTransportInfo': PlayerRequestError("timeout"),
    })

    status = client.get_status()

    assert status == PlaybackStatus.stopped()
    assert actions(client) == ['GetTransportInfo']


def test_get_status_position_failure_keeps_state(client):
    client.upnp.call.side_effect = upnp_replies({
        'GetTransportInfo': {'CurrentTransportState': 'PAUSED_PLAYBACK'},
        'GetPositionInfo': PlayerParseError("bad envelope"),
    })

    status = client.get_status()

    assert status.state == "paused_playback"
    assert status.song == ""
    assert status.volume == 0


def test_get_status_volume_failure_keeps_track(client):
    client.upnp.call.side_effect = upnp_replies({
        'GetTransportInfo': {'CurrentTransportState': 'PLAYING'},
        'GetPositionInfo': {'TrackMetaData': TRACK_META},
        'GetVolume': PlayerRequestError("refused"),
    })

    status = client.get_status()

    assert status.song == "So What"
    assert status.volume == 0


def test_get_status_empty_state_defaults_to_stopped(client):
    client.upnp.call.side_effect = upnp_replies({'GetTransportInfo': {}})
    assert client.get_status().state == "stopped"


# ── Favorites ──

def test_favorites_are_cached_until_refresh(client):
    client.resolver = MagicMock()
    client.resolver.resolve.return_value = [PresetEntry(1, "Jazz FM", "http://jazz")]

    client.list_presets()
    client.list_presets()
    assert client.resolver.resolve.call_count == 1

    client.refresh_favorites()
    client.list_presets()
    assert client.resolver.resolve.call_count == 2


# ── Playback dispatch ──

def test_play_info_entry_sends_nothing():
    with patch("upnp_helper.requests.post") as mock_post, patch("upnp_helper.requests.get") as mock_get:
        client = SonosClient("192.168.1.50")
        client.favorites = info_entries()[:1]

        with pytest.raises(PlayerValidationError):
            client.play_preset(1)

        mock_post.assert_not_called()
        mock_get.assert_not_called()


def test_play_unknown_preset(client):
    client.favorites = [PresetEntry(1, "Jazz FM", "http://jazz")]

    with pytest.raises(PlayerValidationError):
        client.play_preset(5)
    client.upnp.call.assert_not_called()


def test_play_favorite_without_uri(client):
    client.favorites = [PresetEntry(1, "Broken Station")]

    with pytest.raises(PlayerValidationError):
        client.play_preset(1)
    client.upnp.call.assert_not_called()


def test_play_preset_sets_uri_then_plays(client):
    client.favorites = [PresetEntry(1, "Jazz FM", "x-sonosapi-stream:s1234?sid=254", metadata=JAZZ_ITEM)]
    client.upnp.call.return_value = {}

    client.play_preset(1)

    assert actions(client) == ['SetAVTransportURI', 'Play']
    arguments = dict(client.upnp.call.call_args_list[0][0][2])
    assert arguments['InstanceID'] == 0
    assert arguments['CurrentURI'] == "x-sonosapi-stream:s1234?sid=254"
    assert arguments['CurrentURIMetaData'].startswith("<DIDL-Lite ")
    assert JAZZ_ITEM in arguments['CurrentURIMetaData']


def test_play_preset_favorite_metadata_is_well_formed(client):
    browse_result = (
        '<DIDL-Lite xmlns:dc="http://purl.org/dc/elements/1.1/" '
        'xmlns:upnp="urn:schemas-upnp-org:metadata-1-0/upnp/" '
        'xmlns:r="urn:schemas-rinconnetworks-com:metadata-1-0/" '
        'xmlns="urn:schemas-upnp-org:metadata-1-0/DIDL-Lite/">'
        '<item id="FV:2/14" parentID="FV:2" restricted="false">'
        '<dc:title>Jazz FM</dc:title>'
        '<upnp:class>object.itemobject.item.sonos-favorite</upnp:class>'
        '<r:ordinal>3</r:ordinal>'
        '<res protocolInfo="http-get:*:audio/mpeg:*">http://stream.example/jazz</res>'
        '<r:type>instantPlay</r:type>'
        '<r:description>Jazz FM</r:description>'
        '<r:resMD>&lt;DIDL-Lite&gt;&lt;item id="F00092020s12345"&gt;&lt;/item&gt;&lt;/DIDL-Lite&gt;</r:resMD>'
        '</item></DIDL-Lite>'
    )
    item = parse_didl_items(browse_result)[0]
    client.favorites = [PresetEntry(1, item['title'], item['uri'], metadata=item['meta'])]
    client.upnp.call.return_value = {}

    client.play_preset(1)

    metadata = dict(client.upnp.call.call_args_list[0][0][2])['CurrentURIMetaData']
    root = ET.fromstring(metadata)
    ns = {
        'didl': "urn:schemas-upnp-org:metadata-1-0/DIDL-Lite/",
        'dc': "http://purl.org/dc/elements/1.1/",
        'r': "urn:schemas-rinconnetworks-com:metadata-1-0/",
    }
    assert root.find('didl:item/dc:title', ns).text == "Jazz FM"
    assert root.find('didl:item/r:type', ns).text == "instantPlay"
    assert actions(client) == ['SetAVTransportURI', 'Play']


def test_play_preset_without_metadata_uses_broadcast_item(client):
    client.favorites = [PresetEntry(1, "Jazz FM", "http://stream.example/jazz")]
    client.upnp.call.return_value = {}

    client.play_preset(1)

    metadata = dict(client.upnp.call.call_args_list[0][0][2])['CurrentURIMetaData']
    assert "<dc:title>Jazz FM</dc:title>" in metadata
    assert "audioBroadcast" in metadata


def test_play_preset_falls_back_to_queue(client):
    client.favorites = [PresetEntry(1, "Jazz FM", "x-rincon-mp3radio://jazz.example/live")]
    client.upnp.call.side_effect = upnp_replies({
        'SetAVTransportURI': PlayerRequestError("rejected", status_code=500),
    })

    client.play_preset(1)

    assert actions(client) == [
        'SetAVTransportURI',
        'RemoveAllTracksFromQueue',
        'SetPlayMode',
        'AddURIToQueue',
        'Seek',
        'Play',
    ]
    enqueue = dict(client.upnp.call.call_args_list[3][0][2])
    assert enqueue['EnqueuedURI'] == "x-rincon-mp3radio://jazz.example/live"
    assert enqueue['DesiredFirstTrackNumberEnqueued'] == 1
    assert enqueue['EnqueueAsNext'] == 0


def test_queue_tolerates_optional_step_failures(client):
    client.favorites = [PresetEntry(1, "Jazz FM", "x-sonosapi-radio:jazz")]
    client.upnp.call.side_effect = upnp_replies({
        'SetAVTransportURI': PlayerRequestError("rejected", status_code=714),
        'RemoveAllTracksFromQueue': PlayerRequestError("no queue", status_code=500),
        'SetPlayMode': PlayerRequestError("no", status_code=500),
        'Seek': PlayerRequestError("no", status_code=500),
    })

    client.play_preset(1)

    assert actions(client)[-1] == 'Play'


def test_queue_add_failure_is_fatal(client):
    client.favorites = [PresetEntry(1, "Jazz FM", "x-sonosapi-radio:jazz")]
    client.upnp.call.side_effect = upnp_replies({
        'SetAVTransportURI': PlayerRequestError("rejected", status_code=500),
        'AddURIToQueue': PlayerRequestError("nope", status_code=402),
    })

    with pytest.raises(PlayerRequestError) as exc_info:
        client.play_preset(1)

    assert exc_info.value.status_code == 402
    assert 'Play' not in actions(client)


def test_no_fallback_for_non_radio_uri(client):
    client.favorites = [PresetEntry(1, "Live Set", "x-file-cifs://nas/live.mp3")]
    client.upnp.call.side_effect = upnp_replies({
        'SetAVTransportURI': PlayerRequestError("rejected", status_code=500),
    })

    with pytest.raises(PlayerRequestError):
        client.play_preset(1)

    assert actions(client) == ['SetAVTransportURI']


def test_no_fallback_on_transport_error(client):
    client.favorites = [PresetEntry(1, "Jazz FM", "x-sonosapi-stream:s1")]
    client.upnp.call.side_effect = upnp_replies({
        'SetAVTransportURI': PlayerRequestError("connection refused"),
    })

    with pytest.raises(PlayerRequestError):
        client.play_preset(1)

    assert actions(client) == ['SetAVTransportURI']


# ── Transport & volume ──

@pytest.mark.parametrize("method, action", [
    ("play", "Play"),
    ("pause", "Pause"),
    ("stop", "Stop"),
    ("next", "Next"),
    ("previous", "Previous"),
])
def test_transport_actions(client, method, action):
    getattr(client, method)()

    service, called_action, arguments = client.upnp.call.call_args[0]
    assert service == 'AVTransport'
    assert called_action == action
    assert ('InstanceID', 0) in arguments


def test_set_volume(client):
    client.set_volume(42)

    client.upnp.call.assert_called_once_with('RenderingControl', 'SetVolume', [
        ('InstanceID', 0),
        ('Channel', 'Master'),
        ('DesiredVolume', 42),
    ])


@pytest.mark.parametrize("level", [-5, 101, "10"])
def test_set_volume_rejects_out_of_range(client, level):
    with pytest.raises(PlayerValidationError):
        client.set_volume(level)
    client.upnp.call.assert_not_called()


# ── Grouping ──

@pytest.mark.parametrize("method, args", [
    ("add_slave", ("192.168.1.51",)),
    ("remove_slave", ("192.168.1.51",)),
    ("remove_all_slaves", ()),
    ("leave_group", ()),
])
def test_grouping_is_unsupported(client, method, args):
    with pytest.raises(UnsupportedOperationError):
        getattr(client, method)(*args)
    client.upnp.call.assert_not_called()


# ── Diagnostics ──

def test_diagnose_unreachable(client):
    client.upnp.is_reachable.return_value = False

    assert "not reachable" in client.diagnose()
    client.upnp.call.assert_not_called()


def test_diagnose_reports_services_and_favorites(client):
    client.upnp.is_reachable.return_value = True
    client.upnp.call.side_effect = upnp_replies({'GetVolume': PlayerRequestError("x", status_code=500)})
    client.resolver = MagicMock()
    client.resolver.resolve.return_value = [PresetEntry(1, "Jazz FM", "http://jazz")]

    report = client.diagnose()

    assert "AVTransport: OK" in report
    assert "RenderingControl: FAILED" in report
    assert "ContentDirectory: OK" in report
    assert "Radio Favorites: 1 found" in report
