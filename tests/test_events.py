import pytest

from tuneroom.errors import InvalidAction
from tuneroom.events import (
    CatalogTrackRemoved,
    Join,
    MemberLeft,
    SendChat,
    SetPlayback,
    frame_payload,
    parse_client_event,
)


def test_parse_join():
    assert parse_client_event({"type": "join", "username": " ann ", "room": "R"}) == Join("ann", "R")


def test_parse_set_playback_accepts_track_or_track_id():
    by_id = parse_client_event({"type": "setPlayback", "room": "R", "trackId": 1, "isPlaying": True,
                                "positionSeconds": 4})
    assert by_id == SetPlayback(room="R", track=1, is_playing=True, position_seconds=4)

    by_track = parse_client_event({"type": "setPlayback", "room": "R", "track": {"id": 2},
                                   "isPlaying": False, "currentTime": 9})
    assert by_track.track == {"id": 2}
    assert by_track.position_seconds == 9


def test_parse_chat_accepts_message_alias():
    event = parse_client_event({"type": "chatMessage", "room": "R", "username": "a", "message": "yo"})
    assert event == SendChat(room="R", username="a", text="yo")


@pytest.mark.parametrize("frame", [
    None,
    "join",
    {},
    {"type": "join", "username": "", "room": "R"},
    {"type": "setPlayback", "room": "R", "isPlaying": True},
    {"type": "setPlayback", "room": "R", "trackId": 1, "isPlaying": "false"},
    {"type": "setPlayback", "room": "R", "trackId": 1, "isPlaying": 1},
    {"type": "chatMessage", "room": "R", "username": "a"},
    {"type": "teleport"},
])
def test_unusable_frames_raise(frame):
    with pytest.raises(InvalidAction):
        parse_client_event(frame)


def test_client_events_round_trip_through_the_parser():
    for event in (
        Join("ann", "R"),
        SendChat("R", "ann", "hello"),
        SetPlayback("R", {"id": 3}, True, 12.0),
    ):
        assert parse_client_event(event.to_wire()) == event


def test_outbound_wire_shape():
    assert MemberLeft("bob", 1).to_wire() == {
        "type": "memberLeft", "data": {"username": "bob", "memberCount": 1},
    }
    assert CatalogTrackRemoved(1000).to_wire() == {"type": "catalogTrackRemoved", "data": {"trackId": 1000}}


def test_frame_payload():
    assert frame_payload({"type": "x", "data": {"a": 1}}) == {"a": 1}
    assert frame_payload({"type": "x"}) is None
    assert frame_payload("nope") is None
