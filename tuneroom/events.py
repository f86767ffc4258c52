"""Wire protocol — one dataclass per event.

Inbound frames are flat JSON: {"type": "join", "username": ..., "room": ...}.
Outbound frames wrap their payload: {"type": "joinAck", "data": {...}}.
"""
from dataclasses import dataclass
from typing import Any, ClassVar, Optional, Union

from .errors import InvalidAction


# ── Client → server ──────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Join:
    type: ClassVar[str] = "join"
    username: str
    room: str

    def to_wire(self) -> dict:
        return {"type": self.type, "username": self.username, "room": self.room}


@dataclass(frozen=True)
class SendChat:
    type: ClassVar[str] = "chatMessage"
    room: str
    username: str
    text: str

    def to_wire(self) -> dict:
        return {"type": self.type, "room": self.room, "username": self.username, "text": self.text}


@dataclass(frozen=True)
class SetPlayback:
    type: ClassVar[str] = "setPlayback"
    room: str
    track: Any  # dict with "id", or a bare id; resolved against the catalog
    is_playing: bool
    position_seconds: Any

    def to_wire(self) -> dict:
        return {
            "type": self.type,
            "room": self.room,
            "track": self.track,
            "isPlaying": self.is_playing,
            "positionSeconds": self.position_seconds,
        }


@dataclass(frozen=True)
class Ping:
    type: ClassVar[str] = "ping"


ClientEvent = Union[Join, SendChat, SetPlayback, Ping]


def _text(data: dict, key: str) -> str:
    value = data.get(key)
    if not isinstance(value, str) or not value.strip():
        raise InvalidAction(f"{key} is required")
    return value.strip()


def _parse_join(data: dict) -> Join:
    return Join(username=_text(data, "username"), room=_text(data, "room"))


def _parse_chat(data: dict) -> SendChat:
    text = data.get("text", data.get("message"))
    if not isinstance(text, str):
        raise InvalidAction("text is required")
    return SendChat(room=_text(data, "room"), username=_text(data, "username"), text=text)


def _parse_set_playback(data: dict) -> SetPlayback:
    track = data.get("track", data.get("trackId"))
    if track is None:
        raise InvalidAction("setPlayback needs a track")
    position = data.get("positionSeconds", data.get("currentTime", 0))
    is_playing = data.get("isPlaying", False)
    if not isinstance(is_playing, bool):
        raise InvalidAction(f"isPlaying must be true or false, got {is_playing!r}")
    return SetPlayback(
        room=_text(data, "room"),
        track=track,
        is_playing=is_playing,
        position_seconds=position,
    )


_PARSERS = {
    Join.type: _parse_join,
    SendChat.type: _parse_chat,
    SetPlayback.type: _parse_set_playback,
    Ping.type: lambda data: Ping(),
}


def parse_client_event(data: Any) -> ClientEvent:
    """Validate a decoded inbound frame. Raises InvalidAction for anything unusable."""
    if not isinstance(data, dict):
        raise InvalidAction("frame must be a JSON object")
    parser = _PARSERS.get(data.get("type"))
    if parser is None:
        raise InvalidAction(f"unknown event type: {data.get('type')!r}")
    return parser(data)


# ── Server → client ──────────────────────────────────────────────────────────

class ServerEvent:
    type: ClassVar[str]

    def payload(self) -> dict:
        raise NotImplementedError

    def to_wire(self) -> dict:
        return {"type": self.type, "data": self.payload()}


@dataclass(frozen=True)
class JoinAck(ServerEvent):
    type: ClassVar[str] = "joinAck"
    snapshot: dict

    def payload(self) -> dict:
        return self.snapshot


@dataclass(frozen=True)
class MemberJoined(ServerEvent):
    type: ClassVar[str] = "memberJoined"
    username: str
    member_count: int

    def payload(self) -> dict:
        return {"username": self.username, "memberCount": self.member_count}


@dataclass(frozen=True)
class MemberLeft(MemberJoined):
    type: ClassVar[str] = "memberLeft"


@dataclass(frozen=True)
class ChatBroadcast(ServerEvent):
    type: ClassVar[str] = "chatMessage"
    message: dict

    def payload(self) -> dict:
        return self.message


@dataclass(frozen=True)
class PlaybackChanged(ServerEvent):
    type: ClassVar[str] = "playbackChanged"
    state: dict

    def payload(self) -> dict:
        return self.state


@dataclass(frozen=True)
class CatalogTrackAdded(ServerEvent):
    type: ClassVar[str] = "catalogTrackAdded"
    track: dict

    def payload(self) -> dict:
        return {"track": self.track}


@dataclass(frozen=True)
class CatalogTrackRemoved(ServerEvent):
    type: ClassVar[str] = "catalogTrackRemoved"
    track_id: int

    def payload(self) -> dict:
        return {"trackId": self.track_id}


@dataclass(frozen=True)
class ErrorNotice(ServerEvent):
    type: ClassVar[str] = "error"
    message: str

    def payload(self) -> dict:
        return {"message": self.message}


@dataclass(frozen=True)
class Pong(ServerEvent):
    type: ClassVar[str] = "pong"

    def payload(self) -> dict:
        return {}


def frame_payload(frame: Any) -> Optional[dict]:
    """The `data` of an outbound frame, or None when the frame is malformed."""
    if not isinstance(frame, dict):
        return None
    data = frame.get("data")
    return data if isinstance(data, dict) else None
