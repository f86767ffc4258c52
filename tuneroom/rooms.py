"""Room registry — membership, playback state and chat history per live room."""
import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Optional

from .catalog import Track, TrackCatalog
from .config import HISTORY_LIMIT
from .playback import PlaybackState, idle_state, set_playback, clear_track
from .utils import now_ms

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChatMessage:
    username: str
    text: str
    sent_at_ms: int

    def to_dict(self) -> dict:
        return {"username": self.username, "text": self.text, "sentAt": self.sent_at_ms}


@dataclass
class RoomState:
    name: str
    members: set[str] = field(default_factory=set)
    playback: PlaybackState = field(default_factory=idle_state)
    history: deque = field(default_factory=lambda: deque(maxlen=HISTORY_LIMIT))

    @property
    def member_count(self) -> int:
        return len(self.members)


@dataclass
class JoinResult:
    snapshot: dict
    created: bool
    added: bool


@dataclass
class LeaveResult:
    removed: bool
    destroyed: bool
    member_count: int


class RoomRegistry:
    """Owns every live room. Rooms exist only while they have members."""

    def __init__(self, catalog: TrackCatalog, history_limit: int = HISTORY_LIMIT):
        self.catalog = catalog
        self.history_limit = history_limit
        self._rooms: dict[str, RoomState] = {}

    def __contains__(self, name: str) -> bool:
        return name in self._rooms

    @property
    def room_count(self) -> int:
        return len(self._rooms)

    def room_names(self) -> list[str]:
        return list(self._rooms)

    def get_room(self, name: str) -> Optional[RoomState]:
        return self._rooms.get(name)

    # ── Membership ─────────────────────────────────────────────────────────────

    def join(self, name: str, username: str) -> JoinResult:
        room = self._rooms.get(name)
        created = room is None
        if created:
            room = RoomState(name=name, history=deque(maxlen=self.history_limit))
            self._rooms[name] = room
            logger.info("Room created: %s", name)

        added = username not in room.members
        room.members.add(username)
        if added:
            logger.info("%s joined %s (%d members)", username, name, room.member_count)
        return JoinResult(snapshot=self.snapshot(room), created=created, added=added)

    def leave(self, name: str, username: str) -> LeaveResult:
        room = self._rooms.get(name)
        if room is None or username not in room.members:
            count = room.member_count if room else 0
            return LeaveResult(removed=False, destroyed=False, member_count=count)

        room.members.discard(username)
        logger.info("%s left %s (%d members)", username, name, room.member_count)
        if not room.members:
            del self._rooms[name]
            logger.info("Room destroyed: %s", name)
            return LeaveResult(removed=True, destroyed=True, member_count=0)
        return LeaveResult(removed=True, destroyed=False, member_count=room.member_count)

    def snapshot(self, room: RoomState) -> dict:
        """Full state for a joining client."""
        playback = room.playback
        return {
            "memberCount": room.member_count,
            "tracks": [t.to_dict() for t in self.catalog.list_tracks()],
            "currentTrack": playback.track.to_dict() if playback.track else None,
            "isPlaying": playback.is_playing,
            "positionSeconds": playback.position_seconds,
            "updatedAt": playback.updated_at_ms,
            "history": [m.to_dict() for m in room.history],
        }

    # ── Mutations routed through the playback state machine ────────────────────

    def set_playback(
        self,
        name: str,
        track: Track,
        is_playing: bool,
        position_seconds: float,
    ) -> Optional[PlaybackState]:
        """Apply a SetPlayback. Unknown rooms are ignored (returns None), never recreated."""
        room = self._rooms.get(name)
        if room is None:
            return None
        room.playback = set_playback(room.playback, track, is_playing, position_seconds)
        return room.playback

    def clear_track(self, track_id: int) -> list[str]:
        """Force every room playing `track_id` to Idle. Returns the affected room names."""
        affected = []
        for room in self._rooms.values():
            current = room.playback.track
            if current is not None and current.id == track_id:
                room.playback = clear_track(room.playback)
                affected.append(room.name)
        return affected

    def append_message(self, name: str, username: str, text: str) -> Optional[ChatMessage]:
        room = self._rooms.get(name)
        if room is None:
            return None
        message = ChatMessage(username=username, text=text, sent_at_ms=now_ms())
        room.history.append(message)
        return message
