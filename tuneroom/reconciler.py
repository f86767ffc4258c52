"""Client-side reconciliation of the room's authoritative playback state.

The reconciler owns no audio itself; it drives an `AudioSink` (a browser
<audio> element, a local player, or the console sink in `client.py`). It
extrapolates the playhead from the server's `updatedAt` stamp, swaps the
source only when the track id actually changes, and only seeks when local
drift is audible.
"""
import logging
from typing import Callable, Optional, Protocol

from .config import SYNC_TOLERANCE_S
from .events import SetPlayback, frame_payload
from .utils import now_ms

logger = logging.getLogger(__name__)


class AudioSink(Protocol):
    def load(self, track: dict) -> None: ...
    def unload(self) -> None: ...
    def play(self) -> None: ...
    def pause(self) -> None: ...
    def seek(self, seconds: float) -> None: ...
    def position(self) -> float: ...


class ClientReconciler:
    def __init__(
        self,
        sink: AudioSink,
        room: str,
        clock: Callable[[], int] = now_ms,
        tolerance: float = SYNC_TOLERANCE_S,
    ):
        self.sink = sink
        self.room = room
        self.clock = clock
        self.tolerance = tolerance

        self.tracks: list[dict] = []
        self.current_track: Optional[dict] = None
        self.is_playing = False
        self.member_count = 0
        self.messages: list[dict] = []

    # ── Server frames ──────────────────────────────────────────────────────────

    def handle(self, frame: dict, received_at_ms: Optional[int] = None):
        """Apply any outbound server frame. Unknown types are ignored."""
        data = frame_payload(frame)
        if data is None:
            return
        kind = frame.get("type")
        if kind == "joinAck":
            self.apply_snapshot(data, received_at_ms)
        elif kind == "playbackChanged":
            self.apply_playback(data, received_at_ms)
        elif kind in ("memberJoined", "memberLeft"):
            self.member_count = data.get("memberCount", self.member_count)
        elif kind == "chatMessage":
            self.messages.append(data)
        elif kind == "catalogTrackAdded":
            self.track_added(data.get("track"))
        elif kind == "catalogTrackRemoved":
            self.track_removed(data.get("trackId"))

    def apply_snapshot(self, data: dict, received_at_ms: Optional[int] = None):
        self.member_count = data.get("memberCount", 0)
        self.tracks = list(data.get("tracks") or [])
        self.messages = list(data.get("history") or [])
        self._reconcile(
            data.get("currentTrack"),
            bool(data.get("isPlaying")),
            float(data.get("positionSeconds") or 0),
            data.get("updatedAt"),
            received_at_ms,
        )

    def apply_playback(self, data: dict, received_at_ms: Optional[int] = None):
        self._reconcile(
            data.get("track"),
            bool(data.get("isPlaying")),
            float(data.get("positionSeconds") or 0),
            data.get("updatedAt"),
            received_at_ms,
        )

    def track_added(self, track: Optional[dict]):
        if not track:
            return
        if all(t.get("id") != track.get("id") for t in self.tracks):
            self.tracks.append(track)

    def track_removed(self, track_id):
        self.tracks = [t for t in self.tracks if t.get("id") != track_id]
        if self.current_track and self.current_track.get("id") == track_id:
            self._stop()

    def target_position(
        self,
        position: float,
        is_playing: bool,
        updated_at_ms: Optional[int],
        received_at_ms: Optional[int] = None,
    ) -> float:
        """Where the playhead should be right now."""
        if not is_playing:
            return position
        now = self.clock()
        anchor = updated_at_ms if updated_at_ms is not None else received_at_ms
        if anchor is None:
            return position
        # Clock skew can put the server stamp in our future
        return position + max(0, now - anchor) / 1000

    def _reconcile(self, track, is_playing, position, updated_at_ms, received_at_ms):
        if not track:
            self._stop()
            return

        if not self.current_track or self.current_track.get("id") != track.get("id"):
            self.sink.load(track)
            self.sink.seek(self.target_position(position, is_playing, updated_at_ms, received_at_ms))
        else:
            target = self.target_position(position, is_playing, updated_at_ms, received_at_ms)
            drift = abs(self.sink.position() - target)
            if drift > self.tolerance:
                logger.debug("Drift %.3fs, seeking to %.2f", drift, target)
                self.sink.seek(target)
        self.current_track = track

        if is_playing:
            self.sink.play()
        else:
            self.sink.pause()
        self.is_playing = is_playing

    def _stop(self):
        if self.current_track is not None:
            self.sink.pause()
            self.sink.unload()
        self.current_track = None
        self.is_playing = False

    # ── Local actions (optimistic) ─────────────────────────────────────────────

    def select_track(self, track: dict) -> SetPlayback:
        """Start a track from the top for everyone."""
        self.sink.load(track)
        self.sink.seek(0)
        self.sink.play()
        self.current_track = track
        self.is_playing = True
        return self._action(0.0)

    def play(self) -> Optional[SetPlayback]:
        if not self.current_track:
            return None
        self.sink.play()
        self.is_playing = True
        return self._action(self.sink.position())

    def pause(self) -> Optional[SetPlayback]:
        if not self.current_track:
            return None
        self.sink.pause()
        self.is_playing = False
        return self._action(self.sink.position())

    def toggle(self) -> Optional[SetPlayback]:
        return self.pause() if self.is_playing else self.play()

    def seek(self, seconds: float) -> Optional[SetPlayback]:
        if not self.current_track:
            return None
        seconds = max(0.0, seconds)
        self.sink.seek(seconds)
        return self._action(seconds)

    def _action(self, position: float) -> SetPlayback:
        return SetPlayback(
            room=self.room,
            track=self.current_track,
            is_playing=self.is_playing,
            position_seconds=position,
        )
