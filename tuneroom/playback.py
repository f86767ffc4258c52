"""Playback state machine — one room's (track, is_playing, position, updated_at) tuple.

There is a single client-driven transition, `set_playback`: play, pause, seek
and track changes all replace the whole tuple. Whatever the server applies last
wins; client clocks never take part in ordering. `clear_track` is the only other
transition and is driven by catalog deletions.
"""
import math
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .catalog import Track
from .errors import InvalidAction
from .utils import now_ms


class PlaybackPhase(str, Enum):
    IDLE = "idle"
    PLAYING = "playing"
    PAUSED = "paused"


@dataclass(frozen=True)
class PlaybackState:
    track: Optional[Track] = None
    is_playing: bool = False
    position_seconds: float = 0.0
    updated_at_ms: int = 0

    @property
    def phase(self) -> PlaybackPhase:
        if self.track is None:
            return PlaybackPhase.IDLE
        return PlaybackPhase.PLAYING if self.is_playing else PlaybackPhase.PAUSED

    def position_at(self, at_ms: int) -> float:
        """Playhead extrapolated to `at_ms`. Only moves while playing."""
        if not self.is_playing:
            return self.position_seconds
        elapsed = max(0, at_ms - self.updated_at_ms) / 1000
        return self.position_seconds + elapsed

    def to_dict(self) -> dict:
        return {
            "track": self.track.to_dict() if self.track else None,
            "isPlaying": self.is_playing,
            "positionSeconds": self.position_seconds,
            "updatedAt": self.updated_at_ms,
        }


def idle_state(at_ms: Optional[int] = None) -> PlaybackState:
    return PlaybackState(updated_at_ms=now_ms() if at_ms is None else at_ms)


def _coerce_position(value) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidAction(f"positionSeconds must be a number, got {value!r}")
    value = float(value)
    if not math.isfinite(value):
        raise InvalidAction(f"positionSeconds must be finite, got {value!r}")
    return max(0.0, value)


def set_playback(
    state: PlaybackState,
    track: Optional[Track],
    is_playing: bool,
    position_seconds: float,
    at_ms: Optional[int] = None,
) -> PlaybackState:
    """Replace the room's playback tuple. Prior state is discarded entirely."""
    if track is None:
        raise InvalidAction("setPlayback needs a track")
    return PlaybackState(
        track=track,
        is_playing=bool(is_playing),
        position_seconds=_coerce_position(position_seconds),
        updated_at_ms=now_ms() if at_ms is None else at_ms,
    )


def clear_track(state: PlaybackState, at_ms: Optional[int] = None) -> PlaybackState:
    """Force Idle after the loaded track was deleted. Position resets to 0."""
    return idle_state(at_ms)
