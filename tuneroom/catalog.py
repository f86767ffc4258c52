"""Track catalog — built-in tracks + uploads, room-independent."""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from .config import DEFAULT_ARTIST, DEFAULT_COVER, UPLOAD_ID_START

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Track:
    id: int
    title: str
    artist: str
    url: str
    cover: str = DEFAULT_COVER
    duration: float = 0
    is_uploaded: bool = False
    uploaded_by: Optional[str] = None
    uploaded_at: Optional[str] = None

    def to_dict(self) -> dict:
        data = {
            "id": self.id,
            "title": self.title,
            "artist": self.artist,
            "url": self.url,
            "cover": self.cover,
            "duration": self.duration,
            "isUploaded": self.is_uploaded,
        }
        if self.is_uploaded:
            data["uploadedBy"] = self.uploaded_by
            data["uploadedAt"] = self.uploaded_at
        return data


@dataclass
class UploadMeta:
    """What the upload collaborator hands over once the file is on disk."""
    title: str
    url: str
    uploaded_by: str = "Anonymous"
    artist: str = DEFAULT_ARTIST
    cover: str = DEFAULT_COVER
    duration: float = 0
    filename: Optional[str] = None


_SOUNDHELIX = "https://www.soundhelix.com/examples/mp3/SoundHelix-Song-{n}.mp3"
_COVER_A = DEFAULT_COVER
_COVER_B = "https://images.unsplash.com/photo-1511379938547-c1f69419868d?w=300&h=300&fit=crop"
_COVER_C = "https://images.unsplash.com/photo-1514320291840-2e0a9bf2a9ae?w=300&h=300&fit=crop"

BUILTIN_TRACKS = (
    Track(1, "Perfect", "Ed Sheeran", _SOUNDHELIX.format(n=1), _COVER_A, 263),
    Track(2, "All of Me", "John Legend", _SOUNDHELIX.format(n=2), _COVER_B, 271),
    Track(3, "Just the Way You Are", "Bruno Mars", _SOUNDHELIX.format(n=3), _COVER_C, 221),
    Track(4, "A Thousand Years", "Christina Perri", _SOUNDHELIX.format(n=4), _COVER_B, 269),
    Track(5, "Can't Help Falling in Love", "Elvis Presley", _SOUNDHELIX.format(n=5), _COVER_A, 181),
)


class TrackCatalog:
    def __init__(self, builtins=BUILTIN_TRACKS, first_upload_id: int = UPLOAD_ID_START):
        if any(t.id >= first_upload_id for t in builtins):
            raise ValueError("built-in track ids must stay below the upload id range")
        self._builtins: dict[int, Track] = {t.id: t for t in builtins}
        # dicts keep insertion order, that is the registration order
        self._uploaded: dict[int, Track] = {}
        self._next_id = first_upload_id

    def __len__(self) -> int:
        return len(self._builtins) + len(self._uploaded)

    def list_tracks(self) -> list[Track]:
        return [*self._builtins.values(), *self._uploaded.values()]

    def uploaded_tracks(self) -> list[Track]:
        return list(self._uploaded.values())

    def get(self, track_id: int) -> Optional[Track]:
        return self._builtins.get(track_id) or self._uploaded.get(track_id)

    def resolve(self, ref: Any) -> Optional[Track]:
        """Map a client's track reference (dict with `id`, or a bare id) to a catalog Track."""
        if isinstance(ref, dict):
            ref = ref.get("id")
        if isinstance(ref, bool):
            return None
        if isinstance(ref, str) and ref.strip().isdigit():
            ref = int(ref)
        if not isinstance(ref, int):
            return None
        return self.get(ref)

    def add_uploaded_track(self, meta: UploadMeta) -> Track:
        track = Track(
            id=self._next_id,
            title=meta.title,
            artist=meta.artist,
            url=meta.url,
            cover=meta.cover,
            duration=meta.duration,
            is_uploaded=True,
            uploaded_by=meta.uploaded_by,
            uploaded_at=datetime.now().isoformat(),
        )
        self._next_id += 1
        self._uploaded[track.id] = track
        logger.info("Track added: %s (%s) by %s", track.title, track.id, track.uploaded_by)
        return track

    def remove_track(self, track_id: int) -> bool:
        """Remove an uploaded track. Built-ins and unknown ids are a no-op (False)."""
        track = self._uploaded.pop(track_id, None)
        if track is None:
            return False
        logger.info("Track removed: %s (%s)", track.title, track.id)
        return True
