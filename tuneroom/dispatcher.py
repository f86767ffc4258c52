"""Event dispatcher — turns client actions into state transitions and broadcasts.

Handlers are synchronous on purpose: a registry mutation and the frames it
produces are queued in one step on the event loop, so two actions for the same
room can never interleave. "Last received" is therefore well defined and every
member sees a room's broadcasts in the same order.
"""
import logging
from typing import Any, Optional

from .catalog import Track, TrackCatalog, UploadMeta
from .config import MAX_CHAT_LENGTH
from .errors import InvalidAction, format_error
from .events import (
    CatalogTrackAdded,
    CatalogTrackRemoved,
    ChatBroadcast,
    ErrorNotice,
    Join,
    JoinAck,
    MemberJoined,
    MemberLeft,
    Ping,
    PlaybackChanged,
    Pong,
    SendChat,
    SetPlayback,
    parse_client_event,
)
from .rooms import RoomRegistry
from .web.state import Binding, ConnectionHub

logger = logging.getLogger(__name__)


class EventDispatcher:
    def __init__(self, catalog: TrackCatalog, registry: RoomRegistry, hub: ConnectionHub):
        self.catalog = catalog
        self.registry = registry
        self.hub = hub

    # ── Inbound frames ─────────────────────────────────────────────────────────

    def handle(self, conn_id: str, data: Any):
        """Route one decoded frame. Never raises."""
        if not self.hub.is_connected(conn_id):
            # Disconnect already processed, late actions must not apply
            return
        try:
            event = parse_client_event(data)
        except InvalidAction as e:
            logger.debug("Rejected frame from %s: %s", conn_id, e)
            self.hub.send(conn_id, ErrorNotice(str(e)))
            return

        try:
            if isinstance(event, Join):
                self.join(conn_id, event)
            elif isinstance(event, SendChat):
                self.chat(conn_id, event)
            elif isinstance(event, SetPlayback):
                self.set_playback(conn_id, event)
            elif isinstance(event, Ping):
                self.hub.send(conn_id, Pong())
        except InvalidAction as e:
            logger.debug("Ignored %s from %s: %s", event.type, conn_id, e)
        except Exception as e:
            msg = format_error("dispatch", context={"conn": conn_id, "frame": data}, raw=str(e))
            self.hub.send(conn_id, ErrorNotice(msg))
        finally:
            self._reap()

    def reject(self, conn_id: str, message: str):
        """Tell a client its frame could not be decoded at all."""
        self.hub.send(conn_id, ErrorNotice(message))
        self._reap()

    def join(self, conn_id: str, event: Join):
        previous = self.hub.binding(conn_id)
        renamed = (
            previous is not None
            and previous.room == event.room
            and previous.username != event.username
        )
        if previous is not None and previous.room != event.room:
            # One room per connection; moving rooms is an implicit leave
            self._release(conn_id)

        result = self.registry.join(event.room, event.username)
        self.hub.bind(conn_id, event.username, event.room)
        snapshot = result.snapshot
        if renamed:
            # New name is already a member, so the room survives the old one leaving
            self._leave(previous, exclude=conn_id)
            snapshot = self.registry.snapshot(self.registry.get_room(event.room))

        self.hub.send(conn_id, JoinAck(snapshot))
        if result.added:
            self.hub.send_room(
                event.room,
                MemberJoined(event.username, snapshot["memberCount"]),
                exclude=conn_id,
            )

    def chat(self, conn_id: str, event: SendChat):
        binding = self._require_binding(conn_id, event.room)
        text = event.text.strip()
        if not text:
            raise InvalidAction("empty message")
        if len(text) > MAX_CHAT_LENGTH:
            raise InvalidAction(f"message longer than {MAX_CHAT_LENGTH} chars")

        message = self.registry.append_message(binding.room, binding.username, text)
        if message is None:
            raise InvalidAction(f"unknown room {binding.room!r}")
        self.hub.send_room(binding.room, ChatBroadcast(message.to_dict()))

    def set_playback(self, conn_id: str, event: SetPlayback):
        binding = self._require_binding(conn_id, event.room)
        track = self.catalog.resolve(event.track)
        if track is None:
            raise InvalidAction(f"unknown track {event.track!r}")

        state = self.registry.set_playback(
            binding.room, track, event.is_playing, event.position_seconds,
        )
        if state is None:
            raise InvalidAction(f"unknown room {binding.room!r}")
        logger.info(
            "%s set playback in %s: %s %s @ %.1fs",
            binding.username, binding.room, track.title,
            state.phase.value, state.position_seconds,
        )
        self.hub.send_room(binding.room, PlaybackChanged(state.to_dict()))

    def disconnect(self, conn_id: str):
        """Implicit leave. Drops the binding before anything else can use it."""
        binding = self.hub.disconnect(conn_id)
        if binding is not None:
            self._leave(binding)
        self._reap()

    # ── Catalog (global scope) ─────────────────────────────────────────────────

    def add_uploaded_track(self, meta: UploadMeta) -> Track:
        track = self.catalog.add_uploaded_track(meta)
        self.hub.broadcast(CatalogTrackAdded(track.to_dict()))
        self._reap()
        return track

    def remove_track(self, track_id: int) -> bool:
        if not self.catalog.remove_track(track_id):
            return False
        self.hub.broadcast(CatalogTrackRemoved(track_id))
        for room in self.registry.clear_track(track_id):
            state = self.registry.get_room(room).playback
            logger.info("Track %s deleted while loaded in %s, room is idle", track_id, room)
            self.hub.send_room(room, PlaybackChanged(state.to_dict()))
        self._reap()
        return True

    # ── Internals ──────────────────────────────────────────────────────────────

    def _require_binding(self, conn_id: str, room: str) -> Binding:
        binding = self.hub.binding(conn_id)
        if binding is None:
            raise InvalidAction("connection has not joined a room")
        if binding.room != room:
            raise InvalidAction(f"connection is in {binding.room!r}, not {room!r}")
        return binding

    def _release(self, conn_id: str):
        binding = self.hub.unbind(conn_id)
        if binding is not None:
            self._leave(binding)

    def _leave(self, binding: Binding, exclude: Optional[str] = None):
        if self.hub.is_bound(binding):
            # Same user still present through another connection
            return
        result = self.registry.leave(binding.room, binding.username)
        if result.removed and not result.destroyed:
            self.hub.send_room(
                binding.room, MemberLeft(binding.username, result.member_count), exclude=exclude,
            )

    def _reap(self):
        """Connections that overflowed during fan-out are disconnects."""
        dead = self.hub.take_dead()
        while dead:
            for conn_id in dead:
                binding = self.hub.disconnect(conn_id)
                if binding is not None:
                    self._leave(binding)
            dead = self.hub.take_dead()

    def room_state(self, room: str) -> Optional[dict]:
        """Debug view of one room."""
        state = self.registry.get_room(room)
        if state is None:
            return None
        return {
            "name": state.name,
            "members": sorted(state.members),
            "phase": state.playback.phase.value,
            **state.playback.to_dict(),
        }
