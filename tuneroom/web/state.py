"""ConnectionHub — per-connection outbound queues, bindings and fan-out scopes."""
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Optional

from ..config import SUBSCRIBER_QUEUE_SIZE
from ..events import ServerEvent

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Binding:
    username: str
    room: str


@dataclass
class Connection:
    id: str
    queue: asyncio.Queue
    binding: Optional[Binding] = None
    dead: bool = field(default=False)


class ConnectionHub:
    """Every live connection gets one bounded queue of outbound wire frames.

    Frames are put with `put_nowait`, so fan-out never suspends: a room's
    broadcasts land in every member queue in the order they were produced. A
    connection whose queue is full is marked dead and handed back to the
    dispatcher through `take_dead()` to be treated as a disconnect.
    """

    def __init__(self, queue_size: int = SUBSCRIBER_QUEUE_SIZE):
        self.queue_size = queue_size
        self._connections: dict[str, Connection] = {}
        self._dead: list[str] = []

    def connect(self, conn_id: str) -> asyncio.Queue:
        """Register a new connection. Returns the queue its writer drains."""
        q: asyncio.Queue = asyncio.Queue(maxsize=self.queue_size)
        self._connections[conn_id] = Connection(id=conn_id, queue=q)
        return q

    def disconnect(self, conn_id: str) -> Optional[Binding]:
        """Forget a connection. Returns the binding it held, if any."""
        conn = self._connections.pop(conn_id, None)
        return conn.binding if conn else None

    def is_connected(self, conn_id: str) -> bool:
        return conn_id in self._connections

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    # ── Bindings ───────────────────────────────────────────────────────────────

    def bind(self, conn_id: str, username: str, room: str) -> Binding:
        binding = Binding(username=username, room=room)
        self._connections[conn_id].binding = binding
        return binding

    def unbind(self, conn_id: str) -> Optional[Binding]:
        conn = self._connections.get(conn_id)
        if conn is None:
            return None
        binding, conn.binding = conn.binding, None
        return binding

    def binding(self, conn_id: str) -> Optional[Binding]:
        conn = self._connections.get(conn_id)
        return conn.binding if conn else None

    def is_bound(self, binding: Binding) -> bool:
        """True if any live connection still holds this (username, room)."""
        return any(c.binding == binding for c in self._connections.values())

    def room_connections(self, room: str) -> list[str]:
        return [
            c.id for c in self._connections.values()
            if c.binding is not None and c.binding.room == room
        ]

    # ── Fan-out ────────────────────────────────────────────────────────────────

    def send(self, conn_id: str, event: ServerEvent) -> bool:
        return self._push(conn_id, event.to_wire())

    def send_room(self, room: str, event: ServerEvent, exclude: Optional[str] = None) -> int:
        """Room scope. Returns how many connections the frame was queued for."""
        frame = event.to_wire()
        sent = 0
        for conn_id in self.room_connections(room):
            if conn_id != exclude and self._push(conn_id, frame):
                sent += 1
        return sent

    def broadcast(self, event: ServerEvent) -> int:
        """Global scope: every connection, bound to a room or not."""
        frame = event.to_wire()
        return sum(1 for conn_id in list(self._connections) if self._push(conn_id, frame))

    def take_dead(self) -> list[str]:
        dead, self._dead = self._dead, []
        return dead

    def _push(self, conn_id: str, frame: dict) -> bool:
        conn = self._connections.get(conn_id)
        if conn is None or conn.dead:
            return False
        try:
            conn.queue.put_nowait(frame)
        except asyncio.QueueFull:
            # Client too slow, drop it
            logger.warning("Outbound queue full, dropping connection %s", conn_id)
            conn.dead = True
            self._dead.append(conn_id)
            return False
        return True
