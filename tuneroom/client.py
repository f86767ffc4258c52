"""Headless console client — joins a room and follows its playback.

    python -m tuneroom.client ROOM USERNAME [--url ws://localhost:3000/ws]

Anything typed is sent as chat. Commands: /play /pause /seek SECONDS
/track ID /tracks /quit.
"""
import argparse
import asyncio
import json
import logging
import sys
import time
from typing import Optional

import websockets
from rich.console import Console

from .config import PORT
from .events import Join, SendChat
from .reconciler import ClientReconciler
from .utils import fmt_time, now_ms

logger = logging.getLogger(__name__)
console = Console()


class ConsoleSink:
    """Stands in for an audio element: keeps a virtual playhead and prints changes."""

    def __init__(self):
        self.track: Optional[dict] = None
        self._playing = False
        self._offset = 0.0
        self._started = 0.0

    def load(self, track: dict):
        self.track = track
        self._offset = 0.0
        self._started = time.monotonic()
        console.print(f"  [bold]♪ {track.get('title')}[/bold] — {track.get('artist')}")

    def unload(self):
        if self.track:
            console.print(f"  [yellow]■ {self.track.get('title')} was removed[/yellow]")
        self.track = None
        self._playing = False
        self._offset = 0.0

    def play(self):
        if not self._playing:
            self._started = time.monotonic()
            self._playing = True
            console.print(f"  ▶ playing from {fmt_time(self._offset)}")

    def pause(self):
        if self._playing:
            self._offset = self.position()
            self._playing = False
            console.print(f"  ⏸ paused at {fmt_time(self._offset)}")

    def seek(self, seconds: float):
        self._offset = seconds
        self._started = time.monotonic()
        if self.track:
            console.print(f"  [dim]↦ {fmt_time(seconds)}[/dim]")

    def position(self) -> float:
        if self._playing:
            return self._offset + (time.monotonic() - self._started)
        return self._offset


class RoomClient:
    def __init__(self, url: str, room: str, username: str):
        self.url = url
        self.room = room
        self.username = username
        self.reconciler = ClientReconciler(ConsoleSink(), room)

    async def run(self):
        async with websockets.connect(self.url) as ws:
            await ws.send(json.dumps(Join(self.username, self.room).to_wire()))
            reader = asyncio.create_task(self._read(ws))
            prompt = asyncio.create_task(self._prompt(ws))
            done, pending = await asyncio.wait([reader, prompt], return_when=asyncio.FIRST_COMPLETED)
            for task in pending:
                task.cancel()

    async def _read(self, ws):
        async for raw in ws:
            try:
                frame = json.loads(raw)
            except json.JSONDecodeError:
                continue
            self.reconciler.handle(frame, received_at_ms=now_ms())
            self._print_frame(frame)

    def _print_frame(self, frame: dict):
        data = frame.get("data") or {}
        kind = frame.get("type")
        if kind == "joinAck":
            console.print(
                f"  [green]Joined {self.room}[/green] — {data.get('memberCount')} here, "
                f"{len(data.get('tracks') or [])} tracks"
            )
            for msg in data.get("history") or []:
                console.print(f"  [dim]{msg['username']}: {msg['text']}[/dim]")
        elif kind == "memberJoined":
            console.print(f"  [cyan]{data['username']} joined ({data['memberCount']})[/cyan]")
        elif kind == "memberLeft":
            console.print(f"  [cyan]{data['username']} left ({data['memberCount']})[/cyan]")
        elif kind == "chatMessage":
            console.print(f"  [bold]{data['username']}[/bold]: {data['text']}")
        elif kind == "catalogTrackAdded":
            track = data.get("track") or {}
            console.print(f"  [magenta]+ {track.get('title')} (#{track.get('id')})[/magenta]")
        elif kind == "error":
            console.print(f"  [red]{data.get('message')}[/red]")

    async def _prompt(self, ws):
        loop = asyncio.get_running_loop()
        while True:
            line = await loop.run_in_executor(None, sys.stdin.readline)
            if not line:
                return
            line = line.strip()
            if not line:
                continue
            if line == "/quit":
                return
            frame = self._command(line)
            if frame is not None:
                await ws.send(json.dumps(frame))

    def _command(self, line: str) -> Optional[dict]:
        r = self.reconciler
        if not line.startswith("/"):
            return SendChat(self.room, self.username, line).to_wire()

        cmd, _, arg = line.partition(" ")
        action = None
        if cmd == "/play":
            action = r.play()
        elif cmd == "/pause":
            action = r.pause()
        elif cmd == "/seek":
            try:
                action = r.seek(float(arg))
            except ValueError:
                console.print("  usage: /seek SECONDS")
                return None
        elif cmd == "/track":
            track = next((t for t in r.tracks if str(t.get("id")) == arg.strip()), None)
            if track is None:
                console.print(f"  no track #{arg}")
                return None
            action = r.select_track(track)
        elif cmd == "/tracks":
            for t in r.tracks:
                console.print(f"  #{t['id']:<5} {t['title']} — {t['artist']}")
            return None
        else:
            console.print(f"  unknown command {cmd}")
            return None

        if action is None:
            console.print("  nothing loaded — pick one with /track ID")
            return None
        return action.to_wire()


def main(argv=None):
    parser = argparse.ArgumentParser(description="Join a tuneroom room from the terminal.")
    parser.add_argument("room")
    parser.add_argument("username")
    parser.add_argument("--url", default=f"ws://localhost:{PORT}/ws")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.WARNING)
    try:
        asyncio.run(RoomClient(args.url, args.room, args.username).run())
    except KeyboardInterrupt:
        pass
    except (OSError, websockets.exceptions.WebSocketException) as e:
        console.print(f"[red]Connection failed: {e}[/red]")
        sys.exit(1)


if __name__ == "__main__":
    main()
