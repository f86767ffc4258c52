"""Starlette app — HTTP routes + WebSocket + static file serving."""
import asyncio
import json
import logging
import uuid
from datetime import datetime
from pathlib import Path
from typing import Optional

from starlette.applications import Starlette
from starlette.datastructures import UploadFile
from starlette.requests import Request
from starlette.responses import JSONResponse, FileResponse, Response
from starlette.routing import Route, WebSocketRoute
from starlette.websockets import WebSocket, WebSocketDisconnect

from ..catalog import TrackCatalog
from ..config import APP_VERSION, PUBLIC_DIR, UPLOADS_DIR
from ..dispatcher import EventDispatcher
from ..errors import UploadRejected, format_error
from ..rooms import RoomRegistry
from ..uploads import UploadStore
from .state import ConnectionHub

logger = logging.getLogger(__name__)


def _dispatcher(request) -> EventDispatcher:
    return request.app.state.dispatcher


def _form_text(form, key: str) -> Optional[str]:
    value = form.get(key)
    return value if isinstance(value, str) else None


# ── Health ───────────────────────────────────────────────────────────────────

async def health(request: Request):
    dispatcher = _dispatcher(request)
    return JSONResponse({
        "status": "OK",
        "version": APP_VERSION,
        "timestamp": datetime.now().isoformat(),
        "rooms": dispatcher.registry.room_count,
        "connections": dispatcher.hub.connection_count,
        "uploadedTracks": len(dispatcher.catalog.uploaded_tracks()),
    })


# ── Catalog ──────────────────────────────────────────────────────────────────

async def list_tracks(request: Request):
    catalog = _dispatcher(request).catalog
    return JSONResponse([t.to_dict() for t in catalog.list_tracks()])


async def list_uploaded_tracks(request: Request):
    catalog = _dispatcher(request).catalog
    return JSONResponse([t.to_dict() for t in catalog.uploaded_tracks()])


async def upload_song(request: Request):
    store: UploadStore = request.app.state.uploads
    form = await request.form()
    try:
        song = form.get("song")
        if not isinstance(song, UploadFile):
            return JSONResponse({"error": "No file uploaded"}, status_code=400)
        try:
            meta = await store.save(song, title=_form_text(form, "title"), username=_form_text(form, "username"))
        except UploadRejected as e:
            return JSONResponse({"error": e.message}, status_code=e.status)
        except OSError as e:
            msg = format_error("upload", context={"filename": song.filename}, raw=str(e))
            return JSONResponse({"error": msg}, status_code=500)
    finally:
        await form.close()

    track = _dispatcher(request).add_uploaded_track(meta)
    return JSONResponse({
        "success": True,
        "track": track.to_dict(),
        "message": "Song uploaded successfully!",
    })


async def delete_track(request: Request):
    track_id = request.path_params["track_id"]
    dispatcher = _dispatcher(request)
    track = dispatcher.catalog.get(track_id)
    if track is None or not track.is_uploaded:
        return JSONResponse({"error": "Track not found"}, status_code=404)

    dispatcher.remove_track(track_id)
    body = {"success": True, "message": "Track deleted successfully"}
    try:
        await request.app.state.uploads.delete(track.url)
    except OSError as e:
        # Catalog entry is gone either way; the stored file is left behind
        body["warning"] = format_error("delete_track", context={"track_id": track_id}, raw=str(e))

    return JSONResponse(body)


async def room_info(request: Request):
    info = _dispatcher(request).room_state(request.path_params["name"])
    if info is None:
        return JSONResponse({"error": "Room not found"}, status_code=404)
    return JSONResponse(info)


# ── Audio serving ────────────────────────────────────────────────────────────

async def serve_upload(request: Request):
    """Serve stored uploads. Starlette's FileResponse handles Range requests."""
    path = request.app.state.uploads.path_for(request.path_params["filename"])
    if path is None:
        return Response("Not found", status_code=404)
    return FileResponse(path)


# ── WebSocket ────────────────────────────────────────────────────────────────

async def websocket_endpoint(websocket: WebSocket):
    dispatcher: EventDispatcher = websocket.app.state.dispatcher
    await websocket.accept()
    conn_id = str(uuid.uuid4())
    queue = dispatcher.hub.connect(conn_id)
    logger.info("WS connected: %s", conn_id)

    # Two tasks: one reads from client, one writes from queue
    async def _reader():
        try:
            while True:
                message = await websocket.receive()
                if message["type"] == "websocket.disconnect":
                    break
                text = message.get("text")
                if text is None:
                    dispatcher.reject(conn_id, "frames must be JSON text")
                    continue
                try:
                    data = json.loads(text)
                except ValueError:
                    # JSONDecodeError, or an integer past the digit limit
                    dispatcher.reject(conn_id, "frame is not valid JSON")
                    continue
                dispatcher.handle(conn_id, data)
        except WebSocketDisconnect:
            pass
        except Exception as e:
            logger.error("WS reader error: %s", e)

    async def _writer():
        try:
            while True:
                frame = await queue.get()
                if not dispatcher.hub.is_connected(conn_id):
                    break
                await websocket.send_json(frame)
        except Exception as e:
            logger.debug("WS send to %s failed: %s", conn_id, e)

    reader_task = asyncio.create_task(_reader())
    writer_task = asyncio.create_task(_writer())

    try:
        await asyncio.wait(
            [reader_task, writer_task],
            return_when=asyncio.FIRST_COMPLETED,
        )
    finally:
        reader_task.cancel()
        writer_task.cancel()
        # Either side ending means the connection is gone: implicit leave
        dispatcher.disconnect(conn_id)
        logger.info("WS disconnected: %s", conn_id)


# ── Static frontend ──────────────────────────────────────────────────────────

def _static_handler(public_dir: Path):
    async def static_fallback(request: Request):
        """Serve files from public/, fall back to index.html."""
        path = request.path_params.get("path", "")
        if path:
            file_path = public_dir / path
            if file_path.is_file() and public_dir.resolve() in file_path.resolve().parents:
                return FileResponse(file_path)

        index = public_dir / "index.html"
        if index.exists():
            return FileResponse(index)
        return Response("No frontend found in public/", status_code=404)

    return static_fallback


# ── App factory ──────────────────────────────────────────────────────────────

def create_app(
    uploads_dir: Optional[Path] = None,
    public_dir: Optional[Path] = None,
    catalog: Optional[TrackCatalog] = None,
) -> Starlette:
    if catalog is None:
        catalog = TrackCatalog()
    hub = ConnectionHub()
    dispatcher = EventDispatcher(catalog, RoomRegistry(catalog), hub)
    static = _static_handler(Path(public_dir or PUBLIC_DIR))

    routes = [
        Route("/api/health", health),
        Route("/health", health),
        Route("/api/tracks", list_tracks),
        Route("/api/uploaded-tracks", list_uploaded_tracks),
        Route("/api/tracks/{track_id:int}", delete_track, methods=["DELETE"]),
        Route("/api/rooms/{name}", room_info),
        Route("/upload-song", upload_song, methods=["POST"]),
        Route("/uploads/{filename}", serve_upload),
        WebSocketRoute("/ws", websocket_endpoint),
        # Fallback must be last, also handles root
        Route("/", static),
        Route("/{path:path}", static),
    ]

    app = Starlette(routes=routes)
    app.state.dispatcher = dispatcher
    app.state.uploads = UploadStore(Path(uploads_dir or UPLOADS_DIR))
    logger.info("App ready: %d built-in tracks", len(catalog))
    return app
