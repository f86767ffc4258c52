import time

import pytest
from starlette.testclient import TestClient

from tuneroom.uploads import UploadStore
from tuneroom.web.server import create_app


@pytest.fixture
def app(tmp_path):
    public = tmp_path / "public"
    public.mkdir()
    (public / "index.html").write_text("<h1>tuneroom</h1>")
    return create_app(uploads_dir=tmp_path / "uploads", public_dir=public)


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


def _wait_for(predicate, timeout=2.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


def _upload(client, name="love.mp3", data=b"ID3fake-audio", content_type="audio/mpeg", **form):
    return client.post("/upload-song", files={"song": (name, data, content_type)}, data=form)


def test_health(client):
    body = client.get("/api/health").json()
    assert body["status"] == "OK"
    assert body["rooms"] == 0
    assert body["uploadedTracks"] == 0


def test_track_listing(client):
    tracks = client.get("/api/tracks").json()
    assert [t["id"] for t in tracks] == [1, 2, 3, 4, 5]
    assert client.get("/api/uploaded-tracks").json() == []


def test_upload_then_delete(client, tmp_path):
    r = _upload(client, title="Our Song", username="alice")
    assert r.status_code == 200
    track = r.json()["track"]
    assert track["id"] == 1000
    assert track["title"] == "Our Song"
    assert track["uploadedBy"] == "alice"
    assert track["isUploaded"] is True

    assert [t["id"] for t in client.get("/api/tracks").json()][-1] == 1000
    audio = client.get(track["url"])
    assert audio.status_code == 200
    assert audio.content == b"ID3fake-audio"

    assert client.delete("/api/tracks/1000").status_code == 200
    assert client.get("/api/uploaded-tracks").json() == []
    assert list((tmp_path / "uploads").iterdir()) == []
    assert client.delete("/api/tracks/1000").status_code == 404


def test_builtin_tracks_cannot_be_deleted(client):
    assert client.delete("/api/tracks/1").status_code == 404
    assert len(client.get("/api/tracks").json()) == 5


def test_upload_rejections(client, app, tmp_path):
    r = _upload(client, name="notes.txt", data=b"hello", content_type="text/plain")
    assert r.status_code == 400
    assert "Invalid file type" in r.json()["error"]

    r = client.post("/upload-song", data={"title": "no file"})
    assert r.status_code == 400

    app.state.uploads = UploadStore(tmp_path / "small", max_bytes=4)
    r = _upload(client, data=b"way too big")
    assert r.status_code == 400
    assert "too large" in r.json()["error"]

    assert client.get("/api/uploaded-tracks").json() == []


def test_storage_failure_returns_friendly_500(client, app, tmp_path, monkeypatch):
    monkeypatch.setattr("tuneroom.errors.OUTPUT_DIR", tmp_path)
    monkeypatch.setattr("tuneroom.errors.ERRORS_LOG", tmp_path / "errors.log")
    monkeypatch.setattr("tuneroom.errors.DEV_MODE", False)

    async def disk_full(upload, title=None, username=None):
        raise OSError("No space left on device")

    monkeypatch.setattr(app.state.uploads, "save", disk_full)
    r = _upload(client)
    assert r.status_code == 500
    assert r.json() == {"error": "Upload failed."}
    assert client.get("/api/uploaded-tracks").json() == []


def test_unknown_upload_is_404(client):
    assert client.get("/uploads/missing.mp3").status_code == 404


def test_static_fallback(client):
    assert client.get("/").text == "<h1>tuneroom</h1>"
    assert client.get("/room/R").text == "<h1>tuneroom</h1>"


def test_end_to_end_room_over_websockets(client, app):
    registry = app.state.dispatcher.registry

    with client.websocket_connect("/ws") as a:
        a.send_json({"type": "join", "username": "A", "room": "R"})
        ack_a = a.receive_json()
        assert ack_a["type"] == "joinAck"
        assert ack_a["data"]["memberCount"] == 1
        assert "R" in registry

        with client.websocket_connect("/ws") as b:
            b.send_json({"type": "join", "username": "B", "room": "R"})
            ack_b = b.receive_json()
            assert ack_b["data"]["memberCount"] == 2
            assert a.receive_json() == {
                "type": "memberJoined", "data": {"username": "B", "memberCount": 2},
            }

            a.send_json({"type": "setPlayback", "room": "R", "trackId": 1,
                         "isPlaying": True, "positionSeconds": 0})
            playback = b.receive_json()
            assert playback["type"] == "playbackChanged"
            assert playback["data"]["track"]["id"] == 1
            assert playback["data"]["isPlaying"] is True
            assert playback["data"]["positionSeconds"] == 0
            assert a.receive_json() == playback

        assert a.receive_json() == {
            "type": "memberLeft", "data": {"username": "B", "memberCount": 1},
        }

    assert _wait_for(lambda: "R" not in registry)
    assert _wait_for(lambda: app.state.dispatcher.hub.connection_count == 0)


def test_late_joiner_gets_playback_and_history(client):
    with client.websocket_connect("/ws") as a:
        a.send_json({"type": "join", "username": "A", "room": "R"})
        a.receive_json()
        a.send_json({"type": "setPlayback", "room": "R", "trackId": 3,
                     "isPlaying": True, "positionSeconds": 42})
        a.receive_json()
        a.send_json({"type": "chatMessage", "room": "R", "username": "A", "text": "this one"})
        assert a.receive_json()["data"]["text"] == "this one"

        with client.websocket_connect("/ws") as b:
            b.send_json({"type": "join", "username": "B", "room": "R"})
            snap = b.receive_json()["data"]
            assert snap["currentTrack"]["id"] == 3
            assert snap["isPlaying"] is True
            assert snap["positionSeconds"] == 42
            assert snap["updatedAt"] > 0
            assert [m["text"] for m in snap["history"]] == ["this one"]


def test_upload_reaches_every_connected_client(client):
    with client.websocket_connect("/ws") as a, client.websocket_connect("/ws") as lobby:
        a.send_json({"type": "join", "username": "A", "room": "R"})
        a.receive_json()

        track = _upload(client, title="Shared").json()["track"]
        assert a.receive_json() == {"type": "catalogTrackAdded", "data": {"track": track}}
        assert lobby.receive_json() == {"type": "catalogTrackAdded", "data": {"track": track}}


def test_deleting_playing_track_idles_room(client):
    with client.websocket_connect("/ws") as a:
        a.send_json({"type": "join", "username": "A", "room": "R"})
        a.receive_json()
        track = _upload(client, title="Soon gone").json()["track"]
        assert a.receive_json()["type"] == "catalogTrackAdded"

        a.send_json({"type": "setPlayback", "room": "R", "track": track,
                     "isPlaying": True, "positionSeconds": 12})
        assert a.receive_json()["data"]["track"]["id"] == track["id"]

        assert client.delete(f"/api/tracks/{track['id']}").status_code == 200
        assert a.receive_json() == {"type": "catalogTrackRemoved", "data": {"trackId": track["id"]}}
        idle = a.receive_json()
        assert idle["type"] == "playbackChanged"
        assert idle["data"]["track"] is None
        assert idle["data"]["isPlaying"] is False


def test_binary_frame_keeps_the_member_in_the_room(client, app):
    with client.websocket_connect("/ws") as a:
        a.send_json({"type": "join", "username": "A", "room": "R"})
        assert a.receive_json()["type"] == "joinAck"

        a.send_bytes(b"\x00\x01")
        assert a.receive_json() == {"type": "error", "data": {"message": "frames must be JSON text"}}
        a.send_json({"type": "ping"})
        assert a.receive_json()["type"] == "pong"
        assert "R" in app.state.dispatcher.registry


def test_oversized_integer_keeps_the_member_in_the_room(client, app):
    with client.websocket_connect("/ws") as a:
        a.send_json({"type": "join", "username": "A", "room": "R"})
        assert a.receive_json()["type"] == "joinAck"

        a.send_text('{"type": "ping", "x": ' + "1" * 5000 + "}")
        # rejected on interpreters with an int digit limit, answered otherwise
        assert a.receive_json()["type"] in ("error", "pong")
        a.send_json({"type": "ping"})
        assert a.receive_json()["type"] == "pong"
        assert app.state.dispatcher.hub.connection_count == 1
        assert "R" in app.state.dispatcher.registry


def test_bad_frames_do_not_kill_the_connection(client):
    with client.websocket_connect("/ws") as a:
        a.send_text("{not json")
        assert a.receive_json()["type"] == "error"
        a.send_json({"type": "ping"})
        assert a.receive_json()["type"] == "pong"
        a.send_json({"type": "join", "username": "A", "room": "R"})
        assert a.receive_json()["type"] == "joinAck"
