import asyncio

import pytest

from tuneroom.catalog import TrackCatalog, UploadMeta
from tuneroom.dispatcher import EventDispatcher
from tuneroom.rooms import RoomRegistry
from tuneroom.web.state import ConnectionHub


@pytest.fixture
def catalog():
    return TrackCatalog()


@pytest.fixture
def registry(catalog):
    return RoomRegistry(catalog)


@pytest.fixture
def hub():
    return ConnectionHub(queue_size=64)


@pytest.fixture
def dispatcher(catalog, registry, hub):
    return EventDispatcher(catalog, registry, hub)


def upload_meta(title="Our Song", by="alice") -> UploadMeta:
    return UploadMeta(title=title, url=f"/uploads/{title.lower().replace(' ', '-')}.mp3", uploaded_by=by)


def drain(queue: asyncio.Queue) -> list[dict]:
    frames = []
    while not queue.empty():
        frames.append(queue.get_nowait())
    return frames


def types(frames: list[dict]) -> list[str]:
    return [f["type"] for f in frames]
