"""Upload store — validates audio uploads and keeps them on local disk."""
import asyncio
import logging
from pathlib import Path
from typing import Optional

from .catalog import UploadMeta
from .config import ALLOWED_EXTENSIONS, ALLOWED_MIME_TYPES, MAX_UPLOAD_BYTES, MAX_UPLOAD_MB
from .errors import UploadRejected
from .utils import file_extension, unique_stored_name

logger = logging.getLogger(__name__)

_CHUNK = 1024 * 1024


def check_audio_type(filename: str, content_type: Optional[str]):
    """Accept if either the extension or the MIME type looks like audio."""
    ext_ok = file_extension(filename or "") in ALLOWED_EXTENSIONS
    mime_ok = (content_type or "").split(";")[0].strip().lower() in ALLOWED_MIME_TYPES
    if not (ext_ok or mime_ok):
        logger.info("Rejected file: %s (MIME: %s)", filename, content_type)
        raise UploadRejected(
            "Invalid file type. Please upload an audio file (MP3, WAV, OGG, M4A, AAC, FLAC)."
        )


class UploadStore:
    def __init__(self, directory: Path, max_bytes: int = MAX_UPLOAD_BYTES, url_prefix: str = "/uploads"):
        self.directory = Path(directory)
        self.max_bytes = max_bytes
        self.url_prefix = url_prefix.rstrip("/")
        self.directory.mkdir(parents=True, exist_ok=True)

    async def save(self, upload, title: Optional[str] = None, username: Optional[str] = None) -> UploadMeta:
        """Validate and persist a Starlette UploadFile. Raises UploadRejected."""
        filename = upload.filename or ""
        check_audio_type(filename, upload.content_type)

        chunks = []
        size = 0
        while True:
            chunk = await upload.read(_CHUNK)
            if not chunk:
                break
            size += len(chunk)
            if size > self.max_bytes:
                raise UploadRejected(f"File too large. Maximum size is {MAX_UPLOAD_MB}MB.")
            chunks.append(chunk)
        if size == 0:
            raise UploadRejected("No file uploaded")

        stored = unique_stored_name(filename)
        path = self.directory / stored
        await asyncio.to_thread(path.write_bytes, b"".join(chunks))
        logger.info("Stored upload %s as %s (%d bytes)", filename, stored, size)

        return UploadMeta(
            title=(title or "").strip() or Path(filename).stem or stored,
            url=f"{self.url_prefix}/{stored}",
            uploaded_by=(username or "").strip() or "Anonymous",
            filename=stored,
        )

    def path_for(self, filename: str) -> Optional[Path]:
        """Resolve a stored filename, refusing anything outside the upload dir."""
        if not filename or ".." in filename or "/" in filename or "\\" in filename:
            return None
        path = self.directory / filename
        return path if path.is_file() else None

    async def delete(self, url: str) -> bool:
        path = self.path_for(Path(url).name)
        if path is None:
            return False
        await asyncio.to_thread(path.unlink, True)
        logger.info("Deleted stored upload %s", path.name)
        return True
