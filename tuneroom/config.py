"""Config & constants"""
import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root (one level up from tuneroom/)
_ROOT = Path(__file__).parent.parent
load_dotenv(_ROOT / ".env")

# ─── Paths ────────────────────────────────────────────────────────────────────
ROOT_DIR = _ROOT
PUBLIC_DIR = ROOT_DIR / os.getenv("PUBLIC_DIR", "public")
DATA_DIR = ROOT_DIR / os.getenv("DATA_DIR", "data")
UPLOADS_DIR = Path(os.getenv("UPLOADS_DIR", str(DATA_DIR / "uploads")))
OUTPUT_DIR = ROOT_DIR / os.getenv("OUTPUT_DIR", "output")
ERRORS_LOG = OUTPUT_DIR / "errors.log"

# ─── Web server ──────────────────────────────────────────────────────────────
HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "3000"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# ─── Rooms ────────────────────────────────────────────────────────────────────
HISTORY_LIMIT = int(os.getenv("HISTORY_LIMIT", "100"))
MAX_CHAT_LENGTH = int(os.getenv("MAX_CHAT_LENGTH", "2000"))
# Outbound frames buffered per connection before it counts as dead
SUBSCRIBER_QUEUE_SIZE = int(os.getenv("SUBSCRIBER_QUEUE_SIZE", "256"))

# ─── Client sync ──────────────────────────────────────────────────────────────
# Local playhead drift (seconds) tolerated before the client seeks
SYNC_TOLERANCE_S = float(os.getenv("SYNC_TOLERANCE_S", "0.1"))

# ─── Uploads ──────────────────────────────────────────────────────────────────
MAX_UPLOAD_MB = int(os.getenv("MAX_UPLOAD_MB", "50"))
MAX_UPLOAD_BYTES = MAX_UPLOAD_MB * 1024 * 1024
UPLOAD_ID_START = 1000

ALLOWED_EXTENSIONS = ["mp3", "wav", "ogg", "m4a", "aac", "flac"]
ALLOWED_MIME_TYPES = [
    "audio/mpeg", "audio/mp3",
    "audio/wav", "audio/wave", "audio/x-wav",
    "audio/ogg", "audio/oga",
    "audio/m4a", "audio/x-m4a", "audio/mp4",
    "audio/aac",
    "audio/flac", "audio/x-flac",
    "audio/webm",
]

DEFAULT_COVER = "https://images.unsplash.com/photo-1493225457124-a3eb161ffa5f?w=300&h=300&fit=crop"
DEFAULT_ARTIST = "Unknown Artist"

APP_VERSION = "0.1.0"

# ─── Dev mode ─────────────────────────────────────────────────────────────────
DEV_MODE = os.getenv("DEV_MODE", "1").strip() in ("1", "true", "yes")
