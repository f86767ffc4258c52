"""Error taxonomy + structured error logging (JSON lines to errors.log)."""
import json
import logging
import sys
from datetime import datetime
from typing import Optional

from .config import ERRORS_LOG, OUTPUT_DIR, DEV_MODE

logger = logging.getLogger(__name__)

_FRIENDLY_MESSAGES = {
    "dispatch": "Something went wrong handling that action.",
    "upload": "Upload failed.",
    "delete_track": "Couldn't delete that track.",
    "send": "Lost connection to a listener.",
    "preflight": "Startup check failed.",
}


class InvalidAction(Exception):
    """An inbound action references something that doesn't exist or is malformed.

    Always ignored by the dispatcher, never fatal to the loop.
    """


class UploadRejected(Exception):
    """Uploaded file failed validation before reaching the catalog."""

    def __init__(self, message: str, status: int = 400):
        super().__init__(message)
        self.message = message
        self.status = status


def format_error(
    stage: str,
    context: Optional[dict] = None,
    raw: str = "",
) -> str:
    entry = {
        "timestamp": datetime.now().isoformat(),
        "stage": stage,
        "context": context,
        "error": raw,
        "python": sys.version.split()[0],
    }

    _append_to_log(entry)
    logger.error("Error at %s: %s", stage, raw)

    if DEV_MODE:
        return json.dumps(entry, indent=2)
    return _FRIENDLY_MESSAGES.get(stage, f"Something went wrong ({stage}).")


def _append_to_log(entry: dict):
    try:
        OUTPUT_DIR.mkdir(parents=True, exist_ok=True)
        with open(ERRORS_LOG, "a") as f:
            f.write(json.dumps(entry) + "\n")
    except OSError:
        pass
