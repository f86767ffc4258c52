"""tuneroom — shared listening rooms. Entry point."""
import asyncio
import logging
import sys

import uvicorn
from rich.logging import RichHandler

from tuneroom.config import HOST, PORT, LOG_LEVEL
from tuneroom.preflight import run_preflight
from tuneroom.web.server import create_app


def _setup_logging():
    logging.basicConfig(
        level=LOG_LEVEL,
        format="%(name)s: %(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
    )


def main():
    _setup_logging()
    if not asyncio.run(run_preflight()):
        sys.exit(1)

    # log_config=None keeps uvicorn on the rich handler above
    uvicorn.run(create_app(), host=HOST, port=PORT, log_config=None)


if __name__ == "__main__":
    try:
        main()
    except KeyboardInterrupt:
        pass
