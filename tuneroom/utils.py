"""Small helpers shared by server and client."""
import random
import time


def now_ms() -> int:
    """Wall-clock epoch milliseconds."""
    return int(time.time() * 1000)


def fmt_time(seconds: float) -> str:
    m, s = divmod(int(max(0.0, seconds)), 60)
    return f"{m}:{s:02d}"


def file_extension(filename: str) -> str:
    if "." not in filename:
        return ""
    return filename.rsplit(".", 1)[-1].lower()


def unique_stored_name(original: str) -> str:
    """`<epoch-ms>-<random>.<ext>`, keeping only the extension of the client name."""
    ext = file_extension(original)
    if not ext.isalnum():
        ext = ""
    suffix = f"{now_ms()}-{random.randint(0, 10**9)}"
    return f"{suffix}.{ext}" if ext else suffix
