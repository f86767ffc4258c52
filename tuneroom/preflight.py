"""Startup preflight check"""
import socket
from pathlib import Path

import httpx
from rich.console import Console

from .config import APP_VERSION, HOST, PORT, PUBLIC_DIR, UPLOADS_DIR

console = Console()


async def run_preflight(host: str = HOST, port: int = PORT, uploads_dir: Path = UPLOADS_DIR) -> bool:
    """
    Run all startup checks. Print results. Return True only if ALL pass.
    """
    console.print(f"\n  [bold]♪  tuneroom v{APP_VERSION}[/bold] — preflight check\n")

    checks = [
        ("Python deps", _check_python_deps),
        ("Uploads dir", lambda: _check_uploads_dir(uploads_dir)),
        ("Port", lambda: _check_port(host, port)),
        ("Frontend", _check_public_dir),
    ]

    results = []
    for i, (label, fn) in enumerate(checks, 1):
        ok, msg, fix = await fn()
        results.append((ok, label, msg, fix))
        icon = "[green]✓[/green]" if ok else "[red]✗[/red]"
        dot_count = 30 - len(label)
        dots = "." * max(dot_count, 3)
        status = f"[green]{msg}[/green]" if ok else f"[red]{msg}[/red]"
        console.print(f"  [{i}/{len(checks)}] {label} {dots} {icon} {status}")

    # Print fix instructions for any failures
    failures = [(label, fix) for ok, label, _, fix in results if not ok and fix]
    if failures:
        console.print("")
        for label, fix in failures:
            console.print(f"  [yellow]Fix for {label}:[/yellow]")
            for line in fix.strip().splitlines():
                console.print(f"    {line}")
            console.print("")
        console.print("  Then re-run: [bold]python server.py[/bold]\n")
        return False

    console.print("")
    return True


async def _check_python_deps() -> tuple[bool, str, str]:
    missing = []
    versions = []
    try:
        import starlette
        versions.append(f"starlette {starlette.__version__}")
    except ImportError:
        missing.append("starlette")

    try:
        import uvicorn
        versions.append(f"uvicorn {uvicorn.__version__}")
    except ImportError:
        missing.append("uvicorn")

    try:
        import multipart  # noqa: F401
        versions.append("python-multipart")
    except ImportError:
        missing.append("python-multipart")

    try:
        import dotenv  # noqa: F401
        versions.append("python-dotenv")
    except ImportError:
        missing.append("python-dotenv")

    if missing:
        return False, f"missing: {', '.join(missing)}", "Run: pip install -e ."
    return True, ", ".join(versions), ""


async def _check_uploads_dir(uploads_dir: Path) -> tuple[bool, str, str]:
    try:
        uploads_dir.mkdir(parents=True, exist_ok=True)
        probe = uploads_dir / ".write_test"
        probe.write_text("ok")
        probe.unlink()
    except OSError as e:
        return False, "not writable", f"Check permissions on {uploads_dir} ({e})"
    return True, str(uploads_dir), ""


async def _check_port(host: str, port: int) -> tuple[bool, str, str]:
    probe_host = "127.0.0.1" if host in ("0.0.0.0", "") else host
    # Another tuneroom already running?
    try:
        async with httpx.AsyncClient(timeout=2) as client:
            r = await client.get(f"http://{probe_host}:{port}/api/health")
            if r.status_code == 200:
                return False, "tuneroom already running", "Stop the other server or set PORT in .env"
    except httpx.HTTPError:
        pass

    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            s.bind((host, port))
        except OSError:
            return False, f"{port} in use", "Set PORT in .env to a free port"
    return True, f"{host}:{port} free", ""


async def _check_public_dir() -> tuple[bool, str, str]:
    # Missing frontend is not fatal
    if (PUBLIC_DIR / "index.html").exists():
        return True, str(PUBLIC_DIR), ""
    return True, "no index.html (API only)", ""
