"""Start the desktop-eyes service after making sure its port can be bound.

A leftover desktop-eyes server holding the port is stopped; a foreign
listener is left alone and the launch is aborted.
"""

from __future__ import annotations

import argparse
import socket
import sys
import time
from typing import Iterable, List

try:
    import psutil  # type: ignore
except Exception:  # pragma: no cover - optional dependency
    psutil = None

import httpx
import uvicorn

from desktop_eyes.config import DEV_HOST, DEV_PORT, is_test_mode, resolve_host_port

APP_PATH = "desktop_eyes.app:app"
_PSUTIL_GONE = () if psutil is None else (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess)


def log(message: str) -> None:
    print(f"[desktop-eyes] {message}", flush=True)


def port_bindable(host: str, port: int) -> bool:
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
    try:
        sock.bind((host, port))
    except OSError:
        return False
    finally:
        sock.close()
    return True


def service_answering(host: str, port: int) -> bool:
    try:
        resp = httpx.get(f"http://{host}:{port}/", timeout=1.0)
    except httpx.HTTPError:
        return False
    if resp.status_code != 200:
        return False
    try:
        return resp.json().get("service") == "desktop-eyes"
    except ValueError:
        return False


def listeners(port: int) -> List["psutil.Process"]:
    found: List["psutil.Process"] = []
    if psutil is None:
        return found
    for conn in psutil.net_connections(kind="inet"):
        if conn.status != psutil.CONN_LISTEN or not conn.laddr or conn.laddr.port != port or not conn.pid:
            continue
        try:
            found.append(psutil.Process(conn.pid))
        except _PSUTIL_GONE:
            continue
    return found


def is_own_process(cmdline: Iterable[str]) -> bool:
    joined = " ".join(cmdline or []).lower()
    return ("uvicorn" in joined and APP_PATH in joined) or "desktop_eyes.launch_backend" in joined


def stop(proc: "psutil.Process", timeout: float = 3.0) -> bool:
    log(f"stopping stale server pid={proc.pid}")
    proc.terminate()
    _, alive = psutil.wait_procs([proc], timeout=timeout)
    for leftover in alive:
        leftover.kill()
    _, alive = psutil.wait_procs(alive, timeout=timeout)
    if alive:
        log(f"pid={proc.pid} survived kill")
    return not alive


def ensure_port_free(host: str, port: int) -> str:
    """
    Return "free", "running" (desktop-eyes already serves this port),
    "blocked" (held by another program) or "unknown".
    """
    if port_bindable(host, port):
        return "free"
    if service_answering(host, port):
        log(f"already serving on http://{host}:{port}")
        return "running"
    if psutil is None:
        log(f"{host}:{port} is taken and psutil is missing; cannot inspect the owner")
        return "unknown"

    owners = listeners(port)
    if not owners:
        log(f"{host}:{port} is taken by a process that cannot be inspected")
        return "unknown"
    for proc in owners:
        try:
            cmdline = proc.cmdline()
        except _PSUTIL_GONE:
            cmdline = []
        if not is_own_process(cmdline):
            log(f"{host}:{port} belongs to pid={proc.pid}; leaving it running")
            return "blocked"
        if not stop(proc):
            return "blocked"

    deadline = time.monotonic() + 3.0
    while time.monotonic() < deadline:
        if port_bindable(host, port):
            return "free"
        time.sleep(0.3)
    return "blocked"


def main(host: str | None = None, port: int | None = None, reload: bool = False) -> None:
    bind_host, bind_port = resolve_host_port(host=host, port=port)

    state = ensure_port_free(bind_host, bind_port)
    if state == "running":
        sys.exit(0)
    if state != "free":
        sys.exit(1)

    profile = "test" if is_test_mode() else "dev"
    log(f"serving {APP_PATH} at http://{bind_host}:{bind_port} ({profile})")
    uvicorn.run(APP_PATH, host=bind_host, port=bind_port, reload=reload, log_level="info")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Run the desktop-eyes HTTP service.")
    parser.add_argument("--host", help=f"bind address (dev default {DEV_HOST})")
    parser.add_argument("--port", type=int, help=f"bind port (dev default {DEV_PORT})")
    parser.add_argument("--reload", action="store_true", help="restart on code changes")
    args = parser.parse_args()

    main(host=args.host, port=args.port, reload=args.reload)
