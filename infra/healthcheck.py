"""
Status HTTP endpoint for the scheduler.

Routes:
    /health, /healthz, /   liveness check; 200 while the bot is running, 503 otherwise
    /status                full scheduler snapshot (always 200 when readable)
"""

from __future__ import annotations

import json
import logging
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any, Callable, Dict, Optional, Tuple

logger = logging.getLogger(__name__)

StatusProvider = Callable[[], Dict[str, Any]]

LIVENESS_PATHS = ("/", "/health", "/healthz")
STATUS_PATH = "/status"


def liveness_payload(status: Dict[str, Any]) -> Tuple[int, Dict[str, Any]]:
    """Reduce a scheduler snapshot to the liveness answer a supervisor needs."""
    running = bool(status.get("running"))
    last_cycle = status.get("last_cycle") or {}
    payload = {
        "status": "ok" if running else "unavailable",
        "phase": status.get("phase"),
        "uptime_seconds": status.get("uptime_seconds", 0),
        "last_cycle_ok": last_cycle.get("success"),
    }
    return (200 if running else 503), payload


class _StatusHTTPServer(ThreadingHTTPServer):
    daemon_threads = True

    def __init__(self, address, status_provider: StatusProvider):
        self.status_provider = status_provider
        super().__init__(address, _StatusHandler)


class _StatusHandler(BaseHTTPRequestHandler):
    server: _StatusHTTPServer

    def do_GET(self):  # type: ignore[override]
        path = self.path.split("?", 1)[0]
        if path not in LIVENESS_PATHS and path != STATUS_PATH:
            self._reply(404, {"error": f"unknown path {path}"})
            return

        try:
            status = self.server.status_provider() or {}
        except Exception as exc:
            logger.error(f"Status provider failed: {exc}", exc_info=True)
            self._reply(503, {"status": "error", "error": str(exc)})
            return

        if path == STATUS_PATH:
            self._reply(200, status)
        else:
            self._reply(*liveness_payload(status))

    def _reply(self, code: int, payload: Dict[str, Any]) -> None:
        body = json.dumps(payload, default=str).encode("utf-8")
        self.send_response(code)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, format: str, *args: Any) -> None:
        logger.debug(f"health {self.address_string()} {format % args}")


class HealthServer:
    """Serves the scheduler's status on a background thread."""

    def __init__(self, port: int, status_provider: StatusProvider, host: str = "0.0.0.0"):
        self._address = (host, int(port))
        self._status_provider = status_provider
        self._httpd: Optional[_StatusHTTPServer] = None
        self._thread: Optional[threading.Thread] = None

    @property
    def port(self) -> Optional[int]:
        return self._httpd.server_port if self._httpd else None

    def start(self) -> None:
        if self._httpd is not None:
            return
        self._httpd = _StatusHTTPServer(self._address, self._status_provider)
        self._thread = threading.Thread(target=self._httpd.serve_forever, name="HealthServer", daemon=True)
        self._thread.start()
        logger.info(f"Health endpoint on {self._address[0]}:{self.port} ({', '.join(LIVENESS_PATHS)}, {STATUS_PATH})")

    def stop(self) -> None:
        httpd, thread = self._httpd, self._thread
        self._httpd = self._thread = None
        if httpd is None:
            return
        httpd.shutdown()
        httpd.server_close()
        if thread:
            thread.join(timeout=3)
