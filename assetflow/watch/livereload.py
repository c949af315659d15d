"""
LiveReload server.

Speaks the LiveReload protocol (official-7) over websockets so browser
extensions and injected livereload clients can be told to refresh:

    client -> {"command": "hello", "protocols": [...]}
    server -> {"command": "hello", "protocols": [...], "serverName": "assetflow"}
    server -> {"command": "reload", "path": "css/main.css", "liveCSS": true}
"""

from __future__ import annotations

import json
import logging
import threading
from typing import Optional, Set

from websockets.exceptions import ConnectionClosed
from websockets.sync.server import ServerConnection, serve

logger = logging.getLogger(__name__)

PROTOCOL_7 = "http://livereload.com/protocols/official-7"
SERVER_NAME = "assetflow"


class LiveReloadServer:
    """Broadcast channel telling connected browsers to reload."""

    def __init__(self, host: str = "127.0.0.1", port: int = 35729):
        self.host = host
        self.port = port
        self._clients: Set[ServerConnection] = set()
        self._lock = threading.Lock()
        self._server = None
        self._thread: Optional[threading.Thread] = None

    @property
    def address(self) -> str:
        return f"ws://{self.host}:{self.port}/livereload"

    @property
    def client_count(self) -> int:
        with self._lock:
            return len(self._clients)

    def _handle(self, websocket: ServerConnection) -> None:
        try:
            for raw in websocket:
                try:
                    message = json.loads(raw)
                except (TypeError, ValueError):
                    logger.debug(f"Ignoring malformed LiveReload message: {raw!r}")
                    continue

                command = message.get("command") if isinstance(message, dict) else None
                if command == "hello":
                    websocket.send(json.dumps({
                        "command": "hello",
                        "protocols": [PROTOCOL_7],
                        "serverName": SERVER_NAME,
                    }))
                    with self._lock:
                        self._clients.add(websocket)
                    logger.info("LiveReload client connected")
                elif command == "info":
                    logger.debug(f"LiveReload client info: {message.get('url')}")
        except ConnectionClosed:
            pass
        finally:
            with self._lock:
                self._clients.discard(websocket)

    def start(self) -> None:
        self._server = serve(self._handle, self.host, self.port)
        # Port 0 picks a free port; report the real one.
        self.port = self._server.socket.getsockname()[1]
        self._thread = threading.Thread(
            target=self._server.serve_forever, name="livereload", daemon=True
        )
        self._thread.start()
        logger.info(f"LiveReload listening on {self.address}")

    def reload(self, path: str = "", live_css: bool = True) -> int:
        """Tell every connected client to reload ``path``. Returns clients notified."""
        payload = json.dumps({"command": "reload", "path": path, "liveCSS": live_css})

        with self._lock:
            clients = list(self._clients)

        sent = 0
        for websocket in clients:
            try:
                websocket.send(payload)
                sent += 1
            except ConnectionClosed:
                with self._lock:
                    self._clients.discard(websocket)

        logger.info(f"Reload requested for {path or 'page'} ({sent} clients)")
        return sent

    def stop(self) -> None:
        with self._lock:
            clients = list(self._clients)
            self._clients.clear()
        for websocket in clients:
            websocket.close()

        if self._server is not None:
            self._server.shutdown()
            self._server = None
        if self._thread is not None:
            self._thread.join(timeout=5)
            self._thread = None
