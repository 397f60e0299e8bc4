"""
Serve an ASGI app with uvicorn on a background thread.

Used by the mock provider for every consumer test run and by the provider
verification fixtures. The listening socket is bound before the thread
starts, so ``port=0`` yields a free port that is known up-front, and it is
released by ``stop()`` on every exit path.
"""

from __future__ import annotations

import logging
import socket
import threading
import time
from typing import Any, Optional

import uvicorn

from handshake.errors import ConfigurationError

logger = logging.getLogger(__name__)


class BackgroundServer:
    def __init__(
        self,
        app: Any,
        host: str = "127.0.0.1",
        port: int = 0,
        log_level: str = "warning",
        startup_timeout: float = 10.0,
    ) -> None:
        self.app = app
        self.host = host
        self.requested_port = port
        self.log_level = log_level
        self.startup_timeout = startup_timeout
        self._socket: Optional[socket.socket] = None
        self._port: Optional[int] = None
        self._server: Optional[uvicorn.Server] = None
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def port(self) -> int:
        if self._port is None:
            raise ConfigurationError("Server is not listening")
        return self._port

    @property
    def url(self) -> str:
        return f"http://{self.host}:{self.port}"

    def start(self) -> "BackgroundServer":
        if self.running:
            return self
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            sock.bind((self.host, self.requested_port))
        except OSError as exc:
            sock.close()
            raise ConfigurationError(f"Cannot listen on {self.host}:{self.requested_port}: {exc}") from exc
        self._socket = sock
        self._port = sock.getsockname()[1]

        config = uvicorn.Config(self.app, log_level=self.log_level, lifespan="off")
        self._server = uvicorn.Server(config)
        self._thread = threading.Thread(
            target=self._server.run,
            kwargs={"sockets": [sock]},
            name=f"uvicorn-{self.port}",
            daemon=True,
        )
        self._thread.start()

        deadline = time.monotonic() + self.startup_timeout
        while not self._server.started:
            if not self._thread.is_alive() or time.monotonic() > deadline:
                self.stop()
                raise ConfigurationError(f"Server on {self.host}:{self.requested_port} failed to start")
            time.sleep(0.01)
        logger.info("Listening on %s", self.url)
        return self

    def stop(self) -> None:
        if self._server is not None:
            self._server.should_exit = True
        if self._thread is not None:
            self._thread.join(timeout=self.startup_timeout)
            if self._thread.is_alive():
                logger.warning("Server thread %s did not exit in time", self._thread.name)
        if self._socket is not None:
            # uvicorn closes the listener on shutdown; closing twice is a no-op
            self._socket.close()
            logger.info("Released %s:%s", self.host, self._port)
        self._socket = None
        self._port = None
        self._server = None
        self._thread = None

    def __enter__(self) -> "BackgroundServer":
        return self.start()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()
