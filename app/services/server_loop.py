"""
Server loop: bind the listener, serve the app with uvicorn, drain on shutdown.

The loop owns the listening socket for its whole lifetime. Shutdown is
driven by an awaitable trigger (``shutdown_signal`` by default). When it
resolves, uvicorn stops accepting, lets in-flight requests finish and
returns; the process then exits 0.

States move one way only: starting -> serving -> draining -> stopped.
"""

from contextlib import contextmanager
from enum import Enum
from fastapi import FastAPI
from typing import Awaitable, Callable, List, Optional, Tuple
import asyncio
import logging
import socket
import uvicorn

from app.config import FULL_PROFILE, ServerConfig
from app.factory import create_app
from app.schemas.api_docs import build_api_docs
from app.services.shutdown_signal import shutdown_signal
from app.utils.logging_setup import LoggingConfig, init_logging

logger = logging.getLogger(__name__)

ShutdownTrigger = Callable[[], Awaitable[object]]

BACKLOG = 2048


class ServerState(str, Enum):
    STARTING = "starting"
    SERVING = "serving"
    DRAINING = "draining"
    STOPPED = "stopped"


class GracefulServer(uvicorn.Server):
    """uvicorn server that leaves signal handling to the shutdown trigger"""

    def __init__(self, config: uvicorn.Config, on_started: Callable[[], None]):
        super().__init__(config)
        self._on_started = on_started

    @contextmanager
    def capture_signals(self):
        yield

    def install_signal_handlers(self) -> None:
        pass

    async def startup(self, sockets: Optional[List[socket.socket]] = None) -> None:
        await super().startup(sockets=sockets)
        if not self.should_exit:
            self._on_started()


def bind_socket(host: str, port: int) -> socket.socket:
    """Bind and listen on host:port. A failed bind ends the process."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
    try:
        sock.bind((host, port))
        sock.listen(BACKLOG)
    except OSError as e:
        sock.close()
        logger.error(f"Could not bind {host}:{port}: {e}")
        raise SystemExit(1) from e
    return sock


class ServerLoop:
    def __init__(
        self,
        config: ServerConfig = FULL_PROFILE,
        app: Optional[FastAPI] = None,
        shutdown_trigger: ShutdownTrigger = shutdown_signal,
    ):
        self.config = config
        self.app = app
        self.shutdown_trigger = shutdown_trigger
        self.state = ServerState.STARTING
        self.server: Optional[GracefulServer] = None
        self.sockets: List[socket.socket] = []
        self._serving: Optional[asyncio.Event] = None

    @property
    def bound_address(self) -> Optional[Tuple[str, int]]:
        """Actual listener address, useful when the port was 0"""
        if not self.sockets:
            return None
        return self.sockets[0].getsockname()[:2]

    def _transition(self, new_state: ServerState) -> None:
        logger.info(f"Server {self.state.value} -> {new_state.value}")
        self.state = new_state

    def _build_server(self, app: FastAPI) -> GracefulServer:
        uvicorn_config = uvicorn.Config(
            app,
            host=self.config.host,
            port=self.config.port,
            lifespan="on",
            log_config=None,
            log_level="info",
            timeout_graceful_shutdown=self.config.drain_timeout,
        )
        return GracefulServer(uvicorn_config, on_started=self._on_started)

    def _on_started(self) -> None:
        self._transition(ServerState.SERVING)
        self._serving.set()

    async def serve(self) -> int:
        init_logging(LoggingConfig())
        api_docs = build_api_docs()

        sock = bind_socket(self.config.host, self.config.port)
        self.sockets = [sock]
        self._serving = asyncio.Event()
        try:
            app = self.app if self.app is not None else create_app(self.config, api_docs)
            self.server = self._build_server(app)

            logger.info(f"starting server at {self.config.address} (profile={self.config.profile})")
            serve_task = asyncio.ensure_future(self.server.serve(sockets=self.sockets))
            # Armed right away so an early signal is not lost; acted on once serving
            shutdown_task = asyncio.ensure_future(self.shutdown_trigger())

            serving = asyncio.ensure_future(self._serving.wait())
            await asyncio.wait({serve_task, serving}, return_when=asyncio.FIRST_COMPLETED)
            serving.cancel()

            if not serve_task.done():
                await asyncio.wait({serve_task, shutdown_task}, return_when=asyncio.FIRST_COMPLETED)
                if shutdown_task.done():
                    return await self._drain(serve_task, shutdown_task)

            # uvicorn returned without being asked to stop
            shutdown_task.cancel()
            await asyncio.gather(shutdown_task, return_exceptions=True)
            serve_task.result()
            started = self.state is ServerState.SERVING
            self._transition(ServerState.STOPPED)
            if not started:
                logger.error("Server failed to start")
                raise SystemExit(1)
            return 0
        finally:
            sock.close()

    async def _drain(self, serve_task: asyncio.Future, shutdown_task: asyncio.Future) -> int:
        failure = shutdown_task.exception()
        if failure is None:
            self._transition(ServerState.DRAINING)

        # uvicorn closes the listeners first, then waits for open connections
        self.server.should_exit = True
        await serve_task
        self._transition(ServerState.STOPPED)

        if failure is not None:
            logger.error(f"Shutdown watcher failed: {failure}")
            raise failure
        logger.info("Server stopped cleanly")
        return 0

    def run(self) -> int:
        return asyncio.run(self.serve())


def run_server(config: ServerConfig = FULL_PROFILE) -> int:
    """Blocking entry point; returns the process exit code"""
    return ServerLoop(config).run()
