"""
Background uvicorn servers for the bridge, proxy and emulator apps
"""

import asyncio
from contextlib import nullcontext
import logging
from typing import Optional

import uvicorn

logger = logging.getLogger(__name__)


class ServerHandle:
    """Runs one ASGI app under uvicorn as a task on the current loop

    Port 0 binds an ephemeral port; `port` holds the real one after start().
    """

    def __init__(self, app, host: str = "127.0.0.1", port: int = 0, name: str = "server"):
        self.app = app
        self.host = host
        self.port = port
        self.name = name
        self._server: Optional[uvicorn.Server] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def started(self) -> bool:
        return self._server is not None and self._server.started

    @property
    def base_url(self) -> str:
        host = "127.0.0.1" if self.host in ("0.0.0.0", "") else self.host
        return f"http://{host}:{self.port}"

    async def start(self):
        config = uvicorn.Config(
            self.app,
            host=self.host,
            port=self.port,
            log_level="info",
            log_config=None,    # keep the process logging setup
            access_log=False,   # We handle our own logging
            lifespan="on",
        )
        self._server = uvicorn.Server(config)
        # Signals belong to the process entry point, not to each server
        self._server.capture_signals = nullcontext
        self._server.install_signal_handlers = lambda: None
        self._task = asyncio.create_task(self._serve())

        while not self._server.started:
            if self._task.done():
                self._server = None
                task, self._task = self._task, None
                # Re-raises the startup failure from _serve()
                task.result()
                raise RuntimeError(f"{self.name} exited before it started on {self.host}:{self.port}")
            await asyncio.sleep(0.01)

        sockets = self._server.servers[0].sockets
        self.port = sockets[0].getsockname()[1]
        logger.info(f"{self.name} listening on {self.host}:{self.port}")

    async def _serve(self):
        # uvicorn calls sys.exit(1) when it cannot bind
        try:
            await self._server.serve()
        except SystemExit as e:
            raise RuntimeError(f"{self.name} failed to start on {self.host}:{self.port}") from e

    async def wait(self):
        """Block until the server exits"""
        if self._task is not None:
            await self._task

    async def stop(self):
        if self._server is None:
            return
        self._server.should_exit = True
        if self._task is not None:
            try:
                await self._task
            except RuntimeError as e:
                logger.warning(f"{self.name} exited with an error: {e}")
        self._server = None
        self._task = None
        logger.info(f"{self.name} stopped")
