"""
Local command bridge - FastAPI front end for one ECP device

Authenticates callers with a shared bearer token, serializes every mutating
command through a single FIFO queue in front of one DeviceClient, and keeps
a bounded ring of request events for /stats.
"""

from contextlib import asynccontextmanager
from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse
from typing import Callable, Dict, Mapping, Optional
import logging
import secrets

from .command_routes import MUTATING_ROUTES, create_command_routes
from .commands import AppResolver
from .errors import BridgeError
from .state import BridgeStats, CommandQueue
from .system_routes import create_system_routes

logger = logging.getLogger(__name__)

KNOWN_ROUTES = ("/health", "/stats") + MUTATING_ROUTES
TOKEN_HEADER = "x-roku-token"
ALL_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


def _header_bytes(value: str) -> bytes:
    # Header values arrive latin-1 decoded; this recovers the bytes on the wire
    try:
        return value.encode("latin-1")
    except UnicodeEncodeError:
        return value.encode("utf-8")


def has_valid_token(headers: Mapping[str, str], token: str) -> bool:
    """Accept `Authorization: Bearer <token>` or `X-Roku-Token: <token>`

    Compared as bytes so non-ASCII values are a mismatch rather than an error.
    """
    expected = token.encode("utf-8")
    authorization = headers.get("authorization", "")
    if authorization.startswith("Bearer "):
        return secrets.compare_digest(_header_bytes(authorization[len("Bearer "):]), expected)
    alt = headers.get(TOKEN_HEADER)
    if alt is not None:
        return secrets.compare_digest(_header_bytes(alt), expected)
    return False


def alias_resolver(aliases: Optional[Mapping[str, str]]) -> AppResolver:
    """Resolver for the app alias table; unknown names pass through unchanged"""
    table = dict(aliases or {})
    return lambda key: table.get(key, key)


class CommandBridge:
    """Serializes external commands against one DeviceClient"""

    def __init__(self, client, config: Optional[Dict] = None, app_resolver: Optional[AppResolver] = None,
                 owns_client: bool = False):
        bridge_config = (config or {}).get('bridge', {})
        self.client = client
        self.owns_client = owns_client
        token = bridge_config.get('token')
        self.token: Optional[str] = str(token) if token else None
        self.health_probe_timeout = bridge_config.get('health_probe_timeout_seconds', 2)
        self.app_resolver: Callable[[str], str] = app_resolver or alias_resolver((config or {}).get('app_aliases'))

        self.stats = BridgeStats()
        self.queue = CommandQueue()

        self.app = FastAPI(
            title="ECP Command Bridge",
            description="Local command forwarding for one streaming device",
            docs_url=None,
            redoc_url=None,
            openapi_url=None,
            lifespan=self._lifespan,
        )
        self.app.add_exception_handler(BridgeError, self._handle_bridge_error)
        self._setup_routes()

    def _setup_routes(self):
        self.app.include_router(create_system_routes(self))
        self.app.include_router(create_command_routes(self))

        # Registered last so real routes always match first
        @self.app.api_route("/{path:path}", methods=ALL_METHODS, include_in_schema=False,
                            dependencies=[Depends(self.authorize)])
        async def fallback(request: Request):
            if request.url.path in KNOWN_ROUTES:
                raise BridgeError(405, "Method not allowed", "invalid_method")
            raise BridgeError(404, "Not found", "not_found")

    @asynccontextmanager
    async def _lifespan(self, app: FastAPI):
        await self.start()
        try:
            yield
        finally:
            await self.stop()

    async def start(self):
        self.queue.start()
        logger.info(f"Command bridge ready for {self.client!r} (auth {'on' if self.token else 'off'})")

    async def stop(self):
        await self.queue.stop()
        if self.owns_client:
            await self.client.close()
        logger.info(f"Command bridge stopped after {self.stats.total} requests")

    def authorize(self, request: Request) -> None:
        """Raise 401 unless the request carries the configured token"""
        if self.token and not has_valid_token(request.headers, self.token):
            raise BridgeError(401, "Unauthorized", "denied")

    async def probe_device(self) -> None:
        await self.client.probe(self.health_probe_timeout)

    async def _handle_bridge_error(self, request: Request, exc: BridgeError) -> JSONResponse:
        self.stats.record(request.url.path, exc.event_status, {"error": exc.message})
        return JSONResponse(status_code=exc.status_code, content={"ok": False, "error": exc.message})
