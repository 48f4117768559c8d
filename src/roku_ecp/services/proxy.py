"""
Transparent reverse proxy in front of one ECP device

Method, raw path, query, headers and body are forwarded as received and the
device response is streamed back untouched. No retries; a failure to reach
the device is answered with 502.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Dict, List, Optional, Tuple

import aiohttp
from fastapi import FastAPI, Request, Response
from fastapi.responses import StreamingResponse
from yarl import URL

from ..constants import DEFAULT_ECP_PORT
from ..http_helper import create_proxy_session

logger = logging.getLogger(__name__)

ALL_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]

# Framing headers that do not survive re-sending the body on a new connection
REQUEST_SKIP_HEADERS = {"content-length", "transfer-encoding", "connection", "keep-alive"}
RESPONSE_SKIP_HEADERS = {"transfer-encoding", "connection", "keep-alive"}


def _forward_headers(headers: List[Tuple[bytes, bytes]], skip) -> List[Tuple[str, str]]:
    result = []
    for key, value in headers:
        name = key.decode("latin-1")
        if name.lower() in skip:
            continue
        result.append((name, value.decode("latin-1")))
    return result


class DeviceProxy:
    """Forwards every request to http://{remote_host}:{remote_port}"""

    def __init__(self, remote_host: str, remote_port: int = DEFAULT_ECP_PORT, timeout_seconds: float = 30,
                 session: Optional[aiohttp.ClientSession] = None):
        self.remote_host = remote_host
        self.remote_port = int(remote_port)
        self.timeout_seconds = timeout_seconds
        self._own_session = session is None
        self._session = session
        self.app = self._create_app()

    @classmethod
    def from_config(cls, config: Dict) -> "DeviceProxy":
        device = config['device']
        return cls(device['host'], device.get('port', DEFAULT_ECP_PORT))

    @property
    def remote_url(self) -> str:
        return f"http://{self.remote_host}:{self.remote_port}"

    def _create_app(self) -> FastAPI:
        app = FastAPI(title="ECP Reverse Proxy", docs_url=None, redoc_url=None, openapi_url=None,
                      lifespan=self._lifespan)

        @app.api_route("/{path:path}", methods=ALL_METHODS, include_in_schema=False)
        async def forward(request: Request):
            return await self.forward(request)

        return app

    @asynccontextmanager
    async def _lifespan(self, app: FastAPI):
        logger.info(f"Proxying to {self.remote_url}")
        try:
            yield
        finally:
            await self.close()

    async def close(self):
        if self._own_session and self._session is not None and not self._session.closed:
            await self._session.close()
        if self._own_session:
            self._session = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            self._session = create_proxy_session(self.timeout_seconds)
        return self._session

    def _target(self, request: Request) -> URL:
        raw_path = request.scope.get("raw_path") or request.url.path.encode("utf-8")
        target = raw_path.decode("latin-1")
        query = request.scope.get("query_string", b"")
        if query:
            target += "?" + query.decode("latin-1")
        return URL(self.remote_url + target, encoded=True)

    async def forward(self, request: Request) -> Response:
        target = self._target(request)
        body = await request.body()
        headers = _forward_headers(request.headers.raw, REQUEST_SKIP_HEADERS)
        logger.debug(f"Proxy {request.method} {target.raw_path_qs}")

        try:
            upstream = await self._get_session().request(
                request.method, target, headers=headers, data=body or None,
                allow_redirects=False,
            )
        except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as e:
            logger.warning(f"Proxy {request.method} {target.raw_path_qs} failed: {str(e) or e.__class__.__name__}")
            return Response(content=b"Bad Gateway", status_code=502, media_type="text/plain")

        response_headers = _forward_headers(upstream.raw_headers, RESPONSE_SKIP_HEADERS)

        async def stream():
            try:
                async for chunk in upstream.content.iter_any():
                    yield chunk
            finally:
                upstream.release()

        response = StreamingResponse(stream(), status_code=upstream.status)
        # Raw list keeps repeated headers such as Set-Cookie
        response.raw_headers = [(k.encode("latin-1"), v.encode("latin-1")) for k, v in response_headers]
        return response
