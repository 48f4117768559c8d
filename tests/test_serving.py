import asyncio
import socket

import pytest
from fastapi import FastAPI

from roku_ecp.services import ServerHandle


def test_busy_port_raises_runtime_error():
    async def _run():
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as busy:
            busy.bind(("127.0.0.1", 0))
            busy.listen(1)
            port = busy.getsockname()[1]
            handle = ServerHandle(FastAPI(), "127.0.0.1", port, name="Busy server")
            with pytest.raises(RuntimeError, match="Busy server failed to start"):
                await handle.start()
            assert handle.started is False
            # stop() after a failed start is a no-op
            await handle.stop()

    asyncio.run(_run())


def test_ephemeral_port_is_reported_after_start():
    async def _run():
        handle = ServerHandle(FastAPI(), "127.0.0.1", 0)
        await handle.start()
        try:
            return handle.started, handle.port, handle.base_url
        finally:
            await handle.stop()

    started, port, base_url = asyncio.run(_run())
    assert started is True
    assert port > 0
    assert base_url == f"http://127.0.0.1:{port}"
