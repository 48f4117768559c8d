import asyncio
import socket

import aiohttp

from roku_ecp.services import DeviceProxy, EmulatorServer, ServerHandle


def _unused_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


def test_proxy_returns_emulator_payload_byte_for_byte():
    async def _run():
        emulator = EmulatorServer(host="127.0.0.1", port=0, ssdp=False)
        await emulator.start()
        proxy = DeviceProxy("127.0.0.1", emulator.port)
        handle = ServerHandle(proxy.app, "127.0.0.1", 0, name="Reverse proxy")
        await handle.start()
        try:
            async with aiohttp.ClientSession() as http:
                async with http.get(f"{emulator.http.base_url}/query/device-info") as direct:
                    direct_body = await direct.read()
                    direct_type = direct.headers["Content-Type"]
                async with http.get(f"{handle.base_url}/query/device-info") as proxied:
                    proxied_body = await proxied.read()
                    proxied_status = proxied.status
                    proxied_type = proxied.headers["Content-Type"]
                async with http.post(f"{handle.base_url}/launch/4", data={"contentID": "4"}) as launched:
                    launch_status = launched.status
                async with http.get(f"{handle.base_url}/nope?x=1") as missing:
                    missing_status = missing.status
        finally:
            await handle.stop()
            await emulator.stop()
        return (direct_body, direct_type, proxied_body, proxied_status, proxied_type,
                launch_status, missing_status, emulator.emulator)

    (direct_body, direct_type, proxied_body, proxied_status, proxied_type,
     launch_status, missing_status, state) = asyncio.run(_run())

    assert proxied_status == 200
    assert proxied_body == direct_body
    assert proxied_type == direct_type
    assert launch_status == 200
    assert state.get_active_app().name == "Netflix"
    assert state.history[-1] == ("POST", "/launch/4", {"contentID": "4"})
    assert missing_status == 404


def test_proxy_answers_502_when_remote_is_down():
    async def _run():
        proxy = DeviceProxy("127.0.0.1", _unused_port(), timeout_seconds=2)
        handle = ServerHandle(proxy.app, "127.0.0.1", 0)
        await handle.start()
        try:
            async with aiohttp.ClientSession() as http:
                async with http.get(f"{handle.base_url}/query/apps") as response:
                    return response.status, await response.read()
        finally:
            await handle.stop()

    status, body = asyncio.run(_run())

    assert status == 502
    assert body == b"Bad Gateway"
