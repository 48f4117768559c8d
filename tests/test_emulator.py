import asyncio

import pytest

from roku_ecp import DeviceClient
from roku_ecp.exceptions import RokuHttpError
from roku_ecp.models import AppDescriptor
from roku_ecp.services import Emulator, EmulatorServer
from roku_ecp.wire import deserialize_apps, extract_tag_text


def test_default_roster_and_active_app():
    emulator = Emulator()

    assert [(a.id, a.version, a.name) for a in emulator.list_apps()] == [
        ("1", "1.0", "Hulu Plus"),
        ("2", "2.0", "TWiT"),
        ("3", "3.0", "Whisky Media"),
        ("4", "4.0", "Netflix"),
    ]
    assert emulator.get_active_app().name == "Hulu Plus"


def test_launch_add_app_and_icons():
    emulator = Emulator()
    emulator.add_app(AppDescriptor("5", "5.0", "Plex & Co"))

    assert emulator.launch_app("5") is True
    assert emulator.launch_app("999") is False
    assert emulator.get_active_app().name == "Plex & Co"
    assert deserialize_apps(emulator.list_apps_xml())[-1].name == "Plex & Co"

    emulator.set_icon("5", b"\x89PNG")
    assert emulator.get_icon("5") == b"\x89PNG"
    assert emulator.get_icon("unknown") == b""


def test_empty_roster_reports_home_screen():
    emulator = Emulator(apps=[])

    assert emulator.get_active_app() is None
    assert "<app>Roku</app>" in emulator.active_app_xml()


def test_device_client_against_emulator():
    async def _run():
        server = EmulatorServer(host="127.0.0.1", port=0, ssdp=False)
        server.emulator.set_icon("2", b"icon-bytes")
        await server.start()
        try:
            async with DeviceClient("127.0.0.1", server.port, timeout_seconds=5) as client:
                apps = await client.get_apps()
                info = await client.get_device_info()
                power = await client.get_power_state()
                await client.launch(apps[2])
                active = await client.get_active_app()
                icon = await apps[1].icon()
                await client.literal("Hi")
                await client.volume_up("keydown")
                await client.search({"keyword": "news"})
                with pytest.raises(RokuHttpError) as excinfo:
                    await client._get("/query/unknown")
        finally:
            await server.stop()
        return apps, info, power, active, icon, server.emulator.history, excinfo.value

    apps, info, power, active, icon, history, error = asyncio.run(_run())

    assert [a.name for a in apps] == ["Hulu Plus", "TWiT", "Whisky Media", "Netflix"]
    assert info.model_name == "Emulated Roku"
    assert info.roku_type == "Box"
    assert info.software_version == "1.0.000"
    assert power == "On"
    assert active.name == "Whisky Media"
    assert icon == b"icon-bytes"
    assert error.status == 404
    assert history == [
        ("POST", "/launch/3", {"contentID": "3"}),
        ("POST", "/keypress/Lit_H", {}),
        ("POST", "/keypress/Lit_i", {}),
        ("POST", "/keydown/VolumeUp", {}),
        ("POST", "/search/browse", {"keyword": "news"}),
    ]


def test_literal_escapes_reach_the_device_unchanged():
    async def _run():
        server = EmulatorServer(host="127.0.0.1", port=0, ssdp=False)
        await server.start()
        try:
            async with DeviceClient("127.0.0.1", server.port, timeout_seconds=5) as client:
                await client.literal("a&=? +")
        finally:
            await server.stop()
        return server.emulator.history

    history = asyncio.run(_run())

    assert [path for _, path, _ in history] == [
        "/keypress/Lit_a",
        "/keypress/Lit_%26",
        "/keypress/Lit_%3D",
        "/keypress/Lit_%3F",
        "/keypress/Lit_+",
        "/keypress/Lit_%2B",
    ]


def test_device_info_xml_is_parseable():
    xml = Emulator().device_info_xml()

    assert extract_tag_text(xml, "serial-number") == "EMULATOR"
    assert extract_tag_text(xml, "user-device-name") == "Roku Emulator"
    assert extract_tag_text(xml, "power-mode") == "PowerOn"
