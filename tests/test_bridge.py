import asyncio
import json

import httpx

from roku_ecp.bridge import CommandBridge
from roku_ecp.exceptions import RokuNetworkError
from roku_ecp.models import AppDescriptor


class _FakeDevice:
    """Stands in for DeviceClient; every call is recorded once it completes"""

    def __init__(self, delay: float = 0, failing_keys=(), probe_error=None) -> None:
        self.delay = delay
        self.failing_keys = set(failing_keys)
        self.probe_error = probe_error
        self.calls: list[tuple] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self.apps = {"13535": AppDescriptor("13535", "5.3", "Plex")}

    async def _op(self, entry) -> None:
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            self.calls.append(entry)
        finally:
            self.in_flight -= 1

    async def send_command(self, name, state=None) -> None:
        if name in self.failing_keys:
            raise RokuNetworkError(f"{name} timed out")
        await self._op(("key", name, state))

    async def literal(self, text) -> None:
        for char in text:
            await self._op(("char", char))

    async def search(self, params) -> None:
        await self._op(("search", dict(params)))

    async def get_app(self, key):
        return self.apps.get(key) or next((a for a in self.apps.values() if a.name == key), None)

    async def launch(self, app) -> None:
        await self._op(("launch", app.id))

    async def probe(self, timeout_seconds=None) -> None:
        if self.probe_error is not None:
            raise self.probe_error

    async def close(self) -> None:
        pass


def _run_with_bridge(device, test, config=None):
    bridge = CommandBridge(device, config or {})

    async def _run():
        transport = httpx.ASGITransport(app=bridge.app)
        try:
            async with httpx.AsyncClient(transport=transport, base_url="http://bridge") as http:
                return await test(http, bridge)
        finally:
            await bridge.stop()

    return asyncio.run(_run())


def test_handles_key_text_search_and_launch():
    device = _FakeDevice()

    async def test(http, bridge):
        responses = [
            await http.post("/key", json={"key": "home"}),
            await http.post("/text", json={"text": "hi"}),
            await http.post("/search", json={"keyword": "Stargate", "season": 2}),
            await http.post("/launch", json={"app": "plex"}),
        ]
        return responses, bridge.stats.snapshot()

    responses, stats = _run_with_bridge(device, test, {"app_aliases": {"plex": "13535"}})

    assert [r.status_code for r in responses] == [200, 200, 200, 200]
    assert all(r.json() == {"ok": True} for r in responses)
    assert device.calls == [
        ("key", "home", None),
        ("char", "h"),
        ("char", "i"),
        ("search", {"keyword": "Stargate", "season": "2"}),
        ("launch", "13535"),
    ]
    assert [e["status"] for e in stats["events"]] == ["ok"] * 4
    assert stats["events"][0]["detail"] == {"key": "home"}
    assert stats["events"][3]["detail"] == {"app": "plex"}


def test_key_accepts_command_field_and_state():
    device = _FakeDevice()

    async def test(http, bridge):
        return await http.post("/key", json={"command": "volume_up", "state": "keydown"})

    response = _run_with_bridge(device, test)

    assert response.status_code == 200
    assert device.calls == [("key", "volume_up", "keydown")]


def test_token_gate_records_denied_then_ok():
    device = _FakeDevice()

    async def test(http, bridge):
        denied = await http.post("/key", json={"key": "home"})
        total_before = bridge.stats.total
        allowed = await http.post("/key", json={"key": "home"}, headers={"Authorization": "Bearer secret"})
        alt_header = await http.post("/key", json={"key": "back"}, headers={"X-Roku-Token": "secret"})
        wrong = await http.post("/key", json={"key": "home"}, headers={"Authorization": "Bearer nope"})
        stats = await http.get("/stats", headers={"Authorization": "Bearer secret"})
        stats_denied = await http.get("/stats")
        return denied, total_before, allowed, alt_header, wrong, stats, stats_denied

    denied, total_before, allowed, alt_header, wrong, stats, stats_denied = _run_with_bridge(
        device, test, {"bridge": {"token": "secret"}}
    )

    assert denied.status_code == 401
    assert denied.json() == {"ok": False, "error": "Unauthorized"}
    assert allowed.status_code == 200
    assert alt_header.status_code == 200
    assert wrong.status_code == 401
    assert stats_denied.status_code == 401
    assert device.calls == [("key", "home", None), ("key", "back", None)]

    body = stats.json()
    events = body["stats"]["events"]
    assert body["ok"] is True
    assert events[0]["status"] == "denied"
    assert events[1]["status"] == "ok"
    assert events[1]["id"] == total_before + 1
    assert body["stats"]["total"] == 4
    assert body["stats"]["last_event"]["id"] == 4


def test_non_ascii_token_is_denied_not_an_error():
    device = _FakeDevice()

    async def test(http, bridge):
        latin = await http.post("/key", json={"key": "home"}, headers={"Authorization": b"Bearer s\xe9cret"})
        alt = await http.post("/key", json={"key": "home"}, headers={"X-Roku-Token": b"s\xe9cret"})
        return latin, alt, bridge.stats.snapshot()

    latin, alt, stats = _run_with_bridge(device, test, {"bridge": {"token": "secret"}})

    assert latin.status_code == 401
    assert alt.status_code == 401
    assert device.calls == []
    assert stats["total"] == 2
    assert [e["status"] for e in stats["events"]] == ["denied", "denied"]


def test_non_ascii_configured_token_matches_utf8_header():
    device = _FakeDevice()

    async def test(http, bridge):
        ok = await http.post("/key", json={"key": "home"}, headers={"Authorization": "Bearer sécret".encode("utf-8")})
        wrong = await http.post("/key", json={"key": "home"}, headers={"Authorization": "Bearer secret"})
        return ok, wrong

    ok, wrong = _run_with_bridge(device, test, {"bridge": {"token": "sécret"}})

    assert ok.status_code == 200
    assert wrong.status_code == 401
    assert device.calls == [("key", "home", None)]


def test_shallow_health_never_touches_state():
    device = _FakeDevice(probe_error=RokuNetworkError("down"))

    async def test(http, bridge):
        responses = [await http.get("/health") for _ in range(3)]
        return responses, bridge.stats.total

    responses, total = _run_with_bridge(device, test, {"bridge": {"token": "secret"}})

    assert all(r.status_code == 200 for r in responses)
    assert responses[0].json() == {"ok": True, "deep": False, "checked": "skipped", "latency_ms": 0}
    assert total == 0


def test_deep_health_probes_device():
    device = _FakeDevice()

    async def test(http, bridge):
        ok = await http.get("/health", params={"deep": "1"})
        device.probe_error = RokuNetworkError("Request timed out")
        failed = await http.get("/health?deep=true")
        return ok, failed, bridge.stats.snapshot()

    ok, failed, stats = _run_with_bridge(device, test)

    assert ok.status_code == 200
    assert ok.json()["checked"] == "probe"
    assert ok.json()["deep"] is True
    assert failed.status_code == 503
    assert failed.json()["ok"] is False
    assert failed.json()["error"] == "Request timed out"
    assert [e["status"] for e in stats["events"]] == ["ok", "error"]
    assert stats["events"][1]["detail"]["error"] == "Request timed out"


def test_deep_health_requires_token_when_configured():
    device = _FakeDevice()

    async def test(http, bridge):
        return await http.get("/health?deep=1"), bridge.stats.snapshot()

    response, stats = _run_with_bridge(device, test, {"bridge": {"token": "secret"}})

    assert response.status_code == 401
    assert stats["events"][0]["status"] == "denied"


def test_unknown_route_and_wrong_method():
    device = _FakeDevice()

    async def test(http, bridge):
        missing = await http.get("/does-not-exist")
        wrong_method = await http.get("/key")
        wrong_method_put = await http.put("/launch", json={"app": "plex"})
        return missing, wrong_method, wrong_method_put, bridge.stats.snapshot()

    missing, wrong_method, wrong_method_put, stats = _run_with_bridge(device, test)

    assert missing.status_code == 404
    assert missing.json() == {"ok": False, "error": "Not found"}
    assert wrong_method.status_code == 405
    assert wrong_method_put.status_code == 405
    assert [e["status"] for e in stats["events"]] == ["not_found", "invalid_method", "invalid_method"]
    assert [e["path"] for e in stats["events"]] == ["/does-not-exist", "/key", "/launch"]
    assert device.calls == []


def test_bad_payloads_are_command_errors():
    device = _FakeDevice()

    async def test(http, bridge):
        return [
            await http.post("/key", json={"key": "bogus"}),
            await http.post("/key", json={}),
            await http.post("/key", content=b"{not json", headers={"Content-Type": "application/json"}),
            await http.post("/key", json={"key": "search"}),
            await http.post("/text", json={"text": ""}),
            await http.post("/launch", json={"app": "unknown"}),
        ], bridge.stats.snapshot()

    responses, stats = _run_with_bridge(device, test)

    assert all(r.status_code == 400 for r in responses)
    assert [r.json()["error"] for r in responses] == [
        "Key not supported: bogus",
        "Missing key",
        "Missing key",
        "Key not supported: search",
        "Missing text",
        "App unknown not found",
    ]
    assert {e["status"] for e in stats["events"]} == {"error"}
    assert device.calls == []


def test_failing_command_does_not_stop_queue():
    device = _FakeDevice(delay=0.02, failing_keys={"back"})

    async def test(http, bridge):
        tasks = []
        for key in ("home", "back", "select"):
            tasks.append(asyncio.create_task(http.post("/key", json={"key": key})))
            await asyncio.sleep(0.005)
        return await asyncio.gather(*tasks), bridge.stats.snapshot()

    responses, stats = _run_with_bridge(device, test)

    assert [r.status_code for r in responses] == [200, 400, 200]
    assert responses[1].json() == {"ok": False, "error": "back timed out"}
    assert device.calls == [("key", "home", None), ("key", "select", None)]
    assert [e["status"] for e in stats["events"]] == ["ok", "error", "ok"]


def test_concurrent_commands_run_one_at_a_time_in_arrival_order():
    device = _FakeDevice(delay=0.01)
    words = [f"w{i}x" for i in range(8)]

    async def test(http, bridge):
        tasks = []
        for word in words:
            body = json.dumps({"text": word}).encode()
            tasks.append(asyncio.create_task(http.post("/text", content=body)))
            await asyncio.sleep(0.002)
        return await asyncio.gather(*tasks)

    responses = _run_with_bridge(device, test)

    assert all(r.status_code == 200 for r in responses)
    assert device.max_in_flight == 1
    # Each literal sequence is contiguous and sequences keep submission order
    typed = "".join(char for _, char in device.calls)
    assert typed == "".join(words)


def test_event_ring_keeps_last_twenty():
    device = _FakeDevice()

    async def test(http, bridge):
        for i in range(25):
            await http.get(f"/missing/{i}")
        return (await http.get("/stats")).json()["stats"]

    stats = _run_with_bridge(device, test)

    ids = [event["id"] for event in stats["events"]]
    assert stats["total"] == 25
    assert len(ids) == 20
    assert ids == list(range(6, 26))
    assert stats["last_event"]["path"] == "/missing/24"
