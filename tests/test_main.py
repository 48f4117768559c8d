import asyncio
import signal

from roku_ecp import main as entry


class _FakeLoop:
    def __init__(self, supported=True):
        self.supported = supported
        self.handlers = {}
        self.tasks = []

    def add_signal_handler(self, signum, callback, *args):
        if not self.supported:
            raise NotImplementedError
        self.handlers[signum] = (callback, args)

    def create_task(self, coro):
        task = asyncio.ensure_future(coro)
        self.tasks.append(task)
        return task


class _FakeServer:
    def __init__(self):
        self.stops = 0

    async def stop(self):
        self.stops += 1


def test_signal_handlers_schedule_server_stop():
    server = _FakeServer()

    async def _run():
        loop = _FakeLoop()
        installed = entry.install_signal_handlers(loop, server)
        callback, args = loop.handlers[signal.SIGTERM]
        callback(*args)
        await asyncio.gather(*loop.tasks)
        return installed, loop

    installed, loop = asyncio.run(_run())

    assert installed == [signal.SIGINT, signal.SIGTERM]
    assert set(loop.handlers) == {signal.SIGINT, signal.SIGTERM}
    assert server.stops == 1


def test_loops_without_signal_support_install_nothing():
    installed = entry.install_signal_handlers(_FakeLoop(supported=False), _FakeServer())

    assert installed == []


def test_main_reports_missing_config(monkeypatch, tmp_path):
    monkeypatch.setenv("CONFIG_FILE", str(tmp_path / "missing.yaml"))

    assert asyncio.run(entry.main()) == 1
