"""
Bridge process state: the bounded event ring and the command queue
Both are owned by one CommandBridge instance and live as long as its server
"""

import asyncio
import logging
from collections import deque
from contextlib import suppress
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Deque, Dict, Optional, Tuple, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

EVENT_CAPACITY = 20

EVENT_STATUSES = ("ok", "denied", "error", "not_found", "invalid_method")


@dataclass
class BridgeEvent:
    """One handled bridge request"""
    id: int
    timestamp: str
    path: str
    status: str
    detail: Optional[Dict[str, Any]] = None


class BridgeStats:
    """Ring of the most recent events plus a running total

    Event ids are total+1 at record time, so they strictly increase and are
    never reused even after older events fall out of the ring.
    """

    def __init__(self, capacity: int = EVENT_CAPACITY):
        self.events: Deque[BridgeEvent] = deque(maxlen=capacity)
        self.total = 0
        self.last_event: Optional[BridgeEvent] = None

    def record(self, path: str, status: str, detail: Optional[Dict[str, Any]] = None) -> BridgeEvent:
        if status not in EVENT_STATUSES:
            raise ValueError(f"Unknown event status: {status}")
        self.total += 1
        event = BridgeEvent(
            id=self.total,
            timestamp=datetime.now(timezone.utc).isoformat(),
            path=path,
            status=status,
            detail=detail,
        )
        self.events.append(event)
        self.last_event = event
        return event

    def snapshot(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "events": [asdict(event) for event in self.events],
            "last_event": asdict(self.last_event) if self.last_event else None,
        }


Job = Callable[[], Awaitable[Any]]


class CommandQueue:
    """FIFO executor with a single worker task

    Jobs run strictly one at a time in submission order. A failing job only
    fails its own submitter; the worker moves on to the next job.
    """

    def __init__(self):
        self._queue: Optional["asyncio.Queue[Tuple[Job, asyncio.Future]]"] = None
        self._worker: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    def start(self) -> None:
        if self.running:
            return
        if self._queue is None:
            self._queue = asyncio.Queue()
        self._worker = asyncio.create_task(self._drain())
        logger.debug("Command queue worker started")

    async def stop(self) -> None:
        worker, self._worker = self._worker, None
        if worker is not None:
            worker.cancel()
            with suppress(asyncio.CancelledError):
                await worker

        # Anything still waiting will never run
        if self._queue is not None:
            while not self._queue.empty():
                _, future = self._queue.get_nowait()
                if not future.done():
                    future.cancel()
            self._queue = None
        logger.debug("Command queue worker stopped")

    async def run(self, job: Callable[[], Awaitable[T]]) -> T:
        self.start()
        future = asyncio.get_running_loop().create_future()
        self._queue.put_nowait((job, future))
        return await future

    async def _drain(self) -> None:
        while True:
            job, future = await self._queue.get()
            try:
                if future.cancelled():
                    continue
                result = await job()
            except asyncio.CancelledError:
                if not future.done():
                    future.cancel()
                raise
            except Exception as e:
                if not future.done():
                    future.set_exception(e)
            else:
                if not future.done():
                    future.set_result(result)
            finally:
                self._queue.task_done()
