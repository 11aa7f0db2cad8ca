import asyncio
import logging
from typing import Any, Callable, Dict, Optional, Tuple

from libs.log.tracing import monotonic_ms, now_ms
from ..store.base import RouteStore

_logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_MS = 2000


class CheckpointWriter:
    """Rate-limited, fire-and-forget persistence of telemetry and pothole events.

    Handlers call ``checkpoint_telemetry`` / ``checkpoint_pothole`` which only
    enqueue; a single background task drains the queue into the store. Store
    failures are logged and counted, never raised to the caller.
    """

    def __init__(
        self,
        store: RouteStore,
        interval_ms: float = DEFAULT_INTERVAL_MS,
        clock: Callable[[], float] = monotonic_ms,
    ) -> None:
        self.store = store
        self.interval_ms = interval_ms
        self._clock = clock
        self._last_telemetry_at: Optional[float] = None
        self._queue: "asyncio.Queue[Tuple[str, Dict[str, Any]]]" = asyncio.Queue()
        self._task: Optional[asyncio.Task] = None
        self.enqueued = 0
        self.written = 0
        self.failed = 0
        self.throttled = 0

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def stats(self) -> Dict[str, int]:
        return {
            "enqueued": self.enqueued,
            "written": self.written,
            "failed": self.failed,
            "throttled": self.throttled,
            "pending": self.pending,
        }

    def checkpoint_telemetry(self, data: Dict[str, Any], route_id: Optional[str]) -> bool:
        now = self._clock()
        if self._last_telemetry_at is not None and now - self._last_telemetry_at < self.interval_ms:
            self.throttled += 1
            return False
        self._last_telemetry_at = now
        self._enqueue("telemetry", {
            "routeId": route_id,
            "posX": data.get("posX"),
            "posY": data.get("posY"),
            "heading": data.get("heading"),
            "speedLeft": data.get("speedLeft"),
            "speedRight": data.get("speedRight"),
            "ts": now_ms(),
        })
        return True

    def checkpoint_pothole(self, data: Dict[str, Any], route_id: Optional[str]) -> None:
        self._enqueue("pothole", {
            "routeId": route_id,
            "posX": data.get("posX"),
            "posY": data.get("posY"),
            "severity": data.get("severity"),
            "value": data.get("value"),
            "ts": now_ms(),
        })

    def _enqueue(self, kind: str, doc: Dict[str, Any]) -> None:
        self.enqueued += 1
        self._queue.put_nowait((kind, doc))

    async def _write(self, kind: str, doc: Dict[str, Any]) -> None:
        try:
            if kind == "telemetry":
                await self.store.create_telemetry(doc)
            else:
                await self.store.create_pothole(doc)
        except Exception as e:
            self.failed += 1
            _logger.warning("%s checkpoint failed: %s: %s", kind, type(e).__name__, e)
            return
        self.written += 1

    async def drain(self) -> None:
        """Write everything currently queued, in order."""
        while not self._queue.empty():
            kind, doc = self._queue.get_nowait()
            try:
                await self._write(kind, doc)
            finally:
                self._queue.task_done()

    async def _run(self) -> None:
        while True:
            kind, doc = await self._queue.get()
            try:
                await self._write(kind, doc)
            finally:
                self._queue.task_done()

    def start(self) -> None:
        if self._task is None or self._task.done():
            self._task = asyncio.get_running_loop().create_task(self._run())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        # flush whatever arrived before shutdown
        await self.drain()
