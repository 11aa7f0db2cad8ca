import asyncio
import logging
import time
from typing import Callable, List, Optional

from .envelope import envelope
from .hub import RelayHub
from .connection import Connection

_logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_S = 15.0


class LivenessSupervisor:
    """Dead-man's-switch heartbeat over every open hub connection.

    A tick terminates connections that were probed on the previous tick and
    have not been heard from since, then probes the rest. A peer that goes
    silent is therefore dropped between one and two intervals later.

    Only peers that have answered a ping envelope are held to this; listeners
    that never do rely on the server's transport ping timeout. Sockets that
    are already closed are reaped on every tick.
    """

    def __init__(
        self,
        hub: RelayHub,
        interval_s: float = DEFAULT_INTERVAL_S,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.hub = hub
        self.interval_s = interval_s
        self._clock = clock
        self._task: Optional[asyncio.Task] = None
        self.terminated = 0

    async def sweep(self) -> List[Connection]:
        now = self._clock()
        dead: List[Connection] = []
        for conn in self.hub.connections:
            if not conn.is_open or not conn.alive:
                dead.append(conn)
                continue
            conn.mark_probed(now)
            await conn.send(envelope("ping"))

        for conn in dead:
            _logger.warning(
                "terminating %s (%s): silent for %.1fs",
                conn.id, conn.role, now - conn.last_seen,
            )
            await conn.terminate()
            await self.hub.disconnect(conn)
            self.terminated += 1
        return dead

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval_s)
            try:
                await self.sweep()
            except Exception:
                _logger.exception("heartbeat sweep failed")

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
