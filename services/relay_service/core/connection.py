import json
import logging
import time
from typing import Callable, Optional

from fastapi import WebSocket
from fastapi.websockets import WebSocketState

from libs.log.tracing import new_id

_logger = logging.getLogger(__name__)

UNKNOWN_ROLE = "unknown"


class Connection:
    """One accepted WebSocket, owned by the hub for the socket's lifetime."""

    def __init__(self, ws: WebSocket, clock: Callable[[], float] = time.monotonic) -> None:
        self.ws = ws
        self.id = new_id("c_")[:10]
        self.role = UNKNOWN_ROLE
        self._clock = clock
        self._closed = False
        self.last_seen = clock()
        self.probed_at: Optional[float] = None
        self.answers_probes = False

    def __repr__(self) -> str:
        return f"<Connection {self.id} role={self.role}>"

    @property
    def is_open(self) -> bool:
        if self._closed:
            return False
        return (
            self.ws.application_state == WebSocketState.CONNECTED
            and self.ws.client_state == WebSocketState.CONNECTED
        )

    @property
    def alive(self) -> bool:
        # peers that never answered a ping envelope are left to the transport keepalive
        if not self.answers_probes:
            return True
        # alive until a probe goes out, then again once anything arrives after it
        return self.probed_at is None or self.last_seen > self.probed_at

    def touch(self) -> None:
        self.last_seen = self._clock()

    def mark_probed(self, at: float) -> None:
        self.probed_at = at

    def mark_closed(self) -> None:
        self._closed = True

    async def send_text(self, data: str) -> bool:
        if not self.is_open:
            return False
        try:
            await self.ws.send_text(data)
        except Exception as e:
            _logger.debug("send to %s failed: %s", self.id, e)
            self._closed = True
            return False
        return True

    async def send(self, message: dict) -> bool:
        return await self.send_text(json.dumps(message, ensure_ascii=False))

    async def terminate(self, code: int = 1001) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            await self.ws.close(code=code)
        except Exception as e:
            # socket already gone; nothing left to release
            _logger.debug("close of %s failed: %s", self.id, e)
