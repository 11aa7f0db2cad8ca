import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Optional

from websockets.asyncio.client import connect
from websockets.exceptions import ConnectionClosed, WebSocketException

from libs.config import get_setting
from libs.log.tracing import now_ms

_logger = logging.getLogger(__name__)


def _ui_envelope(typ: str, data: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    return {"type": typ, "source": "ui", "ts": now_ms(), "data": data or {}}


@dataclass
class DashboardState:
    connected: bool = False
    server_status: Dict[str, Any] = field(default_factory=lambda: {"esp32Connected": False, "reactClients": 0})
    telemetry: Optional[Dict[str, Any]] = None
    pothole: Optional[Dict[str, Any]] = None
    route_event: Optional[Dict[str, Any]] = None


class Backoff:
    def __init__(self, initial_ms: float = 500, factor: float = 1.7, max_ms: float = 10000) -> None:
        self.initial_ms = initial_ms
        self.factor = factor
        self.max_ms = max_ms
        self.current_ms = initial_ms

    @classmethod
    def from_settings(cls) -> "Backoff":
        return cls(
            initial_ms=float(get_setting("client.backoff_initial_ms", 500)),
            factor=float(get_setting("client.backoff_factor", 1.7)),
            max_ms=float(get_setting("client.backoff_max_ms", 10000)),
        )

    def reset(self) -> None:
        self.current_ms = self.initial_ms

    def next_delay_ms(self) -> float:
        delay = min(self.max_ms, self.current_ms)
        self.current_ms = min(self.max_ms, self.current_ms * self.factor)
        return delay


class DashboardClient:
    """Keeps one dashboard connection to the relay alive.

    Announces the dashboard role on every open, reconnects with exponential
    backoff, and folds inbound events into ``state``. Sends made while the
    socket is down are dropped.
    """

    def __init__(
        self,
        url: Optional[str] = None,
        backoff: Optional[Backoff] = None,
        connector: Callable[..., Any] = connect,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        on_message: Optional[Callable[[Dict[str, Any]], None]] = None,
    ) -> None:
        self.url = url or get_setting("client.url", "ws://127.0.0.1:8080/ws")
        self.backoff = backoff or Backoff.from_settings()
        self.state = DashboardState()
        self._connector = connector
        self._sleep = sleep
        self._on_message = on_message
        self._ws: Any = None
        self._stopping = False

    @property
    def connected(self) -> bool:
        return self._ws is not None

    async def run(self) -> None:
        self._stopping = False
        while not self._stopping:
            try:
                async with self._connector(self.url) as ws:
                    await self._opened(ws)
                    async for raw in ws:
                        await self.handle_raw(raw)
            except (OSError, asyncio.TimeoutError, WebSocketException) as e:
                _logger.info("relay connection lost: %s: %s", type(e).__name__, e)
            finally:
                self._closed()
            if self._stopping:
                break
            delay = self.backoff.next_delay_ms()
            _logger.debug("reconnecting in %.0f ms", delay)
            await self._sleep(delay / 1000.0)

    async def stop(self) -> None:
        self._stopping = True
        ws = self._ws
        if ws is not None:
            await ws.close()

    async def send(self, message: Dict[str, Any]) -> bool:
        ws = self._ws
        if ws is None:
            return False
        try:
            await ws.send(json.dumps(message))
        except ConnectionClosed:
            return False
        return True

    async def drive(self, direction: str, speed_left: int, speed_right: int) -> bool:
        return await self.send(_ui_envelope("motorControl", {
            "direction": direction, "speedLeft": speed_left, "speedRight": speed_right,
        }))

    async def _opened(self, ws: Any) -> None:
        self._ws = ws
        self.state.connected = True
        self.backoff.reset()
        _logger.info("connected to %s", self.url)
        await self.send(_ui_envelope("hello", {"role": "dashboard"}))

    def _closed(self) -> None:
        self._ws = None
        self.state.connected = False

    async def handle_raw(self, raw: Any) -> None:
        try:
            msg = json.loads(raw)
        except ValueError:
            return
        if not isinstance(msg, dict) or not isinstance(msg.get("data"), dict):
            return
        typ, data = msg.get("type"), msg["data"]

        if typ == "telemetry":
            self.state.telemetry = dict(data, ts=msg.get("ts"))
        elif typ == "status":
            self.state.server_status = dict(data)
        elif typ == "pothole":
            self.state.pothole = dict(data, ts=msg.get("ts"))
        elif typ == "routeComplete":
            self.state.route_event = dict(data, ts=msg.get("ts"))
        elif typ == "ping":
            await self.send(_ui_envelope("pong"))
        else:
            return
        if self._on_message is not None:
            self._on_message(msg)
