from __future__ import annotations

import json
from typing import Any, Dict, List, Optional, Tuple

import pytest
from fastapi.websockets import WebSocketState

from services.relay_service.core.checkpoint import CheckpointWriter
from services.relay_service.core.connection import Connection
from services.relay_service.core.hub import RelayHub
from services.relay_service.store.memory import MemoryStore


class FakeSocket:
    """Stands in for a FastAPI WebSocket; records every frame sent to it."""

    def __init__(self, fail_send: bool = False) -> None:
        self.sent: List[Dict[str, Any]] = []
        self.application_state = WebSocketState.CONNECTED
        self.client_state = WebSocketState.CONNECTED
        self.closed_with: Optional[int] = None
        self.fail_send = fail_send

    async def send_text(self, data: str) -> None:
        if self.fail_send:
            raise RuntimeError("socket gone")
        self.sent.append(json.loads(data))

    async def close(self, code: int = 1000) -> None:
        self.closed_with = code
        self.application_state = WebSocketState.DISCONNECTED

    def of_type(self, typ: str) -> List[Dict[str, Any]]:
        return [m for m in self.sent if m["type"] == typ]


class FakeClock:
    def __init__(self, t: float = 0.0) -> None:
        self.t = t

    def __call__(self) -> float:
        return self.t


def wire(typ: str, data: Dict[str, Any], source: str = "ui") -> str:
    return json.dumps({"type": typ, "source": source, "ts": 1700000000000, "data": data})


TELEMETRY = {
    "speedLeft": 120,
    "speedRight": 118,
    "posX": 1.0,
    "posY": 2.0,
    "heading": 45.0,
    "gyro": {"x": 0.1, "y": 0.2, "z": 0.3},
    "accel": {"x": 0.0, "y": 0.0, "z": 9.81},
}

AUTO_DRIVE = {
    "routeId": "r_demo",
    "speed": 150,
    "path": [{"x": 0, "y": 0}, {"x": 1.5, "y": 2, "heading": 90}],
}


async def join(hub: RelayHub, role: Optional[str], clock: Optional[FakeClock] = None) -> Tuple[Connection, FakeSocket]:
    sock = FakeSocket()
    conn = Connection(sock, clock=clock) if clock is not None else Connection(sock)  # type: ignore[arg-type]
    hub.connect(conn)
    if role is not None:
        await hub.handle_raw(conn, wire("hello", {"role": role}, source="esp32" if role == "esp32" else "ui"))
    return conn, sock


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def clock_ms() -> FakeClock:
    return FakeClock(10_000.0)


@pytest.fixture
def writer(store: MemoryStore, clock_ms: FakeClock) -> CheckpointWriter:
    return CheckpointWriter(store, interval_ms=2000, clock=clock_ms)


@pytest.fixture
def hub(writer: CheckpointWriter) -> RelayHub:
    return RelayHub(checkpoints=writer)
