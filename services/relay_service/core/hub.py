import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple, Union

from libs.event_bus.bus import RoleRegistry
from libs.schema_utils.validate import SchemaValidationError, parse_frame, validate_or_raise
from .checkpoint import CheckpointWriter
from .connection import UNKNOWN_ROLE, Connection
from .envelope import envelope, error_envelope
from .status import StatusBroadcaster

_logger = logging.getLogger(__name__)

ANY_ROLE = "*"

Handler = Callable[[Connection, Dict[str, Any]], Awaitable[None]]

# (type, required sender role) -> handler method name
ROUTING_TABLE: Dict[Tuple[str, str], str] = {
    ("hello", ANY_ROLE): "_on_hello",
    ("ping", ANY_ROLE): "_on_ping",
    ("pong", ANY_ROLE): "_on_pong",
    ("telemetry", "esp32"): "_on_telemetry",
    ("pothole", "esp32"): "_on_pothole",
    ("routeComplete", "esp32"): "_on_route_complete",
    ("motorControl", "dashboard"): "_on_motor_control",
    ("pathCommand", "dashboard"): "_on_path_command",
    ("autoDrive", "dashboard"): "_on_auto_drive",
}

# high-rate producer traffic is dropped without a reply when its payload is bad
SILENT_DROP_TYPES = frozenset({"telemetry", "pothole"})


class RelayHub:
    """Owns every piece of cross-message relay state.

    All methods run on one event loop; registry membership, the active route
    correlation and the checkpoint throttle are only mutated from here.
    """

    def __init__(
        self,
        registry: Optional[RoleRegistry] = None,
        checkpoints: Optional[CheckpointWriter] = None,
    ) -> None:
        self.registry = registry or RoleRegistry()
        self.checkpoints = checkpoints
        self.status = StatusBroadcaster(self.registry)
        self.current_route_id: Optional[str] = None
        self._connections: Dict[Connection, None] = {}
        self._handlers: Dict[Tuple[str, str], Handler] = {
            key: getattr(self, name) for key, name in ROUTING_TABLE.items()
        }

    @property
    def connections(self) -> List[Connection]:
        return list(self._connections)

    def snapshot(self) -> Dict[str, Any]:
        out = dict(self.status.snapshot())
        out["currentRouteId"] = self.current_route_id
        out["connections"] = len(self._connections)
        if self.checkpoints is not None:
            out["checkpoints"] = self.checkpoints.stats()
        return out

    # -- connection lifecycle -------------------------------------------------

    def connect(self, conn: Connection) -> None:
        self._connections[conn] = None
        _logger.info("connection %s opened (%d open)", conn.id, len(self._connections))

    async def disconnect(self, conn: Connection) -> None:
        if conn not in self._connections:
            return
        del self._connections[conn]
        conn.mark_closed()
        role = self.registry.role_of(conn) or "unregistered"
        await self.registry.unregister(conn)
        _logger.info("connection %s (%s) closed", conn.id, role)
        await self.status.push()

    # -- inbound --------------------------------------------------------------

    def resolve(self, typ: str, role: str) -> Optional[Handler]:
        return self._handlers.get((typ, role)) or self._handlers.get((typ, ANY_ROLE))

    async def handle_raw(self, conn: Connection, raw: Union[str, bytes]) -> None:
        conn.touch()
        try:
            msg = parse_frame(raw)
        except SchemaValidationError:
            await conn.send(error_envelope("invalid_json"))
            return
        try:
            validate_or_raise("envelope", msg)
        except SchemaValidationError as e:
            _logger.debug("invalid envelope from %s: %s", conn.id, e)
            await conn.send(error_envelope("invalid_envelope"))
            return
        await self.dispatch(conn, msg)

    async def dispatch(self, conn: Connection, msg: Dict[str, Any]) -> None:
        typ = msg["type"]
        handler = self.resolve(typ, conn.role)
        if handler is None:
            return
        data = msg["data"]
        try:
            validate_or_raise(typ, data)
        except SchemaValidationError as e:
            if typ in SILENT_DROP_TYPES:
                return
            _logger.info("rejected %s from %s: %s", typ, conn.id, e)
            await conn.send(error_envelope(f"invalid_{typ}"))
            return
        await handler(conn, data)

    # -- handlers -------------------------------------------------------------

    async def _on_hello(self, conn: Connection, data: Dict[str, Any]) -> None:
        if conn.role != UNKNOWN_ROLE:
            _logger.debug("ignoring repeated hello from %s (%s)", conn.id, conn.role)
            return
        role = data["role"]
        conn.role = role
        await self.registry.register(conn, role)
        _logger.info("connection %s is %s%s", conn.id, role,
                     f" ({data['deviceId']})" if "deviceId" in data else "")
        await self.status.push()

    async def _on_ping(self, conn: Connection, data: Dict[str, Any]) -> None:
        await conn.send(envelope("pong"))

    async def _on_pong(self, conn: Connection, data: Dict[str, Any]) -> None:
        if not conn.answers_probes:
            _logger.debug("connection %s answers ping envelopes", conn.id)
        conn.answers_probes = True

    async def _on_telemetry(self, conn: Connection, data: Dict[str, Any]) -> None:
        await self.registry.broadcast("dashboard", envelope("telemetry", data))
        if self.checkpoints is not None:
            self.checkpoints.checkpoint_telemetry(data, self.current_route_id)

    async def _on_pothole(self, conn: Connection, data: Dict[str, Any]) -> None:
        await self.registry.broadcast("dashboard", envelope("pothole", data))
        if self.checkpoints is not None:
            self.checkpoints.checkpoint_pothole(data, self.current_route_id)

    async def _on_route_complete(self, conn: Connection, data: Dict[str, Any]) -> None:
        route_id = self.current_route_id
        self.current_route_id = None
        _logger.info("route %s complete", route_id)
        await self.registry.broadcast("dashboard", envelope("routeComplete", {"routeId": route_id}))

    async def _on_motor_control(self, conn: Connection, data: Dict[str, Any]) -> None:
        if self.current_route_id is not None:
            _logger.info("manual override ends route %s", self.current_route_id)
        self.current_route_id = None
        await self._forward_to_vehicle(conn, "motorControl", data)

    async def _on_path_command(self, conn: Connection, data: Dict[str, Any]) -> None:
        await self._start_route(conn, "pathCommand", data)

    async def _on_auto_drive(self, conn: Connection, data: Dict[str, Any]) -> None:
        await self._start_route(conn, "autoDrive", data)

    async def _start_route(self, conn: Connection, typ: str, data: Dict[str, Any]) -> None:
        if await self._forward_to_vehicle(conn, typ, data):
            self.current_route_id = data.get("routeId")
            _logger.info("%s started route %s", typ, self.current_route_id)

    async def _forward_to_vehicle(self, conn: Connection, typ: str, data: Dict[str, Any]) -> bool:
        target = self.registry.pick_target("esp32")
        if target is None or not await target.send(envelope(typ, data)):
            await conn.send(error_envelope("esp32_disconnected"))
            await self.status.push()
            return False
        return True
