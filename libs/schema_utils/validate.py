import json
from typing import Any, Callable, Dict, Iterable, Union

MESSAGE_TYPES = frozenset({
    "hello", "telemetry", "motorControl", "status", "pothole", "ping", "pong",
    "error", "pathCommand", "autoDrive", "routeComplete",
})
SOURCES = frozenset({"esp32", "ui", "server"})
ROLES = frozenset({"esp32", "dashboard"})
DIRECTIONS = frozenset({"forward", "reverse", "left", "right", "stop"})
SEVERITIES = frozenset({"low", "medium", "high"})

ENVELOPE_FIELDS = ("type", "source", "ts", "data")


class SchemaValidationError(ValueError):
    pass


def _is_number(v: Any) -> bool:
    return isinstance(v, (int, float)) and not isinstance(v, bool)


def _is_byte(v: Any) -> bool:
    return isinstance(v, int) and not isinstance(v, bool) and 0 <= v <= 255


def _in_enum(v: Any, choices: frozenset) -> bool:
    return isinstance(v, str) and v in choices


def _ensure(cond: bool, msg: str) -> None:
    if not cond:
        raise SchemaValidationError(msg)


def _ensure_keys(obj: Dict[str, Any], allowed: Iterable[str], where: str) -> None:
    extra = sorted(set(obj) - set(allowed))
    _ensure(not extra, f"{where}: unexpected field(s) {', '.join(extra)}")


def _ensure_optional_numbers(obj: Dict[str, Any], keys: Iterable[str]) -> None:
    for k in keys:
        if k in obj:
            _ensure(_is_number(obj[k]), f"{k} must be a number")


def parse_frame(raw: Union[str, bytes]) -> Any:
    """Decode a wire frame; any decode failure is a SchemaValidationError."""
    try:
        return json.loads(raw)
    except (ValueError, TypeError, RecursionError) as e:
        raise SchemaValidationError(f"frame is not valid JSON: {e}") from e


def _validate_envelope(obj: Dict[str, Any]) -> None:
    _ensure(isinstance(obj, dict), "envelope must be an object")
    for k in ENVELOPE_FIELDS:
        _ensure(k in obj, f"envelope.{k} is required")
    _ensure_keys(obj, ENVELOPE_FIELDS, "envelope")

    _ensure(_in_enum(obj["type"], MESSAGE_TYPES), "invalid envelope.type")
    _ensure(_in_enum(obj["source"], SOURCES), "invalid envelope.source")
    _ensure(_is_number(obj["ts"]), "envelope.ts must be a number")
    _ensure(isinstance(obj["data"], dict), "envelope.data must be an object")


def _validate_hello(obj: Dict[str, Any]) -> None:
    _ensure_keys(obj, ("role", "deviceId"), "hello")
    _ensure(_in_enum(obj.get("role"), ROLES), "invalid hello.role")
    if "deviceId" in obj:
        _ensure(isinstance(obj["deviceId"], str), "hello.deviceId must be string")


def _validate_vector(obj: Any, name: str) -> None:
    _ensure(isinstance(obj, dict), f"{name} must be an object")
    _ensure_keys(obj, ("x", "y", "z"), name)
    for axis in ("x", "y", "z"):
        _ensure(_is_number(obj.get(axis)), f"{name}.{axis} must be a number")


def _validate_speeds(obj: Dict[str, Any]) -> None:
    _ensure(_is_byte(obj.get("speedLeft")), "speedLeft must be an integer in [0,255]")
    _ensure(_is_byte(obj.get("speedRight")), "speedRight must be an integer in [0,255]")


def _validate_telemetry(obj: Dict[str, Any]) -> None:
    _ensure_keys(
        obj,
        ("speedLeft", "speedRight", "distance", "heading", "posX", "posY", "gyro", "accel"),
        "telemetry",
    )
    _validate_speeds(obj)
    _validate_vector(obj.get("gyro"), "gyro")
    _validate_vector(obj.get("accel"), "accel")
    _ensure_optional_numbers(obj, ("distance", "heading", "posX", "posY"))


def _validate_motor_control(obj: Dict[str, Any]) -> None:
    _ensure_keys(obj, ("direction", "speedLeft", "speedRight"), "motorControl")
    _ensure(_in_enum(obj.get("direction"), DIRECTIONS), "invalid motorControl.direction")
    _validate_speeds(obj)


def _validate_pothole(obj: Dict[str, Any]) -> None:
    _ensure_keys(obj, ("severity", "value", "posX", "posY"), "pothole")
    _ensure(_in_enum(obj.get("severity"), SEVERITIES), "invalid pothole.severity")
    _ensure(_is_number(obj.get("value")), "pothole.value must be a number")
    _ensure_optional_numbers(obj, ("posX", "posY"))


def _validate_path(path: Any) -> None:
    _ensure(isinstance(path, list) and len(path) >= 1, "path must be a non-empty array")
    for i, p in enumerate(path):
        _ensure(isinstance(p, dict), f"path[{i}] must be an object")
        _ensure_keys(p, ("x", "y", "heading"), f"path[{i}]")
        _ensure(_is_number(p.get("x")) and _is_number(p.get("y")), f"invalid path[{i}].x/y")
        if "heading" in p:
            _ensure(_is_number(p["heading"]), f"path[{i}].heading must be a number")


def _validate_route_id(obj: Dict[str, Any]) -> None:
    if "routeId" in obj:
        _ensure(isinstance(obj["routeId"], str) and len(obj["routeId"]) > 0, "routeId must be a non-empty string")


def _validate_path_command(obj: Dict[str, Any]) -> None:
    _ensure_keys(obj, ("routeId", "path"), "pathCommand")
    _validate_route_id(obj)
    _validate_path(obj.get("path"))


def _validate_auto_drive(obj: Dict[str, Any]) -> None:
    _ensure_keys(obj, ("routeId", "speed", "path"), "autoDrive")
    _validate_route_id(obj)
    _ensure(_is_byte(obj.get("speed")), "autoDrive.speed must be an integer in [0,255]")
    _validate_path(obj.get("path"))


def _validate_route(obj: Dict[str, Any]) -> None:
    _ensure(isinstance(obj, dict), "route must be an object")
    _ensure_keys(obj, ("name", "description", "path"), "route")
    _ensure(isinstance(obj.get("name"), str) and len(obj["name"].strip()) > 0, "route.name is required")
    if "description" in obj and obj["description"] is not None:
        _ensure(isinstance(obj["description"], str), "route.description must be string")
    path = obj.get("path", [])
    _ensure(isinstance(path, list), "route.path must be an array")
    if path:
        _validate_path(path)


def _validate_any_object(obj: Dict[str, Any]) -> None:
    _ensure(isinstance(obj, dict), "payload must be an object")


_VALIDATORS: Dict[str, Callable[[Dict[str, Any]], None]] = {
    "envelope": _validate_envelope,
    "hello": _validate_hello,
    "telemetry": _validate_telemetry,
    "motorControl": _validate_motor_control,
    "pothole": _validate_pothole,
    "pathCommand": _validate_path_command,
    "autoDrive": _validate_auto_drive,
    "routeComplete": _validate_any_object,
    "ping": _validate_any_object,
    "pong": _validate_any_object,
    "status": _validate_any_object,
    "error": _validate_any_object,
    "route": _validate_route,
}


def validate_or_raise(schema: str, obj: Any) -> None:
    validator = _VALIDATORS.get(schema)
    if validator is None:
        raise SchemaValidationError(f"unsupported schema validator: {schema}")
    if schema != "envelope":
        _ensure(isinstance(obj, dict), f"{schema} payload must be an object")
    validator(obj)
