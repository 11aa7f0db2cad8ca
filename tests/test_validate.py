from __future__ import annotations

import copy

import pytest

from libs.schema_utils.validate import SchemaValidationError, parse_frame, validate_or_raise

from conftest import AUTO_DRIVE, TELEMETRY


def _env(**overrides):
    msg = {"type": "ping", "source": "ui", "ts": 1, "data": {}}
    msg.update(overrides)
    return msg


def test_envelope_accepts_minimal_message() -> None:
    validate_or_raise("envelope", _env())


@pytest.mark.parametrize(
    "msg",
    [
        {"type": "ping", "source": "ui", "ts": 1},
        _env(type="teleport"),
        _env(source="robot"),
        _env(ts="now"),
        _env(ts=True),
        _env(data=[]),
        dict(_env(), extra=1),
        _env(type=["ping"]),
        _env(type={"ping": 1}),
        _env(source={"a": 1}),
        _env(source=["ui"]),
        [1, 2, 3],
        "hello",
    ],
)
def test_envelope_rejects_bad_shapes(msg) -> None:
    with pytest.raises(SchemaValidationError):
        validate_or_raise("envelope", msg)


def test_parse_frame_rejects_garbage_and_binary() -> None:
    with pytest.raises(SchemaValidationError):
        parse_frame("{not json")
    with pytest.raises(SchemaValidationError):
        parse_frame(b"\xff\xfe\x00")
    assert parse_frame(b'{"a": 1}') == {"a": 1}


def test_telemetry_schema() -> None:
    validate_or_raise("telemetry", TELEMETRY)

    for key, value in (("speedLeft", 256), ("speedRight", -1), ("speedLeft", 1.5), ("speedLeft", True)):
        bad = dict(TELEMETRY, **{key: value})
        with pytest.raises(SchemaValidationError):
            validate_or_raise("telemetry", bad)

    missing_axis = copy.deepcopy(TELEMETRY)
    del missing_axis["gyro"]["z"]
    with pytest.raises(SchemaValidationError, match="gyro.z"):
        validate_or_raise("telemetry", missing_axis)

    with pytest.raises(SchemaValidationError, match="unexpected"):
        validate_or_raise("telemetry", dict(TELEMETRY, battery=3.7))


def test_motor_control_schema() -> None:
    validate_or_raise("motorControl", {"direction": "stop", "speedLeft": 0, "speedRight": 0})
    with pytest.raises(SchemaValidationError, match="direction"):
        validate_or_raise("motorControl", {"direction": "up", "speedLeft": 0, "speedRight": 0})
    with pytest.raises(SchemaValidationError):
        validate_or_raise("motorControl", {"direction": "left", "speedLeft": 10})


def test_auto_drive_and_path_command_schema() -> None:
    validate_or_raise("autoDrive", AUTO_DRIVE)
    validate_or_raise("autoDrive", {"speed": 0, "path": [{"x": 0, "y": 0}]})
    validate_or_raise("pathCommand", {"path": [{"x": 1, "y": 1, "heading": 0}]})

    with pytest.raises(SchemaValidationError, match="non-empty"):
        validate_or_raise("autoDrive", dict(AUTO_DRIVE, path=[]))
    with pytest.raises(SchemaValidationError):
        validate_or_raise("autoDrive", dict(AUTO_DRIVE, speed=300))
    with pytest.raises(SchemaValidationError):
        validate_or_raise("autoDrive", dict(AUTO_DRIVE, routeId=""))
    with pytest.raises(SchemaValidationError):
        validate_or_raise("pathCommand", {"path": [{"x": 1}]})
    with pytest.raises(SchemaValidationError):
        validate_or_raise("pathCommand", {"path": [{"x": 1, "y": 2, "z": 3}]})


def test_hello_and_pothole_schema() -> None:
    validate_or_raise("hello", {"role": "esp32", "deviceId": "car-1"})
    with pytest.raises(SchemaValidationError):
        validate_or_raise("hello", {"role": "admin"})
    with pytest.raises(SchemaValidationError):
        validate_or_raise("hello", {"role": "dashboard", "token": "x"})

    validate_or_raise("pothole", {"severity": "medium", "value": 1.2, "posX": 3, "posY": 4})
    with pytest.raises(SchemaValidationError):
        validate_or_raise("pothole", {"severity": "huge", "value": 1.2})
    with pytest.raises(SchemaValidationError):
        validate_or_raise("pothole", {"severity": "low", "value": "deep"})


def test_payload_must_be_object_and_schema_must_exist() -> None:
    with pytest.raises(SchemaValidationError):
        validate_or_raise("routeComplete", [])
    validate_or_raise("routeComplete", {})
    with pytest.raises(SchemaValidationError, match="unsupported"):
        validate_or_raise("teleport", {})


def test_route_document_schema() -> None:
    validate_or_raise("route", {"name": "loop", "path": [{"x": 0, "y": 0}]})
    validate_or_raise("route", {"name": "empty", "description": None})
    with pytest.raises(SchemaValidationError, match="name"):
        validate_or_raise("route", {"name": "  "})


def test_parse_frame_rejects_nesting_beyond_recursion_limit() -> None:
    deep = "[" * 100000 + "]" * 100000
    with pytest.raises(SchemaValidationError):
        parse_frame(deep)


@pytest.mark.parametrize(
    "schema,payload",
    [
        ("hello", {"role": ["dashboard"]}),
        ("hello", {"role": {"esp32": True}}),
        ("motorControl", {"direction": ["stop"], "speedLeft": 0, "speedRight": 0}),
        ("pothole", {"severity": {"level": "high"}, "value": 1.0}),
    ],
)
def test_enum_fields_reject_unhashable_values(schema, payload) -> None:
    with pytest.raises(SchemaValidationError):
        validate_or_raise(schema, payload)
