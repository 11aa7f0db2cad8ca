import time
import uuid


def now_ms() -> int:
    return int(time.time() * 1000)


def monotonic_ms() -> float:
    return time.monotonic() * 1000.0


def new_id(prefix: str = "") -> str:
    return (prefix + uuid.uuid4().hex)[:24]
