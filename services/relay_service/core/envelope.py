from typing import Any, Dict, Optional

from libs.log.tracing import now_ms


def envelope(typ: str, data: Optional[Dict[str, Any]] = None, source: str = "server") -> Dict[str, Any]:
    return {
        "type": typ,
        "source": source,
        "ts": now_ms(),
        "data": data if data is not None else {},
    }


def error_envelope(reason: str) -> Dict[str, Any]:
    return envelope("error", {"reason": reason})
