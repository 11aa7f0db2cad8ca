import math
from typing import Any, Dict, Iterable, List

from libs.schema_utils.validate import SEVERITIES


def path_distance(path: List[Dict[str, Any]]) -> float:
    total = 0.0
    for a, b in zip(path, path[1:]):
        total += math.hypot(b["x"] - a["x"], b["y"] - a["y"])
    return total


def severity_counts(potholes: Iterable[Dict[str, Any]]) -> Dict[str, int]:
    counts = {s: 0 for s in sorted(SEVERITIES)}
    for p in potholes:
        sev = p.get("severity")
        if sev in counts:
            counts[sev] += 1
    return counts


def route_stats(route: Dict[str, Any], potholes: List[Dict[str, Any]], telemetry_samples: int) -> Dict[str, Any]:
    return {
        "routeId": route["id"],
        "name": route["name"],
        "waypoints": len(route.get("path") or []),
        "distance": round(path_distance(route.get("path") or []), 3),
        "potholeCount": len(potholes),
        "potholes": severity_counts(potholes),
        "telemetrySamples": telemetry_samples,
    }
