import copy
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from libs.log.tracing import new_id
from .base import RouteStore


class MemoryStore(RouteStore):
    """Process-local store; contents are lost on restart."""

    def __init__(self) -> None:
        self.routes: Dict[str, Dict[str, Any]] = {}
        self.telemetry: List[Dict[str, Any]] = []
        self.potholes: List[Dict[str, Any]] = []

    async def create_route(self, doc: Dict[str, Any]) -> Dict[str, Any]:
        route = {
            "id": new_id("r_"),
            "name": doc["name"],
            "description": doc.get("description"),
            "path": copy.deepcopy(doc.get("path") or []),
            "createdAt": datetime.now(timezone.utc).isoformat(),
        }
        self.routes[route["id"]] = route
        return copy.deepcopy(route)

    async def list_routes(self) -> List[Dict[str, Any]]:
        routes = sorted(self.routes.values(), key=lambda r: r["createdAt"], reverse=True)
        return copy.deepcopy(routes)

    async def get_route(self, route_id: str) -> Optional[Dict[str, Any]]:
        route = self.routes.get(route_id)
        return copy.deepcopy(route) if route is not None else None

    async def update_route(self, route_id: str, fields: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        route = self.routes.get(route_id)
        if route is None:
            return None
        for k in ("name", "description", "path"):
            if k in fields:
                route[k] = copy.deepcopy(fields[k])
        return copy.deepcopy(route)

    async def delete_route(self, route_id: str) -> bool:
        return self.routes.pop(route_id, None) is not None

    async def create_telemetry(self, doc: Dict[str, Any]) -> Dict[str, Any]:
        row = dict(doc, id=new_id("t_"))
        self.telemetry.append(row)
        return dict(row)

    async def create_pothole(self, doc: Dict[str, Any]) -> Dict[str, Any]:
        row = dict(doc, id=new_id("p_"))
        self.potholes.append(row)
        return dict(row)

    async def find_potholes(self, route_id: str) -> List[Dict[str, Any]]:
        rows = [p for p in self.potholes if p.get("routeId") == route_id]
        return [dict(p) for p in sorted(rows, key=lambda p: p["ts"])]

    async def count_telemetry(self, route_id: str) -> int:
        return sum(1 for t in self.telemetry if t.get("routeId") == route_id)
