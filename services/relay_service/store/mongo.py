import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from motor.motor_asyncio import AsyncIOMotorClient

from libs.log.tracing import new_id
from .base import RouteStore

_logger = logging.getLogger(__name__)


def _out(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if doc is None:
        return None
    doc = dict(doc)
    doc["id"] = doc.pop("_id")
    return doc


class MongoStore(RouteStore):
    """MongoDB backend: ``routes``, ``telemetry`` and ``potholes`` collections.

    Documents use string ids so they line up with the ``routeId`` values
    carried on the wire.
    """

    def __init__(self, url: str = "mongodb://127.0.0.1:27017", database: str = "pathhole", db: Any = None) -> None:
        self.url = url
        self.database_name = database
        self.connection: Optional[AsyncIOMotorClient] = None
        self.database = db

    async def connect(self) -> None:
        if self.database is not None:
            return
        self.connection = AsyncIOMotorClient(self.url)
        self.database = self.connection[self.database_name]
        _logger.info("mongo store using %s/%s", self.url, self.database_name)

    async def create_route(self, doc: Dict[str, Any]) -> Dict[str, Any]:
        route = {
            "_id": new_id("r_"),
            "name": doc["name"],
            "description": doc.get("description"),
            "path": doc.get("path") or [],
            "createdAt": datetime.now(timezone.utc).isoformat(),
        }
        await self.database["routes"].insert_one(route)
        return _out(route)

    async def list_routes(self) -> List[Dict[str, Any]]:
        cursor = self.database["routes"].find({}).sort("createdAt", -1)
        return [_out(d) async for d in cursor]

    async def get_route(self, route_id: str) -> Optional[Dict[str, Any]]:
        return _out(await self.database["routes"].find_one({"_id": route_id}))

    async def update_route(self, route_id: str, fields: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        update = {k: fields[k] for k in ("name", "description", "path") if k in fields}
        if update:
            res = await self.database["routes"].update_one({"_id": route_id}, {"$set": update})
            if res.matched_count == 0:
                return None
        return await self.get_route(route_id)

    async def delete_route(self, route_id: str) -> bool:
        res = await self.database["routes"].delete_one({"_id": route_id})
        return res.deleted_count > 0

    async def create_telemetry(self, doc: Dict[str, Any]) -> Dict[str, Any]:
        row = dict(doc, _id=new_id("t_"))
        await self.database["telemetry"].insert_one(row)
        return _out(row)

    async def create_pothole(self, doc: Dict[str, Any]) -> Dict[str, Any]:
        row = dict(doc, _id=new_id("p_"))
        await self.database["potholes"].insert_one(row)
        return _out(row)

    async def find_potholes(self, route_id: str) -> List[Dict[str, Any]]:
        cursor = self.database["potholes"].find({"routeId": route_id}).sort("ts", 1)
        return [_out(d) async for d in cursor]

    async def count_telemetry(self, route_id: str) -> int:
        return await self.database["telemetry"].count_documents({"routeId": route_id})

    async def close(self) -> None:
        if self.connection is not None:
            self.connection.close()
            self.connection = None
