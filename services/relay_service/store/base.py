from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional


class StoreError(RuntimeError):
    pass


class RouteStore(ABC):
    """Durable storage for routes and the checkpointed event streams."""

    @abstractmethod
    async def create_route(self, doc: Dict[str, Any]) -> Dict[str, Any]: ...

    @abstractmethod
    async def list_routes(self) -> List[Dict[str, Any]]: ...

    @abstractmethod
    async def get_route(self, route_id: str) -> Optional[Dict[str, Any]]: ...

    @abstractmethod
    async def update_route(self, route_id: str, fields: Dict[str, Any]) -> Optional[Dict[str, Any]]: ...

    @abstractmethod
    async def delete_route(self, route_id: str) -> bool: ...

    @abstractmethod
    async def create_telemetry(self, doc: Dict[str, Any]) -> Dict[str, Any]: ...

    @abstractmethod
    async def create_pothole(self, doc: Dict[str, Any]) -> Dict[str, Any]: ...

    @abstractmethod
    async def find_potholes(self, route_id: str) -> List[Dict[str, Any]]: ...

    @abstractmethod
    async def count_telemetry(self, route_id: str) -> int: ...

    async def close(self) -> None:
        return None
