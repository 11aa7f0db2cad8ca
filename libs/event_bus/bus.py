import asyncio
import json
from typing import Any, Dict, List, Optional


REGISTRY_ROLES = ("esp32", "dashboard")


class RoleRegistry:
    """Live connections partitioned by role.

    Members only need ``role``, ``is_open`` and an async ``send_text``.
    Each role set keeps insertion order so ``pick_target`` is deterministic.
    """

    def __init__(self) -> None:
        self._roles: Dict[str, Dict[Any, None]] = {r: {} for r in REGISTRY_ROLES}
        self._lock = asyncio.Lock()

    async def register(self, conn: Any, role: str) -> bool:
        if role not in self._roles:
            raise ValueError(f"unknown role: {role}")
        async with self._lock:
            if any(conn in members for members in self._roles.values()):
                return False
            self._roles[role][conn] = None
        return True

    async def unregister(self, conn: Any) -> bool:
        removed = False
        async with self._lock:
            for members in self._roles.values():
                if conn in members:
                    del members[conn]
                    removed = True
        return removed

    def members(self, role: str) -> List[Any]:
        return list(self._roles.get(role, {}))

    def count(self, role: str) -> int:
        return len(self._roles.get(role, {}))

    def role_of(self, conn: Any) -> Optional[str]:
        for role, members in self._roles.items():
            if conn in members:
                return role
        return None

    def pick_target(self, role: str) -> Optional[Any]:
        # first registered wins; extra connections of the same role are never targeted
        for conn in self._roles.get(role, {}):
            if conn.is_open:
                return conn
        return None

    async def broadcast(self, role: str, message: dict) -> int:
        # Broadcast best-effort
        async with self._lock:
            conns = list(self._roles.get(role, {}))
        if not conns:
            return 0
        data = json.dumps(message, ensure_ascii=False)
        sent = 0
        for conn in conns:
            if not conn.is_open:
                continue
            if await conn.send_text(data):
                sent += 1
        return sent
