import logging
from typing import Any, Dict

from libs.event_bus.bus import RoleRegistry
from .envelope import envelope

_logger = logging.getLogger(__name__)


class StatusBroadcaster:
    def __init__(self, registry: RoleRegistry) -> None:
        self.registry = registry
        self.broadcasts = 0

    def snapshot(self) -> Dict[str, Any]:
        return {
            "esp32Connected": self.registry.count("esp32") > 0,
            "reactClients": self.registry.count("dashboard"),
        }

    async def push(self) -> Dict[str, Any]:
        data = self.snapshot()
        self.broadcasts += 1
        await self.registry.broadcast("dashboard", envelope("status", data))
        _logger.debug("status pushed: %s", data)
        return data
