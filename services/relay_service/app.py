import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from libs.config import get_setting
from libs.log.logger import configure_logging
from .core.checkpoint import CheckpointWriter
from .core.hub import RelayHub
from .core.liveness import LivenessSupervisor
from .routers.http import router as http_router
from .routers.ws import router as ws_router
from .store import RouteStore, build_store

_logger = logging.getLogger(__name__)


def create_app(store: Optional[RouteStore] = None, heartbeat: bool = True) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging()
        app_store = store if store is not None else await build_store()
        checkpoints = CheckpointWriter(
            app_store,
            interval_ms=float(get_setting("relay.checkpoint_interval_ms", 2000)),
        )
        hub = RelayHub(checkpoints=checkpoints)
        liveness = LivenessSupervisor(hub, interval_s=float(get_setting("relay.heartbeat_interval_s", 15)))

        app.state.store = app_store
        app.state.hub = hub
        app.state.liveness = liveness

        checkpoints.start()
        if heartbeat:
            liveness.start()
        _logger.info("relay ready on %s", get_setting("relay.ws_path", "/ws"))
        try:
            yield
        finally:
            await liveness.stop()
            await checkpoints.stop()
            await app_store.close()

    app = FastAPI(title="relay_service", lifespan=lifespan)
    app.include_router(http_router)
    app.include_router(ws_router)
    return app


app = create_app()
