import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from libs.config import get_setting
from ..core.connection import Connection

_logger = logging.getLogger(__name__)

router = APIRouter()


@router.websocket(get_setting("relay.ws_path", "/ws"))
async def ws_relay(ws: WebSocket):
    hub = ws.app.state.hub
    await ws.accept()
    conn = Connection(ws)
    hub.connect(conn)
    try:
        while True:
            message = await ws.receive()
            if message["type"] == "websocket.disconnect":
                break
            raw = message.get("text")
            if raw is None:
                raw = message.get("bytes") or b""
            await hub.handle_raw(conn, raw)
    except WebSocketDisconnect:
        pass
    except RuntimeError as e:
        # receive() after the liveness sweep closed the socket
        _logger.debug("connection %s ended: %s", conn.id, e)
    finally:
        await hub.disconnect(conn)

