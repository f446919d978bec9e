from typing import Any, Dict

from fastapi import WebSocket

from hunyuan_portal.core.logger import get_logger
from hunyuan_portal.models.response_models import GenerationResult

logger = get_logger(__name__)

DUPLICATE_CLIENT_CLOSE_CODE = 1008


class ConnectionManager:
    """
    Tracks WebSocket clients following a generation and pushes
    progress, result and error events to them.

    A client id belongs to one socket at a time; a second connection
    with an id that is still active is refused.
    """

    def __init__(self):
        self.active_connections: Dict[str, WebSocket] = {}

    async def connect(self, websocket: WebSocket, client_id: str) -> bool:
        await websocket.accept()
        if client_id in self.active_connections:
            logger.warning(f"Client id {client_id} is already connected; refusing second socket")
            await websocket.send_json(
                {
                    "type": "error",
                    "message": f"Client id {client_id} is already connected",
                    "statusCode": 409,
                }
            )
            await websocket.close(code=DUPLICATE_CLIENT_CLOSE_CODE)
            return False

        self.active_connections[client_id] = websocket
        logger.info(f"Client {client_id} connected. Active connections: {len(self.active_connections)}")
        return True

    def disconnect(self, client_id: str, websocket: WebSocket):
        if self.active_connections.get(client_id) is websocket:
            del self.active_connections[client_id]
            logger.info(f"Client {client_id} disconnected. Active connections: {len(self.active_connections)}")

    async def send_event(self, client_id: str, event: Dict[str, Any]):
        websocket = self.active_connections.get(client_id)
        if websocket is None:
            logger.warning(f"Dropping {event.get('type')} event for unknown client {client_id}")
            return
        try:
            await websocket.send_json(event)
        except Exception as e:
            logger.error(f"Failed to send message to {client_id}: {e}")
            self.disconnect(client_id, websocket)

    async def send_progress(self, client_id: str, message: str):
        await self.send_event(client_id, {"type": "progress", "message": message})

    async def send_result(self, client_id: str, task_id: str, result: GenerationResult):
        await self.send_event(
            client_id,
            {"type": "result", "taskId": task_id, "result": result},
        )

    async def send_error(self, client_id: str, message: str, status_code: int = 500):
        await self.send_event(
            client_id, {"type": "error", "message": message, "statusCode": status_code}
        )


manager = ConnectionManager()
