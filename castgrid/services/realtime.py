import asyncio
import json
import logging
from datetime import datetime, timezone
from typing import Any

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class RealtimeHub:
    """
    Websocket fan-out. A client subscribed with a device id only receives
    events for that device plus unscoped ones (e.g. `config_changed`).
    """

    def __init__(self) -> None:
        self._clients: dict[WebSocket, str | None] = {}
        self._lock = asyncio.Lock()
        self._revision = 0

    async def connect(self, websocket: WebSocket, device_id: str | None = None) -> None:
        await websocket.accept()
        async with self._lock:
            self._clients[websocket] = device_id or None
        await websocket.send_text(
            json.dumps(
                {
                    "type": "hello",
                    "revision": self._revision,
                    "device_id": device_id or None,
                    "ts": datetime.now(timezone.utc).isoformat(),
                }
            )
        )

    async def disconnect(self, websocket: WebSocket) -> None:
        async with self._lock:
            self._clients.pop(websocket, None)

    async def publish(
        self,
        event_type: str,
        payload: dict[str, Any] | None = None,
        device_id: str | None = None,
    ) -> int:
        self._revision += 1
        message = json.dumps(
            {
                "type": event_type,
                "revision": self._revision,
                "device_id": device_id,
                "payload": payload or {},
                "ts": datetime.now(timezone.utc).isoformat(),
            }
        )
        async with self._lock:
            clients = [
                client
                for client, scope in self._clients.items()
                if device_id is None or scope is None or scope == device_id
            ]

        stale: list[WebSocket] = []
        for client in clients:
            try:
                await client.send_text(message)
            except Exception:
                stale.append(client)

        if stale:
            logger.debug("Dropping %d stale websocket client(s)", len(stale))
            async with self._lock:
                for client in stale:
                    self._clients.pop(client, None)
        return self._revision

    @property
    def revision(self) -> int:
        return self._revision

    @property
    def client_count(self) -> int:
        return len(self._clients)
