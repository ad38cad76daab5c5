"""Realtime connection port and the WebSocket adapter behind it."""

from abc import ABC, abstractmethod
from uuid import uuid4

from fastapi import WebSocket


class Connection(ABC):
    """One live bidirectional channel to a pilot or admin client."""

    def __init__(self, connection_id: str | None = None):
        self.id = connection_id or uuid4().hex

    @abstractmethod
    async def send(self, event: str, data) -> None:
        """Push one event envelope to the client."""
        ...

    def __hash__(self):
        return hash(self.id)

    def __eq__(self, other):
        return isinstance(other, Connection) and other.id == self.id


class WebSocketConnection(Connection):
    """Connection over a Starlette/FastAPI WebSocket using JSON envelopes."""

    def __init__(self, websocket: WebSocket, connection_id: str | None = None):
        super().__init__(connection_id)
        self.websocket = websocket

    async def send(self, event: str, data) -> None:
        await self.websocket.send_json({"event": event, "data": data})
