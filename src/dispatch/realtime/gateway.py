"""Realtime gateway — WebSocket channel for pilots and admins.

Clients exchange ``{"event": ..., "data": ...}`` envelopes. Inbound events:

- ``joinPilots`` (data: pilot id): join the pilot broadcast group and the
  pilot's addressed group.
- ``joinAdmins``: join the admin audit group.
- ``claimOrder`` (data: ``{orderId, pilotId}``): claim through the same
  command path as the REST API, answered with ``claimResponse``.

Group membership lives only as long as the socket.
"""

import json

import structlog
from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from protean.exceptions import ValidationError
from protean.utils.globals import current_domain

from dispatch.domain import dispatch
from dispatch.order.claiming import ClaimOrder
from dispatch.order.engine import ClaimEngine
from dispatch.realtime import get_hub
from dispatch.realtime.connection import Connection, WebSocketConnection
from dispatch.realtime.notifier import order_payload
from dispatch.store.port import StoreError

logger = structlog.get_logger(__name__)

realtime_router = APIRouter(tags=["realtime"])


@realtime_router.websocket("/ws/dispatch")
async def dispatch_socket(websocket: WebSocket):
    await websocket.accept()
    connection = WebSocketConnection(websocket)
    hub = get_hub()
    logger.info("Realtime client connected", connection_id=connection.id)
    try:
        while True:
            raw = await websocket.receive_text()
            try:
                message = json.loads(raw)
            except ValueError:
                await connection.send("error", {"message": "Malformed message"})
                continue
            await handle_message(connection, message)
    except WebSocketDisconnect:
        pass
    finally:
        hub.discard(connection)
        logger.info("Realtime client disconnected", connection_id=connection.id)


async def handle_message(connection: Connection, message) -> None:
    """Route one inbound envelope."""
    hub = get_hub()
    event = message.get("event") if isinstance(message, dict) else None
    data = message.get("data") if isinstance(message, dict) else None

    if event == "joinPilots":
        hub.join_pilot(connection, str(data) if data else None)
        await connection.send("joined", {"groups": sorted(hub.groups_of(connection))})
    elif event == "joinAdmins":
        hub.join_admin(connection)
        await connection.send("joined", {"groups": sorted(hub.groups_of(connection))})
    elif event == "claimOrder":
        await claim_over_socket(connection, data if isinstance(data, dict) else {})
    else:
        await connection.send("error", {"message": f"Unknown event {event}"})


async def claim_over_socket(connection: Connection, data: dict) -> None:
    order_id = data.get("orderId")
    pilot_id = data.get("pilotId")
    if not order_id or not pilot_id:
        await connection.send("claimResponse", {"success": False, "message": "orderId and pilotId required"})
        return

    try:
        with dispatch.domain_context():
            command = ClaimOrder(order_id=str(order_id), pilot_id=str(pilot_id), announce=False)
            result = current_domain.process(command, asynchronous=False)
    except ValidationError as exc:
        await connection.send("claimResponse", {"success": False, "message": str(exc.messages)})
        return
    except StoreError as exc:
        logger.error("Realtime claim failed", order_id=order_id, pilot_id=pilot_id, error=str(exc))
        await connection.send("claimResponse", {"success": False, "message": "Server error"})
        return

    if not result.success:
        await connection.send("claimResponse", {"success": False, "message": result.reason})
        return

    # Requester hears first, then everyone else
    await connection.send("claimResponse", {"success": True, "order": order_payload(result.order)})
    ClaimEngine().announce_claim(result.order)
