"""Dispatch notifier — fire-and-forget fan-out of order state changes.

Three audiences receive events: every connected pilot (``pilots``), the
pilot holding a claim (``pilot_<id>``) and admins (``admins``). Each send is
its own detached task and failures are caught at the send site, so a broken
connection never delays or fails the operation that triggered the event.
"""

import asyncio
from collections.abc import Coroutine, Iterable

import structlog

from dispatch.api.schemas import OrderResponse
from dispatch.order.order import Order, OrderStatus
from dispatch.realtime.connection import Connection
from dispatch.realtime.hub import ADMINS_GROUP, PILOTS_GROUP, ConnectionHub, pilot_group

logger = structlog.get_logger(__name__)

_STATUS_EVENTS = {
    OrderStatus.REACHED_PICKUP.value: "orderReached",
    OrderStatus.PICKED_UP.value: "orderPickedUp",
    OrderStatus.DELIVERED.value: "orderDelivered",
}


def order_payload(order: Order) -> dict:
    return OrderResponse.from_order(order).model_dump(mode="json")


def order_summary(order: Order) -> dict:
    """Compact listing entry pushed with ``ordersUpdate`` snapshots."""
    return {
        "orderId": str(order.id),
        "orderCode": order.order_code,
        "total": order.total,
        "finalAmount": order.final_amount,
        "itemsCount": order.items_count,
        "status": order.status,
        "createdAt": order.created_at.isoformat() if order.created_at else None,
    }


class DispatchNotifier:
    def __init__(self, hub: ConnectionHub):
        self.hub = hub
        self._loop: asyncio.AbstractEventLoop | None = None
        self._tasks: set[asyncio.Task] = set()

    def bind_loop(self, loop: asyncio.AbstractEventLoop | None) -> None:
        """Remember the serving loop so calls from worker threads land on it."""
        self._loop = loop

    # -------------------------------------------------------------------
    # Delivery
    # -------------------------------------------------------------------
    def emit(self, group: str, event: str, data) -> int:
        """Schedule ``event`` for every member of ``group``; returns the fan-out size."""
        members = self.hub.members(group)
        for connection in members:
            self._spawn(self._deliver(connection, group, event, data))
        return len(members)

    async def _deliver(self, connection: Connection, group: str, event: str, data) -> None:
        try:
            await connection.send(event, data)
        except Exception as exc:
            logger.warning(
                "Realtime send failed",
                connection_id=connection.id,
                group=group,
                event=event,
                error=str(exc),
            )

    def _spawn(self, coro: Coroutine) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None

        if loop is not None:
            task = loop.create_task(coro)
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
        elif self._loop is not None and self._loop.is_running():
            asyncio.run_coroutine_threadsafe(coro, self._loop)
        else:
            # No event loop at all (CLI, plain sync callers): deliver inline
            asyncio.run(coro)

    async def drain(self) -> None:
        """Wait for sends scheduled on the current loop to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    # -------------------------------------------------------------------
    # Events
    # -------------------------------------------------------------------
    def new_order(self, order: Order, unclaimed: Iterable[Order]) -> None:
        self.emit(ADMINS_GROUP, "newOrder", {"order": order_payload(order)})
        self.orders_snapshot(unclaimed)

    def orders_snapshot(self, orders: Iterable[Order]) -> None:
        self.emit(PILOTS_GROUP, "ordersUpdate", {"orders": [order_summary(o) for o in orders]})

    def order_claimed(self, order: Order) -> None:
        pilot_id = str(order.claimed_by)
        claim = {
            "orderId": str(order.id),
            "orderCode": order.order_code,
            "claimedBy": pilot_id,
            "claimedAt": order.claimed_at.isoformat() if order.claimed_at else None,
        }
        self.emit(pilot_group(pilot_id), "orderAssigned", {"order": order_payload(order)})
        self.emit(PILOTS_GROUP, "orderClaimed", claim)
        self.emit(ADMINS_GROUP, "orderClaimed", claim)

    def orders_released(self, orders: list[Order], reason: str) -> None:
        if not orders:
            return
        released = {
            "orderIds": [str(o.id) for o in orders],
            "orderCodes": [o.order_code for o in orders],
            "reason": reason,
        }
        self.emit(PILOTS_GROUP, "orderReleased", released)
        self.emit(ADMINS_GROUP, "orderReleased", released)

    def status_changed(self, order: Order) -> None:
        event = _STATUS_EVENTS.get(order.status)
        if event is None:
            return
        payload = {"orderId": str(order.id), "orderCode": order.order_code}
        self.emit(pilot_group(str(order.claimed_by)), event, payload)
        self.emit(ADMINS_GROUP, event, {**payload, "claimedBy": str(order.claimed_by)})

    def order_cancelled(self, order: Order) -> None:
        payload = {"orderId": str(order.id), "orderCode": order.order_code}
        self.emit(PILOTS_GROUP, "orderCancelled", payload)
        claimed_by = str(order.claimed_by) if order.claimed_by else None
        self.emit(ADMINS_GROUP, "orderCancelled", {**payload, "claimedBy": claimed_by})
