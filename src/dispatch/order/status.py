"""Commands and handler for delivery progress and cancellation."""

from protean import handle
from protean.fields import Identifier, String

from dispatch.domain import dispatch
from dispatch.order.engine import ClaimEngine
from dispatch.order.order import Order, OrderStatus


@dispatch.command(part_of="Order")
class UpdateOrderStatus:
    """Move an order to its next delivery status on behalf of the claim holder."""

    order_id = Identifier(required=True)
    status = String(required=True, max_length=20, choices=OrderStatus)
    pilot_id = Identifier()


@dispatch.command(part_of="Order")
class CancelOrder:
    """Cancel an order that has not yet been delivered."""

    order_id = Identifier(required=True)


@dispatch.command_handler(part_of=Order)
class StatusHandler:
    @handle(UpdateOrderStatus)
    def update_status(self, command):
        return ClaimEngine().update_status(
            str(command.order_id),
            command.status,
            pilot_id=str(command.pilot_id) if command.pilot_id else None,
        )

    @handle(CancelOrder)
    def cancel_order(self, command):
        return ClaimEngine().cancel_order(str(command.order_id))
