"""CreateOrder command + handler — hand a new order to the dispatch core.

Order creation proper (products, payment, pricing) lives upstream; this
command records the delivery-relevant fields and announces the order.
"""

from protean import handle
from protean.fields import Float, Identifier, Integer, String

from dispatch.domain import dispatch
from dispatch.order.engine import ClaimEngine
from dispatch.order.order import Order


@dispatch.command(part_of="Order")
class CreateOrder:
    """Register a new pending order for dispatch."""

    buyer_id = Identifier(required=True)
    location = String(required=True, max_length=500)
    total = Float(required=True, min_value=0.0)
    final_amount = Float(min_value=0.0)
    items_count = Integer(default=0, min_value=0)
    delivery_instructions = String(max_length=1000)
    order_code = String(max_length=50)


@dispatch.command_handler(part_of=Order)
class CreateOrderHandler:
    @handle(CreateOrder)
    def create_order(self, command):
        return ClaimEngine().create_order(
            buyer_id=str(command.buyer_id),
            location=command.location,
            total=command.total,
            final_amount=command.final_amount,
            items_count=command.items_count or 0,
            delivery_instructions=command.delivery_instructions,
            order_code=command.order_code,
        )
