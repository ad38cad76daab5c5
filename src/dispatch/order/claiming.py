"""Order claiming commands and handler.

Claims arrive from the REST API and from the realtime gateway; both go
through these commands so they share one atomic path.
"""

from protean import handle
from protean.fields import Boolean, Identifier, Integer

from dispatch.domain import dispatch
from dispatch.order.engine import ClaimEngine
from dispatch.order.order import Order


@dispatch.command(part_of="Order")
class ClaimOrder:
    """Claim an order for a pilot for a limited time."""

    order_id = Identifier(required=True)
    pilot_id = Identifier(required=True)
    claim_duration_ms = Integer(min_value=1)
    announce = Boolean(default=True)


@dispatch.command(part_of="Order")
class ReleaseClaim:
    """Give up a claim held by the pilot."""

    order_id = Identifier(required=True)
    pilot_id = Identifier(required=True)


@dispatch.command_handler(part_of=Order)
class ClaimingHandler:
    @handle(ClaimOrder)
    def claim_order(self, command):
        return ClaimEngine().claim_order(
            str(command.order_id),
            str(command.pilot_id),
            claim_duration_ms=command.claim_duration_ms,
            announce=command.announce,
        )

    @handle(ReleaseClaim)
    def release_claim(self, command):
        return ClaimEngine().release_claim(str(command.order_id), str(command.pilot_id))
