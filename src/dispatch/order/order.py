"""Order aggregate — the unit of delivery work handed to pilots.

The Order Store owns the authoritative copy of every order. The claim engine
mutates only the claim fields and the status, always through a single
conditional update against the store; this module holds the rules those
updates encode.

State Machine:
    PENDING → CLAIMED → REACHED_PICKUP → PICKED_UP → DELIVERED
    CLAIMED (expired) → PENDING
    {PENDING, CLAIMED, REACHED_PICKUP, PICKED_UP} → CANCELLED
"""

from datetime import UTC, datetime
from enum import Enum
from uuid import uuid4

from protean.fields import DateTime, Float, Identifier, Integer, String

from dispatch.domain import dispatch


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class OrderStatus(Enum):
    PENDING = "pending"
    CLAIMED = "claimed"
    REACHED_PICKUP = "reached_pickup"
    PICKED_UP = "picked_up"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


_VALID_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.CLAIMED, OrderStatus.CANCELLED},
    OrderStatus.CLAIMED: {OrderStatus.REACHED_PICKUP, OrderStatus.PENDING, OrderStatus.CANCELLED},
    OrderStatus.REACHED_PICKUP: {OrderStatus.PICKED_UP, OrderStatus.CANCELLED},
    OrderStatus.PICKED_UP: {OrderStatus.DELIVERED, OrderStatus.CANCELLED},
    OrderStatus.DELIVERED: set(),  # terminal
    OrderStatus.CANCELLED: set(),  # terminal
}

# Delivery progress is only meaningful while a pilot holds the order
CLAIM_REQUIRED_STATUSES = frozenset(
    {OrderStatus.REACHED_PICKUP, OrderStatus.PICKED_UP, OrderStatus.DELIVERED}
)

TERMINAL_STATUSES = frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED})


def utc_now() -> datetime:
    """Naive UTC timestamp, the representation every store persists."""
    return datetime.now(UTC).replace(tzinfo=None)


def can_transition(current: OrderStatus, target: OrderStatus) -> bool:
    return target in _VALID_TRANSITIONS.get(current, set())


def source_statuses(target: OrderStatus) -> set[OrderStatus]:
    """Statuses from which ``target`` can legally be reached."""
    return {source for source, targets in _VALID_TRANSITIONS.items() if target in targets}


def claim_has_lapsed(claim_expires_at: datetime | None, now: datetime) -> bool:
    return claim_expires_at is not None and claim_expires_at <= now


def claim_is_open(status: str, claimed_by: str | None, claim_expires_at: datetime | None, now: datetime) -> bool:
    """Whether an order in the given state can be claimed at ``now``.

    A pending order is claimable when it carries no live claim. A claimed
    order whose claim has lapsed counts as released even before the reaper
    has swept it.
    """
    expired = claim_has_lapsed(claim_expires_at, now)
    if status == OrderStatus.PENDING.value:
        return claimed_by is None or claim_expires_at is None or expired
    if status == OrderStatus.CLAIMED.value:
        return expired
    return False


def generate_order_code() -> str:
    return f"ORD{int(datetime.now(UTC).timestamp() * 1000)}{uuid4().hex[:6].upper()}"


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@dispatch.aggregate
class Order:
    order_code = String(required=True, max_length=50)
    buyer_id = Identifier(required=True)
    location = String(required=True, max_length=500)
    delivery_instructions = String(max_length=1000)
    items_count = Integer(default=0, min_value=0)
    total = Float(default=0.0)
    final_amount = Float(default=0.0)
    status = String(
        max_length=20,
        choices=OrderStatus,
        default=OrderStatus.PENDING.value,
    )
    claimed_by = Identifier()
    claimed_at = DateTime()
    claim_expires_at = DateTime()
    delivered_at = DateTime()
    cancelled_at = DateTime()
    created_at = DateTime()
    updated_at = DateTime()

    # -------------------------------------------------------------------
    # Factory method
    # -------------------------------------------------------------------
    @classmethod
    def create(
        cls,
        buyer_id: str,
        location: str,
        total: float,
        final_amount: float | None = None,
        items_count: int = 0,
        delivery_instructions: str | None = None,
        order_code: str | None = None,
    ):
        """Create a new pending order with no claim fields set."""
        now = utc_now()
        return cls(
            id=str(uuid4()),
            order_code=order_code or generate_order_code(),
            buyer_id=buyer_id,
            location=location,
            delivery_instructions=delivery_instructions,
            items_count=items_count,
            total=total,
            final_amount=total if final_amount is None else final_amount,
            status=OrderStatus.PENDING.value,
            created_at=now,
            updated_at=now,
        )

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    def is_claimable(self, now: datetime) -> bool:
        return claim_is_open(self.status, self.claimed_by, self.claim_expires_at, now)

    @property
    def is_terminal(self) -> bool:
        return OrderStatus(self.status) in TERMINAL_STATUSES

    def to_record(self) -> dict:
        """Flat column mapping used by the store adapters."""
        return {
            "id": str(self.id),
            "order_code": self.order_code,
            "buyer_id": str(self.buyer_id),
            "location": self.location,
            "delivery_instructions": self.delivery_instructions,
            "items_count": self.items_count,
            "total": self.total,
            "final_amount": self.final_amount,
            "status": self.status,
            "claimed_by": str(self.claimed_by) if self.claimed_by else None,
            "claimed_at": self.claimed_at,
            "claim_expires_at": self.claim_expires_at,
            "delivered_at": self.delivered_at,
            "cancelled_at": self.cancelled_at,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }
