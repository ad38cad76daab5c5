"""Claim engine — claim, release and status transitions over the order store.

Every mutation is delegated to one conditional update on the store; the
engine never reads an order and then writes it back. Rejections come back
as typed ``DispatchResult`` values rather than exceptions, so callers can
tell a lost race (move on) from a store fault (retry).
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum

import structlog

from dispatch.config import get_settings
from dispatch.order.order import (
    CLAIM_REQUIRED_STATUSES,
    Order,
    OrderStatus,
    can_transition,
    claim_has_lapsed,
    utc_now,
)
from dispatch.realtime import get_notifier
from dispatch.store import get_order_store
from dispatch.store.port import OrderStore

logger = structlog.get_logger(__name__)

CLAIM_CONFLICT = "Already claimed or unavailable"
NOT_CLAIM_HOLDER = "Order is not claimed by this pilot"
CLAIM_EXPIRED = "Claim has expired"


class Outcome(Enum):
    OK = "ok"
    CONFLICT = "conflict"
    NOT_FOUND = "not_found"


@dataclass(frozen=True)
class DispatchResult:
    """Outcome of a claim engine operation."""

    outcome: Outcome
    order: Order | None = None
    reason: str | None = None

    @property
    def success(self) -> bool:
        return self.outcome is Outcome.OK

    @classmethod
    def ok(cls, order: Order) -> "DispatchResult":
        return cls(outcome=Outcome.OK, order=order)

    @classmethod
    def conflict(cls, reason: str) -> "DispatchResult":
        return cls(outcome=Outcome.CONFLICT, reason=reason)

    @classmethod
    def not_found(cls, identifier: str) -> "DispatchResult":
        return cls(outcome=Outcome.NOT_FOUND, reason=f"Order {identifier} not found")


class ClaimEngine:
    def __init__(self, store: OrderStore | None = None, notifier=None, claim_duration_ms: int | None = None):
        self.store = store or get_order_store()
        self.notifier = notifier or get_notifier()
        self.claim_duration_ms = claim_duration_ms or get_settings().claim_duration_ms

    # -------------------------------------------------------------------
    # Creation and queries
    # -------------------------------------------------------------------
    def create_order(self, **fields) -> Order:
        """Store a new pending order and announce it to admins and pilots."""
        order = self.store.add(Order.create(**fields))
        logger.info("Order created", order_id=str(order.id), order_code=order.order_code)
        self.notifier.new_order(order, self.store.list_claimable(utc_now()))
        return order

    def get_order(self, identifier: str) -> DispatchResult:
        order = self.store.find(identifier)
        if order is None:
            return DispatchResult.not_found(identifier)
        return DispatchResult.ok(order)

    def unclaimed_orders(self, now: datetime | None = None) -> list[Order]:
        return self.store.list_claimable(now or utc_now())

    def pilot_history(self, pilot_id: str) -> list[Order]:
        return self.store.list_by_pilot(pilot_id)

    # -------------------------------------------------------------------
    # Claiming
    # -------------------------------------------------------------------
    def claim_order(
        self,
        identifier: str,
        pilot_id: str,
        claim_duration_ms: int | None = None,
        now: datetime | None = None,
        announce: bool = True,
    ) -> DispatchResult:
        """Atomically grant ``pilot_id`` a time-bounded claim on the order."""
        now = now or utc_now()
        duration = timedelta(milliseconds=claim_duration_ms or self.claim_duration_ms)

        order = self.store.atomic_claim(identifier, pilot_id, now, duration)
        if order is None:
            if self.store.find(identifier) is None:
                return DispatchResult.not_found(identifier)
            logger.info("Claim rejected", order_id=identifier, pilot_id=pilot_id)
            return DispatchResult.conflict(CLAIM_CONFLICT)

        logger.info(
            "Order claimed",
            order_id=str(order.id),
            pilot_id=pilot_id,
            claim_expires_at=order.claim_expires_at.isoformat(),
        )
        if announce:
            self.announce_claim(order)
        return DispatchResult.ok(order)

    def announce_claim(self, order: Order) -> None:
        self.notifier.order_claimed(order)

    def release_claim(self, identifier: str, pilot_id: str, now: datetime | None = None) -> DispatchResult:
        """Voluntarily give up a claim; only the current holder may do so."""
        order = self.store.release(identifier, pilot_id, now or utc_now())
        if order is None:
            if self.store.find(identifier) is None:
                return DispatchResult.not_found(identifier)
            logger.info("Release rejected", order_id=identifier, pilot_id=pilot_id)
            return DispatchResult.conflict(NOT_CLAIM_HOLDER)

        logger.info("Claim released", order_id=str(order.id), pilot_id=pilot_id)
        self.notifier.orders_released([order], reason="released")
        return DispatchResult.ok(order)

    # -------------------------------------------------------------------
    # Status transitions
    # -------------------------------------------------------------------
    def update_status(
        self,
        identifier: str,
        new_status: OrderStatus | str,
        pilot_id: str | None = None,
        now: datetime | None = None,
    ) -> DispatchResult:
        """Advance the order along the delivery state machine."""
        try:
            target = OrderStatus(new_status)
        except ValueError:
            return DispatchResult.conflict(f"Invalid status {new_status}")
        if target == OrderStatus.CLAIMED:
            return DispatchResult.conflict("Orders are claimed through the claim operation")

        now = now or utc_now()
        order = self.store.transition_status(identifier, target, now, pilot_id=pilot_id)
        if order is None:
            current = self.store.find(identifier)
            if current is None:
                return DispatchResult.not_found(identifier)
            reason = self._rejection_reason(current, target, pilot_id, now)
            logger.info(
                "Status transition rejected",
                order_id=identifier,
                status=current.status,
                target=target.value,
                reason=reason,
            )
            return DispatchResult.conflict(reason)

        logger.info("Order status updated", order_id=str(order.id), status=order.status)
        if target == OrderStatus.CANCELLED:
            self.notifier.order_cancelled(order)
        elif target == OrderStatus.PENDING:
            self.notifier.orders_released([order], reason="expired")
        else:
            self.notifier.status_changed(order)
        return DispatchResult.ok(order)

    def cancel_order(self, identifier: str, now: datetime | None = None) -> DispatchResult:
        return self.update_status(identifier, OrderStatus.CANCELLED, now=now)

    @staticmethod
    def _rejection_reason(current: Order, target: OrderStatus, pilot_id: str | None, now: datetime) -> str:
        """Explain a rejected transition from the order's state after the fact."""
        status = OrderStatus(current.status)
        if not can_transition(status, target):
            return f"Invalid transition from {status.value} to {target.value}"
        if target in CLAIM_REQUIRED_STATUSES and not current.claimed_by:
            return "This order is not claimed"
        if pilot_id is not None and str(current.claimed_by) != pilot_id:
            return NOT_CLAIM_HOLDER
        if target in CLAIM_REQUIRED_STATUSES and status == OrderStatus.CLAIMED:
            if claim_has_lapsed(current.claim_expires_at, now):
                return CLAIM_EXPIRED
        if target == OrderStatus.PENDING:
            return "Claim has not expired"
        return f"Order changed concurrently; now {status.value}"

    # -------------------------------------------------------------------
    # Expiry
    # -------------------------------------------------------------------
    def sweep_expired_claims(self, now: datetime | None = None) -> list[Order]:
        """Release every lapsed claim in one batch and announce the releases."""
        now = now or utc_now()
        released = self.store.sweep_expired_claims(now)
        if released:
            logger.info("Released expired claims", released_count=len(released))
            self.notifier.orders_released(released, reason="expired")
        return released
