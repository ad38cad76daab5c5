"""Order store port (abstract interface).

Defines the contract every order store adapter must implement. Each mutating
operation is a single conditional update evaluated by the backing store, so
two concurrent callers can never both observe success for the same order.
A rejected precondition is reported as ``None``, never as an exception;
exceptions are reserved for store faults.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta

from dispatch.order.order import Order, OrderStatus


class StoreError(Exception):
    """The backing store is unreachable or a conditional update failed to run."""


class OrderStore(ABC):
    """Abstract order store interface."""

    @abstractmethod
    def add(self, order: Order) -> Order:
        """Persist a newly created order."""
        ...

    @abstractmethod
    def find(self, identifier: str) -> Order | None:
        """Look up an order by primary identifier or external order code."""
        ...

    @abstractmethod
    def atomic_claim(
        self,
        identifier: str,
        pilot_id: str,
        now: datetime,
        claim_duration: timedelta,
    ) -> Order | None:
        """Grant the claim to ``pilot_id`` only if the order is claimable at ``now``."""
        ...

    @abstractmethod
    def release(self, identifier: str, pilot_id: str, now: datetime) -> Order | None:
        """Clear the claim only if ``pilot_id`` currently holds it."""
        ...

    @abstractmethod
    def transition_status(
        self,
        identifier: str,
        new_status: OrderStatus,
        now: datetime,
        pilot_id: str | None = None,
    ) -> Order | None:
        """Move the order to ``new_status`` only if the edge is legal right now."""
        ...

    @abstractmethod
    def sweep_expired_claims(self, now: datetime) -> list[Order]:
        """Release every claim that lapsed at or before ``now`` in one batch."""
        ...

    @abstractmethod
    def list_claimable(self, now: datetime) -> list[Order]:
        """Orders a pilot could claim at ``now``, newest first."""
        ...

    @abstractmethod
    def list_by_pilot(self, pilot_id: str) -> list[Order]:
        """Orders currently or finally held by ``pilot_id``, newest first."""
        ...

    @abstractmethod
    def clear(self) -> None:
        """Remove every order (test and maintenance helper)."""
        ...
