"""In-process order store. Records are kept in a dict behind a single lock.

Every operation evaluates its precondition and applies its update while
holding the lock, which gives the same compare-and-set guarantee as a
database conditional update. Intended for development and tests; state is
lost when the process exits.
"""

import threading
from datetime import datetime, timedelta

from dispatch.order.order import (
    CLAIM_REQUIRED_STATUSES,
    Order,
    OrderStatus,
    claim_has_lapsed,
    claim_is_open,
    source_statuses,
)
from dispatch.store.port import OrderStore

_CLEARED_CLAIM = {"claimed_by": None, "claimed_at": None, "claim_expires_at": None}


class MemoryOrderStore(OrderStore):
    """Order store that keeps records in memory for dev and test runs."""

    def __init__(self):
        self._records: dict[str, dict] = {}
        self._lock = threading.Lock()

    # -------------------------------------------------------------------
    # Helpers (call with the lock held)
    # -------------------------------------------------------------------
    def _locate(self, identifier: str) -> dict | None:
        record = self._records.get(identifier)
        if record is not None:
            return record
        return next((r for r in self._records.values() if r["order_code"] == identifier), None)

    @staticmethod
    def _hydrate(record: dict) -> Order:
        return Order(**record)

    # -------------------------------------------------------------------
    # OrderStore
    # -------------------------------------------------------------------
    def add(self, order: Order) -> Order:
        record = order.to_record()
        with self._lock:
            if self._locate(record["id"]) is not None or self._locate(record["order_code"]) is not None:
                raise ValueError(f"Order {record['order_code']} already exists")
            self._records[record["id"]] = record
            return self._hydrate(record)

    def find(self, identifier: str) -> Order | None:
        with self._lock:
            record = self._locate(identifier)
            return self._hydrate(record) if record else None

    def atomic_claim(
        self,
        identifier: str,
        pilot_id: str,
        now: datetime,
        claim_duration: timedelta,
    ) -> Order | None:
        with self._lock:
            record = self._locate(identifier)
            if record is None or not claim_is_open(
                record["status"], record["claimed_by"], record["claim_expires_at"], now
            ):
                return None
            record.update(
                claimed_by=pilot_id,
                claimed_at=now,
                claim_expires_at=now + claim_duration,
                status=OrderStatus.CLAIMED.value,
                updated_at=now,
            )
            return self._hydrate(record)

    def release(self, identifier: str, pilot_id: str, now: datetime) -> Order | None:
        with self._lock:
            record = self._locate(identifier)
            if (
                record is None
                or record["status"] != OrderStatus.CLAIMED.value
                or record["claimed_by"] != pilot_id
            ):
                return None
            record.update(_CLEARED_CLAIM, status=OrderStatus.PENDING.value, updated_at=now)
            return self._hydrate(record)

    def transition_status(
        self,
        identifier: str,
        new_status: OrderStatus,
        now: datetime,
        pilot_id: str | None = None,
    ) -> Order | None:
        if new_status == OrderStatus.CLAIMED:
            raise ValueError("Orders are claimed through atomic_claim")

        allowed_from = {s.value for s in source_statuses(new_status)}
        with self._lock:
            record = self._locate(identifier)
            if record is None or record["status"] not in allowed_from:
                return None
            if new_status in CLAIM_REQUIRED_STATUSES:
                if record["claimed_by"] is None:
                    return None
                # A lapsed claim is void even before the sweep resets it
                lapsed = claim_has_lapsed(record["claim_expires_at"], now)
                if record["status"] == OrderStatus.CLAIMED.value and lapsed:
                    return None
            if pilot_id is not None and record["claimed_by"] != pilot_id:
                return None

            changes = {"status": new_status.value, "updated_at": now}
            if new_status == OrderStatus.PENDING:
                expires = record["claim_expires_at"]
                if expires is None or expires > now:
                    return None
                changes.update(_CLEARED_CLAIM)
            elif new_status == OrderStatus.DELIVERED:
                changes["delivered_at"] = now
            elif new_status == OrderStatus.CANCELLED:
                changes["cancelled_at"] = now

            record.update(changes)
            return self._hydrate(record)

    def sweep_expired_claims(self, now: datetime) -> list[Order]:
        released = []
        with self._lock:
            for record in self._records.values():
                if (
                    record["status"] == OrderStatus.CLAIMED.value
                    and record["claimed_by"] is not None
                    and record["claim_expires_at"] is not None
                    and record["claim_expires_at"] <= now
                ):
                    record.update(_CLEARED_CLAIM, status=OrderStatus.PENDING.value, updated_at=now)
                    released.append(self._hydrate(record))
        return released

    def list_claimable(self, now: datetime) -> list[Order]:
        with self._lock:
            records = [
                r
                for r in self._records.values()
                if claim_is_open(r["status"], r["claimed_by"], r["claim_expires_at"], now)
            ]
            records.sort(key=lambda r: r["created_at"], reverse=True)
            return [self._hydrate(r) for r in records]

    def list_by_pilot(self, pilot_id: str) -> list[Order]:
        with self._lock:
            records = [r for r in self._records.values() if r["claimed_by"] == pilot_id]
            records.sort(key=lambda r: r["created_at"], reverse=True)
            return [self._hydrate(r) for r in records]

    def clear(self) -> None:
        with self._lock:
            self._records.clear()
