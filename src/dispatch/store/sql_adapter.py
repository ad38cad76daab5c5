"""SQLAlchemy order store — conditional UPDATE ... WHERE ... RETURNING.

Each mutation is one UPDATE statement whose WHERE clause carries the whole
precondition. The database evaluates and applies it atomically, so a claim
attempt that loses a race simply matches zero rows. Works with SQLite
(3.35+, used locally and in tests) and PostgreSQL.
"""

from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timedelta

from sqlalchemy import (
    Column,
    DateTime,
    Float,
    Integer,
    MetaData,
    String,
    Table,
    and_,
    case,
    create_engine,
    insert,
    or_,
    select,
    update,
)
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.pool import StaticPool

from dispatch.order.order import (
    CLAIM_REQUIRED_STATUSES,
    Order,
    OrderStatus,
    source_statuses,
)
from dispatch.store.port import OrderStore, StoreError

metadata = MetaData()

orders = Table(
    "orders",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("order_code", String(50), nullable=False, unique=True),
    Column("buyer_id", String(255), nullable=False),
    Column("location", String(500), nullable=False),
    Column("delivery_instructions", String(1000)),
    Column("items_count", Integer, nullable=False, default=0),
    Column("total", Float, nullable=False, default=0.0),
    Column("final_amount", Float, nullable=False, default=0.0),
    Column("status", String(20), nullable=False, index=True),
    Column("claimed_by", String(255), index=True),
    Column("claimed_at", DateTime),
    Column("claim_expires_at", DateTime, index=True),
    Column("delivered_at", DateTime),
    Column("cancelled_at", DateTime),
    Column("created_at", DateTime),
    Column("updated_at", DateTime),
)

_CLEARED_CLAIM = {"claimed_by": None, "claimed_at": None, "claim_expires_at": None}


def build_engine(database_uri: str) -> Engine:
    """Create an engine; in-memory SQLite shares one connection across threads."""
    if database_uri in ("sqlite://", "sqlite:///:memory:"):
        return create_engine(
            database_uri,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    if database_uri.startswith("sqlite"):
        return create_engine(database_uri, connect_args={"check_same_thread": False})
    return create_engine(database_uri, pool_pre_ping=True)


_lookup = orders.alias("lookup")


def _matches(identifier: str):
    """Pin the statement to the one row ``identifier`` names; an id wins over a code."""
    resolved = (
        select(_lookup.c.id)
        .where(or_(_lookup.c.id == identifier, _lookup.c.order_code == identifier))
        .order_by(case((_lookup.c.id == identifier, 0), else_=1))
        .limit(1)
        .scalar_subquery()
    )
    return orders.c.id == resolved


def _collides(record: dict):
    """Rows whose id or code equals either identifier of ``record``."""
    keys = [record["id"], record["order_code"]]
    return or_(orders.c.id.in_(keys), orders.c.order_code.in_(keys))


def _claimable(now: datetime):
    """SQL form of the claimability rule (see ``claim_is_open``)."""
    expired = and_(orders.c.claim_expires_at.is_not(None), orders.c.claim_expires_at <= now)
    return or_(
        and_(
            orders.c.status == OrderStatus.PENDING.value,
            or_(orders.c.claimed_by.is_(None), orders.c.claim_expires_at.is_(None), expired),
        ),
        and_(orders.c.status == OrderStatus.CLAIMED.value, expired),
    )


class SqlOrderStore(OrderStore):
    """Order store backed by a relational database through SQLAlchemy Core."""

    def __init__(self, engine: Engine):
        self.engine = engine

    @classmethod
    def from_uri(cls, database_uri: str) -> "SqlOrderStore":
        return cls(build_engine(database_uri))

    # -------------------------------------------------------------------
    # Schema
    # -------------------------------------------------------------------
    def create_schema(self) -> None:
        try:
            metadata.create_all(self.engine)
        except SQLAlchemyError as exc:
            raise StoreError(str(exc)) from exc

    def drop_schema(self) -> None:
        try:
            metadata.drop_all(self.engine)
        except SQLAlchemyError as exc:
            raise StoreError(str(exc)) from exc

    # -------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------
    @contextmanager
    def _transaction(self) -> Iterator[Connection]:
        try:
            with self.engine.begin() as conn:
                yield conn
        except IntegrityError:
            raise
        except SQLAlchemyError as exc:
            raise StoreError(str(exc)) from exc

    @staticmethod
    def _hydrate(row) -> Order:
        return Order(**dict(row._mapping))

    def _update_one(self, stmt) -> Order | None:
        with self._transaction() as conn:
            rows = conn.execute(stmt.returning(*orders.c)).all()
        return self._hydrate(rows[0]) if rows else None

    # -------------------------------------------------------------------
    # OrderStore
    # -------------------------------------------------------------------
    def add(self, order: Order) -> Order:
        record = order.to_record()
        try:
            with self._transaction() as conn:
                if conn.execute(select(orders.c.id).where(_collides(record))).first() is not None:
                    raise ValueError(f"Order {record['order_code']} already exists")
                conn.execute(insert(orders).values(**record))
        except IntegrityError as exc:
            raise ValueError(f"Order {record['order_code']} already exists") from exc
        return order

    def find(self, identifier: str) -> Order | None:
        with self._transaction() as conn:
            row = conn.execute(select(orders).where(_matches(identifier))).first()
        return self._hydrate(row) if row else None

    def atomic_claim(
        self,
        identifier: str,
        pilot_id: str,
        now: datetime,
        claim_duration: timedelta,
    ) -> Order | None:
        stmt = (
            update(orders)
            .where(_matches(identifier), _claimable(now))
            .values(
                claimed_by=pilot_id,
                claimed_at=now,
                claim_expires_at=now + claim_duration,
                status=OrderStatus.CLAIMED.value,
                updated_at=now,
            )
        )
        return self._update_one(stmt)

    def release(self, identifier: str, pilot_id: str, now: datetime) -> Order | None:
        stmt = (
            update(orders)
            .where(
                _matches(identifier),
                orders.c.status == OrderStatus.CLAIMED.value,
                orders.c.claimed_by == pilot_id,
            )
            .values(**_CLEARED_CLAIM, status=OrderStatus.PENDING.value, updated_at=now)
        )
        return self._update_one(stmt)

    def transition_status(
        self,
        identifier: str,
        new_status: OrderStatus,
        now: datetime,
        pilot_id: str | None = None,
    ) -> Order | None:
        if new_status == OrderStatus.CLAIMED:
            raise ValueError("Orders are claimed through atomic_claim")

        conditions = [
            _matches(identifier),
            orders.c.status.in_([s.value for s in source_statuses(new_status)]),
        ]
        if new_status in CLAIM_REQUIRED_STATUSES:
            conditions.append(orders.c.claimed_by.is_not(None))
            conditions.append(
                or_(
                    orders.c.status != OrderStatus.CLAIMED.value,
                    orders.c.claim_expires_at.is_(None),
                    orders.c.claim_expires_at > now,
                )
            )
        if pilot_id is not None:
            conditions.append(orders.c.claimed_by == pilot_id)

        values = {"status": new_status.value, "updated_at": now}
        if new_status == OrderStatus.PENDING:
            conditions.append(orders.c.claim_expires_at.is_not(None))
            conditions.append(orders.c.claim_expires_at <= now)
            values.update(_CLEARED_CLAIM)
        elif new_status == OrderStatus.DELIVERED:
            values["delivered_at"] = now
        elif new_status == OrderStatus.CANCELLED:
            values["cancelled_at"] = now

        return self._update_one(update(orders).where(*conditions).values(**values))

    def sweep_expired_claims(self, now: datetime) -> list[Order]:
        stmt = (
            update(orders)
            .where(
                orders.c.status == OrderStatus.CLAIMED.value,
                orders.c.claimed_by.is_not(None),
                orders.c.claim_expires_at.is_not(None),
                orders.c.claim_expires_at <= now,
            )
            .values(**_CLEARED_CLAIM, status=OrderStatus.PENDING.value, updated_at=now)
            .returning(*orders.c)
        )
        with self._transaction() as conn:
            rows = conn.execute(stmt).all()
        return [self._hydrate(row) for row in rows]

    def list_claimable(self, now: datetime) -> list[Order]:
        stmt = select(orders).where(_claimable(now)).order_by(orders.c.created_at.desc())
        with self._transaction() as conn:
            rows = conn.execute(stmt).all()
        return [self._hydrate(row) for row in rows]

    def list_by_pilot(self, pilot_id: str) -> list[Order]:
        stmt = select(orders).where(orders.c.claimed_by == pilot_id).order_by(orders.c.created_at.desc())
        with self._transaction() as conn:
            rows = conn.execute(stmt).all()
        return [self._hydrate(row) for row in rows]

    def clear(self) -> None:
        with self._transaction() as conn:
            conn.execute(orders.delete())
