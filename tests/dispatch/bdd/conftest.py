"""Shared BDD fixtures and step definitions for the Dispatch domain."""

from datetime import timedelta

import pytest
from pytest_bdd import given, parsers, then

from dispatch.order.engine import ClaimEngine, Outcome
from dispatch.order.order import Order, OrderStatus


@pytest.fixture()
def engine(order_store):
    return ClaimEngine(store=order_store, claim_duration_ms=120_000)


@pytest.fixture()
def at(t0):
    """Turn a millisecond offset from the scenario start into an instant."""

    def _at(offset_ms):
        return t0 + timedelta(milliseconds=offset_ms)

    return _at


@pytest.fixture()
def outcomes():
    """Every status update result, in order."""
    return []


def _current(engine, order):
    return engine.get_order(str(order.id)).order


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given("a pending unclaimed order", target_fixture="order")
def pending_order(order_store, t0):
    order = Order.create(buyer_id="buyer-bdd", location="221B Baker Street", total=120.0)
    order.created_at = t0
    return order_store.add(order)


@given(parsers.cfparse('pilot "{pilot}" claimed the order for {duration:d} ms at t={offset:d}'))
def claimed_order(engine, order, pilot, duration, offset, at):
    assert engine.claim_order(str(order.id), pilot, claim_duration_ms=duration, now=at(offset)).success


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('the order is claimed by "{pilot}"'))
def claimed_by(engine, order, pilot):
    current = _current(engine, order)
    assert current.status == OrderStatus.CLAIMED.value
    assert current.claimed_by == pilot


@then("the order is pending with no claim")
def pending_without_claim(engine, order):
    current = _current(engine, order)
    assert current.status == OrderStatus.PENDING.value
    assert current.claimed_by is None
    assert current.claimed_at is None
    assert current.claim_expires_at is None


@then(parsers.cfparse('the order status is "{status}"'))
def order_status(engine, order, status):
    assert _current(engine, order).status == status


@then("the status update is rejected as an invalid transition")
def invalid_transition(outcomes):
    assert outcomes[-1].outcome is Outcome.CONFLICT
    assert outcomes[-1].reason.startswith("Invalid transition")
