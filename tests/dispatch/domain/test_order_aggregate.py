"""Tests for the Order aggregate and the claimability rule."""

from datetime import timedelta

from dispatch.order.order import (
    Order,
    OrderStatus,
    claim_is_open,
)


def _make_order(**overrides):
    fields = {"buyer_id": "buyer-001", "location": "12 Baker Street", "total": 450.0}
    fields.update(overrides)
    return Order.create(**fields)


class TestOrderCreation:
    def test_new_order_is_pending_without_claim(self):
        order = _make_order()
        assert order.status == OrderStatus.PENDING.value
        assert order.claimed_by is None
        assert order.claimed_at is None
        assert order.claim_expires_at is None
        assert order.delivered_at is None
        assert order.cancelled_at is None

    def test_generates_id_and_order_code(self):
        order = _make_order()
        assert order.id is not None
        assert order.order_code.startswith("ORD")

    def test_keeps_supplied_order_code(self):
        assert _make_order(order_code="ORD-CUSTOM-1").order_code == "ORD-CUSTOM-1"

    def test_final_amount_defaults_to_total(self):
        assert _make_order(total=300.0).final_amount == 300.0

    def test_explicit_final_amount(self):
        assert _make_order(total=300.0, final_amount=270.0).final_amount == 270.0

    def test_audit_timestamps_are_set(self):
        order = _make_order()
        assert order.created_at is not None
        assert order.updated_at == order.created_at

    def test_to_record_is_flat(self):
        order = _make_order(items_count=3, delivery_instructions="Ring twice")
        record = order.to_record()
        assert record["id"] == str(order.id)
        assert record["items_count"] == 3
        assert record["delivery_instructions"] == "Ring twice"
        assert record["claimed_by"] is None


class TestClaimability:
    def test_pending_without_claim_is_claimable(self, t0):
        assert claim_is_open("pending", None, None, t0)

    def test_pending_with_lapsed_claim_fields_is_claimable(self, t0):
        assert claim_is_open("pending", "pilot-a", t0 - timedelta(seconds=1), t0)

    def test_pending_with_live_claim_fields_is_not_claimable(self, t0):
        assert not claim_is_open("pending", "pilot-a", t0 + timedelta(seconds=1), t0)

    def test_pending_with_claimant_but_no_expiry_is_claimable(self, t0):
        assert claim_is_open("pending", "pilot-a", None, t0)

    def test_live_claim_is_not_claimable(self, t0):
        assert not claim_is_open("claimed", "pilot-a", t0 + timedelta(minutes=2), t0)

    def test_expired_claim_is_claimable(self, t0):
        assert claim_is_open("claimed", "pilot-a", t0 - timedelta(milliseconds=1), t0)

    def test_claim_expiring_exactly_now_is_claimable(self, t0):
        assert claim_is_open("claimed", "pilot-a", t0, t0)

    def test_orders_past_claim_are_never_claimable(self, t0):
        for status in ("reached_pickup", "picked_up", "delivered", "cancelled"):
            assert not claim_is_open(status, "pilot-a", t0 - timedelta(hours=1), t0)

    def test_aggregate_delegates_to_rule(self, t0):
        order = _make_order()
        assert order.is_claimable(t0)
        assert not order.is_terminal
