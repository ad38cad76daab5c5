"""Tests for the Order state machine: legal and illegal transitions."""

import pytest

from dispatch.order.order import (
    CLAIM_REQUIRED_STATUSES,
    TERMINAL_STATUSES,
    OrderStatus,
    can_transition,
    source_statuses,
)

_LEGAL = {
    (OrderStatus.PENDING, OrderStatus.CLAIMED),
    (OrderStatus.PENDING, OrderStatus.CANCELLED),
    (OrderStatus.CLAIMED, OrderStatus.REACHED_PICKUP),
    (OrderStatus.CLAIMED, OrderStatus.PENDING),
    (OrderStatus.CLAIMED, OrderStatus.CANCELLED),
    (OrderStatus.REACHED_PICKUP, OrderStatus.PICKED_UP),
    (OrderStatus.REACHED_PICKUP, OrderStatus.CANCELLED),
    (OrderStatus.PICKED_UP, OrderStatus.DELIVERED),
    (OrderStatus.PICKED_UP, OrderStatus.CANCELLED),
}

_ALL_PAIRS = [(a, b) for a in OrderStatus for b in OrderStatus]


class TestValidTransitions:
    @pytest.mark.parametrize("current,target", sorted(_LEGAL, key=lambda p: (p[0].value, p[1].value)))
    def test_legal_edge(self, current, target):
        assert can_transition(current, target)

    def test_no_edge_leads_back_to_an_earlier_delivery_step(self):
        assert not can_transition(OrderStatus.PICKED_UP, OrderStatus.REACHED_PICKUP)
        assert not can_transition(OrderStatus.REACHED_PICKUP, OrderStatus.CLAIMED)
        assert not can_transition(OrderStatus.DELIVERED, OrderStatus.PICKED_UP)


class TestInvalidTransitions:
    @pytest.mark.parametrize("current,target", [p for p in _ALL_PAIRS if p not in _LEGAL])
    def test_every_other_pair_is_rejected(self, current, target):
        assert not can_transition(current, target)

    def test_claimed_cannot_skip_to_delivered(self):
        assert not can_transition(OrderStatus.CLAIMED, OrderStatus.DELIVERED)

    @pytest.mark.parametrize("terminal", sorted(TERMINAL_STATUSES, key=lambda s: s.value))
    def test_terminal_statuses_have_no_exits(self, terminal):
        assert all(not can_transition(terminal, target) for target in OrderStatus)


class TestSourceStatuses:
    def test_cancelled_reachable_from_every_non_terminal(self):
        assert source_statuses(OrderStatus.CANCELLED) == {
            OrderStatus.PENDING,
            OrderStatus.CLAIMED,
            OrderStatus.REACHED_PICKUP,
            OrderStatus.PICKED_UP,
        }

    def test_delivered_only_from_picked_up(self):
        assert source_statuses(OrderStatus.DELIVERED) == {OrderStatus.PICKED_UP}

    def test_pending_only_from_claimed(self):
        assert source_statuses(OrderStatus.PENDING) == {OrderStatus.CLAIMED}

    def test_delivery_progress_requires_a_claim(self):
        assert CLAIM_REQUIRED_STATUSES == {
            OrderStatus.REACHED_PICKUP,
            OrderStatus.PICKED_UP,
            OrderStatus.DELIVERED,
        }
