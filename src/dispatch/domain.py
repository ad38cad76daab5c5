"""Dispatch bounded context — Order Claiming and Delivery-Pilot Dispatch.

Handles the claim lifecycle of orders awaiting delivery: pilots race to claim
pending orders, claims expire on their own, and every state change is fanned
out to connected pilots and admins over a realtime channel.
"""

from protean.domain import Domain

dispatch = Domain(name="dispatch")
