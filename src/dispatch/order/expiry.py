"""Claim expiry — command and handler for releasing lapsed claims.

Triggered on every tick of the expiry reaper, and on demand through the
maintenance API endpoint or ``manage.py sweep-claims``. All expired claims
are released by one conditional update, so a sweep that races a new claim
on the same order can never undo it.
"""

import structlog
from protean import handle
from protean.fields import DateTime

from dispatch.domain import dispatch
from dispatch.order.engine import ClaimEngine
from dispatch.order.order import Order, utc_now

logger = structlog.get_logger(__name__)


@dispatch.command(part_of="Order")
class SweepExpiredClaims:
    """Release every claim that lapsed at or before ``as_of``."""

    as_of = DateTime()  # Optional: defaults to now


@dispatch.command_handler(part_of=Order)
class SweepExpiredClaimsHandler:
    @handle(SweepExpiredClaims)
    def sweep_expired_claims(self, command):
        as_of = command.as_of or utc_now()
        logger.debug("Checking for expired claims", as_of=as_of.isoformat())
        return ClaimEngine().sweep_expired_claims(as_of)
