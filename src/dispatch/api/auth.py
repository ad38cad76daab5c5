"""Caller identity for the Dispatch API.

Authentication happens upstream: the gateway in front of this service
verifies credentials and forwards the caller as ``X-Actor-Id`` and
``X-Actor-Role`` headers. This module only reads them and enforces roles.
"""

from fastapi import Depends, Header, HTTPException
from pydantic import BaseModel

BUYER = "buyer"
PILOT = "pilot"
ADMIN = "admin"

ROLES = (BUYER, PILOT, ADMIN)


class Actor(BaseModel):
    id: str
    role: str


def current_actor(
    x_actor_id: str | None = Header(default=None),
    x_actor_role: str | None = Header(default=None),
) -> Actor:
    if not x_actor_id or not x_actor_role:
        raise HTTPException(status_code=401, detail="Authentication required")
    role = x_actor_role.strip().lower()
    if role not in ROLES:
        raise HTTPException(status_code=401, detail=f"Unknown role {x_actor_role}")
    return Actor(id=x_actor_id, role=role)


def require_role(*roles: str):
    """Dependency factory that lets only the given roles through."""

    def guard(actor: Actor = Depends(current_actor)) -> Actor:
        if actor.role not in roles:
            raise HTTPException(status_code=403, detail="Not authorized for this operation")
        return actor

    return guard
