"""Pydantic API schemas for the Dispatch domain.

These are the external API contracts — separate from domain commands.
The API layer translates between these schemas and domain commands.
"""

from datetime import datetime

from pydantic import BaseModel, Field

from dispatch.order.order import Order, OrderStatus


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------
class CreateOrderRequest(BaseModel):
    buyer_id: str
    location: str
    total: float = Field(ge=0)
    final_amount: float | None = Field(default=None, ge=0)
    items_count: int = Field(default=0, ge=0)
    delivery_instructions: str | None = None
    order_code: str | None = None


class UpdateStatusRequest(BaseModel):
    status: OrderStatus


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------
class OrderResponse(BaseModel):
    id: str
    order_code: str
    buyer_id: str
    location: str
    delivery_instructions: str | None = None
    items_count: int = 0
    total: float
    final_amount: float
    status: str
    claimed_by: str | None = None
    claimed_at: datetime | None = None
    claim_expires_at: datetime | None = None
    delivered_at: datetime | None = None
    cancelled_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_order(cls, order: Order) -> "OrderResponse":
        return cls(**order.to_record())


class OrderListResponse(BaseModel):
    orders: list[OrderResponse]


class OrderCreatedResponse(BaseModel):
    order_id: str
    order_code: str


class ReleasedOrdersResponse(BaseModel):
    released: list[str]
