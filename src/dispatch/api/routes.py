"""FastAPI routes for the Dispatch domain."""

import structlog
from fastapi import APIRouter, Depends, FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from protean.utils.globals import current_domain

from dispatch.api.auth import ADMIN, PILOT, Actor, current_actor, require_role
from dispatch.api.schemas import (
    CreateOrderRequest,
    OrderCreatedResponse,
    OrderListResponse,
    OrderResponse,
    ReleasedOrdersResponse,
    UpdateStatusRequest,
)
from dispatch.order.claiming import ClaimOrder, ReleaseClaim
from dispatch.order.creation import CreateOrder
from dispatch.order.engine import ClaimEngine, DispatchResult, Outcome
from dispatch.order.status import CancelOrder, UpdateOrderStatus
from dispatch.realtime import get_notifier
from dispatch.reaper import get_reaper
from dispatch.store.port import StoreError

logger = structlog.get_logger(__name__)


def _order_or_error(result: DispatchResult) -> OrderResponse:
    """Translate a claim engine result into a response or an HTTP error."""
    if result.outcome is Outcome.NOT_FOUND:
        raise HTTPException(status_code=404, detail=result.reason)
    if not result.success:
        raise HTTPException(status_code=400, detail=result.reason)
    return OrderResponse.from_order(result.order)


# ---------------------------------------------------------------------------
# Order Router
# ---------------------------------------------------------------------------
order_router = APIRouter(prefix="/orders", tags=["orders"])


@order_router.post("", status_code=201, response_model=OrderCreatedResponse)
async def create_order(body: CreateOrderRequest, actor: Actor = Depends(current_actor)) -> OrderCreatedResponse:
    """Register a new order and announce it to pilots and admins."""
    command = CreateOrder(
        buyer_id=body.buyer_id,
        location=body.location,
        total=body.total,
        final_amount=body.final_amount,
        items_count=body.items_count,
        delivery_instructions=body.delivery_instructions,
        order_code=body.order_code,
    )
    try:
        order = current_domain.process(command, asynchronous=False)
    except ValueError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return OrderCreatedResponse(order_id=str(order.id), order_code=order.order_code)


@order_router.get("/unclaimed", response_model=OrderListResponse)
async def unclaimed_orders(actor: Actor = Depends(require_role(PILOT))) -> OrderListResponse:
    """Orders a pilot can claim right now; also pushed to every connected pilot."""
    orders = ClaimEngine().unclaimed_orders()
    get_notifier().orders_snapshot(orders)
    return OrderListResponse(orders=[OrderResponse.from_order(o) for o in orders])


@order_router.get("/pilot/history", response_model=OrderListResponse)
async def pilot_history(actor: Actor = Depends(require_role(PILOT))) -> OrderListResponse:
    orders = ClaimEngine().pilot_history(actor.id)
    return OrderListResponse(orders=[OrderResponse.from_order(o) for o in orders])


@order_router.post("/maintenance/release-expired", response_model=ReleasedOrdersResponse)
async def release_expired_claims(actor: Actor = Depends(require_role(ADMIN))) -> ReleasedOrdersResponse:
    """Maintenance endpoint: sweep lapsed claims now instead of waiting for the reaper."""
    released = await get_reaper().run_once(propagate=True)
    if released is None:
        raise HTTPException(status_code=409, detail="Expiry sweep already running")
    return ReleasedOrdersResponse(released=[str(o.id) for o in released])


@order_router.get("/{order_id}", response_model=OrderResponse)
async def get_order(order_id: str, actor: Actor = Depends(current_actor)) -> OrderResponse:
    return _order_or_error(ClaimEngine().get_order(order_id))


@order_router.put("/{order_id}/claim", response_model=OrderResponse)
async def claim_order(
    order_id: str,
    claim_duration_ms: int | None = Query(default=None, gt=0),
    actor: Actor = Depends(require_role(PILOT)),
) -> OrderResponse:
    """Claim an order for the calling pilot; exactly one concurrent claimant wins."""
    command = ClaimOrder(order_id=order_id, pilot_id=actor.id, claim_duration_ms=claim_duration_ms)
    return _order_or_error(current_domain.process(command, asynchronous=False))


@order_router.put("/{order_id}/release", response_model=OrderResponse)
async def release_claim(order_id: str, actor: Actor = Depends(require_role(PILOT))) -> OrderResponse:
    command = ReleaseClaim(order_id=order_id, pilot_id=actor.id)
    return _order_or_error(current_domain.process(command, asynchronous=False))


@order_router.put("/{order_id}/status", response_model=OrderResponse)
async def update_status(
    order_id: str,
    body: UpdateStatusRequest,
    actor: Actor = Depends(require_role(PILOT)),
) -> OrderResponse:
    """Advance delivery progress; only the pilot holding the claim may do so."""
    command = UpdateOrderStatus(order_id=order_id, status=body.status.value, pilot_id=actor.id)
    return _order_or_error(current_domain.process(command, asynchronous=False))


@order_router.put("/{order_id}/cancel", response_model=OrderResponse)
async def cancel_order(order_id: str, actor: Actor = Depends(require_role(ADMIN))) -> OrderResponse:
    command = CancelOrder(order_id=order_id)
    return _order_or_error(current_domain.process(command, asynchronous=False))


# ---------------------------------------------------------------------------
# Store faults
# ---------------------------------------------------------------------------
def register_store_error_handler(app: FastAPI) -> None:
    """Report order store outages as 503 so clients know to retry."""

    @app.exception_handler(StoreError)
    async def store_error_handler(request: Request, exc: StoreError) -> JSONResponse:
        logger.error("Order store unavailable", path=request.url.path, error=str(exc))
        return JSONResponse(status_code=503, content={"detail": "Order store unavailable"})
