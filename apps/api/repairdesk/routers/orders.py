from fastapi import APIRouter, Body, Depends, Query, status

from repairdesk.auth.dependencies import get_actor
from repairdesk.config import settings
from repairdesk.dependencies import get_engine
from repairdesk.models.order import OrderStatus
from repairdesk.schemas.order import (
    OrderCancel,
    OrderFinish,
    OrderInfoPatch,
    OrderListResponse,
    OrderRating,
    OrderResponse,
    OrderSubmit,
)
from repairdesk.schemas.order_log import OrderLogListResponse, OrderLogResponse
from repairdesk.services.orders_service import OrderLifecycleEngine
from repairdesk.services.policy import Actor

router = APIRouter(prefix="/api/v1/orders", tags=["orders"])


@router.post(
    "",
    response_model=OrderResponse,
    summary="Submit repair order",
    status_code=status.HTTP_201_CREATED,
)
def submit_order_endpoint(
    payload: OrderSubmit,
    engine: OrderLifecycleEngine = Depends(get_engine),
    actor: Actor = Depends(get_actor),
) -> OrderResponse:
    order = engine.submit(
        actor,
        location=payload.location,
        description=payload.description,
        contact_phone=payload.contact_phone,
        image_url=payload.image_url,
    )
    return OrderResponse.model_validate(order)


@router.get("", response_model=OrderListResponse, summary="List orders")
def list_orders_endpoint(
    status_filter: OrderStatus | None = Query(default=None, alias="status"),
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=settings.default_page_size, ge=1),
    engine: OrderLifecycleEngine = Depends(get_engine),
    actor: Actor = Depends(get_actor),
) -> OrderListResponse:
    result = engine.list_orders(actor, status=status_filter, page=page, page_size=page_size)
    return OrderListResponse(
        items=[OrderResponse.model_validate(order) for order in result.items],
        page=result.page,
        page_size=result.page_size,
        total=result.total,
    )


@router.get("/{order_id}", response_model=OrderResponse, summary="Get order detail")
def get_order_endpoint(
    order_id: str,
    engine: OrderLifecycleEngine = Depends(get_engine),
    actor: Actor = Depends(get_actor),
) -> OrderResponse:
    return OrderResponse.model_validate(engine.get(actor, order_id))


@router.patch("/{order_id}", response_model=OrderResponse, summary="Update order details")
def update_order_endpoint(
    order_id: str,
    payload: OrderInfoPatch,
    engine: OrderLifecycleEngine = Depends(get_engine),
    actor: Actor = Depends(get_actor),
) -> OrderResponse:
    order = engine.update_info(actor, order_id, **payload.changes())
    return OrderResponse.model_validate(order)


@router.post("/{order_id}/take", response_model=OrderResponse, summary="Take order")
def take_order_endpoint(
    order_id: str,
    engine: OrderLifecycleEngine = Depends(get_engine),
    actor: Actor = Depends(get_actor),
) -> OrderResponse:
    return OrderResponse.model_validate(engine.take(actor, order_id))


@router.post("/{order_id}/finish", response_model=OrderResponse, summary="Finish order")
def finish_order_endpoint(
    order_id: str,
    payload: OrderFinish | None = Body(default=None),
    engine: OrderLifecycleEngine = Depends(get_engine),
    actor: Actor = Depends(get_actor),
) -> OrderResponse:
    message = payload.message if payload else None
    return OrderResponse.model_validate(engine.finish(actor, order_id, message))


@router.post("/{order_id}/cancel", response_model=OrderResponse, summary="Cancel order")
def cancel_order_endpoint(
    order_id: str,
    payload: OrderCancel | None = Body(default=None),
    engine: OrderLifecycleEngine = Depends(get_engine),
    actor: Actor = Depends(get_actor),
) -> OrderResponse:
    reason = payload.reason if payload else None
    return OrderResponse.model_validate(engine.cancel(actor, order_id, reason))


@router.post("/{order_id}/rate", response_model=OrderResponse, summary="Rate completed order")
def rate_order_endpoint(
    order_id: str,
    payload: OrderRating,
    engine: OrderLifecycleEngine = Depends(get_engine),
    actor: Actor = Depends(get_actor),
) -> OrderResponse:
    order = engine.rate(actor, order_id, payload.rating, payload.comment)
    return OrderResponse.model_validate(order)


@router.get("/{order_id}/logs", response_model=OrderLogListResponse, summary="Order audit log")
def order_logs_endpoint(
    order_id: str,
    engine: OrderLifecycleEngine = Depends(get_engine),
    actor: Actor = Depends(get_actor),
) -> OrderLogListResponse:
    entries = engine.logs(actor, order_id)
    return OrderLogListResponse(items=[OrderLogResponse.model_validate(e) for e in entries])
