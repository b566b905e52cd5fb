from repairdesk.schemas.order import (
    OrderCancel,
    OrderFinish,
    OrderInfoPatch,
    OrderListQuery,
    OrderListResponse,
    OrderRating,
    OrderResponse,
    OrderSubmit,
)
from repairdesk.schemas.order_log import OrderLogListResponse, OrderLogResponse

__all__ = [
    "OrderSubmit",
    "OrderInfoPatch",
    "OrderFinish",
    "OrderCancel",
    "OrderRating",
    "OrderListQuery",
    "OrderResponse",
    "OrderListResponse",
    "OrderLogResponse",
    "OrderLogListResponse",
]
