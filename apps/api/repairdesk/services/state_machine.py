from repairdesk.errors import InvalidTransition
from repairdesk.models.order import OrderStatus
from repairdesk.models.order_log import OrderLogAction

ORDER_STATE_TRANSITIONS: dict[OrderStatus, set[OrderStatus]] = {
    OrderStatus.PENDING: {OrderStatus.TAKEN, OrderStatus.CANCELLED},
    OrderStatus.TAKEN: {OrderStatus.DONE, OrderStatus.CANCELLED},
    OrderStatus.DONE: set(),
    OrderStatus.CANCELLED: set(),
}

# Status each transition-carrying action moves an order into.
ACTION_TARGET_STATUS: dict[OrderLogAction, OrderStatus] = {
    OrderLogAction.TAKE: OrderStatus.TAKEN,
    OrderLogAction.FINISH: OrderStatus.DONE,
    OrderLogAction.CANCEL: OrderStatus.CANCELLED,
}


def can_transition(current: OrderStatus, next_status: OrderStatus) -> bool:
    return next_status in ORDER_STATE_TRANSITIONS.get(current, set())


def ensure_valid_transition(current: OrderStatus, next_status: OrderStatus) -> None:
    if not can_transition(current, next_status):
        raise InvalidTransition(
            reason=f"{current.value}_to_{next_status.value}",
            message=f"Invalid state transition: {current.value} -> {next_status.value}",
        )


def ensure_cancellable(current: OrderStatus) -> None:
    if current == OrderStatus.CANCELLED:
        raise InvalidTransition(reason="already_cancelled", message="Order is already cancelled")
    if current == OrderStatus.DONE:
        raise InvalidTransition(
            reason="already_completed", message="Order is completed and cannot be cancelled"
        )
    ensure_valid_transition(current, OrderStatus.CANCELLED)


def ensure_editable(current: OrderStatus) -> None:
    if current in (OrderStatus.CANCELLED, OrderStatus.DONE):
        raise InvalidTransition(
            reason=f"not_editable_when_{current.value}",
            message=f"Order cannot be edited once {current.value}",
        )
