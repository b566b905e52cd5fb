"""Authorization rules for order operations.

Decisions are pure: they look only at the actor, the requested action and,
where ownership or assignment matters, the order itself. Callers that need an
exception use :func:`authorize`.
"""

import enum
from dataclasses import dataclass

from repairdesk.errors import Forbidden
from repairdesk.models.order import Order


class Role(str, enum.Enum):
    CUSTOMER = "CUSTOMER"
    TECHNICIAN = "TECHNICIAN"


class OrderAction(str, enum.Enum):
    SUBMIT = "submit"
    TAKE = "take"
    FINISH = "finish"
    CANCEL = "cancel"
    UPDATE_INFO = "update_info"
    RATE = "rate"
    GET = "get"
    LIST = "list"
    LOGS = "logs"


@dataclass(frozen=True)
class Actor:
    user_id: str
    role: Role

    @property
    def is_customer(self) -> bool:
        return self.role == Role.CUSTOMER

    @property
    def is_technician(self) -> bool:
        return self.role == Role.TECHNICIAN


_TECHNICIAN_ACTIONS = frozenset({OrderAction.TAKE, OrderAction.FINISH, OrderAction.LOGS})
_OWNER_ACTIONS = frozenset({OrderAction.CANCEL, OrderAction.UPDATE_INFO, OrderAction.RATE})


def is_allowed(actor: Actor, action: OrderAction, order: Order | None = None) -> bool:
    """Return whether ``actor`` may perform ``action``.

    Without an order only the role is checked; passing the order adds the
    ownership (customers) or assignment (finishing technician) rule.
    """
    if action == OrderAction.SUBMIT:
        return actor.is_customer
    if action in _TECHNICIAN_ACTIONS:
        if not actor.is_technician:
            return False
        if action == OrderAction.FINISH and order is not None:
            return order.staff_id == actor.user_id
        return True
    if action in _OWNER_ACTIONS:
        if not actor.is_customer:
            return False
        return order is None or order.customer_id == actor.user_id
    if action == OrderAction.GET:
        if actor.is_technician:
            return True
        return actor.is_customer and (order is None or order.customer_id == actor.user_id)
    if action == OrderAction.LIST:
        return actor.is_customer or actor.is_technician
    return False


def authorize(actor: Actor, action: OrderAction, order: Order | None = None) -> None:
    if not is_allowed(actor, action):
        raise Forbidden(
            reason=f"role_not_permitted:{action.value}",
            message=f"Role {actor.role.value} may not {action.value} orders",
        )
    if order is None or is_allowed(actor, action, order):
        return
    if action == OrderAction.FINISH:
        raise Forbidden(
            reason="not_assigned_technician",
            message="Only the assigned technician may finish this order",
        )
    raise Forbidden(reason="not_order_owner", message="Order belongs to another customer")
