import secrets
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from repairdesk.errors import InvalidTransition, NotFound, StorageFailure, ValidationError
from repairdesk.models.order import Order, OrderStatus
from repairdesk.models.order_log import OrderLogAction, OrderLogEntry
from repairdesk.observability import log_event, metrics_store, observe_timing
from repairdesk.schemas.order import (
    OrderCancel,
    OrderFinish,
    OrderInfoPatch,
    OrderListQuery,
    OrderRating,
    OrderSubmit,
)
from repairdesk.services.policy import Actor, OrderAction, authorize
from repairdesk.services.state_machine import (
    ACTION_TARGET_STATUS,
    ensure_cancellable,
    ensure_editable,
    ensure_valid_transition,
)
from repairdesk.services.stores import UnitOfWork, UnitOfWorkFactory

DEFAULT_FINISH_MESSAGE = "Order completed"
DEFAULT_CANCEL_MESSAGE = "Order cancelled by customer"

SchemaT = TypeVar("SchemaT", bound=BaseModel)
Clock = Callable[[], datetime]
OrderNumberGenerator = Callable[[datetime], str]


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def generate_order_number(created_at: datetime) -> str:
    return f"{created_at:%y%m%d%H%M%S}{secrets.randbelow(10_000):04d}"


@dataclass
class OrderPage:
    items: list[Order]
    page: int
    page_size: int
    total: int


def _validated(schema: type[SchemaT], **data) -> SchemaT:
    try:
        return schema(**data)
    except PydanticValidationError as exc:
        first = exc.errors()[0]
        field = ".".join(str(part) for part in first.get("loc", ())) or "body"
        raise ValidationError(reason=f"{field}:{first['type']}", message=first["msg"]) from exc


def _coerce_order_id(order_id: uuid.UUID | str) -> uuid.UUID:
    if isinstance(order_id, uuid.UUID):
        return order_id
    try:
        return uuid.UUID(str(order_id))
    except ValueError as exc:
        raise NotFound() from exc


class OrderLifecycleEngine:
    """Validates and applies order lifecycle operations.

    Every mutation runs inside one unit of work together with its audit log
    entry. The log entry and the order's ``updated_at`` share a single clock
    reading.
    """

    def __init__(
        self,
        unit_of_work: UnitOfWorkFactory,
        *,
        clock: Clock = now_utc,
        order_numbers: OrderNumberGenerator = generate_order_number,
        max_page_size: int = 100,
        order_number_max_attempts: int = 5,
    ) -> None:
        self._unit_of_work = unit_of_work
        self._clock = clock
        self._order_numbers = order_numbers
        self._max_page_size = max_page_size
        self._order_number_max_attempts = order_number_max_attempts

    def submit(
        self,
        actor: Actor,
        *,
        location: str,
        description: str,
        contact_phone: str | None = None,
        image_url: str | None = None,
    ) -> Order:
        authorize(actor, OrderAction.SUBMIT)
        data = _validated(
            OrderSubmit,
            location=location,
            description=description,
            contact_phone=contact_phone,
            image_url=image_url,
        )

        with observe_timing("order_submit_duration_seconds"), self._unit_of_work() as uow:
            now = self._clock()
            order = Order(
                id=uuid.uuid4(),
                order_number=self._unique_order_number(uow, now),
                customer_id=actor.user_id,
                staff_id=None,
                location=data.location,
                contact_phone=data.contact_phone,
                description=data.description,
                image_url=data.image_url,
                status=OrderStatus.PENDING,
                rating=None,
                rating_comment=None,
                created_at=now,
                updated_at=now,
            )
            uow.orders.add(order)
            self._append_log(
                uow,
                order,
                OrderLogAction.CREATE,
                "Order submitted by customer",
                staff_id=None,
                at=now,
                payload={"to_status": OrderStatus.PENDING.value},
            )
            uow.commit()

        self._record(actor, order, OrderLogAction.CREATE)
        return order

    def take(self, actor: Actor, order_id: uuid.UUID | str) -> Order:
        authorize(actor, OrderAction.TAKE)
        order_uuid = _coerce_order_id(order_id)

        with observe_timing("order_take_duration_seconds"), self._unit_of_work() as uow:
            order = self._load(uow, order_uuid, for_update=True)
            # Checked again under the row lock; a concurrent claim may have won.
            if order.status != OrderStatus.PENDING:
                raise InvalidTransition(
                    reason="not_pending", message="Order is no longer available to take"
                )
            now = self._clock()
            claimed = uow.orders.claim(order_uuid, actor.user_id, now)
            if claimed is None:
                raise InvalidTransition(
                    reason="not_pending", message="Order is no longer available to take"
                )
            self._append_log(
                uow,
                claimed,
                OrderLogAction.TAKE,
                "Order taken by technician",
                staff_id=actor.user_id,
                at=now,
                payload={
                    "from_status": OrderStatus.PENDING.value,
                    "to_status": OrderStatus.TAKEN.value,
                },
            )
            uow.commit()

        self._record(actor, claimed, OrderLogAction.TAKE)
        return claimed

    def finish(
        self, actor: Actor, order_id: uuid.UUID | str, message: str | None = None
    ) -> Order:
        authorize(actor, OrderAction.FINISH)
        data = _validated(OrderFinish, message=message)
        order_uuid = _coerce_order_id(order_id)

        with observe_timing("order_finish_duration_seconds"), self._unit_of_work() as uow:
            order = self._load(uow, order_uuid, for_update=True)
            if order.staff_id is None:
                ensure_valid_transition(order.status, OrderStatus.DONE)
            authorize(actor, OrderAction.FINISH, order)
            self._transition(
                uow,
                order,
                OrderLogAction.FINISH,
                data.message or DEFAULT_FINISH_MESSAGE,
                staff_id=actor.user_id,
            )
            uow.commit()

        self._record(actor, order, OrderLogAction.FINISH)
        return order

    def cancel(
        self, actor: Actor, order_id: uuid.UUID | str, reason: str | None = None
    ) -> Order:
        authorize(actor, OrderAction.CANCEL)
        data = _validated(OrderCancel, reason=reason)
        order_uuid = _coerce_order_id(order_id)

        with observe_timing("order_cancel_duration_seconds"), self._unit_of_work() as uow:
            order = self._load(uow, order_uuid, for_update=True)
            authorize(actor, OrderAction.CANCEL, order)
            ensure_cancellable(order.status)
            self._transition(
                uow,
                order,
                OrderLogAction.CANCEL,
                data.reason or DEFAULT_CANCEL_MESSAGE,
                staff_id=None,
            )
            uow.commit()

        self._record(actor, order, OrderLogAction.CANCEL)
        return order

    def update_info(self, actor: Actor, order_id: uuid.UUID | str, **fields) -> Order:
        authorize(actor, OrderAction.UPDATE_INFO)
        changes = _validated(OrderInfoPatch, **fields).changes()
        order_uuid = _coerce_order_id(order_id)

        with observe_timing("order_update_duration_seconds"), self._unit_of_work() as uow:
            order = self._load(uow, order_uuid, for_update=True)
            authorize(actor, OrderAction.UPDATE_INFO, order)
            ensure_editable(order.status)

            now = self._clock()
            for key, value in changes.items():
                setattr(order, key, value)
            order.updated_at = now
            uow.orders.save(order)

            changed = sorted(changes)
            self._append_log(
                uow,
                order,
                OrderLogAction.UPDATE,
                f"Order details updated: {', '.join(changed)}",
                staff_id=None,
                at=now,
                payload={"fields": changed},
            )
            uow.commit()

        self._record(actor, order, OrderLogAction.UPDATE)
        return order

    def rate(
        self,
        actor: Actor,
        order_id: uuid.UUID | str,
        rating: int,
        comment: str | None = None,
    ) -> Order:
        authorize(actor, OrderAction.RATE)
        data = _validated(OrderRating, rating=rating, comment=comment)
        order_uuid = _coerce_order_id(order_id)

        with observe_timing("order_rate_duration_seconds"), self._unit_of_work() as uow:
            order = self._load(uow, order_uuid, for_update=True)
            authorize(actor, OrderAction.RATE, order)
            if order.status != OrderStatus.DONE:
                raise InvalidTransition(
                    reason="not_completed", message="Only completed orders can be rated"
                )
            if order.rating is not None:
                raise InvalidTransition(
                    reason="already_rated", message="Order has already been rated"
                )

            now = self._clock()
            order.rating = data.rating
            order.rating_comment = data.comment
            order.updated_at = now
            uow.orders.save(order)

            message = f"Customer rated {data.rating}/5"
            if data.comment:
                message = f"{message}: {data.comment}"
            self._append_log(
                uow,
                order,
                OrderLogAction.RATE,
                message,
                staff_id=None,
                at=now,
                payload={"rating": data.rating, "comment": data.comment},
            )
            uow.commit()

        self._record(actor, order, OrderLogAction.RATE)
        return order

    def get(self, actor: Actor, order_id: uuid.UUID | str) -> Order:
        authorize(actor, OrderAction.GET)
        order_uuid = _coerce_order_id(order_id)
        with self._unit_of_work() as uow:
            order = self._load(uow, order_uuid)
        authorize(actor, OrderAction.GET, order)
        return order

    def list_orders(
        self,
        actor: Actor,
        *,
        status: OrderStatus | str | None = None,
        page: int = 1,
        page_size: int = 20,
    ) -> OrderPage:
        authorize(actor, OrderAction.LIST)
        query = _validated(OrderListQuery, status=status, page=page, page_size=page_size)
        if query.page_size > self._max_page_size:
            raise ValidationError(
                reason="page_size:less_than_equal",
                message=f"page_size must be at most {self._max_page_size}",
            )

        customer_id = actor.user_id if actor.is_customer else None
        with self._unit_of_work() as uow:
            items, total = uow.orders.list(
                customer_id=customer_id,
                status=query.status,
                offset=query.offset,
                limit=query.page_size,
            )
        return OrderPage(items=items, page=query.page, page_size=query.page_size, total=total)

    def logs(self, actor: Actor, order_id: uuid.UUID | str) -> list[OrderLogEntry]:
        authorize(actor, OrderAction.LOGS)
        order_uuid = _coerce_order_id(order_id)
        with self._unit_of_work() as uow:
            self._load(uow, order_uuid)
            return uow.logs.list_for_order(order_uuid)

    def _load(self, uow: UnitOfWork, order_id: uuid.UUID, *, for_update: bool = False) -> Order:
        if for_update:
            order = uow.orders.get_for_update(order_id)
        else:
            order = uow.orders.get(order_id)
        if order is None:
            raise NotFound()
        return order

    def _unique_order_number(self, uow: UnitOfWork, now: datetime) -> str:
        for _ in range(self._order_number_max_attempts):
            candidate = self._order_numbers(now)
            if not uow.orders.number_exists(candidate):
                return candidate
        raise StorageFailure(
            reason="order_number_exhausted",
            message="Could not allocate a unique order number",
        )

    def _transition(
        self,
        uow: UnitOfWork,
        order: Order,
        action: OrderLogAction,
        message: str,
        *,
        staff_id: str | None,
    ) -> None:
        previous_status = order.status
        next_status = ACTION_TARGET_STATUS[action]
        ensure_valid_transition(previous_status, next_status)

        now = self._clock()
        order.status = next_status
        order.updated_at = now
        uow.orders.save(order)
        self._append_log(
            uow,
            order,
            action,
            message,
            staff_id=staff_id,
            at=now,
            payload={"from_status": previous_status.value, "to_status": next_status.value},
        )

    def _append_log(
        self,
        uow: UnitOfWork,
        order: Order,
        action: OrderLogAction,
        message: str,
        *,
        staff_id: str | None,
        at: datetime,
        payload: dict | None = None,
    ) -> None:
        uow.logs.append(
            OrderLogEntry(
                id=uuid.uuid4(),
                order_id=order.id,
                staff_id=staff_id,
                action=action,
                message=message,
                payload=payload or {},
                created_at=at,
            )
        )

    def _record(self, actor: Actor, order: Order, action: OrderLogAction) -> None:
        metrics_store.increment(f"orders_{action.value}_total")
        log_event(
            f"order_{action.value}",
            order_id=str(order.id),
            actor_id=actor.user_id,
            action=action.value,
        )
