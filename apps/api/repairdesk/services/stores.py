"""Persistence backends for orders and their audit log.

A unit of work groups an order store and an order log store over one
transaction: nothing is visible to other units until ``commit()`` and an
exception inside the ``with`` block discards every staged write. The SQL
backend is the production one; the in-memory backend mirrors the offline mock
mode of the clients and serves as a test double.
"""

from __future__ import annotations

import threading
import uuid
from collections.abc import Callable
from datetime import datetime
from typing import Any, Protocol

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from repairdesk.errors import StorageFailure
from repairdesk.models.order import Order, OrderStatus
from repairdesk.models.order_log import OrderLogEntry


class OrderStore(Protocol):
    def add(self, order: Order) -> None: ...

    def get(self, order_id: uuid.UUID) -> Order | None: ...

    def get_for_update(self, order_id: uuid.UUID) -> Order | None: ...

    def number_exists(self, order_number: str) -> bool: ...

    def save(self, order: Order) -> None: ...

    def claim(self, order_id: uuid.UUID, staff_id: str, at: datetime) -> Order | None: ...

    def list(
        self,
        *,
        customer_id: str | None,
        status: OrderStatus | None,
        offset: int,
        limit: int,
    ) -> tuple[list[Order], int]: ...

    def count_by_status(self) -> dict[OrderStatus, int]: ...


class OrderLogStore(Protocol):
    def append(self, entry: OrderLogEntry) -> None: ...

    def list_for_order(self, order_id: uuid.UUID) -> list[OrderLogEntry]: ...


class UnitOfWork(Protocol):
    orders: OrderStore
    logs: OrderLogStore

    def __enter__(self) -> UnitOfWork: ...

    def __exit__(self, exc_type, exc, tb) -> None: ...

    def commit(self) -> None: ...


UnitOfWorkFactory = Callable[[], UnitOfWork]


class SqlOrderStore:
    def __init__(self, db: Session) -> None:
        self._db = db

    def add(self, order: Order) -> None:
        self._db.add(order)
        self._db.flush()

    def get(self, order_id: uuid.UUID) -> Order | None:
        return self._db.get(Order, order_id)

    def get_for_update(self, order_id: uuid.UUID) -> Order | None:
        return self._db.scalar(
            select(Order)
            .where(Order.id == order_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )

    def number_exists(self, order_number: str) -> bool:
        found = self._db.scalar(select(Order.id).where(Order.order_number == order_number))
        return found is not None

    def save(self, order: Order) -> None:
        self._db.add(order)
        self._db.flush()

    def claim(self, order_id: uuid.UUID, staff_id: str, at: datetime) -> Order | None:
        result = self._db.execute(
            update(Order)
            .where(
                Order.id == order_id,
                Order.status == OrderStatus.PENDING,
                Order.staff_id.is_(None),
            )
            .values(status=OrderStatus.TAKEN, staff_id=staff_id, updated_at=at)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            return None
        return self._db.get(Order, order_id, populate_existing=True)

    def list(
        self,
        *,
        customer_id: str | None,
        status: OrderStatus | None,
        offset: int,
        limit: int,
    ) -> tuple[list[Order], int]:
        query = select(Order)
        count_query = select(func.count()).select_from(Order)
        if customer_id is not None:
            query = query.where(Order.customer_id == customer_id)
            count_query = count_query.where(Order.customer_id == customer_id)
        if status is not None:
            query = query.where(Order.status == status)
            count_query = count_query.where(Order.status == status)

        total = int(self._db.scalar(count_query) or 0)
        items = self._db.scalars(
            query.order_by(Order.created_at.desc()).offset(offset).limit(limit)
        )
        return list(items), total

    def count_by_status(self) -> dict[OrderStatus, int]:
        rows = self._db.execute(select(Order.status, func.count()).group_by(Order.status))
        counts = {status: int(count) for status, count in rows}
        return {status: counts.get(status, 0) for status in OrderStatus}


class SqlOrderLogStore:
    def __init__(self, db: Session) -> None:
        self._db = db

    def append(self, entry: OrderLogEntry) -> None:
        self._db.add(entry)
        self._db.flush()

    def list_for_order(self, order_id: uuid.UUID) -> list[OrderLogEntry]:
        entries = self._db.scalars(
            select(OrderLogEntry)
            .where(OrderLogEntry.order_id == order_id)
            .order_by(OrderLogEntry.created_at.asc())
        )
        return list(entries)


class SqlUnitOfWork:
    def __init__(self, db: Session, *, close_on_exit: bool = False) -> None:
        self._db = db
        self._close_on_exit = close_on_exit
        self.orders = SqlOrderStore(db)
        self.logs = SqlOrderLogStore(db)

    def __enter__(self) -> SqlUnitOfWork:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        try:
            if exc is not None:
                self._db.rollback()
        finally:
            if self._close_on_exit:
                self._db.close()
        if isinstance(exc, SQLAlchemyError):
            raise StorageFailure(message=f"Database error: {type(exc).__name__}") from exc

    def commit(self) -> None:
        self._db.commit()


def sql_unit_of_work_factory(session_factory: Callable[[], Session]) -> UnitOfWorkFactory:
    """Open a fresh session for every unit of work and close it afterwards."""

    def factory() -> SqlUnitOfWork:
        return SqlUnitOfWork(session_factory(), close_on_exit=True)

    return factory


_ORDER_COLUMNS = tuple(Order.__table__.columns.keys())
_LOG_COLUMNS = tuple(OrderLogEntry.__table__.columns.keys())


def _order_to_row(order: Order) -> dict[str, Any]:
    return {key: getattr(order, key) for key in _ORDER_COLUMNS}


def _log_to_row(entry: OrderLogEntry) -> dict[str, Any]:
    row = {key: getattr(entry, key) for key in _LOG_COLUMNS}
    row["payload"] = dict(row["payload"] or {})
    return row


class InMemoryDatabase:
    def __init__(self) -> None:
        self.lock = threading.RLock()
        self.orders: dict[uuid.UUID, dict[str, Any]] = {}
        self.logs: list[dict[str, Any]] = []

    def reset(self) -> None:
        with self.lock:
            self.orders.clear()
            self.logs.clear()


class InMemoryOrderStore:
    def __init__(self, database: InMemoryDatabase, staged: dict[uuid.UUID, dict[str, Any]]) -> None:
        self._database = database
        self._staged = staged

    def _row(self, order_id: uuid.UUID) -> dict[str, Any] | None:
        if order_id in self._staged:
            return self._staged[order_id]
        return self._database.orders.get(order_id)

    def _rows(self) -> list[dict[str, Any]]:
        merged = {**self._database.orders, **self._staged}
        return list(merged.values())

    def add(self, order: Order) -> None:
        if self._row(order.id) is not None:
            raise StorageFailure(reason="duplicate_order_id", message="Order id already exists")
        self._staged[order.id] = _order_to_row(order)

    def get(self, order_id: uuid.UUID) -> Order | None:
        row = self._row(order_id)
        return Order(**row) if row is not None else None

    # Units of work hold the database lock for their whole lifetime.
    get_for_update = get

    def number_exists(self, order_number: str) -> bool:
        return any(row["order_number"] == order_number for row in self._rows())

    def save(self, order: Order) -> None:
        self._staged[order.id] = _order_to_row(order)

    def claim(self, order_id: uuid.UUID, staff_id: str, at: datetime) -> Order | None:
        row = self._row(order_id)
        if row is None or row["status"] != OrderStatus.PENDING or row["staff_id"] is not None:
            return None
        self._staged[order_id] = {
            **row,
            "status": OrderStatus.TAKEN,
            "staff_id": staff_id,
            "updated_at": at,
        }
        return Order(**self._staged[order_id])

    def list(
        self,
        *,
        customer_id: str | None,
        status: OrderStatus | None,
        offset: int,
        limit: int,
    ) -> tuple[list[Order], int]:
        rows = [
            row
            for row in self._rows()
            if (customer_id is None or row["customer_id"] == customer_id)
            and (status is None or row["status"] == status)
        ]
        rows.sort(key=lambda row: row["created_at"], reverse=True)
        return [Order(**row) for row in rows[offset : offset + limit]], len(rows)

    def count_by_status(self) -> dict[OrderStatus, int]:
        counts = dict.fromkeys(OrderStatus, 0)
        for row in self._rows():
            counts[row["status"]] += 1
        return counts


class InMemoryOrderLogStore:
    def __init__(self, database: InMemoryDatabase, staged: list[dict[str, Any]]) -> None:
        self._database = database
        self._staged = staged

    def append(self, entry: OrderLogEntry) -> None:
        self._staged.append(_log_to_row(entry))

    def list_for_order(self, order_id: uuid.UUID) -> list[OrderLogEntry]:
        rows = [row for row in [*self._database.logs, *self._staged] if row["order_id"] == order_id]
        rows.sort(key=lambda row: row["created_at"])
        return [OrderLogEntry(**row) for row in rows]


class InMemoryUnitOfWork:
    def __init__(self, database: InMemoryDatabase) -> None:
        self._database = database
        self._staged_orders: dict[uuid.UUID, dict[str, Any]] = {}
        self._staged_logs: list[dict[str, Any]] = []
        self.orders = InMemoryOrderStore(database, self._staged_orders)
        self.logs = InMemoryOrderLogStore(database, self._staged_logs)

    def __enter__(self) -> InMemoryUnitOfWork:
        self._database.lock.acquire()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self._staged_orders.clear()
        self._staged_logs.clear()
        self._database.lock.release()

    def commit(self) -> None:
        self._database.orders.update(self._staged_orders)
        self._database.logs.extend(self._staged_logs)
        self._staged_orders.clear()
        self._staged_logs.clear()


def in_memory_unit_of_work_factory(database: InMemoryDatabase) -> UnitOfWorkFactory:
    def factory() -> InMemoryUnitOfWork:
        return InMemoryUnitOfWork(database)

    return factory
