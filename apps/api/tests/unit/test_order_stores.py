import threading
import uuid
from datetime import datetime, timezone

import pytest
from sqlalchemy.exc import OperationalError

from repairdesk.db.session import SessionLocal
from repairdesk.errors import InvalidTransition, StorageFailure
from repairdesk.models.order import Order, OrderStatus
from repairdesk.models.order_log import OrderLogAction, OrderLogEntry
from repairdesk.services.policy import Actor, Role
from repairdesk.services.stores import InMemoryUnitOfWork, SqlUnitOfWork

AT = datetime(2026, 1, 1, 9, 0, tzinfo=timezone.utc)


def _new_order(**overrides) -> Order:
    values = {
        "id": uuid.uuid4(),
        "order_number": f"26010109{uuid.uuid4().int % 10**8:08d}",
        "customer_id": "cust-1",
        "staff_id": None,
        "location": "Room 5",
        "contact_phone": None,
        "description": "leak",
        "image_url": None,
        "status": OrderStatus.PENDING,
        "rating": None,
        "rating_comment": None,
        "created_at": AT,
        "updated_at": AT,
    }
    values.update(overrides)
    return Order(**values)


def test_sql_claim_is_conditional_on_pending_status():
    order = _new_order()
    with SqlUnitOfWork(SessionLocal(), close_on_exit=True) as uow:
        uow.orders.add(order)
        uow.commit()

    with SqlUnitOfWork(SessionLocal(), close_on_exit=True) as uow:
        claimed = uow.orders.claim(order.id, "tech-1", AT)
        uow.commit()
    assert claimed is not None
    assert claimed.status == OrderStatus.TAKEN

    with SqlUnitOfWork(SessionLocal(), close_on_exit=True) as uow:
        assert uow.orders.claim(order.id, "tech-2", AT) is None
        assert uow.orders.get(order.id).staff_id == "tech-1"


def test_sql_unit_of_work_rolls_back_on_error():
    order = _new_order()
    with pytest.raises(RuntimeError):
        with SqlUnitOfWork(SessionLocal(), close_on_exit=True) as uow:
            uow.orders.add(order)
            raise RuntimeError("boom")

    with SqlUnitOfWork(SessionLocal(), close_on_exit=True) as uow:
        assert uow.orders.get(order.id) is None


def test_sql_unit_of_work_maps_database_errors_to_storage_failure():
    with pytest.raises(StorageFailure) as exc:
        with SqlUnitOfWork(SessionLocal(), close_on_exit=True):
            raise OperationalError("SELECT 1", {}, Exception("database is locked"))

    assert exc.value.code == "STORAGE_FAILURE"
    assert exc.value.retryable


def test_in_memory_writes_are_invisible_until_commit(memory_database):
    order = _new_order()
    with InMemoryUnitOfWork(memory_database) as uow:
        uow.orders.add(order)
        assert uow.orders.get(order.id) is not None

    with InMemoryUnitOfWork(memory_database) as uow:
        assert uow.orders.get(order.id) is None


def test_in_memory_list_orders_newest_first(memory_database):
    older = _new_order(created_at=datetime(2026, 1, 1, tzinfo=timezone.utc))
    newer = _new_order(created_at=datetime(2026, 1, 2, tzinfo=timezone.utc))
    foreign = _new_order(customer_id="cust-2")
    with InMemoryUnitOfWork(memory_database) as uow:
        for order in (older, newer, foreign):
            uow.orders.add(order)
        uow.commit()

    with InMemoryUnitOfWork(memory_database) as uow:
        items, total = uow.orders.list(customer_id="cust-1", status=None, offset=0, limit=10)

    assert total == 2
    assert [item.id for item in items] == [newer.id, older.id]


def test_in_memory_engine_runs_full_lifecycle(memory_engine, customer, technician):
    order = memory_engine.submit(customer, location="Room 5", description="leak")
    memory_engine.take(technician, order.id)
    memory_engine.finish(technician, order.id)
    rated = memory_engine.rate(customer, order.id, 4)

    assert rated.status == OrderStatus.DONE
    assert rated.rating == 4
    assert [entry.action for entry in memory_engine.logs(technician, order.id)] == [
        OrderLogAction.CREATE,
        OrderLogAction.TAKE,
        OrderLogAction.FINISH,
        OrderLogAction.RATE,
    ]


def test_concurrent_take_has_exactly_one_winner(memory_engine, customer):
    order = memory_engine.submit(customer, location="Room 5", description="leak")

    technicians = [Actor(user_id=f"tech-{i}", role=Role.TECHNICIAN) for i in range(8)]
    barrier = threading.Barrier(len(technicians))
    winners: list[str] = []
    losers: list[str] = []

    def attempt(actor: Actor) -> None:
        barrier.wait()
        try:
            memory_engine.take(actor, order.id)
        except InvalidTransition:
            losers.append(actor.user_id)
        else:
            winners.append(actor.user_id)

    threads = [threading.Thread(target=attempt, args=(actor,)) for actor in technicians]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(winners) == 1
    assert len(losers) == len(technicians) - 1
    assert memory_engine.get(customer, order.id).staff_id == winners[0]


def test_sql_log_entry_for_missing_order_is_storage_failure():
    entry = OrderLogEntry(
        id=uuid.uuid4(),
        order_id=uuid.uuid4(),
        staff_id=None,
        action=OrderLogAction.CREATE,
        message="orphan",
        payload={},
        created_at=AT,
    )
    with pytest.raises(StorageFailure):
        with SqlUnitOfWork(SessionLocal(), close_on_exit=True) as uow:
            uow.logs.append(entry)


def test_count_by_status_includes_empty_statuses(memory_database):
    with InMemoryUnitOfWork(memory_database) as uow:
        uow.orders.add(_new_order())
        uow.orders.add(_new_order(status=OrderStatus.DONE))
        uow.commit()

    with InMemoryUnitOfWork(memory_database) as uow:
        counts = uow.orders.count_by_status()

    assert counts == {
        OrderStatus.PENDING: 1,
        OrderStatus.TAKEN: 0,
        OrderStatus.DONE: 1,
        OrderStatus.CANCELLED: 0,
    }
