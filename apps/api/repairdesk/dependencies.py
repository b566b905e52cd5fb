from fastapi import Depends
from sqlalchemy.orm import Session

from repairdesk.config import settings
from repairdesk.db.session import get_db
from repairdesk.services.orders_service import OrderLifecycleEngine
from repairdesk.services.stores import SqlUnitOfWork


def get_engine(db: Session = Depends(get_db)) -> OrderLifecycleEngine:
    return OrderLifecycleEngine(
        lambda: SqlUnitOfWork(db),
        max_page_size=settings.max_page_size,
        order_number_max_attempts=settings.order_number_max_attempts,
    )
