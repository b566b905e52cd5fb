from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from repairdesk.auth.dependencies import require_roles
from repairdesk.db.session import get_db
from repairdesk.observability import metrics_store
from repairdesk.schemas.ops import MetricsResponse
from repairdesk.services.policy import Actor, Role
from repairdesk.services.stores import SqlOrderStore

router = APIRouter(prefix="/metrics", tags=["metrics"])


@router.get("", summary="Order and request metrics", response_model=MetricsResponse)
def metrics_endpoint(
    db: Session = Depends(get_db),
    _actor: Actor = Depends(require_roles(Role.TECHNICIAN)),
) -> MetricsResponse:
    snapshot = metrics_store.snapshot()
    by_status = SqlOrderStore(db).count_by_status()

    return MetricsResponse(
        counters=snapshot.counters,
        timings=snapshot.timings,
        orders_by_status={status.value: count for status, count in by_status.items()},
    )
