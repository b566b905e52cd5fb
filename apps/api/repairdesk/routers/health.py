from fastapi import APIRouter, Response, status
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from repairdesk.config import settings
from repairdesk.db import session as db_session
from repairdesk.db.migration_check import get_alembic_head_revision, get_current_db_revision
from repairdesk.observability import log_event, metrics_store
from repairdesk.schemas.ops import HealthResponse, ReadinessDependency, ReadinessResponse

router = APIRouter(tags=["health"])


@router.get("/health", summary="Liveness check", response_model=HealthResponse)
def health() -> HealthResponse:
    return HealthResponse(status="ok")


@router.get(
    "/ready",
    summary="Readiness check",
    response_model=ReadinessResponse,
    responses={status.HTTP_503_SERVICE_UNAVAILABLE: {"model": ReadinessResponse}},
)
def readiness(response: Response) -> ReadinessResponse:
    database = ReadinessDependency(name="database", status="ok")
    revision = None
    try:
        with db_session.SessionLocal() as db:
            db.execute(text("SELECT 1"))
        revision = get_current_db_revision(db_session.engine)
    except SQLAlchemyError as exc:
        metrics_store.increment("readiness_database_error_total")
        log_event(f"readiness_database_check_failed:{type(exc).__name__}")
        database = ReadinessDependency(name="database", status="error")
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    return ReadinessResponse(
        status="ok" if database.status == "ok" else "degraded",
        app_mode=settings.app_mode,
        schema_revision=revision,
        schema_head=get_alembic_head_revision(),
        dependencies=[database],
    )
