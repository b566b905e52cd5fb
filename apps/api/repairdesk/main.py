import logging
import time
from contextlib import asynccontextmanager
from uuid import uuid4

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.openapi.utils import get_openapi
from fastapi.responses import JSONResponse, Response

from repairdesk.config import (
    allowed_origins,
    ensure_secure_runtime_settings,
    is_production_mode,
    settings,
)
from repairdesk.db.migration_check import assert_db_is_up_to_date, maybe_create_schema
from repairdesk.db.session import engine
from repairdesk.errors import OrderServiceError
from repairdesk.observability import (
    configure_logging,
    get_request_id,
    log_event,
    metrics_store,
    set_request_id,
)
from repairdesk.routers.health import router as health_router
from repairdesk.routers.metrics import router as metrics_router
from repairdesk.routers.orders import router as orders_router

ERROR_STATUS_CODES: dict[str, int] = {
    "VALIDATION": status.HTTP_422_UNPROCESSABLE_ENTITY,
    "NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "FORBIDDEN": status.HTTP_403_FORBIDDEN,
    "INVALID_TRANSITION": status.HTTP_409_CONFLICT,
    "STORAGE_FAILURE": status.HTTP_503_SERVICE_UNAVAILABLE,
}


@asynccontextmanager
async def lifespan(_app: FastAPI):
    import repairdesk.models  # noqa: F401 (register all SQLAlchemy models)

    if not settings.testing:
        configure_logging(settings.log_level)
    ensure_secure_runtime_settings()
    if settings.require_migrations or is_production_mode():
        assert_db_is_up_to_date(engine)
    else:
        maybe_create_schema(engine)
    yield


app = FastAPI(
    title=settings.app_name,
    version="0.1.0",
    description="Repair order intake and technician fulfilment API",
    lifespan=lifespan,
)


def custom_openapi():
    """Advertise bearer auth so Swagger UI offers an 'Authorize' button."""
    if app.openapi_schema:
        return app.openapi_schema

    openapi_schema = get_openapi(
        title=app.title,
        version=app.version,
        description=app.description,
        routes=app.routes,
    )

    components = openapi_schema.setdefault("components", {})
    security_schemes = components.setdefault("securitySchemes", {})
    security_schemes["BearerAuth"] = {
        "type": "http",
        "scheme": "bearer",
        "bearerFormat": "JWT",
    }
    openapi_schema["security"] = [{"BearerAuth": []}]

    app.openapi_schema = openapi_schema
    return app.openapi_schema


app.openapi = custom_openapi

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def request_context_middleware(request: Request, call_next) -> Response:
    request_id = request.headers.get("X-Request-ID") or str(uuid4())
    set_request_id(request_id)

    start = time.perf_counter()
    response = await call_next(request)
    elapsed = time.perf_counter() - start

    response.headers["X-Request-ID"] = request_id
    metrics_store.increment("http_requests_total")
    metrics_store.observe("http_request_duration_seconds", elapsed)
    log_event("http_request", order_id=request.path_params.get("order_id"))
    return response


def _error_response(status_code: int, code: str, reason: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "code": code,
            "reason": reason,
            "message": message,
            "request_id": get_request_id(),
        },
    )


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = exc.errors()
    first = errors[0] if errors else {}
    loc = [str(part) for part in first.get("loc", ()) if part not in {"body", "query", "path"}]
    field = ".".join(loc) or "body"
    metrics_store.increment("orders_rejected_total")
    log_event(
        f"order_request_rejected:VALIDATION:{field}",
        order_id=request.path_params.get("order_id"),
        level=logging.WARNING,
    )
    return _error_response(
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        "VALIDATION",
        f"{field}:{first.get('type', 'invalid')}",
        first.get("msg", "Invalid input"),
    )


@app.exception_handler(OrderServiceError)
async def order_service_error_handler(request: Request, exc: OrderServiceError) -> JSONResponse:
    status_code = ERROR_STATUS_CODES.get(exc.code, status.HTTP_500_INTERNAL_SERVER_ERROR)
    metrics_store.increment("orders_rejected_total")
    log_event(
        f"order_request_rejected:{exc.code}:{exc.reason}",
        order_id=request.path_params.get("order_id"),
        level=logging.ERROR if exc.retryable else logging.WARNING,
    )
    return _error_response(status_code, exc.code, exc.reason, exc.message)


app.include_router(health_router)
app.include_router(orders_router)
app.include_router(metrics_router)
