import time
from contextlib import asynccontextmanager
from uuid import uuid4

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.openapi.utils import get_openapi
from fastapi.responses import JSONResponse, Response

from heed_orders.config import allowed_origins, ensure_secure_runtime_settings, settings
from heed_orders.db.base import Base
from heed_orders.db.migration_check import assert_schema_current
from heed_orders.db.session import engine
from heed_orders.errors import OrderError
from heed_orders.observability import configure_logging, log_event, metrics_store, set_request_id
from heed_orders.routers.health import router as health_router
from heed_orders.routers.metrics import router as metrics_router
from heed_orders.routers.orders import router as orders_router

ERROR_STATUS_CODES = {
    "Validation": status.HTTP_400_BAD_REQUEST,
    "Authorization": status.HTTP_403_FORBIDDEN,
    "NotFound": status.HTTP_404_NOT_FOUND,
}


@asynccontextmanager
async def lifespan(_app: FastAPI):
    import heed_orders.models  # noqa: F401 (register all SQLAlchemy models)

    ensure_secure_runtime_settings()
    if settings.testing:
        Base.metadata.create_all(bind=engine)
    else:
        configure_logging()
        assert_schema_current(engine)
    yield


app = FastAPI(
    title=settings.app_name,
    version="0.1.0",
    description="Order lifecycle for the Heed marketplace",
    lifespan=lifespan,
)


def custom_openapi():
    """Advertise bearer auth so Swagger UI offers an Authorize button."""
    if app.openapi_schema:
        return app.openapi_schema

    openapi_schema = get_openapi(
        title=app.title,
        version=app.version,
        description=app.description,
        routes=app.routes,
    )
    components = openapi_schema.setdefault("components", {})
    components.setdefault("securitySchemes", {})["BearerAuth"] = {
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


@app.exception_handler(OrderError)
async def order_error_handler(request: Request, exc: OrderError) -> JSONResponse:
    status_code = ERROR_STATUS_CODES.get(exc.kind, status.HTTP_409_CONFLICT)
    metrics_store.increment(f"order_errors_total:{exc.kind}")
    log_event(
        f"order_request_rejected:{exc.kind}:{exc.message}",
        order_id=request.path_params.get("order_id"),
    )
    return JSONResponse(status_code=status_code, content=exc.to_payload())


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
    log_event(f"http_request:{request.method}:{request.url.path}:{response.status_code}")
    return response


app.include_router(health_router)
app.include_router(orders_router)
app.include_router(metrics_router)
