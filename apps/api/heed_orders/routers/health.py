from fastapi import APIRouter, Response, status

from heed_orders.config import settings
from heed_orders.db.session import SessionLocal
from heed_orders.schemas.health import HealthResponse, ReadinessDependency, ReadinessResponse
from heed_orders.services.readiness_service import (
    chat_gateway_dependency_status,
    database_dependency_status,
    safe_dependency_status,
)

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
    dependencies = [
        ReadinessDependency(
            name="database",
            status=safe_dependency_status(
                "database", lambda: database_dependency_status(SessionLocal)
            ),
        )
    ]
    if settings.chat_gateway_base_url.strip():
        dependencies.append(
            ReadinessDependency(
                name="chat_gateway",
                status=safe_dependency_status(
                    "chat_gateway",
                    lambda: chat_gateway_dependency_status(
                        settings.chat_gateway_base_url, settings.chat_gateway_timeout_s
                    ),
                ),
            )
        )

    overall = "ok" if all(dep.status == "ok" for dep in dependencies) else "degraded"
    if overall != "ok":
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    return ReadinessResponse(status=overall, dependencies=dependencies)
