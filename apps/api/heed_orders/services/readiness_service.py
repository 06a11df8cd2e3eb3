from collections.abc import Callable
from typing import Literal

import httpx
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from heed_orders.observability import log_event, metrics_store

ReadinessStatus = Literal["ok", "error"]


def safe_dependency_status(
    dependency_name: str,
    checker: Callable[[], ReadinessStatus],
) -> ReadinessStatus:
    """Run one readiness probe; anything unexpected counts as ``error``."""
    metrics_store.increment("readiness_dependency_checked_total")
    try:
        status = checker()
    except Exception as exc:
        status = "error"
        log_event(
            f"readiness_dependency_check_failed:{dependency_name}:{type(exc).__name__}",
        )

    if status != "ok":
        metrics_store.increment("readiness_dependency_error_total")
        return "error"
    return "ok"


def database_dependency_status(session_factory: Callable[[], Session]) -> ReadinessStatus:
    try:
        with session_factory() as db:
            db.execute(text("SELECT 1"))
    except SQLAlchemyError:
        return "error"
    return "ok"


def chat_gateway_dependency_status(
    base_url: str,
    timeout_s: float = 1.0,
    transport: httpx.BaseTransport | None = None,
) -> ReadinessStatus:
    try:
        with httpx.Client(timeout=timeout_s, transport=transport) as client:
            response = client.get(f"{base_url.rstrip('/')}/health")
    except httpx.HTTPError:
        return "error"
    return "ok" if response.status_code < 400 else "error"
