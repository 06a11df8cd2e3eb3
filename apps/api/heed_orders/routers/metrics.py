from fastapi import APIRouter, Depends

from heed_orders.auth.dependencies import AuthContext, require_roles
from heed_orders.observability import metrics_store
from heed_orders.schemas.metrics import MetricsResponse

router = APIRouter(prefix="/metrics", tags=["metrics"])


@router.get("", summary="Order service counters and timings", response_model=MetricsResponse)
def metrics_endpoint(_auth: AuthContext = Depends(require_roles("ADMIN"))) -> MetricsResponse:
    snapshot = metrics_store.snapshot()
    return MetricsResponse(counters=snapshot.counters, timings=snapshot.timings)
