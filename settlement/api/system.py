"""System API: health check and sweep scheduler status."""

from fastapi import APIRouter, Depends

from settlement.api.deps import require_admin
from settlement.schemas.trade import ok

router = APIRouter(prefix="/api/system", tags=["system"])


@router.get("/health")
def health_check():
    return ok({"status": "ok"})


@router.get("/scheduler", dependencies=[Depends(require_admin)])
def scheduler_status():
    """Current scheduler state with job details."""
    from settlement.engine.scheduler import get_scheduler_status
    return ok(get_scheduler_status())
