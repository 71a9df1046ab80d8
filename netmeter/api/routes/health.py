"""Agent health route."""

from fastapi import APIRouter, Depends

from ...dependencies import get_accounting_loop
from ...modules.accounting_loop import AccountingLoop

router = APIRouter(tags=["health"])


@router.get("/health")
async def health(loop: AccountingLoop = Depends(get_accounting_loop)):
    """Accounting loop health."""
    loop_health = await loop.health_check()
    status = "healthy" if loop_health["status"] in ("running", "initialized") else "degraded"
    return {
        "status": status,
        "modules": {"accounting_loop": loop_health},
    }
