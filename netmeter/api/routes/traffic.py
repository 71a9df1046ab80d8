"""Traffic total routes."""

from fastapi import APIRouter, Depends

from ...dependencies import get_query_service
from ...services.query_service import QueryService

router = APIRouter(tags=["traffic"])


@router.get("/total")
async def get_total_traffic(service: QueryService = Depends(get_query_service)):
    """Traffic since the last reset plus the live interface counters."""
    return await service.get_totals()
