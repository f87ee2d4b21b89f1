"""Staff dashboard counters."""

from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query

from studio.api.deps import get_principal
from studio.container import get_container
from studio.domain.access.models import Principal
from studio.domain.reservations.schemas import DashboardStatsOut

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/stats", response_model=DashboardStatsOut)
async def dashboard_stats(
	today: Optional[date] = Query(default=None),
	principal: Principal = Depends(get_principal),
) -> DashboardStatsOut:
	stats = await get_container().ledger.stats(principal, today or date.today())
	return DashboardStatsOut.from_model(stats)
