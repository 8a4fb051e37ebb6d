"""Dashboard summary endpoint for the overview page."""

from fastapi import APIRouter, Depends, Query

from api.auth import Actor, get_actor
from api.models import DashboardOut
from api.service import RecordService, get_service

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


@router.get("/summary", response_model=DashboardOut, summary="Dashboard summary statistics")
def dashboard_summary(
    region: str | None = Query(None, description="Region code (scoped users may omit it)"),
    actor: Actor = Depends(get_actor),
    service: RecordService = Depends(get_service),
) -> DashboardOut:
    """Return aggregated counts for one governorate.

    Includes:
    - Record total per collection
    - Correspondence count per status (every status present, zeros included)
    """
    return DashboardOut(**service.dashboard(actor, region))
