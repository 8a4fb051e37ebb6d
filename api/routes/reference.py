"""
Reference data endpoints.

GET /api/v1/reference/regions      → configured governorates
GET /api/v1/reference/statuses     → correspondence status enumeration
GET /api/v1/reference/collections  → collection catalog (fields, filters)
"""

from fastapi import APIRouter, Depends

from api.models import CollectionOut, RegionOut, StatusOut
from utils.catalog import COLLECTIONS
from utils.config import AppConfig, get_config
from utils.status import STATUS_LABELS, STATUSES

router = APIRouter(prefix="/reference", tags=["reference"])


@router.get("/regions", response_model=list[RegionOut], summary="List regions")
def list_regions(cfg: AppConfig = Depends(get_config)) -> list[RegionOut]:
    """Return the configured governorates in display order."""
    return [RegionOut(code=code, name=name) for code, name in cfg.regions.items()]


@router.get("/statuses", response_model=list[StatusOut], summary="List statuses")
def list_statuses() -> list[StatusOut]:
    return [StatusOut(code=s, label=STATUS_LABELS[s]) for s in STATUSES]


@router.get("/collections", response_model=list[CollectionOut], summary="List collections")
def list_collections() -> list[CollectionOut]:
    """Return every collection with its fields and filter configuration."""
    return [CollectionOut.from_spec(spec) for spec in COLLECTIONS.values()]
