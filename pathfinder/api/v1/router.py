"""API v1 router aggregator.

All v1 endpoint routers are included here and mounted at /api/v1.
"""

from fastapi import APIRouter

from pathfinder.api.v1 import cpa_pert

router = APIRouter()

# =============================================================================
# CPA/PERT
# =============================================================================

router.include_router(cpa_pert.router, prefix="/cpa-pert", tags=["cpa-pert"])
