"""
BizFlow Pro - Routes Dashboard
"""

from fastapi import APIRouter, Depends

from services.dashboard import get_dashboard_stats
from services.permissions import require_permission, get_tenant_id

router = APIRouter(prefix="/dashboard", tags=["Dashboard"])


@router.get("/stats")
async def dashboard_stats(user: dict = Depends(require_permission("dashboard.view"))):
    return await get_dashboard_stats(get_tenant_id(user))
