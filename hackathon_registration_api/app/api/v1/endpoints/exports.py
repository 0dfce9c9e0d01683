"""
Report export endpoints for API v1 (admin only).
"""

from typing import Any, Dict

from fastapi import APIRouter, Depends, Response

from hackathon_registration_api.app.api.deps import get_report_service
from hackathon_registration_api.app.core.security import require_admin
from hackathon_registration_api.app.services.report_service import ReportService


router = APIRouter()


@router.get("/registrations.csv")
async def export_registrations_csv(
    service: ReportService = Depends(get_report_service),
    admin: dict = Depends(require_admin),
) -> Response:
    content = await service.registrations_csv()
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="registrations-report.csv"'},
    )


@router.get("/report")
async def export_report(
    service: ReportService = Depends(get_report_service),
    admin: dict = Depends(require_admin),
) -> Dict[str, Any]:
    """Catalog with availability plus all registrations."""
    return await service.full_report()
