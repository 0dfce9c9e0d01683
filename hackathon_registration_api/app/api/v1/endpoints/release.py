"""
Release toggle endpoints for API v1.

The release flag gates the public problem statement list.  Anyone may
read it; only administrators may change it.
"""

from fastapi import APIRouter, Depends

from hackathon_registration_api.app.api.deps import get_release_service
from hackathon_registration_api.app.core.security import require_admin
from hackathon_registration_api.app.schemas.settings import ReleaseStatus, ReleaseUpdate
from hackathon_registration_api.app.services.settings_service import ReleaseService


router = APIRouter()


@router.get("/release-status", response_model=ReleaseStatus)
async def release_status(service: ReleaseService = Depends(get_release_service)) -> ReleaseStatus:
    return ReleaseStatus(released=service.get_released())


@router.post("/admin/release", response_model=ReleaseStatus)
async def set_release(
    body: ReleaseUpdate,
    service: ReleaseService = Depends(get_release_service),
    admin: dict = Depends(require_admin),
) -> ReleaseStatus:
    return ReleaseStatus(released=await service.set_released(body.released))
