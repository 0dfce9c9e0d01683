"""
Registration endpoints for API v1.

``POST /register`` is the public entry point; it relies on
``RegistrationService`` for validation and on the storage backend for
the capacity and uniqueness guarantees.  Listing and deleting
registrations is restricted to administrators.
"""

from typing import Any, Dict, List

from fastapi import APIRouter, Body, Depends, HTTPException, Response, status
from fastapi.responses import JSONResponse

from hackathon_registration_api.app.api.deps import get_catalog_service, get_registration_service
from hackathon_registration_api.app.core.security import require_admin
from hackathon_registration_api.app.schemas.registration import RegistrationOutcome, RegistrationRead
from hackathon_registration_api.app.services.catalog_service import CatalogService
from hackathon_registration_api.app.services.registration_service import RegistrationService


router = APIRouter()

NO_CACHE = {"Cache-Control": "no-cache, no-store, must-revalidate", "Pragma": "no-cache", "Expires": "0"}

OUTCOME_STATUS = {
    "missing_fields": status.HTTP_400_BAD_REQUEST,
    "not_found": status.HTTP_404_NOT_FOUND,
    "duplicate_team": status.HTTP_409_CONFLICT,
    "full": status.HTTP_409_CONFLICT,
    "conflict": status.HTTP_409_CONFLICT,
}


@router.post("/register", response_model=RegistrationOutcome, status_code=status.HTTP_201_CREATED)
async def register_team(
    payload: Dict[str, Any] = Body(...),
    service: RegistrationService = Depends(get_registration_service),
):
    """Register a team for a problem statement.

    The body must include ``teamNumber``, ``teamName``, ``teamLeader``
    and ``problemStatementId``.  Rejections return the outcome with
    400 (missing fields), 404 (unknown statement) or 409 (duplicate
    team, statement full).
    """
    outcome = await service.register(payload)
    if outcome.success:
        return outcome
    return JSONResponse(status_code=OUTCOME_STATUS[outcome.reason], content=outcome.model_dump(mode="json"))


@router.get("/registrations", response_model=List[RegistrationRead])
async def list_registrations(
    response: Response,
    service: CatalogService = Depends(get_catalog_service),
    admin: dict = Depends(require_admin),
) -> List[Dict[str, Any]]:
    """List all registrations with their statement labels (admin only)."""
    response.headers.update(NO_CACHE)
    return await service.list_registrations()


@router.get("/teams/{team_number}/registered")
async def team_registered(
    team_number: str,
    service: RegistrationService = Depends(get_registration_service),
) -> Dict[str, bool]:
    """Tell whether a team number already holds a registration."""
    return {"registered": await service.is_team_number_taken(team_number)}


@router.delete("/registrations/{team_number}")
async def delete_registration(
    team_number: str,
    service: RegistrationService = Depends(get_registration_service),
    admin: dict = Depends(require_admin),
) -> Dict[str, Any]:
    """Delete a team's registration, freeing its slot (admin only)."""
    removed = await service.delete_registration(team_number)
    if not removed:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Registration not found")
    return {"message": "Registration deleted successfully", "deleted": removed}
