"""
Administrative endpoints for API v1.

Login issues the signed ``admin_session`` cookie checked by
``require_admin``.  The remaining routes are destructive catalog
operations: full reset, replace or import from a catalog document,
and forcing every statement down to a single slot.
"""

from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException, Response, status
from pydantic import ValidationError

from hackathon_registration_api.app.api.deps import get_catalog_service, get_state
from hackathon_registration_api.app.core.security import (
    ADMIN_COOKIE,
    create_session_token,
    require_admin,
    verify_credentials,
)
from hackathon_registration_api.app.core.state import AppState
from hackathon_registration_api.app.schemas.problem_statement import CatalogDocument
from hackathon_registration_api.app.schemas.settings import AdminLogin
from hackathon_registration_api.app.services.catalog_service import CatalogService


router = APIRouter()


@router.post("/login")
async def login(body: AdminLogin, response: Response, state: AppState = Depends(get_state)) -> Dict[str, Any]:
    """Exchange admin credentials for a session cookie."""
    if not verify_credentials(body.username, body.password, state.settings):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Admin credentials are not set or invalid",
        )
    token = create_session_token(state.settings.admin_user, state.settings)
    response.set_cookie(
        ADMIN_COOKIE,
        token,
        httponly=True,
        samesite="lax",
        max_age=state.settings.admin_session_minutes * 60,
    )
    return {"ok": True}


@router.post("/logout")
async def logout(response: Response) -> Dict[str, Any]:
    response.delete_cookie(ADMIN_COOKIE)
    return {"ok": True}


@router.post("/reset")
async def reset_all(
    service: CatalogService = Depends(get_catalog_service),
    admin: dict = Depends(require_admin),
) -> Dict[str, Any]:
    """Delete every registration and statement and re-seed the default catalog."""
    await service.reset_all()
    return {"ok": True}


@router.post("/replace-catalog")
async def replace_catalog(
    document: CatalogDocument,
    service: CatalogService = Depends(get_catalog_service),
    admin: dict = Depends(require_admin),
) -> Dict[str, Any]:
    """Overwrite the catalog with the posted document and release it.

    All existing registrations are removed.
    """
    imported = await service.replace_catalog(document)
    return {"ok": True, "importedProblems": imported}


@router.post("/replace-with-data-file")
async def replace_with_data_file(
    service: CatalogService = Depends(get_catalog_service),
    admin: dict = Depends(require_admin),
) -> Dict[str, Any]:
    """Overwrite the catalog from the server-side ``CATALOG_FILE``."""
    try:
        imported = await service.replace_from_catalog_file()
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=e.errors()) from e
    if imported is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Catalog file not found on server")
    return {"ok": True, "importedProblems": imported}


@router.post("/import-catalog")
async def import_catalog(
    document: CatalogDocument,
    service: CatalogService = Depends(get_catalog_service),
    admin: dict = Depends(require_admin),
) -> Dict[str, Any]:
    """Add statements from the posted document whose ids are new."""
    imported = await service.import_catalog(document)
    return {"ok": True, "importedProblems": imported}


@router.post("/limit-one-all")
async def limit_one_all(
    service: CatalogService = Depends(get_catalog_service),
    admin: dict = Depends(require_admin),
) -> Dict[str, Any]:
    """Set the capacity of every statement to a single team."""
    result = await service.limit_all_to_one()
    return {"ok": True, **result}
