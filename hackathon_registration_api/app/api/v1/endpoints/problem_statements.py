"""
Problem statement endpoints for API v1.

Public reads return availability views; while the catalog is
unreleased the list is empty unless ``includeUnreleased=1`` is given.
Create, update and delete require an admin session.
"""

from typing import Any, Dict, List

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from hackathon_registration_api.app.api.deps import get_catalog_service
from hackathon_registration_api.app.core.exceptions import (
    DuplicateProblemStatementError,
    ProblemStatementNotFoundError,
)
from hackathon_registration_api.app.core.security import require_admin
from hackathon_registration_api.app.schemas.problem_statement import (
    ProblemStatementCreate,
    ProblemStatementRead,
    ProblemStatementUpdate,
)
from hackathon_registration_api.app.schemas.registration import RegistrationRead
from hackathon_registration_api.app.services.catalog_service import CatalogService

from .registrations import NO_CACHE


router = APIRouter()


@router.get("/problem-statements", response_model=List[ProblemStatementRead])
async def list_problem_statements(
    response: Response,
    include_unreleased: bool = Query(False, alias="includeUnreleased"),
    service: CatalogService = Depends(get_catalog_service),
) -> List[Dict[str, Any]]:
    """List problem statements with live slot counts, sorted by id."""
    response.headers.update(NO_CACHE)
    return await service.list_problem_statements(include_unreleased=include_unreleased)


@router.post("/problem-statements", response_model=ProblemStatementRead, status_code=status.HTTP_201_CREATED)
async def create_problem_statement(
    problem_statement: ProblemStatementCreate,
    service: CatalogService = Depends(get_catalog_service),
    admin: dict = Depends(require_admin),
) -> Dict[str, Any]:
    try:
        return await service.create_problem_statement(problem_statement)
    except DuplicateProblemStatementError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from e


@router.get("/problem-statements/{problem_statement_id}", response_model=ProblemStatementRead)
async def get_problem_statement(
    problem_statement_id: str,
    service: CatalogService = Depends(get_catalog_service),
) -> Dict[str, Any]:
    try:
        return await service.get_problem_statement(problem_statement_id)
    except ProblemStatementNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e


@router.put("/problem-statements/{problem_statement_id}", response_model=ProblemStatementRead)
async def update_problem_statement(
    problem_statement_id: str,
    updates: ProblemStatementUpdate,
    service: CatalogService = Depends(get_catalog_service),
    admin: dict = Depends(require_admin),
) -> Dict[str, Any]:
    """Partially update a statement; unspecified fields stay unchanged."""
    try:
        return await service.update_problem_statement(problem_statement_id, updates)
    except ProblemStatementNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e


@router.delete("/problem-statements/{problem_statement_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_problem_statement(
    problem_statement_id: str,
    service: CatalogService = Depends(get_catalog_service),
    admin: dict = Depends(require_admin),
) -> None:
    """Delete a statement together with every registration for it."""
    try:
        await service.delete_problem_statement(problem_statement_id)
    except ProblemStatementNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    return None


@router.get("/problem-statements/{problem_statement_id}/registrations", response_model=List[RegistrationRead])
async def list_problem_statement_registrations(
    problem_statement_id: str,
    service: CatalogService = Depends(get_catalog_service),
    admin: dict = Depends(require_admin),
) -> List[Dict[str, Any]]:
    try:
        return await service.registrations_for(problem_statement_id)
    except ProblemStatementNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e


@router.get("/evaluation-criteria")
async def get_evaluation_criteria(service: CatalogService = Depends(get_catalog_service)) -> Dict[str, Any]:
    criteria = await service.get_evaluation_criteria()
    if not criteria:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Evaluation criteria not found")
    return criteria
