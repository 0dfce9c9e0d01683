"""
FastAPI dependencies resolving the application state and services.
"""

from fastapi import Depends, Request

from hackathon_registration_api.app.core.state import AppState
from hackathon_registration_api.app.services.catalog_service import CatalogService
from hackathon_registration_api.app.services.registration_service import RegistrationService
from hackathon_registration_api.app.services.report_service import ReportService
from hackathon_registration_api.app.services.settings_service import ReleaseService


def get_state(request: Request) -> AppState:
    return request.app.state.registration


def get_registration_service(state: AppState = Depends(get_state)) -> RegistrationService:
    return RegistrationService(state)


def get_catalog_service(state: AppState = Depends(get_state)) -> CatalogService:
    return CatalogService(state)


def get_release_service(state: AppState = Depends(get_state)) -> ReleaseService:
    return ReleaseService(state)


def get_report_service(state: AppState = Depends(get_state)) -> ReportService:
    return ReportService(state)
