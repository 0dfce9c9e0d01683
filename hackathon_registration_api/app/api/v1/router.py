"""
Top‑level router for version 1 of the API.

Aggregates the routers of each endpoint module.  Admin and export
routes are mounted under their own prefixes here.
"""

from fastapi import APIRouter

from .endpoints import admin, events, exports, problem_statements, registrations, release

router = APIRouter()

router.include_router(problem_statements.router, tags=["problem-statements"])
router.include_router(registrations.router, tags=["registrations"])
router.include_router(release.router, tags=["release"])
router.include_router(admin.router, prefix="/admin", tags=["admin"])
router.include_router(events.router, tags=["events"])
router.include_router(exports.router, prefix="/export", tags=["export"])
