"""
Business logic for the problem statement catalog and admin views.

Covers public listing (gated by the release flag), admin edits,
bulk replace/import, full reset and the registration listings.  Every
mutation publishes a change event so open dashboards refresh.

Reads go through ``_read``: if the MongoDB backend turns out to be
unreachable, the state is switched to the JSON file backend once and
the read retried, unless the deployment is managed, in which case the
connectivity error propagates.
"""

import json
import logging
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from fastapi.concurrency import run_in_threadpool

from hackathon_registration_api.app.core.exceptions import (
    DuplicateProblemStatementError,
    ProblemStatementNotFoundError,
    StorageConnectivityError,
)
from hackathon_registration_api.app.schemas.problem_statement import (
    CatalogDocument,
    ProblemStatementCreate,
    ProblemStatementUpdate,
)
from hackathon_registration_api.app.services.notification_service import broadcast_snapshot
from hackathon_registration_api.app.services.settings_service import ReleaseService

if TYPE_CHECKING:
    from hackathon_registration_api.app.core.state import AppState


logger = logging.getLogger(__name__)


class CatalogService:
    """Service for problem statements and admin-side registration views."""

    def __init__(self, state: "AppState"):
        self.state = state

    async def _read(self, method_name: str, *args: Any) -> Any:
        try:
            return await run_in_threadpool(getattr(self.state.storage, method_name), *args)
        except StorageConnectivityError as e:
            await run_in_threadpool(self.state.fall_back, e)
        return await run_in_threadpool(getattr(self.state.storage, method_name), *args)

    async def _write(self, method_name: str, *args: Any) -> Any:
        return await run_in_threadpool(getattr(self.state.storage, method_name), *args)

    # Problem statements

    async def list_problem_statements(self, include_unreleased: bool = False) -> List[Dict[str, Any]]:
        """Return availability views sorted by id.

        While the catalog is unreleased an empty list is returned unless
        ``include_unreleased`` is set.
        """
        if not self.state.problems_released and not include_unreleased:
            return []
        views = await self._read("get_all_problem_statements")
        return sorted(views, key=lambda v: str(v.get("id")))

    async def get_problem_statement(self, problem_statement_id: str) -> Dict[str, Any]:
        views = await self._read("get_all_problem_statements")
        view = next((v for v in views if v.get("id") == problem_statement_id), None)
        if view is None:
            raise ProblemStatementNotFoundError(problem_statement_id)
        return view

    async def create_problem_statement(self, problem_statement: ProblemStatementCreate) -> Dict[str, Any]:
        created = await self._write("create_problem_statement", problem_statement.to_record())
        if not created:
            raise DuplicateProblemStatementError(problem_statement.id)
        logger.info("Created problem statement %s", problem_statement.id)
        await broadcast_snapshot(self.state, "catalog")
        return await self.get_problem_statement(problem_statement.id)

    async def update_problem_statement(self, problem_statement_id: str, updates: ProblemStatementUpdate) -> Dict[str, Any]:
        changes = updates.model_dump(exclude_unset=True)
        changed = await self._write("update_problem_statement", problem_statement_id, changes)
        if not changed:
            raise ProblemStatementNotFoundError(problem_statement_id)
        logger.info("Updated problem statement %s: %s", problem_statement_id, sorted(changes))
        await broadcast_snapshot(self.state, "catalog")
        return await self.get_problem_statement(problem_statement_id)

    async def delete_problem_statement(self, problem_statement_id: str) -> None:
        """Delete a statement and, by cascade, its registrations."""
        removed = await self._write("delete_problem_statement", problem_statement_id)
        if not removed:
            raise ProblemStatementNotFoundError(problem_statement_id)
        logger.warning("Deleted problem statement %s and its registrations", problem_statement_id)
        await broadcast_snapshot(self.state, "reset")

    async def limit_all_to_one(self) -> Dict[str, int]:
        """Set ``maxSelections`` of every statement to 1."""
        views = await self._read("get_all_problem_statements")
        updated = 0
        for view in views:
            updated += await self._write("update_problem_statement", view["id"], {"maxSelections": 1})
        await broadcast_snapshot(self.state, "reset")
        return {"updated": updated, "total": len(views)}

    async def get_evaluation_criteria(self) -> Optional[Dict[str, Any]]:
        criteria = await self._read("get_evaluation_criteria")
        if criteria:
            return criteria
        document = await run_in_threadpool(self._load_catalog_file)
        return (document or {}).get("evaluationCriteria") or None

    # Bulk operations

    async def reset_all(self) -> None:
        await self._write("reset_all")
        await broadcast_snapshot(self.state, "reset")

    async def replace_catalog(self, document: CatalogDocument) -> int:
        """Overwrite the catalog, drop all registrations and release the catalog."""
        imported = await self._write("replace_from_json", document.to_payload())
        logger.warning("Catalog replaced with %d problem statements; registrations cleared", imported)
        await broadcast_snapshot(self.state, "reset")
        await ReleaseService(self.state).set_released(True)
        return imported

    async def import_catalog(self, document: CatalogDocument) -> int:
        """Add statements whose ids are not in the catalog yet."""
        imported = await self._write("import_from_json", document.to_payload())
        logger.info("Imported %d new problem statements", imported)
        if imported:
            await broadcast_snapshot(self.state, "catalog")
        return imported

    def _load_catalog_file(self) -> Optional[Dict[str, Any]]:
        path = self.state.settings.catalog_file
        if not path:
            return None
        try:
            with open(path, encoding="utf-8") as f:
                return json.load(f)
        except FileNotFoundError:
            return None

    async def replace_from_catalog_file(self) -> Optional[int]:
        """Replace the catalog from ``CATALOG_FILE``; ``None`` if the file is missing."""
        document = await run_in_threadpool(self._load_catalog_file)
        if document is None:
            return None
        return await self.replace_catalog(CatalogDocument.model_validate(document))

    # Registrations (admin views)

    async def list_registrations(self) -> List[Dict[str, Any]]:
        return await self._read("get_all_registrations")

    async def registrations_for(self, problem_statement_id: str) -> List[Dict[str, Any]]:
        if await self._read("get_problem_statement_by_id", problem_statement_id) is None:
            raise ProblemStatementNotFoundError(problem_statement_id)
        return await self._read("get_registrations_by_problem_statement", problem_statement_id)
