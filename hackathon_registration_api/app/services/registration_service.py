"""
Business logic for team registrations.

``RegistrationService.register`` validates input, loads the target
problem statement for the response, and calls the backend's
``create_registration_atomic``, which alone is responsible for the
capacity and uniqueness guarantees.  Expected failures (missing
fields, duplicate team, unknown or full statement) come back as a
``RegistrationOutcome``; storage failures such as lock contention or
an unreachable database propagate to the caller.

Storage calls run in the thread pool, so concurrent requests
interleave at every storage call.  No in‑process locking is used.
"""

import logging
from typing import TYPE_CHECKING, Any, Dict, Mapping, Optional

from fastapi.concurrency import run_in_threadpool

from hackathon_registration_api.app.core.exceptions import (
    DuplicateTeamError,
    ProblemStatementFullError,
    ProblemStatementNotFoundError,
    RegistrationConflict,
)
from hackathon_registration_api.app.schemas.registration import ProblemStatementStatus, RegistrationOutcome
from hackathon_registration_api.app.services.notification_service import broadcast_snapshot
from hackathon_registration_api.app.storage.base import normalize_team_number

if TYPE_CHECKING:
    from hackathon_registration_api.app.core.state import AppState


logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("teamNumber", "teamName", "teamLeader", "problemStatementId")


def _status(view: Mapping[str, Any]) -> ProblemStatementStatus:
    return ProblemStatementStatus(
        id=view["id"],
        title=view.get("title"),
        category=view.get("category"),
        difficulty=view.get("difficulty"),
        status=f"{view['selected_count']}/{view['max_selections']} slots filled",
    )


class RegistrationService:
    """Service for registering teams against problem statements."""

    def __init__(self, state: "AppState"):
        self.state = state

    @property
    def storage(self):
        return self.state.storage

    async def _problem_view(self, problem_statement_id: str) -> Optional[Dict[str, Any]]:
        views = await run_in_threadpool(self.storage.get_all_problem_statements)
        return next((v for v in views if v.get("id") == problem_statement_id), None)

    async def register(self, payload: Mapping[str, Any]) -> RegistrationOutcome:
        """Register a team for a problem statement.

        ``payload`` must contain ``teamNumber``, ``teamName``,
        ``teamLeader`` and ``problemStatementId``.  The team number is
        trimmed before it is checked and stored.
        """
        missing = [f for f in REQUIRED_FIELDS if not str(payload.get(f) or "").strip()]
        if missing:
            return RegistrationOutcome(
                success=False,
                reason="missing_fields",
                message=f"Missing required fields: {', '.join(missing)}",
                missing_fields=missing,
            )

        team_number = normalize_team_number(payload["teamNumber"])
        problem_id = str(payload["problemStatementId"]).strip()
        registration = {
            "teamNumber": team_number,
            "teamName": str(payload["teamName"]).strip(),
            "teamLeader": str(payload["teamLeader"]).strip(),
            "problemStatementId": problem_id,
        }

        problem = await run_in_threadpool(self.storage.get_problem_statement_by_id, problem_id)
        if problem is None:
            return RegistrationOutcome(success=False, reason="not_found", message="Problem statement not found.")

        try:
            record = await run_in_threadpool(self.storage.create_registration_atomic, registration)
        except DuplicateTeamError:
            logger.info("Rejected duplicate registration for team %s", team_number)
            return RegistrationOutcome(
                success=False, reason="duplicate_team", message="Team number already registered."
            )
        except ProblemStatementNotFoundError:
            return RegistrationOutcome(success=False, reason="not_found", message="Problem statement not found.")
        except RegistrationConflict as e:
            view = await self._problem_view(problem_id)
            if isinstance(e, ProblemStatementFullError) or (view is not None and not view["is_available"]):
                logger.info("Rejected team %s: %s is full", team_number, problem_id)
                return RegistrationOutcome(
                    success=False,
                    reason="full",
                    message="This problem statement is full. Please try another problem statement.",
                    problem_statement=_status(view) if view else None,
                )
            logger.warning("Registration of team %s for %s failed: %s", team_number, problem_id, e)
            return RegistrationOutcome(
                success=False,
                reason="conflict",
                message="Unable to complete registration. Please try again.",
            )

        result = {**record, "problemStatement": problem}
        view = await self._problem_view(problem_id)
        await broadcast_snapshot(self.state, "registration", newRegistration=result)
        return RegistrationOutcome(
            success=True,
            message="Registration successful!",
            registration=result,
            problem_statement=_status(view) if view else None,
        )

    async def delete_registration(self, team_number: str) -> int:
        """Delete a registration; returns rows affected (0 when absent)."""
        target = normalize_team_number(team_number)
        removed = await run_in_threadpool(self.storage.delete_registration, target)
        if removed:
            logger.info("Deleted registration of team %s", target)
            await broadcast_snapshot(self.state, "deletion", deletedTeamNumber=target)
        return removed

    async def is_team_number_taken(self, team_number: str) -> bool:
        return await run_in_threadpool(self.storage.is_team_number_taken, team_number)
