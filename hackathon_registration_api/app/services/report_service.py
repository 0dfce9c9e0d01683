"""
Admin report exports.

Registrations can be downloaded as CSV; the combined report bundles
the catalog with availability and all registrations as JSON.
"""

import csv
import io
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Dict

from fastapi.concurrency import run_in_threadpool

if TYPE_CHECKING:
    from hackathon_registration_api.app.core.state import AppState


REGISTRATION_COLUMNS = [
    ("team_number", "Team #"),
    ("team_name", "Team Name"),
    ("team_leader", "Leader"),
    ("problem_statement_id", "Problem ID"),
    ("problem_title", "Problem"),
    ("problem_category", "Category"),
    ("registration_date_time_ist", "Registered At"),
]


class ReportService:
    def __init__(self, state: "AppState"):
        self.state = state

    async def registrations_csv(self) -> str:
        registrations = await run_in_threadpool(self.state.storage.get_all_registrations)
        buffer = io.StringIO()
        writer = csv.writer(buffer)
        writer.writerow([label for _, label in REGISTRATION_COLUMNS])
        for registration in registrations:
            writer.writerow([registration.get(key) or "" for key, _ in REGISTRATION_COLUMNS])
        return buffer.getvalue()

    async def full_report(self) -> Dict[str, Any]:
        problems = await run_in_threadpool(self.state.storage.get_all_problem_statements)
        registrations = await run_in_threadpool(self.state.storage.get_all_registrations)
        return {
            "generated_at": datetime.now(timezone.utc).isoformat(),
            "released": self.state.problems_released,
            "problems": sorted(problems, key=lambda p: str(p.get("id"))),
            "registrations": registrations,
            "totals": {
                "problem_statements": len(problems),
                "registrations": len(registrations),
                "full": sum(1 for p in problems if not p["is_available"]),
            },
        }
