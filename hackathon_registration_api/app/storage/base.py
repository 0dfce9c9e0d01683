"""
Storage contract and shared record formatting.

``StorageBackend`` is the interface both persistence backends
implement.  The one operation with real concurrency requirements is
``create_registration_atomic``: it must reserve exactly one capacity
slot and insert exactly one registration, or do neither, no matter how
many callers race on the same problem statement or team number.  Each
backend supplies its own strategy for that (a conditional increment
inside a MongoDB transaction, or a lock file around a full document
rewrite).

Stored records use camelCase keys (``teamNumber``, ``maxSelections``)
while the views returned by read operations use snake_case keys
(``team_number``, ``max_selections``).  The helpers in this module
convert between the two so that both backends produce identical
output.
"""

import copy
import math
import re
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional
from zoneinfo import ZoneInfo


DEFAULT_PROBLEM_STATEMENTS: List[Dict[str, Any]] = [
    {
        "id": "ps001",
        "title": "Secure Authentication System",
        "description": (
            "Design and implement a multi-factor authentication system with biometric verification, "
            "OTP, and secure session management for a banking application."
        ),
        "maxSelections": 2,
        "category": "Cybersecurity",
        "difficulty": "Advanced",
        "technologies": ["Node.js", "React", "JWT"],
    },
    {
        "id": "ps002",
        "title": "AI-Powered Code Review Assistant",
        "description": (
            "Develop an intelligent code review tool that uses machine learning to detect bugs, "
            "security vulnerabilities, and suggest improvements in real-time."
        ),
        "maxSelections": 2,
        "category": "Artificial Intelligence",
        "difficulty": "Advanced",
        "technologies": ["Python", "TensorFlow"],
    },
    {
        "id": "ps003",
        "title": "Blockchain Supply Chain Tracker",
        "description": (
            "Create a transparent supply chain management system using blockchain technology "
            "to track products from manufacturer to consumer."
        ),
        "maxSelections": 2,
        "category": "Blockchain",
        "difficulty": "Intermediate",
        "technologies": ["Ethereum", "Solidity"],
    },
]

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


def default_problem_statements() -> List[Dict[str, Any]]:
    """Return a fresh copy of the seed catalog."""
    return copy.deepcopy(DEFAULT_PROBLEM_STATEMENTS)


def coerce_max_selections(value: Any) -> int:
    """Coerce a capacity value to an integer of at least one.

    Integers are kept, finite floats truncated and strings parsed for
    their leading integer (``"3 teams"`` gives 3).  Anything else,
    including NaN and infinity, counts as zero before the lower bound
    of one is applied.
    """
    if isinstance(value, bool):
        parsed = 0
    elif isinstance(value, int):
        parsed = value
    elif isinstance(value, float):
        parsed = int(value) if math.isfinite(value) else 0
    elif isinstance(value, str):
        match = _LEADING_INT.match(value)
        parsed = int(match.group(1)) if match else 0
    else:
        parsed = 0
    return max(1, parsed)


def normalize_team_number(team_number: Any) -> str:
    return str(team_number if team_number is not None else "").strip()


def normalize_problem_statement(raw: Mapping[str, Any]) -> Dict[str, Any]:
    """Build the stored form of a problem statement from loose input."""
    max_value = raw.get("maxSelections", raw.get("max_selections"))
    technologies = raw.get("technologies")
    return {
        "id": raw.get("id"),
        "title": raw.get("title"),
        "description": raw.get("description"),
        "maxSelections": coerce_max_selections(max_value),
        "category": raw.get("category") or None,
        "difficulty": raw.get("difficulty") or None,
        "technologies": list(technologies) if isinstance(technologies, (list, tuple)) else [],
    }


def apply_problem_statement_updates(current: Mapping[str, Any], updates: Mapping[str, Any]) -> Dict[str, Any]:
    """Return the stored fields changed by a partial update.

    Only keys present in ``updates`` are applied.  Both ``maxSelections``
    and ``max_selections`` are accepted for the capacity.
    """
    changed: Dict[str, Any] = {}
    for key in ("title", "description", "category", "difficulty"):
        if key in updates:
            changed[key] = updates[key]
    if "technologies" in updates:
        technologies = updates["technologies"]
        changed["technologies"] = list(technologies) if isinstance(technologies, (list, tuple)) else []
    for key in ("max_selections", "maxSelections"):
        if key in updates and updates[key] is not None:
            changed["maxSelections"] = coerce_max_selections(updates[key])
    return changed


def problem_view(problem: Mapping[str, Any], selected_count: int) -> Dict[str, Any]:
    """Availability view of a stored problem statement."""
    max_selections = coerce_max_selections(problem.get("maxSelections"))
    technologies = problem.get("technologies")
    return {
        "id": problem.get("id"),
        "title": problem.get("title"),
        "description": problem.get("description"),
        "category": problem.get("category") or None,
        "difficulty": problem.get("difficulty") or None,
        "technologies": list(technologies) if isinstance(technologies, (list, tuple)) else [],
        "max_selections": max_selections,
        "selected_count": selected_count,
        "is_available": selected_count < max_selections,
    }


def count_by_problem(registrations: Iterable[Mapping[str, Any]]) -> Dict[str, int]:
    counts: Dict[str, int] = {}
    for registration in registrations:
        problem_id = registration.get("problemStatementId")
        if not problem_id:
            continue
        counts[problem_id] = counts.get(problem_id, 0) + 1
    return counts


def utc_timestamp(now: Optional[datetime] = None) -> str:
    """ISO‑8601 UTC timestamp with millisecond precision and ``Z`` suffix."""
    now = now or datetime.now(timezone.utc)
    return now.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def format_display_time(value: Optional[str], tz_name: str = "Asia/Kolkata", label: str = "IST") -> str:
    """Render a stored UTC timestamp as ``dd/mm/yyyy, hh:mm:ss am LABEL``."""
    if not value:
        return ""
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return str(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    local = parsed.astimezone(ZoneInfo(tz_name))
    rendered = local.strftime("%d/%m/%Y, %I:%M:%S ") + local.strftime("%p").lower()
    return f"{rendered} {label}".rstrip()


def registration_view(
    registration: Mapping[str, Any],
    problems_by_id: Mapping[str, Mapping[str, Any]],
    tz_name: str = "Asia/Kolkata",
    tz_label: str = "IST",
) -> Dict[str, Any]:
    """Registration joined with its problem statement's labels."""
    problem = problems_by_id.get(registration.get("problemStatementId")) or {}
    return {
        "team_number": registration.get("teamNumber"),
        "team_name": registration.get("teamName"),
        "team_leader": registration.get("teamLeader"),
        "problem_statement_id": registration.get("problemStatementId"),
        "problem_title": problem.get("title") or "",
        "problem_category": problem.get("category") or None,
        "problem_difficulty": problem.get("difficulty") or None,
        "registration_date_time": registration.get("registrationDateTime"),
        "registration_date_time_ist": format_display_time(registration.get("registrationDateTime"), tz_name, tz_label),
    }


def build_registration_record(registration: Mapping[str, Any]) -> Dict[str, Any]:
    """Stored form of a new registration, stamped with the current time."""
    return {
        "teamNumber": normalize_team_number(registration.get("teamNumber")),
        "teamName": registration.get("teamName"),
        "teamLeader": registration.get("teamLeader"),
        "problemStatementId": registration.get("problemStatementId"),
        "registrationDateTime": utc_timestamp(),
    }


def catalog_entries(payload: Any) -> Optional[List[Dict[str, Any]]]:
    """Extract ``problemStatements`` from a bulk document, or ``None`` if malformed."""
    if not isinstance(payload, Mapping):
        return None
    entries = payload.get("problemStatements")
    if not isinstance(entries, list):
        return None
    return [normalize_problem_statement(entry) for entry in entries if isinstance(entry, Mapping) and entry.get("id")]


class StorageBackend(ABC):
    """Contract shared by the MongoDB and JSON file backends."""

    name = "abstract"

    def __init__(self, display_timezone: str = "Asia/Kolkata", display_timezone_label: str = "IST"):
        self.display_timezone = display_timezone
        self.display_timezone_label = display_timezone_label

    def _registration_views(
        self, registrations: Iterable[Mapping[str, Any]], problems: Iterable[Mapping[str, Any]]
    ) -> List[Dict[str, Any]]:
        problems_by_id = {p.get("id"): p for p in problems}
        return [
            registration_view(r, problems_by_id, self.display_timezone, self.display_timezone_label)
            for r in registrations
        ]

    @abstractmethod
    def init(self) -> None:
        """Create schema, indexes and seed data if absent.  Idempotent."""

    def close(self) -> None:
        return None

    # Problem statements

    @abstractmethod
    def get_all_problem_statements(self) -> List[Dict[str, Any]]:
        ...

    @abstractmethod
    def get_problem_statement_by_id(self, problem_statement_id: str) -> Optional[Dict[str, Any]]:
        ...

    @abstractmethod
    def create_problem_statement(self, problem_statement: Mapping[str, Any]) -> int:
        """Insert a statement; returns 0 when the id already exists."""

    @abstractmethod
    def update_problem_statement(self, problem_statement_id: str, updates: Mapping[str, Any]) -> int:
        ...

    @abstractmethod
    def delete_problem_statement(self, problem_statement_id: str) -> int:
        """Delete a statement and every registration referencing it."""

    @abstractmethod
    def get_evaluation_criteria(self) -> Optional[Dict[str, Any]]:
        ...

    # Registrations

    @abstractmethod
    def create_registration_atomic(self, registration: Mapping[str, Any]) -> Dict[str, Any]:
        """Reserve a slot and insert the registration, or do neither.

        Returns the stored record.  Raises ``DuplicateTeamError``,
        ``ProblemStatementNotFoundError`` or ``ProblemStatementFullError``
        when the registration is rejected, and a ``StorageError``
        subclass when the backend itself fails.
        """

    @abstractmethod
    def delete_registration(self, team_number: str) -> int:
        """Remove a registration; returns rows affected (0 if absent)."""

    @abstractmethod
    def get_all_registrations(self) -> List[Dict[str, Any]]:
        ...

    @abstractmethod
    def get_registrations_by_problem_statement(self, problem_statement_id: str) -> List[Dict[str, Any]]:
        ...

    @abstractmethod
    def is_team_number_taken(self, team_number: str) -> bool:
        ...

    # Bulk operations

    @abstractmethod
    def reset_all(self) -> None:
        """Destroy all data and re-seed the default catalog."""

    @abstractmethod
    def replace_from_json(self, payload: Any) -> Optional[int]:
        """Overwrite both collections; ``None`` when the payload is malformed."""

    @abstractmethod
    def import_from_json(self, payload: Any) -> Optional[int]:
        """Add statements whose ids are not present yet; ``None`` when malformed."""

    # Settings

    @abstractmethod
    def get_settings(self) -> Dict[str, Any]:
        ...

    @abstractmethod
    def set_settings(self, partial: Mapping[str, Any]) -> Dict[str, Any]:
        ...
