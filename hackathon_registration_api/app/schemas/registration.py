"""
Pydantic models for team registrations.

``RegistrationOutcome`` is what ``RegistrationService.register``
returns for every call, successful or not; the HTTP layer maps its
``reason`` to a status code.
"""

from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, Field


class RegistrationCreate(BaseModel):
    """Schema for a registration request."""

    teamNumber: str = Field(..., examples=["T1"])
    teamName: str = Field(..., examples=["Null Pointers"])
    teamLeader: str = Field(..., examples=["Asha Rao"])
    problemStatementId: str = Field(..., examples=["ps001"])


class RegistrationRead(BaseModel):
    """Registration joined with its problem statement's labels."""

    team_number: str
    team_name: Optional[str] = None
    team_leader: Optional[str] = None
    problem_statement_id: Optional[str] = None
    problem_title: str = ""
    problem_category: Optional[str] = None
    problem_difficulty: Optional[str] = None
    registration_date_time: Optional[str] = None
    registration_date_time_ist: str = ""


class ProblemStatementStatus(BaseModel):
    id: str
    title: Optional[str] = None
    category: Optional[str] = None
    difficulty: Optional[str] = None
    status: str = Field(..., examples=["1/2 slots filled"])


RegistrationReason = Literal["missing_fields", "duplicate_team", "not_found", "full", "conflict"]


class RegistrationOutcome(BaseModel):
    success: bool
    message: str
    reason: Optional[RegistrationReason] = None
    registration: Optional[Dict[str, Any]] = None
    problem_statement: Optional[ProblemStatementStatus] = None
    missing_fields: Optional[list[str]] = None
