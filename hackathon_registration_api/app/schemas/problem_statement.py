"""
Pydantic models for problem statements.

``ProblemStatementCreate`` accepts the camelCase field names used in
catalog documents as well as snake_case ones.  ``maxSelections`` is
coerced to an integer of at least one rather than rejected, so that
loosely typed catalogs (``"2"``, ``0``, ``"two"``) still import.
"""

from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from hackathon_registration_api.app.storage.base import coerce_max_selections


class ProblemStatementBase(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: str = Field(..., examples=["Secure Authentication System"])
    description: str = Field("", examples=["Design a multi-factor authentication system"])
    category: Optional[str] = Field(None, examples=["Cybersecurity"])
    difficulty: Optional[str] = Field(None, examples=["Advanced"])
    technologies: List[str] = Field(default_factory=list)
    max_selections: int = Field(1, alias="maxSelections", ge=1)

    @field_validator("max_selections", mode="before")
    @classmethod
    def _coerce_max(cls, value: Any) -> int:
        return coerce_max_selections(value)

    @field_validator("technologies", mode="before")
    @classmethod
    def _coerce_technologies(cls, value: Any) -> List[str]:
        return list(value) if isinstance(value, (list, tuple)) else []


class ProblemStatementCreate(ProblemStatementBase):
    """Schema for creating a problem statement."""

    id: str = Field(..., min_length=1, examples=["ps004"])

    def to_record(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "category": self.category,
            "difficulty": self.difficulty,
            "technologies": self.technologies,
            "maxSelections": self.max_selections,
        }


class ProblemStatementUpdate(BaseModel):
    """Schema for updating a problem statement.

    All fields are optional; only provided fields will be updated.
    """

    model_config = ConfigDict(populate_by_name=True)

    title: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    difficulty: Optional[str] = None
    technologies: Optional[List[str]] = None
    max_selections: Optional[int] = Field(None, alias="maxSelections")

    @field_validator("max_selections", mode="before")
    @classmethod
    def _coerce_max(cls, value: Any) -> Optional[int]:
        return None if value is None else coerce_max_selections(value)


class ProblemStatementRead(BaseModel):
    """Availability view of a problem statement."""

    id: str
    title: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    difficulty: Optional[str] = None
    technologies: List[str] = Field(default_factory=list)
    max_selections: int
    selected_count: int
    is_available: bool


class CatalogDocument(BaseModel):
    """Bulk catalog document used by replace and import."""

    model_config = ConfigDict(populate_by_name=True)

    problem_statements: List[ProblemStatementCreate] = Field(..., alias="problemStatements")

    def to_payload(self) -> dict:
        return {"problemStatements": [ps.to_record() for ps in self.problem_statements]}
