"""
Pydantic models for runtime settings and admin session payloads.
"""

from typing import Any

from pydantic import BaseModel, field_validator


class ReleaseUpdate(BaseModel):
    """Body of ``POST /admin/release``.

    Accepts booleans as well as the strings and integers HTML forms
    tend to send (``"true"``, ``"1"``, ``1``).
    """

    released: bool = False

    @field_validator("released", mode="before")
    @classmethod
    def _coerce(cls, value: Any) -> bool:
        return value is True or value in ("true", "1", 1)


class ReleaseStatus(BaseModel):
    released: bool


class AdminLogin(BaseModel):
    username: str
    password: str
