"""
Identity model — the signed-in user as reported by the auth endpoints.
"""

from typing import Any, Optional

from pydantic import BaseModel, field_validator


class Identity(BaseModel):
    id: str
    name: str = ""
    email: Optional[str] = None
    role: str = "student"
    avatar_url: Optional[str] = None

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_id(cls, value: Any) -> str:
        return str(value)

    @field_validator("role", mode="before")
    @classmethod
    def _default_role(cls, value: Any) -> str:
        return str(value).strip().lower() if value else "student"

    @property
    def display_name(self) -> str:
        return self.name or self.email or f"User #{self.id}"
