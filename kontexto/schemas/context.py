"""Context schemas."""

from datetime import datetime
from typing import Optional

from pydantic import Field, field_validator

from .base import CamelModel


class ContextCreate(CamelModel):
    """Schema for registering a repository as a context.

    The repository URL is normalized and checked by the context service.
    """
    name: str = Field(min_length=1, max_length=255)
    repo_url: str
    branch: Optional[str] = None
    description: Optional[str] = None

    @field_validator('name')
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("name cannot be blank")
        return v

    @field_validator('branch')
    @classmethod
    def blank_branch_is_none(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        return v.strip() or None


class ContextResponse(CamelModel):
    id: str
    name: str
    description: Optional[str] = None
    repo_url: str
    branch: Optional[str] = None
    owner_id: str
    is_active: bool
    created_at: datetime
    updated_at: datetime
