"""User domain models."""

import json
import re
from typing import Any

from pydantic import BaseModel, Field, field_validator


# Constants for validation
MAX_NAME_LENGTH = 80


def normalize_display_name(v: str) -> str:
    """Validate a display name is usable - allows Unicode letters, spaces, hyphens, apostrophes."""
    v = v.strip()

    if not v:
        raise ValueError("Name cannot be empty")

    if len(v) > MAX_NAME_LENGTH:
        raise ValueError(f"Name too long (max {MAX_NAME_LENGTH} characters)")

    # Uzbek Latin uses o' / g' with apostrophe variants
    if not re.match(r"^[\w\s'`ʻʼ’.-]+$", v, re.UNICODE):
        raise ValueError("Name can only contain letters, spaces, hyphens, and apostrophes")

    return v


def parse_id_list(v: Any) -> Any:
    """Accept stored JSON text for list-valued ID fields."""
    if v is None or v == "":
        return []
    if isinstance(v, str):
        return json.loads(v)
    return v


class User(BaseModel):
    """User data transfer object."""

    id: str = Field(..., description="Unique user ID from database")
    display_name: str = Field(..., description="Display name of the user")
    email: str | None = Field(default=None, description="Contact email")
    coins: int = Field(default=0, ge=0, description="Gold coin balance (group tasks)")
    silver_coins: int = Field(default=0, ge=0, description="Silver coin balance (personal tasks)")
    group_ids: list[str] = Field(default_factory=list, description="Groups the user has joined, in join order")
    goals: str = Field(default="", description="Free-text goals, used by the progress analyst")
    habits: str = Field(default="", description="Free-text habits, used by the progress analyst")
    occupation: str = Field(default="", description="Free-text occupation")

    @field_validator("group_ids", mode="before")
    @classmethod
    def parse_group_ids(cls, v: Any) -> Any:
        return parse_id_list(v)

    @field_validator("display_name")
    @classmethod
    def validate_name_usable(cls, v: str) -> str:
        return normalize_display_name(v)


class UserCreate(BaseModel):
    """Payload for creating a user record."""

    display_name: str
    email: str | None = None
    goals: str = ""
    habits: str = ""
    occupation: str = ""


class UserProfileUpdate(BaseModel):
    """Partial profile update; unset fields are left unchanged."""

    display_name: str | None = None
    goals: str | None = None
    habits: str | None = None
    occupation: str | None = None
