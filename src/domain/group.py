"""Group domain models."""

from typing import Any

from pydantic import BaseModel, Field, field_validator

from src.domain.user import parse_id_list


class Group(BaseModel):
    """Group data transfer object."""

    id: str = Field(..., description="Unique group ID from database")
    name: str = Field(..., description="Group name")
    description: str = Field(default="", description="Group description")
    admin_id: str = Field(..., description="User ID of the group creator")
    member_ids: list[str] = Field(default_factory=list, description="Member user IDs, in join order")

    @field_validator("member_ids", mode="before")
    @classmethod
    def parse_member_ids(cls, v: Any) -> Any:
        return parse_id_list(v)
