"""Chat history domain models."""

from typing import Literal

from pydantic import BaseModel


ChatRole = Literal["user", "model"]


class ChatMessage(BaseModel):
    """A persisted message in a user's assistant conversation."""

    id: str
    user_id: str
    role: ChatRole
    content: str
    created: str
