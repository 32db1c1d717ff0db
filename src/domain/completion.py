"""Completion record domain models."""

import datetime as dt
from enum import StrEnum

from pydantic import BaseModel, Field

from src.domain.task import TaskScope


class Currency(StrEnum):
    """Reward currency; the value is the user balance column it credits."""

    GOLD = "coins"
    SILVER = "silver_coins"


class CompletionRecord(BaseModel):
    """A user's fulfillment of a task on one calendar date. Append-only."""

    id: str = Field(..., description="Unique record ID from database")
    user_id: str = Field(..., description="User who completed the task")
    task_id: str = Field(..., description="Completed task")
    task_scope: TaskScope = Field(..., description="Scope of the task at completion time")
    date: dt.date = Field(..., description="Calendar date the completion counts for (client-local)")
    completed_at: str = Field(..., description="When the completion was recorded (ISO format)")
    coins_awarded: int = Field(..., ge=0, description="Coins credited for this completion")
    currency: Currency = Field(..., description="Balance the coins were credited to")
