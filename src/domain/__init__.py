"""Domain models and DTOs."""

from src.domain.chat import ChatMessage
from src.domain.completion import CompletionRecord, Currency
from src.domain.group import Group
from src.domain.schedule import (
    DateRangeSchedule,
    OneTimeSchedule,
    RecurringSchedule,
    Schedule,
    Weekday,
)
from src.domain.task import GroupTask, PersonalTask, Task, TaskScope, TaskVisibility
from src.domain.user import User, UserCreate, UserProfileUpdate


__all__ = [
    "ChatMessage",
    "CompletionRecord",
    "Currency",
    "DateRangeSchedule",
    "Group",
    "GroupTask",
    "OneTimeSchedule",
    "PersonalTask",
    "RecurringSchedule",
    "Schedule",
    "Task",
    "TaskScope",
    "TaskVisibility",
    "User",
    "UserCreate",
    "UserProfileUpdate",
    "Weekday",
]
