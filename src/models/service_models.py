"""Pydantic models for service layer return types.

These models provide type safety at service boundaries, converting database
dictionaries into typed objects with validation.
"""

from pydantic import BaseModel

from src.domain.completion import CompletionRecord
from src.domain.group import Group
from src.domain.task import PersonalTask, Task
from src.domain.user import User


class UserTask(BaseModel):
    """A task as seen by one user on one day."""

    task: Task
    is_completed: bool
    group_name: str | None = None


class CompletionResult(BaseModel):
    """Outcome of a completion attempt.

    `already_completed` is True when the (user, task, date) record existed before
    this call; no coins were credited by this call in that case.
    """

    record: CompletionRecord
    already_completed: bool
    balance: int | None = None


class LedgerBalance(BaseModel):
    """A user's coin balances."""

    user_id: str
    coins: int
    silver_coins: int


class UserLeaderboardEntry(BaseModel):
    """User entry in a coin leaderboard."""

    user_id: str
    display_name: str
    coins: int
    silver_coins: int


class GroupLeaderboardEntry(BaseModel):
    """Group entry in the leaderboard, scored by the sum of its members' coins."""

    group_id: str
    name: str
    member_count: int
    coins: int


class Leaderboard(BaseModel):
    """All leaderboard tabs."""

    top_users: list[UserLeaderboardEntry]
    top_silver_users: list[UserLeaderboardEntry]
    top_groups: list[GroupLeaderboardEntry]


class Reminders(BaseModel):
    """Notification feed: what is still open today and what was missed yesterday."""

    today: list[UserTask]
    overdue: list[UserTask]


class UserProfile(BaseModel):
    """What other users see on a profile page."""

    user: User
    groups: list[Group]
    public_tasks: list[PersonalTask]


class SearchResults(BaseModel):
    """Users and groups matching a search term."""

    users: list[User]
    groups: list[Group]
