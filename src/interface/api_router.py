"""HTTP API router.

The acting user is always an explicit path parameter; authentication is handled
in front of this service.
"""

import datetime as dt
import logging
from typing import Any, Literal

from fastapi import APIRouter, FastAPI, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from src.agents import chat_assistant, progress_analyst, task_creation_chat
from src.agents.base import Deps
from src.core import db_client
from src.core.config import constants, settings
from src.core.errors import AIServiceError, InvalidScheduleError, UnresolvedScopeReference
from src.core.schedule_evaluator import describe_schedule, is_due_on
from src.domain.chat import ChatMessage
from src.domain.completion import CompletionRecord
from src.domain.group import Group
from src.domain.schedule import Schedule
from src.domain.task import GroupTask, PersonalTask, Task, TaskScope, TaskVisibility
from src.domain.user import User, UserCreate, UserProfileUpdate
from src.models.service_models import (
    CompletionResult,
    Leaderboard,
    LedgerBalance,
    Reminders,
    SearchResults,
    UserProfile,
    UserTask,
)
from src.services import (
    chat_history_service,
    completion_service,
    group_service,
    leaderboard_service,
    profile_service,
    reward_ledger,
    task_aggregator,
    task_service,
    user_service,
)


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["api"])

Locale = Literal["uz", "en"]


class PersonalTaskCreate(BaseModel):
    title: str = Field(..., min_length=1)
    schedule: Schedule
    description: str = ""
    visibility: TaskVisibility = TaskVisibility.PRIVATE


class GroupTaskCreate(BaseModel):
    title: str = Field(..., min_length=1)
    schedule: Schedule
    description: str = ""
    coins: int = Field(default=constants.DEFAULT_GROUP_TASK_COINS, ge=0)


class TaskUpdate(BaseModel):
    title: str | None = None
    description: str | None = None
    schedule: Schedule | None = None
    coins: int | None = Field(default=None, ge=0)
    visibility: TaskVisibility | None = None


class CompleteTaskRequest(BaseModel):
    date: dt.date = Field(default_factory=dt.date.today, description="Client-local calendar date")


class ScheduleOverrideRequest(BaseModel):
    schedule: Schedule


class GroupCreate(BaseModel):
    admin_id: str
    name: str
    description: str = ""


class GroupUpdate(BaseModel):
    requester_id: str
    name: str | None = None
    description: str | None = None


class JoinGroupRequest(BaseModel):
    user_id: str
    schedule_overrides: dict[str, Schedule] = Field(default_factory=dict)


class ChatRequest(BaseModel):
    message: str = Field(..., min_length=1)


class TaskChatRequest(BaseModel):
    message: str = Field(..., min_length=1)
    history: list[task_creation_chat.ChatTurn] = Field(default_factory=list)


class AnalysisResponse(BaseModel):
    analysis: str


class ScheduleText(BaseModel):
    task_id: str
    text: str


async def _deps_for(user_id: str, locale: str | None) -> tuple[User, Deps]:
    user = await user_service.get_user(user_id=user_id)
    deps = Deps(
        user_id=user.id,
        user_name=user.display_name,
        current_time=dt.datetime.now(),
        locale=locale or settings.default_locale,
    )
    return user, deps


def _ensure_can_complete(user: User, task: Task) -> None:
    match task:
        case PersonalTask() if task.owner_id != user.id:
            msg = f"Task {task.id} belongs to another user"
            raise PermissionError(msg)
        case GroupTask() if task.group_id not in user.group_ids:
            msg = f"User {user.id} is not a member of group {task.group_id}"
            raise PermissionError(msg)


# Users


@router.post("/users", status_code=status.HTTP_201_CREATED)
async def create_user(payload: UserCreate) -> User:
    return await user_service.create_user(payload=payload)


@router.get("/users/{user_id}")
async def get_user(user_id: str) -> User:
    return await user_service.get_user(user_id=user_id)


@router.patch("/users/{user_id}")
async def update_user(user_id: str, update: UserProfileUpdate) -> User:
    return await user_service.update_profile(user_id=user_id, update=update)


@router.get("/users/{user_id}/profile")
async def get_profile(user_id: str) -> UserProfile:
    return await profile_service.get_profile(user_id=user_id)


@router.get("/users/{user_id}/goal-mates")
async def goal_mates(user_id: str) -> list[User]:
    return await profile_service.goal_mates(user_id=user_id)


@router.get("/users/{user_id}/balance")
async def get_balance(user_id: str) -> LedgerBalance:
    return await reward_ledger.get_balance(user_id=user_id)


@router.post("/users/{user_id}/balance/reconcile")
async def reconcile_balance(user_id: str) -> LedgerBalance:
    return await reward_ledger.reconcile_balance(user_id=user_id)


@router.get("/users/{user_id}/today")
async def tasks_for_day(user_id: str, date: dt.date | None = None) -> list[UserTask]:
    """Tasks due on `date` (client-local, defaults to the server's today)."""
    user = await user_service.get_user(user_id=user_id)
    return await task_aggregator.tasks_for_user(user, date or dt.date.today())


@router.get("/users/{user_id}/reminders")
async def reminders(user_id: str, date: dt.date | None = None) -> Reminders:
    user = await user_service.get_user(user_id=user_id)
    return await task_aggregator.pending_reminders(user, date or dt.date.today())


@router.get("/users/{user_id}/history")
async def completion_history(user_id: str, limit: int = 20) -> list[CompletionRecord]:
    await user_service.get_user(user_id=user_id)
    return await completion_service.get_history(user_id=user_id, limit=min(max(limit, 1), 100))


# Tasks


@router.get("/users/{user_id}/tasks")
async def list_personal_tasks(user_id: str) -> list[Task]:
    return await task_service.get_tasks_for_scope(scope=TaskScope.PERSONAL, scope_id=user_id)


@router.post("/users/{user_id}/tasks", status_code=status.HTTP_201_CREATED)
async def create_personal_task(user_id: str, payload: PersonalTaskCreate) -> Task:
    return await task_service.create_personal_task(
        owner_id=user_id,
        title=payload.title,
        schedule=payload.schedule,
        description=payload.description,
        visibility=payload.visibility,
    )


@router.delete("/users/{user_id}/tasks/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_personal_task(user_id: str, task_id: str) -> None:
    await task_service.delete_personal_task(task_id=task_id, owner_id=user_id)


@router.post("/users/{user_id}/tasks/{task_id}/complete")
async def complete_task(user_id: str, task_id: str, payload: CompleteTaskRequest) -> CompletionResult:
    user = await user_service.get_user(user_id=user_id)
    task = await task_service.get_task(task_id=task_id)
    _ensure_can_complete(user, task)
    schedule = await task_aggregator.effective_schedule(user_id=user.id, task=task)
    if not is_due_on(schedule, payload.date):
        msg = f"Task {task.id} is not due on {payload.date.isoformat()}"
        raise ValueError(msg)
    return await completion_service.complete_task(user_id=user.id, task=task, date=payload.date)


@router.put("/users/{user_id}/tasks/{task_id}/schedule")
async def set_schedule_override(user_id: str, task_id: str, payload: ScheduleOverrideRequest) -> Schedule:
    return await task_service.set_schedule_override(user_id=user_id, task_id=task_id, schedule=payload.schedule)


@router.delete("/users/{user_id}/tasks/{task_id}/schedule", status_code=status.HTTP_204_NO_CONTENT)
async def remove_schedule_override(user_id: str, task_id: str) -> None:
    await task_service.remove_schedule_override(user_id=user_id, task_id=task_id)


@router.get("/tasks/{task_id}")
async def get_task(task_id: str) -> Task:
    return await task_service.get_task(task_id=task_id)


@router.get("/tasks/{task_id}/schedule-text")
async def get_schedule_text(task_id: str, locale: Locale | None = None) -> ScheduleText:
    task = await task_service.get_task(task_id=task_id)
    text = describe_schedule(task.schedule, locale=locale or settings.default_locale)
    return ScheduleText(task_id=task.id, text=text)


@router.patch("/tasks/{task_id}")
async def update_task(task_id: str, payload: TaskUpdate) -> Task:
    return await task_service.update_task(task_id=task_id, **payload.model_dump(exclude_none=True))


# Groups


@router.post("/groups", status_code=status.HTTP_201_CREATED)
async def create_group(payload: GroupCreate) -> Group:
    return await group_service.create_group(
        admin_id=payload.admin_id,
        name=payload.name,
        description=payload.description,
    )


@router.get("/groups")
async def list_groups() -> list[Group]:
    return await group_service.list_groups()


@router.get("/groups/{group_id}")
async def get_group(group_id: str) -> Group:
    return await group_service.get_group(group_id=group_id)


@router.patch("/groups/{group_id}")
async def update_group(group_id: str, payload: GroupUpdate) -> Group:
    return await group_service.update_details(
        group_id=group_id,
        requester_id=payload.requester_id,
        name=payload.name,
        description=payload.description,
    )


@router.delete("/groups/{group_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_group(group_id: str, requester_id: str) -> None:
    await group_service.delete_group(group_id=group_id, requester_id=requester_id)


@router.post("/groups/{group_id}/members")
async def join_group(group_id: str, payload: JoinGroupRequest) -> Group:
    return await group_service.join_group(
        user_id=payload.user_id,
        group_id=group_id,
        schedule_overrides=dict(payload.schedule_overrides),
    )


@router.delete("/groups/{group_id}/members/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def leave_group(group_id: str, user_id: str) -> None:
    await group_service.leave_group(user_id=user_id, group_id=group_id)


@router.get("/groups/{group_id}/tasks")
async def list_group_tasks(group_id: str) -> list[Task]:
    await group_service.get_group(group_id=group_id)
    return await task_service.get_tasks_for_scope(scope=TaskScope.GROUP, scope_id=group_id)


@router.post("/groups/{group_id}/tasks", status_code=status.HTTP_201_CREATED)
async def create_group_task(group_id: str, payload: GroupTaskCreate) -> Task:
    return await task_service.create_group_task(
        group_id=group_id,
        title=payload.title,
        schedule=payload.schedule,
        description=payload.description,
        coins=payload.coins,
    )


@router.get("/leaderboard")
async def leaderboard() -> Leaderboard:
    return await leaderboard_service.get_leaderboard()


@router.get("/search")
async def search(q: str = "") -> SearchResults:
    return await profile_service.search(term=q)


# AI


@router.post("/users/{user_id}/ai/analysis")
async def analyze_progress(user_id: str, locale: Locale | None = None) -> AnalysisResponse:
    user, deps = await _deps_for(user_id, locale)
    return AnalysisResponse(analysis=await progress_analyst.analyze_progress(user=user, deps=deps))


@router.post("/users/{user_id}/ai/task-chat")
async def task_chat(
    user_id: str,
    payload: TaskChatRequest,
    locale: Locale | None = None,
) -> task_creation_chat.CreationReply:
    _, deps = await _deps_for(user_id, locale)
    return await task_creation_chat.send_message(user_message=payload.message, deps=deps, history=payload.history)


@router.post("/users/{user_id}/ai/chat")
async def assistant_chat(user_id: str, payload: ChatRequest, locale: Locale | None = None) -> chat_assistant.ChatReply:
    _, deps = await _deps_for(user_id, locale)
    return await chat_assistant.chat(user_message=payload.message, deps=deps)


@router.get("/users/{user_id}/ai/chat")
async def assistant_history(user_id: str) -> list[ChatMessage]:
    return await chat_history_service.get_recent_messages(user_id=user_id)


@router.delete("/users/{user_id}/ai/chat", status_code=status.HTTP_204_NO_CONTENT)
async def clear_assistant_history(user_id: str) -> None:
    await chat_history_service.clear_history(user_id=user_id)


# Error mapping


def _error_response(status_code: int, detail: str, **extra: Any) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"detail": detail, **extra})


async def _not_found(_request: Request, exc: Exception) -> JSONResponse:
    return _error_response(status.HTTP_404_NOT_FOUND, str(exc).strip("'\""))


async def _invalid(_request: Request, exc: Exception) -> JSONResponse:
    return _error_response(422, str(exc))


async def _forbidden(_request: Request, exc: Exception) -> JSONResponse:
    return _error_response(status.HTTP_403_FORBIDDEN, str(exc))


async def _ai_unavailable(_request: Request, exc: AIServiceError) -> JSONResponse:
    return _error_response(status.HTTP_503_SERVICE_UNAVAILABLE, exc.user_message, category=exc.category.value)


async def _database_error(_request: Request, exc: db_client.DatabaseError) -> JSONResponse:
    logger.error("Request failed on database error", extra={"error": str(exc), "recoverable": exc.recoverable})
    if exc.recoverable:
        return _error_response(status.HTTP_503_SERVICE_UNAVAILABLE, "Temporary storage failure, please retry")
    return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Storage failure")


def register_exception_handlers(app: FastAPI) -> None:
    """Map domain and persistence errors to HTTP responses."""
    app.add_exception_handler(db_client.RecordNotFoundError, _not_found)
    app.add_exception_handler(UnresolvedScopeReference, _not_found)
    app.add_exception_handler(InvalidScheduleError, _invalid)
    app.add_exception_handler(ValueError, _invalid)
    app.add_exception_handler(PermissionError, _forbidden)
    app.add_exception_handler(AIServiceError, _ai_unavailable)
    app.add_exception_handler(db_client.DatabaseError, _database_error)
