"""Task service: CRUD for group and personal tasks and per-member schedule overrides."""

import logging
from typing import Any

from src.core import db_client
from src.core.config import constants
from src.core.errors import UnresolvedScopeReference
from src.core.logging import span
from src.core.schedule_evaluator import validate_schedule
from src.domain.schedule import Schedule, dump_schedule, parse_schedule
from src.domain.task import PersonalTask, Task, TaskScope, TaskVisibility, task_from_record


logger = logging.getLogger(__name__)


async def create_group_task(
    *,
    group_id: str,
    title: str,
    schedule: Schedule | dict[str, Any],
    description: str = "",
    coins: int = constants.DEFAULT_GROUP_TASK_COINS,
) -> Task:
    """Create a task shared by every member of a group.

    Args:
        group_id: Owning group ID
        title: Task title
        schedule: When the task is due
        description: Optional description
        coins: Gold coins paid per completion

    Returns:
        Created task

    Raises:
        InvalidScheduleError: If the schedule cannot be persisted (nothing is written)
        UnresolvedScopeReference: If the group does not exist
        db_client.DatabaseError: If database operation fails
    """
    with span("task_service.create_group_task"):
        parsed = validate_schedule(parse_schedule(schedule))

        try:
            await db_client.get_record(collection="goal_groups", record_id=group_id)
        except db_client.RecordNotFoundError as e:
            raise UnresolvedScopeReference(group_id, f"Group not found: {group_id}") from e

        record = await db_client.create_record(
            collection="tasks",
            data={
                "scope": TaskScope.GROUP,
                "group_id": group_id,
                "title": title,
                "description": description,
                "schedule": dump_schedule(parsed),
                "coins": coins,
            },
        )

        logger.info("Created group task '%s' in group %s", title, group_id)
        return task_from_record(record)


async def create_personal_task(
    *,
    owner_id: str,
    title: str,
    schedule: Schedule | dict[str, Any],
    description: str = "",
    visibility: TaskVisibility = TaskVisibility.PRIVATE,
) -> Task:
    """Create a task owned by a single user.

    Personal tasks always pay PERSONAL_TASK_COINS silver coins.

    Raises:
        InvalidScheduleError: If the schedule cannot be persisted (nothing is written)
        UnresolvedScopeReference: If the owner does not exist
        db_client.DatabaseError: If database operation fails
    """
    with span("task_service.create_personal_task"):
        parsed = validate_schedule(parse_schedule(schedule))

        try:
            await db_client.get_record(collection="users", record_id=owner_id)
        except db_client.RecordNotFoundError as e:
            raise UnresolvedScopeReference(owner_id, f"User not found: {owner_id}") from e

        record = await db_client.create_record(
            collection="tasks",
            data={
                "scope": TaskScope.PERSONAL,
                "owner_id": owner_id,
                "title": title,
                "description": description,
                "schedule": dump_schedule(parsed),
                "coins": constants.PERSONAL_TASK_COINS,
                "visibility": visibility,
            },
        )

        logger.info("Created personal task '%s' for %s", title, owner_id)
        return task_from_record(record)


async def get_task(*, task_id: str) -> Task:
    """Get a task by ID.

    Raises:
        db_client.RecordNotFoundError: If task not found
    """
    record = await db_client.get_record(collection="tasks", record_id=task_id)
    return task_from_record(record)


async def get_tasks_for_scope(*, scope: TaskScope, scope_id: str) -> list[Task]:
    """List the tasks of a group or of a user's personal scope, in creation order."""
    with span("task_service.get_tasks_for_scope"):
        column = "group_id" if scope == TaskScope.GROUP else "owner_id"
        records = await db_client.list_all_records(
            collection="tasks",
            filter_query=f'scope = "{scope.value}" && {column} = "{db_client.sanitize_param(scope_id)}"',
            sort="+created",
        )
        return [task_from_record(record) for record in records]


async def update_task(
    *,
    task_id: str,
    title: str | None = None,
    description: str | None = None,
    schedule: Schedule | dict[str, Any] | None = None,
    coins: int | None = None,
    visibility: TaskVisibility | None = None,
) -> Task:
    """Update a task's editable fields; unset arguments are left unchanged.

    Raises:
        InvalidScheduleError: If the new schedule cannot be persisted
        ValueError: If coins are changed on a personal task, or nothing is changed
        db_client.RecordNotFoundError: If task not found
    """
    with span("task_service.update_task"):
        task = await get_task(task_id=task_id)

        data: dict[str, Any] = {}
        if title is not None:
            data["title"] = title
        if description is not None:
            data["description"] = description
        if schedule is not None:
            data["schedule"] = dump_schedule(validate_schedule(parse_schedule(schedule)))
        if coins is not None:
            if isinstance(task, PersonalTask):
                msg = "Personal task rewards are fixed"
                raise ValueError(msg)
            data["coins"] = coins
        if visibility is not None:
            if not isinstance(task, PersonalTask):
                msg = "Only personal tasks have a visibility"
                raise ValueError(msg)
            data["visibility"] = visibility

        if not data:
            msg = "Nothing to update"
            raise ValueError(msg)

        record = await db_client.update_record(collection="tasks", record_id=task_id, data=data)
        logger.info("Updated task %s (%s)", task_id, ", ".join(data))
        return task_from_record(record)


async def delete_personal_task(*, task_id: str, owner_id: str) -> None:
    """Delete a personal task. Completion history is kept.

    Raises:
        PermissionError: If the task is not a personal task of `owner_id`
        db_client.RecordNotFoundError: If task not found
    """
    with span("task_service.delete_personal_task"):
        task = await get_task(task_id=task_id)

        if not isinstance(task, PersonalTask) or task.owner_id != owner_id:
            msg = f"Task {task_id} is not a personal task of user {owner_id}"
            logger.warning(msg)
            raise PermissionError(msg)

        await db_client.delete_record(collection="tasks", record_id=task_id)

        # Drop any overrides pointing at the task
        overrides = await db_client.list_all_records(
            collection="task_schedules",
            filter_query=f'task_id = "{db_client.sanitize_param(task_id)}"',
        )
        for override in overrides:
            await db_client.delete_record(collection="task_schedules", record_id=override["id"])

        logger.info("Deleted personal task %s of %s", task_id, owner_id)


async def get_schedule_overrides(*, user_id: str) -> dict[str, Schedule]:
    """Return the user's schedule overrides keyed by task ID."""
    records = await db_client.list_all_records(
        collection="task_schedules",
        filter_query=f'user_id = "{db_client.sanitize_param(user_id)}"',
    )
    return {record["task_id"]: parse_schedule(record["schedule"]) for record in records}


async def set_schedule_override(
    *,
    user_id: str,
    task_id: str,
    schedule: Schedule | dict[str, Any],
) -> Schedule:
    """Give a member their own schedule for a group task.

    Raises:
        InvalidScheduleError: If the schedule cannot be persisted
        ValueError: If the task is not a group task
        db_client.RecordNotFoundError: If task not found
    """
    with span("task_service.set_schedule_override"):
        parsed = validate_schedule(parse_schedule(schedule))

        task = await get_task(task_id=task_id)
        if task.scope != TaskScope.GROUP:
            msg = "Schedule overrides only apply to group tasks"
            raise ValueError(msg)

        existing = await db_client.get_first_record(
            collection="task_schedules",
            filter_query=(
                f'user_id = "{db_client.sanitize_param(user_id)}" && task_id = "{db_client.sanitize_param(task_id)}"'
            ),
        )
        if existing:
            await db_client.update_record(
                collection="task_schedules",
                record_id=existing["id"],
                data={"schedule": dump_schedule(parsed)},
            )
        else:
            await db_client.create_record(
                collection="task_schedules",
                data={"user_id": user_id, "task_id": task_id, "schedule": dump_schedule(parsed)},
            )

        logger.info("Set schedule override for user %s on task %s", user_id, task_id)
        return parsed


async def remove_schedule_override(*, user_id: str, task_id: str) -> bool:
    """Remove a member's schedule override. Returns False if there was none."""
    with span("task_service.remove_schedule_override"):
        existing = await db_client.get_first_record(
            collection="task_schedules",
            filter_query=(
                f'user_id = "{db_client.sanitize_param(user_id)}" && task_id = "{db_client.sanitize_param(task_id)}"'
            ),
        )
        if not existing:
            return False

        await db_client.delete_record(collection="task_schedules", record_id=existing["id"])
        logger.info("Removed schedule override for user %s on task %s", user_id, task_id)
        return True
