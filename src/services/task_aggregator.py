"""Task aggregator: a user's unified task list for one calendar day."""

import datetime as dt
import logging

from src.core import db_client
from src.core.errors import UnresolvedScopeReference
from src.core.logging import span
from src.core.schedule_evaluator import is_due_on
from src.domain.group import Group
from src.domain.schedule import Schedule
from src.domain.task import GroupTask, Task, TaskScope
from src.domain.user import User
from src.models.service_models import Reminders, UserTask
from src.services import completion_service, task_service


logger = logging.getLogger(__name__)


async def _resolve_group(group_id: str) -> Group:
    try:
        record = await db_client.get_record(collection="goal_groups", record_id=group_id)
    except db_client.RecordNotFoundError as e:
        raise UnresolvedScopeReference(group_id, f"Group not found: {group_id}") from e
    return Group(**record)


async def _candidate_tasks(user: User) -> list[tuple[Task, str | None]]:
    """Personal tasks first, then each resolvable group's tasks in membership order."""
    candidates: list[tuple[Task, str | None]] = [
        (task, None) for task in await task_service.get_tasks_for_scope(scope=TaskScope.PERSONAL, scope_id=user.id)
    ]

    for group_id in user.group_ids:
        try:
            group = await _resolve_group(group_id)
        except UnresolvedScopeReference:
            logger.warning(
                "Skipping unresolved group in task listing",
                extra={"user_id": user.id, "group_id": group_id},
            )
            continue

        group_tasks = await task_service.get_tasks_for_scope(scope=TaskScope.GROUP, scope_id=group.id)
        candidates.extend((task, group.name) for task in group_tasks)

    return candidates


def _effective(task: Task, overrides: dict[str, Schedule]) -> Schedule:
    if isinstance(task, GroupTask) and task.id in overrides:
        return overrides[task.id]
    return task.schedule


async def effective_schedule(*, user_id: str, task: Task) -> Schedule:
    """The schedule a user follows for a task: their override of a group task, else its own."""
    return _effective(task, await task_service.get_schedule_overrides(user_id=user_id))


async def tasks_for_user(user: User, date: dt.date) -> list[UserTask]:
    """Return the user's tasks due on `date`, each annotated with completion state.

    A member's schedule override replaces the group task's own schedule. Groups that
    can no longer be resolved are skipped so the rest of the listing still completes.
    Output is deterministic for identical stored data.

    Args:
        user: The viewing user
        date: Calendar date in the user's local timezone

    Returns:
        Personal tasks then group tasks, each block in creation order
    """
    with span("task_aggregator.tasks_for_user"):
        candidates = await _candidate_tasks(user)
        overrides = await task_service.get_schedule_overrides(user_id=user.id)
        completed_ids = await completion_service.get_completed_task_ids(user_id=user.id, date=date)

        result: list[UserTask] = []
        for task, group_name in candidates:
            if not is_due_on(_effective(task, overrides), date):
                continue
            result.append(UserTask(task=task, is_completed=task.id in completed_ids, group_name=group_name))

        logger.debug(
            "Aggregated tasks",
            extra={"user_id": user.id, "date": date.isoformat(), "count": len(result)},
        )
        return result


async def pending_reminders(user: User, today: dt.date) -> Reminders:
    """Today's tasks still open and yesterday's tasks that were missed."""
    with span("task_aggregator.pending_reminders"):
        todays = await tasks_for_user(user, today)
        yesterdays = await tasks_for_user(user, today - dt.timedelta(days=1))
        return Reminders(
            today=[entry for entry in todays if not entry.is_completed],
            overdue=[entry for entry in yesterdays if not entry.is_completed],
        )
