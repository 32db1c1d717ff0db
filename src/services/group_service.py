"""Group service: creation, membership and administration of goal groups."""

import logging
from typing import Any

from src.core import db_client
from src.core.logging import span
from src.core.schedule_evaluator import validate_schedule
from src.domain.group import Group
from src.domain.schedule import Schedule, parse_schedule
from src.domain.task import TaskScope
from src.domain.user import User
from src.services import task_service


logger = logging.getLogger(__name__)


def _require_admin(group: Group, requester_id: str, action: str) -> None:
    if group.admin_id != requester_id:
        msg = f"User {requester_id} is not authorized to {action} group {group.id}"
        logger.warning(msg)
        raise PermissionError(msg)


async def _add_membership(user: User, group: Group) -> None:
    if group.id not in user.group_ids:
        await db_client.update_record(
            collection="users",
            record_id=user.id,
            data={"group_ids": [*user.group_ids, group.id]},
        )
    if user.id not in group.member_ids:
        await db_client.update_record(
            collection="goal_groups",
            record_id=group.id,
            data={"member_ids": [*group.member_ids, user.id]},
        )


async def create_group(*, admin_id: str, name: str, description: str = "") -> Group:
    """Create a group; its creator becomes admin and first member.

    Raises:
        ValueError: If the name is blank
        db_client.RecordNotFoundError: If the admin user does not exist
    """
    with span("group_service.create_group"):
        name = name.strip()
        if not name:
            msg = "Group name cannot be empty"
            raise ValueError(msg)

        admin = User(**await db_client.get_record(collection="users", record_id=admin_id))

        record = await db_client.create_record(
            collection="goal_groups",
            data={"name": name, "description": description, "admin_id": admin_id, "member_ids": []},
        )
        group = Group(**record)
        await _add_membership(admin, group)

        logger.info("Created group '%s' (admin: %s)", name, admin_id)
        return await get_group(group_id=group.id)


async def get_group(*, group_id: str) -> Group:
    """Get group by ID.

    Raises:
        db_client.RecordNotFoundError: If group not found
    """
    record = await db_client.get_record(collection="goal_groups", record_id=group_id)
    return Group(**record)


async def list_groups() -> list[Group]:
    """List all groups, oldest first."""
    records = await db_client.list_all_records(
        collection="goal_groups",
        sort="+created",
    )
    return [Group(**record) for record in records]


async def join_group(
    *,
    user_id: str,
    group_id: str,
    schedule_overrides: dict[str, Schedule | dict[str, Any]] | None = None,
) -> Group:
    """Add a user to a group, optionally with their own schedules for its tasks.

    Overrides are validated before membership changes, so an invalid schedule
    leaves the user outside the group.

    Args:
        user_id: Joining user
        group_id: Group to join
        schedule_overrides: Optional map of group task ID to the member's schedule

    Returns:
        The updated group

    Raises:
        InvalidScheduleError: If an override schedule cannot be persisted
        ValueError: If an override names a task outside the group
        db_client.RecordNotFoundError: If user or group not found
    """
    with span("group_service.join_group"):
        user = User(**await db_client.get_record(collection="users", record_id=user_id))
        group = await get_group(group_id=group_id)

        if schedule_overrides:
            group_task_ids = {
                task.id for task in await task_service.get_tasks_for_scope(scope=TaskScope.GROUP, scope_id=group_id)
            }
            unknown = set(schedule_overrides) - group_task_ids
            if unknown:
                msg = f"Tasks not in group {group_id}: {', '.join(sorted(unknown))}"
                raise ValueError(msg)

        validated = {
            task_id: validate_schedule(parse_schedule(schedule))
            for task_id, schedule in (schedule_overrides or {}).items()
        }

        await _add_membership(user, group)

        for task_id, schedule in validated.items():
            await task_service.set_schedule_override(user_id=user_id, task_id=task_id, schedule=schedule)

        logger.info("User %s joined group %s", user_id, group_id)
        return await get_group(group_id=group_id)


async def leave_group(*, user_id: str, group_id: str, drop_overrides: bool = True) -> None:
    """Remove a user from a group.

    The admin cannot leave; they delete the group instead.

    Raises:
        PermissionError: If the user is the group's admin
        db_client.RecordNotFoundError: If user or group not found
    """
    with span("group_service.leave_group"):
        user = User(**await db_client.get_record(collection="users", record_id=user_id))
        group = await get_group(group_id=group_id)

        if group.admin_id == user_id:
            msg = f"Admin {user_id} cannot leave group {group_id}"
            raise PermissionError(msg)

        if group_id in user.group_ids:
            await db_client.update_record(
                collection="users",
                record_id=user_id,
                data={"group_ids": [gid for gid in user.group_ids if gid != group_id]},
            )
        if user_id in group.member_ids:
            await db_client.update_record(
                collection="goal_groups",
                record_id=group_id,
                data={"member_ids": [uid for uid in group.member_ids if uid != user_id]},
            )

        if drop_overrides:
            for task in await task_service.get_tasks_for_scope(scope=TaskScope.GROUP, scope_id=group_id):
                await task_service.remove_schedule_override(user_id=user_id, task_id=task.id)

        logger.info("User %s left group %s", user_id, group_id)


async def update_details(
    *,
    group_id: str,
    requester_id: str,
    name: str | None = None,
    description: str | None = None,
) -> Group:
    """Rename a group or change its description (admin-only).

    Raises:
        PermissionError: If requester is not the admin
        ValueError: If nothing is changed or the new name is blank
    """
    with span("group_service.update_details"):
        group = await get_group(group_id=group_id)
        _require_admin(group, requester_id, "update")

        data: dict[str, str] = {}
        if name is not None:
            if not name.strip():
                msg = "Group name cannot be empty"
                raise ValueError(msg)
            data["name"] = name.strip()
        if description is not None:
            data["description"] = description
        if not data:
            msg = "Nothing to update"
            raise ValueError(msg)

        record = await db_client.update_record(collection="goal_groups", record_id=group_id, data=data)
        return Group(**record)


async def delete_group(*, group_id: str, requester_id: str) -> None:
    """Delete a group and its tasks (admin-only).

    Members' `group_ids` are not rewritten; task listings skip the dangling
    reference. Completion history is kept.

    Raises:
        PermissionError: If requester is not the admin
        db_client.RecordNotFoundError: If group not found
    """
    with span("group_service.delete_group"):
        group = await get_group(group_id=group_id)
        _require_admin(group, requester_id, "delete")

        tasks = await task_service.get_tasks_for_scope(scope=TaskScope.GROUP, scope_id=group_id)
        for task in tasks:
            for member_id in group.member_ids:
                await task_service.remove_schedule_override(user_id=member_id, task_id=task.id)
            await db_client.delete_record(collection="tasks", record_id=task.id)

        await db_client.delete_record(collection="goal_groups", record_id=group_id)
        logger.info("Deleted group %s with %d tasks", group_id, len(tasks))
