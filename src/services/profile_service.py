"""Profile service: public profiles, goal-mates and user/group search."""

import logging

from src.core import db_client
from src.core.config import constants
from src.core.logging import span
from src.domain.group import Group
from src.domain.task import PersonalTask, TaskScope, TaskVisibility, task_from_record
from src.domain.user import User
from src.models.service_models import SearchResults, UserProfile


logger = logging.getLogger(__name__)


async def _existing_groups(group_ids: list[str]) -> list[Group]:
    groups = []
    for group_id in group_ids:
        try:
            groups.append(Group(**await db_client.get_record(collection="goal_groups", record_id=group_id)))
        except db_client.RecordNotFoundError:
            logger.debug("Skipping deleted group", extra={"group_id": group_id})
    return groups


async def get_public_tasks(*, user_id: str) -> list[PersonalTask]:
    """The user's personal tasks marked public, newest first."""
    records = await db_client.list_all_records(
        collection="tasks",
        filter_query=(
            f'scope = "{TaskScope.PERSONAL.value}" '
            f'&& owner_id = "{db_client.sanitize_param(user_id)}" '
            f'&& visibility = "{TaskVisibility.PUBLIC.value}"'
        ),
        sort="-created,-id",
    )
    return [task for task in map(task_from_record, records) if isinstance(task, PersonalTask)]


async def get_profile(*, user_id: str) -> UserProfile:
    """Profile as shown to other users: the user, their groups and public tasks.

    Raises:
        db_client.RecordNotFoundError: If the user does not exist
    """
    with span("profile_service.get_profile"):
        user = User(**await db_client.get_record(collection="users", record_id=user_id))
        return UserProfile(
            user=user,
            groups=await _existing_groups(user.group_ids),
            public_tasks=await get_public_tasks(user_id=user.id),
        )


async def goal_mates(*, user_id: str) -> list[User]:
    """Members sharing at least one group with the user, in membership order.

    Raises:
        db_client.RecordNotFoundError: If the user does not exist
    """
    with span("profile_service.goal_mates"):
        user = User(**await db_client.get_record(collection="users", record_id=user_id))

        mate_ids: list[str] = []
        for group in await _existing_groups(user.group_ids):
            mate_ids.extend(mid for mid in group.member_ids if mid != user.id and mid not in mate_ids)

        mates = []
        for mate_id in mate_ids:
            try:
                mates.append(User(**await db_client.get_record(collection="users", record_id=mate_id)))
            except db_client.RecordNotFoundError:
                logger.debug("Skipping deleted member", extra={"user_id": mate_id})
        return mates


async def search(*, term: str, limit: int = constants.SEARCH_RESULT_LIMIT) -> SearchResults:
    """Find users by name or email and groups by name, case-insensitively.

    A blank term matches nothing.
    """
    needle = term.strip().casefold()
    if not needle:
        return SearchResults(users=[], groups=[])

    with span("profile_service.search"):
        user_records = await db_client.list_all_records(collection="users", sort="+created")
        group_records = await db_client.list_all_records(collection="goal_groups", sort="+created")

        users = [
            user
            for user in map(lambda r: User(**r), user_records)
            if needle in user.display_name.casefold() or needle in (user.email or "").casefold()
        ]
        groups = [group for group in map(lambda r: Group(**r), group_records) if needle in group.name.casefold()]

        logger.debug("Search", extra={"term": term, "users": len(users), "groups": len(groups)})
        return SearchResults(users=users[:limit], groups=groups[:limit])
