"""Leaderboard service: top users by coin balances and top groups by member coins."""

import logging

from src.core import db_client
from src.core.config import constants
from src.core.logging import span
from src.domain.group import Group
from src.domain.user import User
from src.models.service_models import GroupLeaderboardEntry, Leaderboard, UserLeaderboardEntry


logger = logging.getLogger(__name__)


def _user_entry(user: User) -> UserLeaderboardEntry:
    return UserLeaderboardEntry(
        user_id=user.id,
        display_name=user.display_name,
        coins=user.coins,
        silver_coins=user.silver_coins,
    )


async def top_users(*, field: str = "coins", limit: int = constants.LEADERBOARD_LIMIT) -> list[UserLeaderboardEntry]:
    """Top users by `coins` or `silver_coins`, highest first."""
    if field not in {"coins", "silver_coins"}:
        msg = f"Unsupported leaderboard field: {field}"
        raise ValueError(msg)

    records = await db_client.list_records(collection="users", sort=f"-{field}", per_page=limit)
    return [_user_entry(User(**record)) for record in records]


async def top_groups(*, limit: int = constants.LEADERBOARD_LIMIT) -> list[GroupLeaderboardEntry]:
    """Top groups by the sum of their current members' gold coins.

    Members that no longer exist count as zero.
    """
    with span("leaderboard_service.top_groups"):
        groups = [Group(**record) for record in await db_client.list_all_records(collection="goal_groups")]
        coins_by_user = {
            record["id"]: int(record["coins"])
            for record in await db_client.list_all_records(collection="users")
        }

        entries = [
            GroupLeaderboardEntry(
                group_id=group.id,
                name=group.name,
                member_count=len(group.member_ids),
                coins=sum(coins_by_user.get(member_id, 0) for member_id in group.member_ids),
            )
            for group in groups
        ]
        # Stable: ties keep creation order
        entries.sort(key=lambda entry: entry.coins, reverse=True)
        return entries[:limit]


async def get_leaderboard(*, limit: int = constants.LEADERBOARD_LIMIT) -> Leaderboard:
    """All leaderboard tabs."""
    with span("leaderboard_service.get_leaderboard"):
        leaderboard = Leaderboard(
            top_users=await top_users(field="coins", limit=limit),
            top_silver_users=await top_users(field="silver_coins", limit=limit),
            top_groups=await top_groups(limit=limit),
        )
        logger.debug("Built leaderboard", extra={"groups": len(leaderboard.top_groups)})
        return leaderboard
