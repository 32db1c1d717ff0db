"""User service for profile management."""

import logging

from src.core import db_client
from src.core.logging import span
from src.domain.user import User, UserCreate, UserProfileUpdate, normalize_display_name


logger = logging.getLogger(__name__)


async def create_user(*, payload: UserCreate) -> User:
    """Create a user with empty balances and no group memberships.

    Args:
        payload: Profile data for the new user

    Returns:
        Created user

    Raises:
        ValueError: If the display name is unusable
        db_client.DatabaseError: If database operation fails
    """
    with span("user_service.create_user"):
        # Validate the name before touching the database
        name = normalize_display_name(payload.display_name)

        record = await db_client.create_record(
            collection="users",
            data={
                "display_name": name,
                "email": payload.email,
                "goals": payload.goals,
                "habits": payload.habits,
                "occupation": payload.occupation,
            },
        )
        logger.info("Created user: %s", name)
        return User(**record)


async def get_user(*, user_id: str) -> User:
    """Get user by ID.

    Raises:
        db_client.RecordNotFoundError: If user not found
        db_client.DatabaseError: If database operation fails
    """
    record = await db_client.get_record(collection="users", record_id=user_id)
    return User(**record)


async def update_profile(*, user_id: str, update: UserProfileUpdate) -> User:
    """Update a user's profile fields; unset fields are left unchanged.

    Balances and memberships are not editable here.

    Raises:
        ValueError: If nothing is set or the new display name is unusable
        db_client.RecordNotFoundError: If user not found
    """
    with span("user_service.update_profile"):
        data = update.model_dump(exclude_none=True)
        if not data:
            msg = "Nothing to update"
            raise ValueError(msg)
        if "display_name" in data:
            data["display_name"] = normalize_display_name(data["display_name"])

        record = await db_client.update_record(collection="users", record_id=user_id, data=data)
        logger.info("Updated profile of user %s (%s)", user_id, ", ".join(data))
        return User(**record)
