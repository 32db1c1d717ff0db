"""Persisted assistant conversation history."""

import logging

from src.core import db_client
from src.core.config import constants
from src.domain.chat import ChatMessage, ChatRole


logger = logging.getLogger(__name__)


async def add_message(*, user_id: str, role: ChatRole, content: str) -> ChatMessage:
    """Append a message to the user's conversation."""
    record = await db_client.create_record(
        collection="chat_messages",
        data={"user_id": user_id, "role": role, "content": content},
    )
    return ChatMessage(**record)


async def get_recent_messages(*, user_id: str, limit: int = constants.CHAT_HISTORY_LIMIT) -> list[ChatMessage]:
    """Return the user's last `limit` messages, oldest first."""
    records = await db_client.list_records(
        collection="chat_messages",
        filter_query=f'user_id = "{db_client.sanitize_param(user_id)}"',
        sort="-id",
        per_page=limit,
    )
    return [ChatMessage(**record) for record in reversed(records)]


async def clear_history(*, user_id: str) -> int:
    """Delete the user's conversation. Returns the number of messages removed."""
    records = await db_client.list_all_records(
        collection="chat_messages",
        filter_query=f'user_id = "{db_client.sanitize_param(user_id)}"',
    )
    for record in records:
        await db_client.delete_record(collection="chat_messages", record_id=record["id"])
    logger.info("Cleared chat history", extra={"user_id": user_id, "count": len(records)})
    return len(records)
