"""Completion tracker: at most one completion, and one reward, per user per task per day."""

import datetime as dt
import logging
from datetime import UTC, datetime
from typing import assert_never

from src.core import db_client
from src.core.logging import log_with_user_context, span
from src.domain.completion import CompletionRecord, Currency
from src.domain.task import GroupTask, PersonalTask, Task
from src.models.service_models import CompletionResult
from src.services import reward_ledger


logger = logging.getLogger(__name__)


def _reward_for(task: Task) -> tuple[int, Currency]:
    match task:
        case GroupTask():
            return task.coins, Currency.GOLD
        case PersonalTask():
            return task.coins, Currency.SILVER
        case _:
            assert_never(task)


def _key_filter(user_id: str, task_id: str, date: dt.date) -> str:
    return (
        f'user_id = "{db_client.sanitize_param(user_id)}" '
        f'&& task_id = "{db_client.sanitize_param(task_id)}" '
        f'&& date = "{date.isoformat()}"'
    )


async def get_completion_record(*, user_id: str, task_id: str, date: dt.date) -> CompletionRecord | None:
    """Return the completion record for (user, task, date), or None."""
    record = await db_client.get_first_record(
        collection="completion_records",
        filter_query=_key_filter(user_id, task_id, date),
    )
    return CompletionRecord(**record) if record else None


async def is_completed(*, user_id: str, task_id: str, date: dt.date) -> bool:
    """Return True if the user completed the task on the given date."""
    return await get_completion_record(user_id=user_id, task_id=task_id, date=date) is not None


async def get_completed_task_ids(*, user_id: str, date: dt.date) -> set[str]:
    """Return the IDs of all tasks the user completed on the given date."""
    records = await db_client.list_all_records(
        collection="completion_records",
        filter_query=f'user_id = "{db_client.sanitize_param(user_id)}" && date = "{date.isoformat()}"',
    )
    return {record["task_id"] for record in records}


async def get_history(*, user_id: str, limit: int = 20) -> list[CompletionRecord]:
    """Return the user's most recent completions, newest first."""
    records = await db_client.list_records(
        collection="completion_records",
        filter_query=f'user_id = "{db_client.sanitize_param(user_id)}"',
        sort="-completed_at,-id",
        per_page=limit,
    )
    return [CompletionRecord(**record) for record in records]


async def complete_task(*, user_id: str, task: Task, date: dt.date) -> CompletionResult:
    """Mark a task complete for a user on a calendar date and credit the reward once.

    The completion record and the credit are written together, so a failed or
    cancelled call leaves neither behind and can be retried. Calling this again for
    the same (user, task, date) returns the existing record with
    `already_completed=True` and credits nothing. Concurrent callers are serialized
    by the unique key on completion records: the loser of the race gets the
    winner's record back.

    Args:
        user_id: User completing the task
        task: Task being completed
        date: Calendar date in the user's local timezone

    Returns:
        CompletionResult with the record and, for a fresh completion, the new balance

    Raises:
        db_client.RecordNotFoundError: If the user does not exist
        db_client.DatabaseError: If the write fails (nothing was recorded or credited)
    """
    with span("completion_service.complete_task"):
        existing = await get_completion_record(user_id=user_id, task_id=task.id, date=date)
        if existing:
            log_with_user_context(logger, "info", "Task already completed", user_id=user_id, task_id=task.id)
            return CompletionResult(record=existing, already_completed=True)

        coins, currency = _reward_for(task)
        try:
            record, balance = await reward_ledger.record_and_credit(
                user_id=user_id,
                amount=coins,
                currency=currency,
                completion={
                    "user_id": user_id,
                    "task_id": task.id,
                    "task_scope": task.scope,
                    "date": date,
                    "completed_at": datetime.now(UTC).isoformat(),
                    "coins_awarded": coins,
                    "currency": currency,
                },
            )
        except db_client.ConstraintViolationError:
            # Lost the race; the winner credited the reward
            winner = await get_completion_record(user_id=user_id, task_id=task.id, date=date)
            if winner is None:
                raise
            log_with_user_context(logger, "info", "Concurrent completion resolved", user_id=user_id, task_id=task.id)
            return CompletionResult(record=winner, already_completed=True)

        log_with_user_context(
            logger,
            "info",
            "Task completed",
            user_id=user_id,
            task_id=task.id,
            coins=coins,
            currency=currency.value,
        )
        return CompletionResult(record=CompletionRecord(**record), already_completed=False, balance=balance)
