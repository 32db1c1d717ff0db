"""Reward ledger: coin balance mutation triggered by completion events."""

import logging
from typing import Any

from src.core import db_client
from src.core.logging import span
from src.domain.completion import Currency
from src.domain.user import User
from src.models.service_models import LedgerBalance


logger = logging.getLogger(__name__)


async def credit(*, user_id: str, amount: int, currency: Currency = Currency.GOLD) -> int:
    """Add `amount` to a user's balance and return the new balance.

    Balances only grow through this flow; there is no debit.

    Args:
        user_id: User to credit
        amount: Non-negative number of coins
        currency: Which balance to credit (gold for group tasks, silver for personal)

    Returns:
        The balance after crediting

    Raises:
        ValueError: If amount is negative
        db_client.RecordNotFoundError: If the user does not exist
        db_client.DatabaseError: If the write fails
    """
    with span("reward_ledger.credit"):
        if amount < 0:
            msg = f"Credit amount must be non-negative, got {amount}"
            raise ValueError(msg)

        new_balance = await db_client.increment_field(
            collection="users",
            record_id=user_id,
            field=currency.value,
            amount=amount,
        )

        logger.info(
            "Credited user",
            extra={"user_id": user_id, "amount": amount, "currency": currency.value, "balance": new_balance},
        )
        return new_balance


async def record_and_credit(
    *,
    user_id: str,
    amount: int,
    currency: Currency,
    completion: dict[str, Any],
) -> tuple[dict[str, Any], int]:
    """Persist a completion record and credit its reward as one write.

    Either both the record and the credit land or neither does, so a failed or
    cancelled call can simply be retried.

    Returns:
        The stored completion record and the balance after crediting

    Raises:
        ValueError: If amount is negative
        db_client.ConstraintViolationError: If the completion already exists
        db_client.RecordNotFoundError: If the user does not exist
        db_client.DatabaseError: If the write fails
    """
    with span("reward_ledger.record_and_credit"):
        if amount < 0:
            msg = f"Credit amount must be non-negative, got {amount}"
            raise ValueError(msg)

        record, new_balance = await db_client.create_record_with_increment(
            collection="completion_records",
            data=completion,
            target_collection="users",
            target_id=user_id,
            field=currency.value,
            amount=amount,
        )

        logger.info(
            "Credited user for completion",
            extra={
                "user_id": user_id,
                "completion_id": record["id"],
                "amount": amount,
                "currency": currency.value,
                "balance": new_balance,
            },
        )
        return record, new_balance


async def get_balance(*, user_id: str) -> LedgerBalance:
    """Return a user's current gold and silver balances."""
    record = await db_client.get_record(collection="users", record_id=user_id)
    user = User(**record)
    return LedgerBalance(user_id=user.id, coins=user.coins, silver_coins=user.silver_coins)


async def reconcile_balance(*, user_id: str) -> LedgerBalance:
    """Recompute a user's balances from their completion records.

    Repairs a balance that drifted from the append-only history (manual edits,
    direct credits). The sums are computed and written in one statement, so a
    completion credited concurrently is never overwritten. Running it any number
    of times yields the same balances.

    Raises:
        db_client.RecordNotFoundError: If the user does not exist
        db_client.DatabaseError: If the update fails
    """
    with span("reward_ledger.reconcile_balance"):
        totals = await db_client.set_fields_to_sums(
            collection="users",
            record_id=user_id,
            source_collection="completion_records",
            foreign_key="user_id",
            amount_field="coins_awarded",
            category_field="currency",
            fields={currency.value: currency.value for currency in Currency},
        )

        logger.warning(
            "Reconciled balance from completion history",
            extra={"user_id": user_id, **totals},
        )
        return LedgerBalance(
            user_id=user_id,
            coins=totals[Currency.GOLD.value],
            silver_coins=totals[Currency.SILVER.value],
        )
