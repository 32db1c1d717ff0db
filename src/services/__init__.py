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


__all__ = [
    "chat_history_service",
    "completion_service",
    "group_service",
    "leaderboard_service",
    "profile_service",
    "reward_ledger",
    "task_aggregator",
    "task_service",
    "user_service",
]
