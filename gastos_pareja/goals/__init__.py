"""Goal sub-ledger transfers and reconciliation."""

from gastos_pareja.goals.transfers import (
    DEFAULT_SAVING_CATEGORY,
    goal_balance,
    move_balance_to_goal,
    move_goal_to_balance,
    reconcile_transfers,
)

__all__ = [
    "DEFAULT_SAVING_CATEGORY",
    "goal_balance",
    "move_balance_to_goal",
    "move_goal_to_balance",
    "reconcile_transfers",
]
