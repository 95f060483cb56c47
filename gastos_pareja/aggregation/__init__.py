"""Pure ledger aggregations (totals, breakdowns, budgets, goals)."""

from gastos_pareja.aggregation.engine import (
    budget_rows,
    build_dashboard,
    category_breakdown,
    goal_stats,
    historical_net,
    is_visible,
    known_months,
    month_snapshots,
    month_totals,
    scope_entries,
    sort_history,
    visible_to_profile,
)

__all__ = [
    "budget_rows",
    "build_dashboard",
    "category_breakdown",
    "goal_stats",
    "historical_net",
    "is_visible",
    "known_months",
    "month_snapshots",
    "month_totals",
    "scope_entries",
    "sort_history",
    "visible_to_profile",
]
