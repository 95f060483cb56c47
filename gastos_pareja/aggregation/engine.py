"""
Ledger Aggregation Engine

Pure functions turning the flat entry list (plus Configuration) into the
per-profile, per-month views the application displays.

SCOPING RULE: an entry is visible to profile P in month M iff
    month(entry.date) == M  and  (entry.profile == P  or  entry.scope == shared)

Every display aggregate filters through scope_entries(); nothing else decides
visibility. A bug here would leak private entries across profiles or hide
shared costs.

CLASSIFICATION RULE: Entry.bucket (nature first, type as legacy fallback;
saving entries count as neither income nor expense).

All amounts are integers, rounded half-up where they are computed.
"""

from collections.abc import Iterable, Sequence
from typing import Optional

from gastos_pareja.dates import is_before_month, month_key
from gastos_pareja.models.configuration import Configuration
from gastos_pareja.models.entry import (
    OTHER_CATEGORY,
    Direction,
    Entry,
    EntryType,
    Nature,
    Scope,
)
from gastos_pareja.models.views import (
    BudgetRow,
    CategoryBreakdown,
    CategoryTotal,
    GoalStats,
    HistoricalNet,
    MonthSnapshot,
    MonthTotals,
    ProfileDashboard,
)
from gastos_pareja.money import apply_percent, sum_amounts


# =============================================================================
# SCOPING
# =============================================================================

def visible_to_profile(entry: Entry, profile: str) -> bool:
    """Profile half of the scoping rule (any month)."""
    return entry.profile == profile or entry.scope == Scope.SHARED


def is_visible(entry: Entry, profile: str, month: str) -> bool:
    return month_key(entry.date) == month and visible_to_profile(entry, profile)


def scope_entries(entries: Iterable[Entry], profile: str, month: str) -> list[Entry]:
    """Entries visible to ``profile`` in ``month``."""
    return [e for e in entries if is_visible(e, profile, month)]


# =============================================================================
# TOTALS
# =============================================================================

def _totals(entries: Iterable[Entry]) -> MonthTotals:
    income = []
    expense = []
    for entry in entries:
        bucket = entry.bucket
        if bucket == EntryType.INCOME:
            income.append(entry.amount)
        elif bucket == EntryType.EXPENSE:
            expense.append(entry.amount)
    return MonthTotals(income=sum_amounts(income), expense=sum_amounts(expense))


def month_totals(entries: Iterable[Entry], profile: str, month: str) -> MonthTotals:
    """Income, expense and net for the entries visible to profile in month."""
    return _totals(scope_entries(entries, profile, month))


def category_breakdown(
    entries: Iterable[Entry],
    profile: str,
    month: str,
) -> CategoryBreakdown:
    """Expense totals by category, largest first."""
    by_category: dict[str, list[int]] = {}
    for entry in scope_entries(entries, profile, month):
        if entry.bucket != EntryType.EXPENSE:
            continue
        by_category.setdefault(entry.category or OTHER_CATEGORY, []).append(entry.amount)

    rows = [
        CategoryTotal(label=label, value=sum_amounts(amounts))
        for label, amounts in by_category.items()
    ]
    # Stable sort keeps first-seen order among equal totals
    rows.sort(key=lambda row: row.value, reverse=True)
    return CategoryBreakdown(
        rows=rows,
        max_value=max((row.value for row in rows), default=0),
    )


def budget_rows(
    entries: Iterable[Entry],
    profile: str,
    month: str,
    config: Configuration,
) -> list[BudgetRow]:
    """
    Budget vs. actual for each category in the profile's percentage table.

    target = round(month income x percent)
    spent  = round(expense sum in the category)
    delta  = spent - target
    """
    visible = scope_entries(entries, profile, month)
    income = _totals(visible).income

    spent_by_category: dict[str, list[int]] = {}
    for entry in visible:
        if entry.bucket == EntryType.EXPENSE:
            spent_by_category.setdefault(entry.category, []).append(entry.amount)

    rows = []
    for category, percent in config.budget_table(profile).items():
        target = apply_percent(income, percent)
        spent = sum_amounts(spent_by_category.get(category, []))
        rows.append(BudgetRow(
            category=category,
            percent=percent,
            target=target,
            spent=spent,
            delta=spent - target,
        ))
    rows.sort(key=lambda row: row.percent, reverse=True)
    return rows


def historical_net(entries: Iterable[Entry], profile: str, month: str) -> HistoricalNet:
    """
    Accumulated income minus expense of ``profile`` before ``month``.

    Only the profile's own entries count (shared entries of other profiles
    do not). Dates are compared as ISO strings against "<month>-01".
    """
    previous = [
        e for e in entries
        if e.profile == profile and is_before_month(e.date, month)
    ]
    totals = _totals(previous)
    return HistoricalNet(
        count=len(previous),
        income=totals.income,
        expense=totals.expense,
    )


def known_months(
    entries: Iterable[Entry],
    current_month: str,
    extra_months: Optional[Iterable[str]] = None,
) -> list[str]:
    """Current month, months present in the data and extra (stored) months, newest first."""
    months = {current_month}
    months.update(month_key(e.date) for e in entries)
    if extra_months:
        months.update(m for m in extra_months if m)
    return sorted(months, reverse=True)


def month_snapshots(
    entries: Sequence[Entry],
    profile: str,
    current_month: str,
    months: Optional[Iterable[str]] = None,
) -> list[MonthSnapshot]:
    """
    Month picker rows with preview totals for ``profile``.

    The current month is always present, with zero totals when empty.
    """
    snapshots = []
    for month in known_months(entries, current_month, months):
        totals = month_totals(entries, profile, month)
        snapshots.append(MonthSnapshot(
            month=month,
            income=totals.income,
            expense=totals.expense,
        ))
    return snapshots


# =============================================================================
# GOALS
# =============================================================================

def goal_stats(
    entries: Iterable[Entry],
    profile: str,
    month: str,
    config: Configuration,
) -> list[GoalStats]:
    """
    Derived balances of the goals visible to ``profile``.

    Scans visible saving entries whose account is goal:<id>; lifetime and
    selected-month in/out are accumulated separately.
    """
    goals = config.goals_for(profile)
    amounts: dict[str, dict[str, list[int]]] = {
        goal.id: {"lifetime_in": [], "lifetime_out": [], "month_in": [], "month_out": []}
        for goal in goals
    }

    for entry in entries:
        if entry.nature != Nature.SAVING or not visible_to_profile(entry, profile):
            continue
        bucket = amounts.get(entry.goal_id or "")
        if bucket is None:
            continue
        side = "in" if entry.direction == Direction.IN else "out"
        bucket[f"lifetime_{side}"].append(entry.amount)
        if month_key(entry.date) == month:
            bucket[f"month_{side}"].append(entry.amount)

    return [
        GoalStats(
            goal=goal,
            **{key: sum_amounts(values) for key, values in amounts[goal.id].items()},
        )
        for goal in goals
    ]


# =============================================================================
# HISTORY & DASHBOARD
# =============================================================================

def sort_history(entries: Iterable[Entry]) -> list[Entry]:
    """Newest first: by date, then by creation timestamp."""
    return sorted(entries, key=lambda e: (e.date, e.created_at), reverse=True)


def build_dashboard(
    entries: Sequence[Entry],
    profile: str,
    month: str,
    config: Configuration,
    current_month: Optional[str] = None,
    months: Optional[Iterable[str]] = None,
) -> ProfileDashboard:
    """Compose every derived view of one profile for the selected month."""
    return ProfileDashboard(
        profile=profile,
        month=month,
        totals=month_totals(entries, profile, month),
        categories=category_breakdown(entries, profile, month),
        budget=budget_rows(entries, profile, month, config),
        historical=historical_net(entries, profile, month),
        months=month_snapshots(entries, profile, current_month or month, months),
        goals=goal_stats(entries, profile, month, config),
        entries=sort_history(scope_entries(entries, profile, month)),
    )


