"""
Goal / Ledger Transfers

A goal is a savings sub-ledger whose balance is derived from saving entries
with account goal:<id>. Moving money in or out of a goal is always a pair
of saving entries with equal amounts:

    move_goal_to_balance:  goal:<id> --out-->  balance --in-->
    move_balance_to_goal:  balance   --out-->  goal:<id> --in-->

The two legs are separate writes at the storage layer. If only the first is
stored the ledger holds a one-sided transfer; reconcile_transfers() lists
those so they can be deleted by hand.
"""

from collections.abc import Callable, Iterable
from typing import Optional

from gastos_pareja.dates import today_local, utc_timestamp
from gastos_pareja.models.configuration import Goal
from gastos_pareja.models.entry import (
    ACCOUNT_BALANCE,
    LEGACY_SPLIT,
    Direction,
    Entry,
    EntryType,
    Nature,
    Scope,
    ValidationIssue,
    goal_account,
)
from gastos_pareja.models.views import ReconciliationReport, UnmatchedTransfer
from gastos_pareja.validation.validator import LedgerValidationError

DEFAULT_SAVING_CATEGORY = "Ahorro"


def _check_amount(amount: object) -> int:
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise LedgerValidationError([ValidationIssue(
            field="amount",
            issue_type="invalid_value",
            message="Transfer amount must be a positive integer",
            severity="error",
        )])
    return amount


def _leg(
    goal: Goal,
    *,
    amount: int,
    profile: str,
    account: str,
    direction: Direction,
    scope: Scope,
    date: str,
    created_at: str,
    category: str,
    note: str,
) -> Entry:
    entry_type = EntryType.INCOME if direction == Direction.IN else EntryType.EXPENSE
    return Entry(
        type=entry_type,
        nature=Nature.SAVING,
        amount=amount,
        category=category,
        profile=profile,
        date=date,
        note=note or goal.name,
        split=LEGACY_SPLIT if entry_type == EntryType.EXPENSE else None,
        scope=scope,
        account=account,
        direction=direction,
        impact_key=goal.shared_impact_key if scope == Scope.SHARED else "",
        created_at=created_at,
    )


def move_goal_to_balance(
    goal: Goal,
    amount: int,
    credit_scope: Scope,
    profile: str,
    date: Optional[str] = None,
    category: str = DEFAULT_SAVING_CATEGORY,
    note: str = "",
    now: Optional[Callable[[], str]] = None,
) -> tuple[Entry, Entry]:
    """
    Withdraw ``amount`` from a goal into the general balance.

    Returns (debit, credit). The debit keeps the goal's scope; the credit
    takes ``credit_scope``, which the caller must choose explicitly (a
    personal goal may be credited to the shared balance).

    Raises:
        LedgerValidationError: amount is not a positive integer
    """
    amount = _check_amount(amount)
    clock = now or utc_timestamp
    date = date or today_local()
    common = dict(
        amount=amount, profile=profile, date=date, category=category, note=note,
    )
    debit = _leg(
        goal,
        account=goal_account(goal.id),
        direction=Direction.OUT,
        scope=goal.scope,
        created_at=clock(),
        **common,
    )
    credit = _leg(
        goal,
        account=ACCOUNT_BALANCE,
        direction=Direction.IN,
        scope=Scope(credit_scope),
        created_at=clock(),
        **common,
    )
    return debit, credit


def move_balance_to_goal(
    goal: Goal,
    amount: int,
    source_scope: Scope,
    profile: str,
    date: Optional[str] = None,
    category: str = DEFAULT_SAVING_CATEGORY,
    note: str = "",
    now: Optional[Callable[[], str]] = None,
) -> tuple[Entry, Entry]:
    """
    Put ``amount`` from the personal or shared balance into a goal.

    Returns (debit, credit): the debit leaves the balance with
    ``source_scope``, the credit enters the goal with the goal's scope.

    Raises:
        LedgerValidationError: amount is not a positive integer
    """
    amount = _check_amount(amount)
    clock = now or utc_timestamp
    date = date or today_local()
    common = dict(
        amount=amount, profile=profile, date=date, category=category, note=note,
    )
    debit = _leg(
        goal,
        account=ACCOUNT_BALANCE,
        direction=Direction.OUT,
        scope=Scope(source_scope),
        created_at=clock(),
        **common,
    )
    credit = _leg(
        goal,
        account=goal_account(goal.id),
        direction=Direction.IN,
        scope=goal.scope,
        created_at=clock(),
        **common,
    )
    return debit, credit


def goal_balance(entries: Iterable[Entry], goal_id: str) -> int:
    """Lifetime balance of a goal across all profiles."""
    balance = 0
    for entry in entries:
        if entry.nature != Nature.SAVING or entry.goal_id != goal_id:
            continue
        balance += entry.amount if entry.direction == Direction.IN else -entry.amount
    return balance


def reconcile_transfers(entries: Iterable[Entry]) -> ReconciliationReport:
    """
    Pair transfer legs and report the one-sided ones.

    A pair is one goal leg and one non-goal leg with the same profile, date
    and amount and opposite directions. Matching is greedy in creation
    order; each leg is used at most once.
    """
    saving = sorted(
        (e for e in entries if e.nature == Nature.SAVING),
        key=lambda e: (e.date, e.created_at),
    )
    goal_legs = [e for e in saving if e.goal_id]
    other_legs = [e for e in saving if not e.goal_id]

    used_goal: set[str] = set()
    used_other: set[str] = set()
    for goal_leg in goal_legs:
        for other in other_legs:
            if other.id in used_other:
                continue
            if (
                other.profile == goal_leg.profile
                and other.date == goal_leg.date
                and other.amount == goal_leg.amount
                and other.direction != goal_leg.direction
            ):
                used_goal.add(goal_leg.id)
                used_other.add(other.id)
                break

    unmatched = [
        UnmatchedTransfer(entry=e, reason="goal leg without balance counterpart")
        for e in goal_legs if e.id not in used_goal
    ]
    unmatched.extend(
        UnmatchedTransfer(entry=e, reason="balance leg without goal counterpart")
        for e in other_legs if e.id not in used_other
    )
    return ReconciliationReport(matched_pairs=len(used_goal), unmatched=unmatched)
