"""
Derived View Models

Read-only results produced by the aggregation engine. None of these are
stored; they are recomputed from the entry snapshot on every refresh.
"""

from typing import Optional

from pydantic import BaseModel, Field

from gastos_pareja.models.configuration import Goal
from gastos_pareja.models.entry import Entry


class MonthTotals(BaseModel):
    """Income/expense totals for one profile and month."""
    income: int = 0
    expense: int = 0

    @property
    def net(self) -> int:
        return self.income - self.expense


class CategoryTotal(BaseModel):
    label: str
    value: int


class CategoryBreakdown(BaseModel):
    """Expense totals per category, largest first."""
    rows: list[CategoryTotal] = Field(default_factory=list)
    max_value: int = Field(
        default=0,
        description="Largest bucket, used to scale bar charts (0 when empty)"
    )


class BudgetRow(BaseModel):
    """
    Budget vs. actual for one category.

    delta > 0: over budget by delta
    delta < 0: -delta still available
    """
    category: str
    percent: float
    target: int
    spent: int
    delta: int

    @property
    def over_budget(self) -> bool:
        return self.delta > 0


class HistoricalNet(BaseModel):
    """Accumulated position of one profile before the selected month."""
    count: int = 0
    income: int = 0
    expense: int = 0

    @property
    def net(self) -> int:
        return self.income - self.expense


class MonthSnapshot(BaseModel):
    """One row of the month picker, with inline preview totals."""
    month: str
    income: int = 0
    expense: int = 0

    @property
    def net(self) -> int:
        return self.income - self.expense


class GoalStats(BaseModel):
    """Derived balance of a goal sub-ledger, lifetime and for one month."""
    goal: Goal
    lifetime_in: int = 0
    lifetime_out: int = 0
    month_in: int = 0
    month_out: int = 0

    @property
    def lifetime_balance(self) -> int:
        return self.lifetime_in - self.lifetime_out

    @property
    def month_balance(self) -> int:
        return self.month_in - self.month_out

    @property
    def progress(self) -> Optional[float]:
        """Fraction of the target reached, when the goal has one."""
        if not self.goal.target_amount:
            return None
        return self.lifetime_balance / self.goal.target_amount


class ProfileDashboard(BaseModel):
    """Everything the profile screen shows for a selected month."""
    profile: str
    month: str
    totals: MonthTotals
    categories: CategoryBreakdown
    budget: list[BudgetRow] = Field(default_factory=list)
    historical: HistoricalNet
    months: list[MonthSnapshot] = Field(default_factory=list)
    goals: list[GoalStats] = Field(default_factory=list)
    entries: list[Entry] = Field(
        default_factory=list,
        description="Visible entries of the month, newest first"
    )


class UnmatchedTransfer(BaseModel):
    """A saving leg with no opposite leg (a one-sided transfer)."""
    entry: Entry
    reason: str


class ReconciliationReport(BaseModel):
    """Result of pairing goal/balance transfer legs."""
    matched_pairs: int = 0
    unmatched: list[UnmatchedTransfer] = Field(default_factory=list)

    @property
    def is_consistent(self) -> bool:
        return not self.unmatched
