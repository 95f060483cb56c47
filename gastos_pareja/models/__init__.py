"""
Data Models Package

This package contains all Pydantic models used in Gastos Pareja.
All data flowing through the system must conform to these schemas.
"""

from gastos_pareja.models.entry import (
    ACCOUNT_BALANCE,
    ACCOUNT_PERSONAL,
    ENTRY_SCHEMA_VERSION,
    LEGACY_SPLIT,
    OTHER_CATEGORY,
    Direction,
    Entry,
    EntryType,
    Nature,
    Scope,
    ValidationIssue,
    ValidationResult,
    goal_account,
    goal_id_from_account,
)
from gastos_pareja.models.configuration import (
    APPLIES_TO_BOTH,
    Configuration,
    FixedChargeDefinition,
    Goal,
    Profile,
    UserPreferences,
    load_preferences,
    resolve_active_profile,
    save_preferences,
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
    ReconciliationReport,
    UnmatchedTransfer,
)
from gastos_pareja.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Entry models
    "ACCOUNT_BALANCE",
    "ACCOUNT_PERSONAL",
    "ENTRY_SCHEMA_VERSION",
    "LEGACY_SPLIT",
    "OTHER_CATEGORY",
    "Direction",
    "Entry",
    "EntryType",
    "Nature",
    "Scope",
    "ValidationIssue",
    "ValidationResult",
    "goal_account",
    "goal_id_from_account",
    # Configuration models
    "APPLIES_TO_BOTH",
    "Configuration",
    "FixedChargeDefinition",
    "Goal",
    "Profile",
    "UserPreferences",
    "load_preferences",
    "resolve_active_profile",
    "save_preferences",
    # Derived views
    "BudgetRow",
    "CategoryBreakdown",
    "CategoryTotal",
    "GoalStats",
    "HistoricalNet",
    "MonthSnapshot",
    "MonthTotals",
    "ProfileDashboard",
    "ReconciliationReport",
    "UnmatchedTransfer",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
