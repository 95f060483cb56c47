"""
Core Ledger Models for Gastos Pareja

An Entry is one immutable ledger record. Entries are never edited in place:
they are replaced wholesale or deleted.

DESIGN DECISION: Three progressively richer entry shapes exist in stored
data (paidBy-only expenses, profile/type entries, and the full
scope/account/nature schema). Internally there is exactly ONE canonical
shape, this model. Older shapes are upgraded once, at ingestion, by the
normalizer; read paths never branch on legacy fields.
"""

import re
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)

from gastos_pareja.dates import month_key, parse_iso_date, utc_timestamp


ENTRY_SCHEMA_VERSION = 3

# Display/grouping fallback for unknown or empty categories
OTHER_CATEGORY = "Otros"

# Legacy cost-sharing tag every expense used to carry
LEGACY_SPLIT = "50_50"

ACCOUNT_PERSONAL = "personal"
ACCOUNT_BALANCE = "balance"
GOAL_ACCOUNT_PREFIX = "goal:"

_ACCOUNT_PATTERN = re.compile(r"^(personal|balance|goal:.+)$")


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class EntryType(str, Enum):
    """Legacy primary classification."""
    EXPENSE = "expense"
    INCOME = "income"


class Nature(str, Enum):
    """
    Finer classification.

    SAVING entries move money between sub-ledgers and are excluded from
    income/expense totals.
    """
    INCOME = "income"
    EXPENSE = "expense"
    FIXED = "fixed"
    SAVING = "saving"


class Scope(str, Enum):
    """Visibility class: shared entries are visible to every profile."""
    PERSONAL = "personal"
    SHARED = "shared"


class Direction(str, Enum):
    """Cash direction, independent of type."""
    IN = "in"
    OUT = "out"


def new_entry_id() -> str:
    return str(uuid4())


def goal_account(goal_id: str) -> str:
    """Account label for a goal sub-ledger."""
    return f"{GOAL_ACCOUNT_PREFIX}{goal_id}"


def goal_id_from_account(account: Optional[str]) -> Optional[str]:
    if account and account.startswith(GOAL_ACCOUNT_PREFIX):
        return account[len(GOAL_ACCOUNT_PREFIX):] or None
    return None


def is_valid_account(account: object) -> bool:
    return isinstance(account, str) and _ACCOUNT_PATTERN.match(account) is not None


# =============================================================================
# CORE ENTRY MODEL
# =============================================================================

class Entry(BaseModel):
    """
    A single financial record.

    Structural rules enforced here (construction fails otherwise):
    - amount is a non-negative integer (creation additionally requires > 0,
      see EntryValidator)
    - date is a real YYYY-MM-DD calendar date
    - nature=income implies direction=in
    - shared entries carry a non-empty impactKey
    - account is personal, balance or goal:<id>
    """
    model_config = ConfigDict(
        str_strip_whitespace=True,
        populate_by_name=True,
        frozen=True,
    )

    # Identity
    id: str = Field(
        default_factory=new_entry_id,
        min_length=1,
        description="Opaque unique identifier"
    )

    # Classification
    type: EntryType = Field(
        default=EntryType.EXPENSE,
        description="Legacy primary classification"
    )
    nature: Optional[Nature] = Field(
        default=None,
        description="Finer classification; absent on legacy records"
    )

    amount: int = Field(
        default=0,
        ge=0,
        description="Amount in the smallest currency unit"
    )
    category: str = Field(
        default=OTHER_CATEGORY,
        min_length=1,
    )
    profile: str = Field(
        ...,
        min_length=1,
        description="Owning person"
    )
    date: str = Field(
        ...,
        description="Creator's local date, YYYY-MM-DD"
    )
    note: str = ""

    # Legacy cost-sharing tag, kept for back-compat reads
    split: Optional[str] = None

    # Shared-accounting fields
    scope: Scope = Scope.PERSONAL
    account: str = ACCOUNT_PERSONAL
    direction: Direction = Direction.OUT
    impact_key: str = Field(
        default="",
        alias="impactKey",
        description="Shared-cost bucket, required when scope is shared"
    )
    fixed_id: str = Field(
        default="",
        alias="fixedId",
        description="Fixed-charge definition that generated this entry"
    )

    created_at: str = Field(
        default_factory=utc_timestamp,
        alias="createdAt",
        description="Creation timestamp, sort tie-breaker"
    )
    schema_version: int = Field(
        default=ENTRY_SCHEMA_VERSION,
        alias="schemaVersion",
    )

    @field_validator('date')
    @classmethod
    def validate_date(cls, v: str) -> str:
        if parse_iso_date(v) != v:
            raise ValueError(f"Invalid date: {v!r} (expected YYYY-MM-DD)")
        return v

    @field_validator('account')
    @classmethod
    def validate_account(cls, v: str) -> str:
        if not is_valid_account(v):
            raise ValueError(f"Invalid account: {v!r}")
        return v

    @model_validator(mode='after')
    def validate_consistency(self) -> 'Entry':
        if self.nature == Nature.INCOME and self.direction != Direction.IN:
            raise ValueError("Income entries must have direction 'in'")
        if self.scope == Scope.SHARED and not self.impact_key:
            raise ValueError("Shared entries require an impactKey")
        return self

    @property
    def bucket(self) -> Optional[EntryType]:
        """
        Income/expense bucket used by every aggregate.

        nature wins when present (saving is in neither bucket);
        legacy entries without nature fall back to type.
        """
        if self.nature is None:
            return self.type
        if self.nature == Nature.INCOME:
            return EntryType.INCOME
        if self.nature in (Nature.EXPENSE, Nature.FIXED):
            return EntryType.EXPENSE
        return None

    @property
    def month(self) -> str:
        return month_key(self.date)

    @property
    def goal_id(self) -> Optional[str]:
        return goal_id_from_account(self.account)

    @property
    def is_shared(self) -> bool:
        return self.scope == Scope.SHARED

    def to_wire(self) -> dict[str, Any]:
        """Storage/export shape: camelCase keys, plain JSON values."""
        return self.model_dump(mode="json", by_alias=True)


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_value', 'suspicious_value')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )
    suggested_fix: Optional[str] = Field(
        default=None,
        description="Suggested fix if available"
    )


class ValidationResult(BaseModel):
    """
    Result of the two-stage validation of a new entry.

    Stage 1: Schema validation (amount, profile, category, consistency)
    Stage 2: Semantic validation (suspicious but acceptable values)
    """

    validated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    schema_valid: bool = Field(
        ...,
        description="Did schema validation pass?"
    )
    is_valid: bool = Field(
        ...,
        description="Overall validation result"
    )

    issues: list[ValidationIssue] = Field(
        default_factory=list,
        description="All validation issues found"
    )

    # Warnings don't block but should be shown
    warnings: list[str] = Field(
        default_factory=list,
        description="Non-blocking warnings"
    )

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")

    @property
    def errors(self) -> list[ValidationIssue]:
        return [issue for issue in self.issues if issue.severity == "error"]
