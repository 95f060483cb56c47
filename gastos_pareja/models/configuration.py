"""
Ledger Configuration Models

Configuration is process-wide data fetched from storage once per session:
categories, budget tables, goals, fixed charges, shared-impact vocabulary and
the device -> profile map. It is never mutated locally; changes go through an
explicit replace-and-refetch write (LedgerSession.update_config).

DESIGN DECISION: Configuration is a value passed explicitly into every
validation and aggregation call. There is no implicit global default, so
tests inject fixed configurations deterministically.
"""

import json
from pathlib import Path
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from gastos_pareja.dates import is_month_key
from gastos_pareja.models.entry import (
    ACCOUNT_BALANCE,
    ACCOUNT_PERSONAL,
    OTHER_CATEGORY,
    EntryType,
    Nature,
    Scope,
    is_valid_account,
)


APPLIES_TO_BOTH = "both"


class Profile(BaseModel):
    """One of the people sharing the ledger."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    aliases: list[str] = Field(
        default_factory=list,
        description="Legacy paidBy values mapping to this profile (case-insensitive)"
    )


class Goal(BaseModel):
    """
    Named savings target.

    A goal is configuration, not an entry. Its balance is always derived:
    sum of 'in' minus 'out' saving entries whose account is goal:<id>.
    """
    model_config = ConfigDict(str_strip_whitespace=True, populate_by_name=True)

    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    scope: Scope = Scope.PERSONAL
    profiles: list[str] = Field(
        default_factory=list,
        description="Profiles the goal belongs to"
    )
    target_amount: Optional[int] = Field(default=None, ge=0, alias="targetAmount")
    impact_key: Optional[str] = Field(default=None, alias="impactKey")

    def belongs_to(self, profile: str) -> bool:
        return self.scope == Scope.SHARED or profile in self.profiles

    @property
    def shared_impact_key(self) -> str:
        """Impact bucket used when a transfer leg for this goal is shared."""
        return self.impact_key or self.name


class FixedChargeDefinition(BaseModel):
    """Recurring expense template, materialized monthly into entries."""
    model_config = ConfigDict(str_strip_whitespace=True, populate_by_name=True)

    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    category: str = OTHER_CATEGORY
    # Not constrained: a non-positive amount is a configuration error the
    # generator tolerates by skipping the definition.
    amount: int = 0
    scope: Scope = Scope.PERSONAL
    applies_to: str = Field(default=APPLIES_TO_BOTH, alias="appliesTo")
    account: Optional[str] = None
    impact_key: str = Field(default="", alias="impactKey")

    active: bool = True
    start_month: Optional[str] = Field(default=None, alias="startMonth")
    end_month: Optional[str] = Field(default=None, alias="endMonth")

    @field_validator('start_month', 'end_month')
    @classmethod
    def validate_month(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not is_month_key(v):
            raise ValueError(f"Invalid month key: {v!r} (expected YYYY-MM)")
        return v

    @field_validator('account')
    @classmethod
    def validate_account(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not is_valid_account(v):
            raise ValueError(f"Invalid account: {v!r}")
        return v

    @property
    def resolved_account(self) -> str:
        if self.account:
            return self.account
        return ACCOUNT_BALANCE if self.scope == Scope.SHARED else ACCOUNT_PERSONAL

    def applies_in(self, month: str) -> bool:
        if not self.active:
            return False
        if self.start_month and month < self.start_month:
            return False
        if self.end_month and month > self.end_month:
            return False
        return True


class Configuration(BaseModel):
    """Process-wide ledger configuration."""
    model_config = ConfigDict(str_strip_whitespace=True, populate_by_name=True)

    profiles: list[Profile] = Field(..., min_length=1)
    expense_categories: list[str] = Field(
        default_factory=list,
        alias="expenseCategories",
    )
    income_categories: list[str] = Field(
        default_factory=list,
        alias="incomeCategories",
    )
    income_categories_by_profile: dict[str, list[str]] = Field(
        default_factory=dict,
        alias="incomeCategoriesByProfile",
        description="Per-profile income category override",
    )
    budget_percents: dict[str, dict[str, float]] = Field(
        default_factory=dict,
        alias="budgetPercents",
        description="profile -> category -> fraction of monthly income",
    )
    goals: list[Goal] = Field(default_factory=list)
    fixed_charges: list[FixedChargeDefinition] = Field(
        default_factory=list,
        alias="fixedCharges",
    )
    impact_keys: list[str] = Field(default_factory=list, alias="impactKeys")
    device_profiles: dict[str, str] = Field(
        default_factory=dict,
        alias="deviceProfiles",
    )
    strict_categories: bool = Field(
        default=True,
        alias="strictCategories",
        description="Whether the category lists are enforced as allow-lists",
    )
    saving_category: str = Field(default="Ahorro", alias="savingCategory")

    @model_validator(mode='after')
    def validate_references(self) -> 'Configuration':
        ids = self.profile_ids
        if len(set(ids)) != len(ids):
            raise ValueError("Profile ids must be unique")
        goal_ids = [g.id for g in self.goals]
        if len(set(goal_ids)) != len(goal_ids):
            raise ValueError("Goal ids must be unique")
        for fixed in self.fixed_charges:
            if fixed.applies_to != APPLIES_TO_BOTH and fixed.applies_to not in ids:
                raise ValueError(
                    f"Fixed charge {fixed.id!r} applies to unknown profile {fixed.applies_to!r}"
                )
        return self

    @property
    def profile_ids(self) -> list[str]:
        return [p.id for p in self.profiles]

    @property
    def default_profile(self) -> str:
        return self.profiles[0].id

    def has_profile(self, profile: str) -> bool:
        return profile in self.profile_ids

    def resolve_profile_alias(self, value: object) -> Optional[str]:
        """Map a legacy paidBy value (or a profile id) to a profile id."""
        key = str(value or "").strip().lower()
        if not key:
            return None
        for p in self.profiles:
            if key == p.id.lower() or key in (a.lower() for a in p.aliases):
                return p.id
        return None

    def categories_for(
        self,
        kind: Union[EntryType, Nature],
        profile: Optional[str] = None,
    ) -> Optional[list[str]]:
        """
        Allow-list for a new entry of the given type/nature.

        Returns None when no allow-list applies (non-strict configuration,
        saving entries).
        """
        if not self.strict_categories or kind == Nature.SAVING:
            return None
        if kind in (EntryType.INCOME, Nature.INCOME):
            if profile and profile in self.income_categories_by_profile:
                return self.income_categories_by_profile[profile]
            return self.income_categories
        return self.expense_categories

    def budget_table(self, profile: str) -> dict[str, float]:
        return self.budget_percents.get(profile, {})

    def goals_for(self, profile: str) -> list[Goal]:
        return [g for g in self.goals if g.belongs_to(profile)]

    def goal(self, goal_id: str) -> Optional[Goal]:
        for g in self.goals:
            if g.id == goal_id:
                return g
        return None

    def profile_for_device(self, device_id: Optional[str]) -> Optional[str]:
        if not device_id:
            return None
        profile = self.device_profiles.get(device_id)
        return profile if profile and self.has_profile(profile) else None

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)

    @classmethod
    def default(cls) -> 'Configuration':
        """
        Sample configuration used before the stored one loads.

        The budget percentages are product tuning, not a contract.
        """
        return cls(
            profiles=[
                Profile(id="pablo", name="Pablo", aliases=["yo"]),
                Profile(
                    id="maria_ignacia",
                    name="Maria Ignacia",
                    aliases=["pareja", "ella", "maria"],
                ),
            ],
            expense_categories=["Comida", "Transporte", "Casa", "Salud", "Panorama", "Otros"],
            income_categories=["Sueldo", "Transferencia", "Reembolso", "Regalo", "Venta", "Otros"],
            budget_percents={
                "pablo": {
                    "Casa": 0.35, "Comida": 0.18, "Transporte": 0.08,
                    "Panorama": 0.05, "Salud": 0.03, "Otros": 0.06,
                },
                "maria_ignacia": {
                    "Casa": 0.30, "Comida": 0.20, "Transporte": 0.08,
                    "Panorama": 0.06, "Salud": 0.03, "Otros": 0.06,
                },
            },
            impact_keys=["Casa", "Vacaciones", "Otros"],
        )


class UserPreferences(BaseModel):
    """
    Local, per-device preferences.

    Loaded once at startup and handed to the UI layer explicitly; there is no
    ambient global holding the active profile or theme.
    """
    model_config = ConfigDict(populate_by_name=True)

    theme: str = Field(default="light", pattern="^(light|dark)$")
    active_profile: Optional[str] = Field(default=None, alias="activeProfile")
    device_id: Optional[str] = Field(default=None, alias="deviceId")


def load_preferences(path: Union[str, Path]) -> UserPreferences:
    """Load preferences, falling back to defaults for a missing or corrupt file."""
    path = Path(path)
    if not path.exists():
        return UserPreferences()
    try:
        return UserPreferences.model_validate(json.loads(path.read_text(encoding="utf-8")))
    except ValueError:
        return UserPreferences()


def save_preferences(prefs: UserPreferences, path: Union[str, Path]) -> None:
    Path(path).write_text(
        json.dumps(prefs.model_dump(mode="json", by_alias=True), indent=2),
        encoding="utf-8",
    )


def resolve_active_profile(prefs: UserPreferences, config: Configuration) -> str:
    """Device assignment first, then the stored choice, then the default profile."""
    assigned = config.profile_for_device(prefs.device_id)
    if assigned:
        return assigned
    if prefs.active_profile and config.has_profile(prefs.active_profile):
        return prefs.active_profile
    return config.default_profile
