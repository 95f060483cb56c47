"""
Tests for Gastos Pareja

Test strategy:
1. Unit tests for individual components (models, normalizer, validator, engine)
2. Session flows against in-memory storage
3. No real API calls in tests (Sheets is replaced by fakes)
"""

import pytest
from pydantic import ValidationError
from uuid import uuid4

from gastos_pareja.models import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
    Configuration,
    Direction,
    Entry,
    EntryType,
    FixedChargeDefinition,
    Goal,
    Nature,
    Profile,
    Scope,
    ValidationIssue,
    ValidationResult,
    goal_account,
    goal_id_from_account,
)


class TestEntryModel:
    """Tests for the canonical Entry model."""

    def test_entry_defaults(self):
        """Test Entry creation with only the required fields."""
        entry = Entry(profile="A", date="2024-03-05", amount=1500)
        assert entry.type == EntryType.EXPENSE
        assert entry.nature is None
        assert entry.scope == Scope.PERSONAL
        assert entry.account == "personal"
        assert entry.direction == Direction.OUT
        assert entry.category == "Otros"
        assert entry.schema_version == 3
        assert entry.id
        assert entry.created_at.endswith("Z")

    def test_entry_is_immutable(self):
        """Test that entries cannot be edited in place."""
        entry = Entry(profile="A", date="2024-03-05", amount=1500)
        with pytest.raises(ValidationError):
            entry.amount = 2000

    def test_entry_rejects_negative_amount(self):
        """Test that negative amounts are rejected."""
        with pytest.raises(ValidationError):
            Entry(profile="A", date="2024-03-05", amount=-1)

    @pytest.mark.parametrize("bad_date", ["2024-02-30", "05/03/2024", "2024-3-5", ""])
    def test_entry_rejects_invalid_date(self, bad_date):
        """Test that only real YYYY-MM-DD dates are accepted."""
        with pytest.raises(ValidationError):
            Entry(profile="A", date=bad_date, amount=100)

    def test_income_nature_requires_direction_in(self):
        """Test the nature/direction consistency rule."""
        with pytest.raises(ValidationError):
            Entry(profile="A", date="2024-03-05", amount=100, nature="income", direction="out")

    def test_shared_entry_requires_impact_key(self):
        """Test that shared entries carry an impactKey."""
        with pytest.raises(ValidationError):
            Entry(profile="A", date="2024-03-05", amount=100, scope="shared")

        entry = Entry(
            profile="A", date="2024-03-05", amount=100, scope="shared", impactKey="Casa"
        )
        assert entry.is_shared
        assert entry.impact_key == "Casa"

    @pytest.mark.parametrize("account", ["cash", "goal:", "Goal:x", ""])
    def test_entry_rejects_invalid_account(self, account):
        """Test that account is personal, balance or goal:<id>."""
        with pytest.raises(ValidationError):
            Entry(profile="A", date="2024-03-05", amount=100, account=account)

    @pytest.mark.parametrize(
        "nature,entry_type,expected",
        [
            (None, "expense", EntryType.EXPENSE),
            (None, "income", EntryType.INCOME),
            ("income", "expense", EntryType.INCOME),
            ("expense", "income", EntryType.EXPENSE),
            ("fixed", "expense", EntryType.EXPENSE),
            ("saving", "income", None),
        ],
    )
    def test_bucket_prefers_nature_over_type(self, nature, entry_type, expected):
        """Test the income/expense classification with legacy fallback."""
        direction = "in" if nature == "income" else "out"
        entry = Entry(
            profile="A",
            date="2024-03-05",
            amount=100,
            nature=nature,
            type=entry_type,
            direction=direction,
        )
        assert entry.bucket == expected

    def test_goal_account_helpers(self):
        """Test goal account labels."""
        assert goal_account("viaje") == "goal:viaje"
        assert goal_id_from_account("goal:viaje") == "viaje"
        assert goal_id_from_account("balance") is None
        assert goal_id_from_account(None) is None

        entry = Entry(profile="A", date="2024-03-05", amount=100, account="goal:viaje")
        assert entry.goal_id == "viaje"
        assert entry.month == "2024-03"

    def test_to_wire_uses_camel_case(self):
        """Test the storage/export shape."""
        wire = Entry(
            profile="A",
            date="2024-03-05",
            amount=100,
            scope="shared",
            impact_key="Casa",
            fixed_id="arriendo",
        ).to_wire()
        assert wire["impactKey"] == "Casa"
        assert wire["fixedId"] == "arriendo"
        assert wire["scope"] == "shared"
        assert "createdAt" in wire
        assert "schemaVersion" in wire
        assert "impact_key" not in wire


class TestConfigurationModels:
    """Tests for Configuration, goals and fixed-charge definitions."""

    def test_profile_ids_must_be_unique(self):
        """Test duplicated profiles are rejected."""
        with pytest.raises(ValidationError):
            Configuration(profiles=[Profile(id="A", name="Ana"), Profile(id="A", name="Otra")])

    def test_fixed_charge_must_target_known_profile(self):
        """Test appliesTo must be 'both' or a configured profile."""
        with pytest.raises(ValidationError):
            Configuration(
                profiles=[Profile(id="A", name="Ana")],
                fixed_charges=[
                    FixedChargeDefinition(id="x", name="X", amount=10, applies_to="Z"),
                ],
            )

    def test_fixed_charge_rejects_bad_month_window(self):
        """Test startMonth/endMonth must be YYYY-MM."""
        with pytest.raises(ValidationError):
            FixedChargeDefinition(id="x", name="X", amount=10, start_month="2024-13")

    def test_fixed_charge_month_window(self):
        """Test active flag and month window."""
        definition = FixedChargeDefinition(
            id="x", name="X", amount=10, startMonth="2024-02", endMonth="2024-04"
        )
        assert not definition.applies_in("2024-01")
        assert definition.applies_in("2024-02")
        assert definition.applies_in("2024-04")
        assert not definition.applies_in("2024-05")
        assert not definition.model_copy(update={"active": False}).applies_in("2024-03")

    def test_fixed_charge_resolved_account(self):
        """Test default account follows scope."""
        assert FixedChargeDefinition(id="x", name="X").resolved_account == "personal"
        assert FixedChargeDefinition(
            id="x", name="X", scope="shared"
        ).resolved_account == "balance"
        assert FixedChargeDefinition(
            id="x", name="X", account="goal:auto"
        ).resolved_account == "goal:auto"

    def test_resolve_profile_alias_is_case_insensitive(self, config):
        """Test legacy paidBy aliases."""
        assert config.resolve_profile_alias("Pareja") == "B"
        assert config.resolve_profile_alias(" yo ") == "A"
        assert config.resolve_profile_alias("b") == "B"
        assert config.resolve_profile_alias("nadie") is None
        assert config.resolve_profile_alias(None) is None

    def test_categories_for(self, config):
        """Test category allow-lists by type, nature and profile."""
        assert config.categories_for(EntryType.EXPENSE) == ["Comida", "Casa", "Transporte", "Otros"]
        assert config.categories_for(Nature.FIXED) == config.expense_categories
        assert config.categories_for(EntryType.INCOME, "A") == ["Sueldo", "Otros"]
        assert config.categories_for(Nature.INCOME, "B") == ["Honorarios", "Otros"]
        assert config.categories_for(Nature.SAVING) is None

        relaxed = config.model_copy(update={"strict_categories": False})
        assert relaxed.categories_for(EntryType.EXPENSE) is None

    def test_goals_for_profile(self, config):
        """Test personal goals only belong to their profiles; shared goals to all."""
        assert [g.id for g in config.goals_for("A")] == ["auto", "viaje"]
        assert [g.id for g in config.goals_for("B")] == ["viaje"]

    def test_goal_shared_impact_key(self):
        """Test the impact bucket used for shared transfer legs."""
        assert Goal(id="v", name="Viaje", impactKey="Vacaciones").shared_impact_key == "Vacaciones"
        assert Goal(id="v", name="Viaje").shared_impact_key == "Viaje"

    def test_profile_for_device(self, config):
        """Test device assignment ignores unknown profiles."""
        assigned = config.model_copy(update={"device_profiles": {"d1": "B", "d2": "Z"}})
        assert assigned.profile_for_device("d1") == "B"
        assert assigned.profile_for_device("d2") is None
        assert assigned.profile_for_device(None) is None

    def test_configuration_wire_round_trip(self, config):
        """Test the stored configuration shape loads back."""
        reloaded = Configuration.model_validate(config.to_wire())
        assert reloaded == config
        assert "budgetPercents" in config.to_wire()

    def test_default_configuration(self):
        """Test the sample configuration used before the stored one loads."""
        default = Configuration.default()
        assert default.default_profile == "pablo"
        assert default.resolve_profile_alias("pareja") == "maria_ignacia"
        assert default.budget_table("pablo")["Casa"] == 0.35
        assert default.budget_table("nadie") == {}


class TestAuditModels:
    """Tests for audit-related models."""

    def test_audit_event_creation(self):
        """Test AuditEvent creation."""
        event = AuditEvent(
            event_type=AuditEventType.ENTRY_SAVED,
            description="Test event",
        )
        assert event.event_type == AuditEventType.ENTRY_SAVED
        assert event.severity == AuditSeverity.INFO
        assert event.event_id is not None

    def test_audit_event_to_log_dict(self):
        """Test conversion to log dict."""
        event = AuditEvent(
            event_type=AuditEventType.ENTRY_SAVED,
            description="Test event",
            profile="A",
            details={"key": "value"},
        )
        log_dict = event.to_log_dict()

        assert log_dict["event_type"] == "entry_saved"
        assert log_dict["profile"] == "A"
        assert log_dict["details"] == {"key": "value"}

    def test_audit_event_to_sheets_row(self):
        """Test conversion to sheets row."""
        event = AuditEvent(
            event_type=AuditEventType.LEDGER_REPLACED,
            description="Test event",
        )
        row = event.to_sheets_row()

        assert len(row) == 12
        assert row[2] == "ledger_replaced"
        assert row[11] == "False"

    def test_audit_event_builder_entry_saved(self):
        """Test AuditEventBuilder.entry_saved."""
        correlation_id = uuid4()
        event = AuditEventBuilder.entry_saved(
            entry_id="e1",
            profile="A",
            amount=12500,
            category="Comida",
            correlation_id=correlation_id,
        )

        assert event.event_type == AuditEventType.ENTRY_SAVED
        assert event.entity_id == "e1"
        assert event.correlation_id == correlation_id
        assert event.is_user_action is True
        assert "12,500" in event.description

    def test_audit_event_builder_goal_transfer_partial(self):
        """Test one-sided transfers are recorded as errors."""
        event = AuditEventBuilder.goal_transfer_partial(
            goal_id="auto",
            orphan_entry_id="e9",
            error_message="boom",
            profile="A",
            correlation_id=uuid4(),
        )

        assert event.severity == AuditSeverity.ERROR
        assert event.entity_id == "e9"
        assert event.details["goal_id"] == "auto"
        assert "e9" in event.description


class TestValidationResult:
    """Tests for ValidationResult model."""

    def test_validation_result_has_errors(self):
        """Test has_errors property."""
        result = ValidationResult(
            schema_valid=False,
            is_valid=False,
            issues=[
                ValidationIssue(
                    field="amount",
                    issue_type="invalid_value",
                    message="Amount must be a number greater than zero",
                    severity="error",
                ),
            ],
        )

        assert result.has_errors is True
        assert result.error_count == 1
        assert result.errors[0].field == "amount"

    def test_validation_result_warnings_only(self):
        """Test result with only warnings."""
        result = ValidationResult(
            schema_valid=True,
            is_valid=True,
            issues=[
                ValidationIssue(
                    field="date",
                    issue_type="future_date",
                    message="Date is far in the future",
                    severity="warning",
                ),
            ],
            warnings=["Date is far in the future"],
        )

        assert result.has_errors is False
        assert result.error_count == 0
        assert len(result.warnings) == 1

    def test_validation_issue_severity_is_restricted(self):
        """Test severity must be error, warning or info."""
        with pytest.raises(ValidationError):
            ValidationIssue(field="x", issue_type="y", message="z", severity="fatal")


class TestEnums:
    """Tests for the finite value sets."""

    def test_enum_values(self):
        """Test wire values of the classification enums."""
        assert [t.value for t in EntryType] == ["expense", "income"]
        assert [n.value for n in Nature] == ["income", "expense", "fixed", "saving"]
        assert [s.value for s in Scope] == ["personal", "shared"]
        assert [d.value for d in Direction] == ["in", "out"]
