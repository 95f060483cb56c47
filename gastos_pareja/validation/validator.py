"""
Two-Stage Entry Validation

DESIGN DECISION: New entries are validated in two distinct stages before
anything is normalized or sent to storage:

STAGE 1 - SCHEMA VALIDATION:
- Amount is a number greater than zero
- Profile is a configured profile
- Category belongs to the configured list for its type/nature
- Shared entries name an impactKey
- nature/direction are consistent (income comes in)
- This catches form mistakes; any error here blocks the write

STAGE 2 - SEMANTIC VALIDATION:
- Unusually large amounts
- Dates far in the future
- impactKeys outside the configured vocabulary
- Saving entries pointing at goals that no longer exist
- These are warnings only

IMPORTANT: Validation never reaches the Storage Backend and never
silently fixes input. Fixing is the normalizer's job, and only on paths
(imports, stored legacy rows) where rejecting is not an option.
"""

from collections.abc import Callable, Mapping
from datetime import date, timedelta
from typing import Any, Optional

from gastos_pareja.config import LedgerSettings, get_settings
from gastos_pareja.dates import parse_iso_date, today_local
from gastos_pareja.models.configuration import Configuration
from gastos_pareja.models.entry import (
    Direction,
    EntryType,
    Nature,
    Scope,
    ValidationIssue,
    ValidationResult,
    goal_id_from_account,
    is_valid_account,
)
from gastos_pareja.money import parse_positive_amount


class LedgerValidationError(ValueError):
    """A write was rejected locally; nothing was sent to storage."""

    def __init__(self, issues: list[ValidationIssue]):
        self.issues = issues
        messages = "; ".join(issue.message for issue in issues) or "Invalid entry"
        super().__init__(messages)


def _text(value: Any) -> str:
    return str(value).strip() if value else ""


class EntryValidator:
    """
    Validates a candidate entry (as typed by the user) against the
    configuration in effect.

    Stage 1: Schema validation (blocking)
    Stage 2: Semantic validation (warnings)
    """

    def __init__(
        self,
        config: Configuration,
        settings: Optional[LedgerSettings] = None,
        today: Optional[Callable[[], str]] = None,
    ):
        """
        Initialize validator.

        Args:
            config: Configuration providing profiles, categories and goals.
            settings: Warning thresholds. Defaults to the ledger settings.
            today: Returns the caller's local date (YYYY-MM-DD).
        """
        self._config = config
        self._settings = settings or get_settings().ledger
        self._today = today or (lambda: today_local(self._settings.timezone))

    def _validate_schema(
        self,
        draft: Mapping[str, Any],
    ) -> tuple[bool, list[ValidationIssue]]:
        """
        Stage 1: Schema validation.

        Returns: (is_valid, list_of_issues)
        """
        issues = []

        if parse_positive_amount(draft.get("amount")) is None:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="invalid_value",
                message="Amount must be a number greater than zero",
                severity="error",
                suggested_fix="Enter the amount without currency symbols",
            ))

        profile = _text(draft.get("profile"))
        if not profile:
            issues.append(ValidationIssue(
                field="profile",
                issue_type="missing",
                message="Profile is required",
                severity="error",
            ))
        elif not self._config.has_profile(profile):
            issues.append(ValidationIssue(
                field="profile",
                issue_type="invalid_value",
                message=f"Unknown profile: {profile}",
                severity="error",
            ))

        entry_type = EntryType.EXPENSE
        raw_type = draft.get("type")
        if raw_type:
            try:
                entry_type = EntryType(raw_type)
            except ValueError:
                issues.append(ValidationIssue(
                    field="type",
                    issue_type="invalid_value",
                    message=f"Type must be 'expense' or 'income', got {raw_type!r}",
                    severity="error",
                ))

        nature = None
        raw_nature = draft.get("nature")
        if raw_nature:
            try:
                nature = Nature(raw_nature)
            except ValueError:
                issues.append(ValidationIssue(
                    field="nature",
                    issue_type="invalid_value",
                    message=f"Unknown nature: {raw_nature!r}",
                    severity="error",
                ))

        category = _text(draft.get("category"))
        allowed = self._config.categories_for(nature or entry_type, profile or None)
        if not category:
            issues.append(ValidationIssue(
                field="category",
                issue_type="missing",
                message="Category is required",
                severity="error",
            ))
        elif allowed is not None and category not in allowed:
            issues.append(ValidationIssue(
                field="category",
                issue_type="invalid_value",
                message=f"Invalid category: {category}",
                severity="error",
                suggested_fix="Choose one of: " + ", ".join(allowed),
            ))

        scope = Scope.PERSONAL
        raw_scope = draft.get("scope")
        if raw_scope:
            try:
                scope = Scope(raw_scope)
            except ValueError:
                issues.append(ValidationIssue(
                    field="scope",
                    issue_type="invalid_value",
                    message=f"Scope must be 'personal' or 'shared', got {raw_scope!r}",
                    severity="error",
                ))

        if scope == Scope.SHARED and not _text(draft.get("impactKey")):
            issues.append(ValidationIssue(
                field="impactKey",
                issue_type="missing",
                message="Shared entries need an impact key",
                severity="error",
                suggested_fix="Pick the shared bucket this cost belongs to (e.g. Casa)",
            ))

        raw_direction = draft.get("direction")
        if raw_direction:
            try:
                direction = Direction(raw_direction)
            except ValueError:
                issues.append(ValidationIssue(
                    field="direction",
                    issue_type="invalid_value",
                    message=f"Direction must be 'in' or 'out', got {raw_direction!r}",
                    severity="error",
                ))
            else:
                if nature == Nature.INCOME and direction != Direction.IN:
                    issues.append(ValidationIssue(
                        field="direction",
                        issue_type="inconsistent",
                        message="Income entries must have direction 'in'",
                        severity="error",
                    ))

        account = draft.get("account")
        if account and not is_valid_account(account):
            issues.append(ValidationIssue(
                field="account",
                issue_type="invalid_value",
                message=f"Invalid account: {account!r}",
                severity="error",
            ))

        raw_date = draft.get("date")
        if raw_date and parse_iso_date(raw_date) is None:
            issues.append(ValidationIssue(
                field="date",
                issue_type="invalid_format",
                message=f"Invalid date: {raw_date!r}",
                severity="error",
                suggested_fix="Use the YYYY-MM-DD format",
            ))

        # Schema is valid if no errors (warnings are okay)
        is_valid = not any(issue.severity == "error" for issue in issues)

        return is_valid, issues

    def _validate_semantic(
        self,
        draft: Mapping[str, Any],
    ) -> list[ValidationIssue]:
        """
        Stage 2: Semantic validation.

        Only runs once stage 1 passed, so amount and date parse.
        """
        issues = []

        amount = parse_positive_amount(draft.get("amount"))
        if amount and amount > self._settings.max_entry_amount:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="suspicious_value",
                message=f"Amount (${amount:,}) seems unusually high",
                severity="warning",
                suggested_fix="Please verify this amount is correct",
            ))

        entry_date = parse_iso_date(draft.get("date"))
        if entry_date:
            horizon = date.fromisoformat(self._today()) + timedelta(
                days=self._settings.future_date_tolerance_days
            )
            if date.fromisoformat(entry_date) > horizon:
                issues.append(ValidationIssue(
                    field="date",
                    issue_type="future_date",
                    message=f"Date ({entry_date}) is far in the future",
                    severity="warning",
                    suggested_fix="Please verify the date is correct",
                ))

        impact_key = _text(draft.get("impactKey"))
        if (
            impact_key
            and self._config.impact_keys
            and impact_key not in self._config.impact_keys
        ):
            issues.append(ValidationIssue(
                field="impactKey",
                issue_type="unknown_value",
                message=f"Impact key '{impact_key}' is not in the configured list",
                severity="warning",
            ))

        goal_id = goal_id_from_account(draft.get("account"))
        if goal_id and self._config.goal(goal_id) is None:
            issues.append(ValidationIssue(
                field="account",
                issue_type="unknown_value",
                message=f"Goal '{goal_id}' is not configured",
                severity="warning",
                suggested_fix="The entry will not show up in any goal balance",
            ))

        return issues

    def validate(self, draft: Mapping[str, Any]) -> ValidationResult:
        """
        Run full two-stage validation pipeline.

        Args:
            draft: Candidate entry fields, camelCase keys as in the wire format

        Returns:
            ValidationResult with all issues found
        """
        all_issues = []

        # Stage 1: Schema validation
        schema_valid, schema_issues = self._validate_schema(draft)
        all_issues.extend(schema_issues)

        # Only run stage 2 if stage 1 passes
        if schema_valid:
            all_issues.extend(self._validate_semantic(draft))

        warnings = [issue.message for issue in all_issues if issue.severity == "warning"]

        return ValidationResult(
            schema_valid=schema_valid,
            is_valid=schema_valid,
            issues=all_issues,
            warnings=warnings,
        )

    def ensure_valid(self, draft: Mapping[str, Any]) -> ValidationResult:
        """Validate and raise LedgerValidationError on any blocking issue."""
        result = self.validate(draft)
        if not result.is_valid:
            raise LedgerValidationError(result.errors)
        return result

    def get_user_friendly_summary(
        self,
        result: ValidationResult,
    ) -> str:
        """Short summary shown next to the entry form."""
        if result.is_valid and not result.warnings:
            return "✅ Entry looks good."

        lines = []

        if not result.schema_valid:
            lines.append("❌ The entry cannot be saved:")
            for issue in result.errors:
                lines.append(f"   • {issue.message}")
                if issue.suggested_fix:
                    lines.append(f"     💡 {issue.suggested_fix}")

        if result.warnings:
            if lines:
                lines.append("")
            lines.append("⚠️ Please verify the following:")
            for warning in result.warnings:
                lines.append(f"   • {warning}")

        return "\n".join(lines)
