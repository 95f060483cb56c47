"""
Main Orchestrator for Gastos Pareja

This module ties together all the components and defines the
end-to-end flows of a ledger session:
1. Write (candidate entry -> validate -> normalize -> store -> refresh)
2. Derived writes (fixed charges, goal transfers) through the same path
3. Bulk import/export of the whole ledger
4. Read (snapshot -> aggregation engine -> dashboard)

DESIGN DECISION: The orchestrator enforces the boundaries:
- Validation errors never reach storage
- The aggregation engine only ever sees the last fully fetched snapshot;
  a failed refresh leaves the previous snapshot in place
- Every local mutation is followed by a full refresh
- Every write is audited
"""

import asyncio
from collections.abc import Callable, Mapping
from datetime import datetime, timezone
from typing import Any, Optional
from uuid import UUID

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from gastos_pareja.aggregation import (
    build_dashboard,
    scope_entries,
    sort_history,
    visible_to_profile,
)
from gastos_pareja.audit import AuditLogger, configure_logging, create_correlation_id
from gastos_pareja.config import LedgerSettings, get_settings
from gastos_pareja.dates import month_key, today_local, utc_timestamp
from gastos_pareja.fixed_charges import generate_for_month
from gastos_pareja.goals import move_balance_to_goal, move_goal_to_balance, reconcile_transfers
from gastos_pareja.models import (
    Configuration,
    Entry,
    Goal,
    ProfileDashboard,
    ReconciliationReport,
    Scope,
    UserPreferences,
    ValidationIssue,
    ValidationResult,
    load_preferences,
)
from gastos_pareja.money import parse_positive_amount
from gastos_pareja.normalization import (
    EntryNormalizer,
    ImportPayloadError,
    dump_entries,
    parse_import_payload,
    resolve_import_items,
)
from gastos_pareja.services.storage import (
    AuditStorageInterface,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsLedgerStorage,
    InMemoryLedgerStorage,
    LedgerStorageInterface,
    PartialTransferError,
    StorageError,
)
from gastos_pareja.validation import EntryValidator, LedgerValidationError

logger = structlog.get_logger(__name__)


class LedgerSnapshot(BaseModel):
    """
    Last fully fetched state of the ledger.

    Rebuilt wholesale on every refresh, never patched.
    """
    model_config = ConfigDict(frozen=True)

    entries: list[Entry] = Field(default_factory=list)
    months: list[str] = Field(default_factory=list)
    configuration: Configuration = Field(default_factory=Configuration.default)
    refreshed_at: Optional[datetime] = None


class LedgerSession:
    """
    One client's view of the shared ledger.

    Holds the read-mostly snapshot and routes every write through
    validation, normalization, storage, audit and refresh.
    """

    def __init__(
        self,
        storage: LedgerStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[LedgerSettings] = None,
        today: Optional[Callable[[], str]] = None,
        now: Optional[Callable[[], str]] = None,
    ):
        self._storage = storage
        self._audit_logger = audit_logger or AuditLogger()
        self._settings = settings or get_settings().ledger
        self._today = today or (lambda: today_local(self._settings.timezone))
        self._now = now or utc_timestamp
        self._snapshot = LedgerSnapshot()

    @property
    def snapshot(self) -> LedgerSnapshot:
        return self._snapshot

    @property
    def config(self) -> Configuration:
        return self._snapshot.configuration

    @property
    def current_month(self) -> str:
        return month_key(self._today())

    def _normalizer(self) -> EntryNormalizer:
        return EntryNormalizer(self.config, today=self._today, now=self._now)

    def _validator(self) -> EntryValidator:
        return EntryValidator(self.config, settings=self._settings, today=self._today)

    # =========================================================================
    # REFRESH
    # =========================================================================

    async def refresh(self, correlation_id: Optional[UUID] = None) -> LedgerSnapshot:
        """
        Re-fetch entries, months and configuration.

        Raises:
            StorageError: the snapshot is left at its last good state
        """
        try:
            entries, months, config = await asyncio.gather(
                self._storage.list_entries(),
                self._storage.list_months(),
                self._storage.get_config(),
            )
        except StorageError as e:
            await self._audit_logger.log_refresh_failed(
                error_message=str(e),
                correlation_id=correlation_id,
            )
            raise

        self._snapshot = LedgerSnapshot(
            entries=entries,
            months=months,
            configuration=config,
            refreshed_at=datetime.now(timezone.utc),
        )
        logger.debug("ledger_refreshed", entries=len(entries), months=len(months))
        return self._snapshot

    # =========================================================================
    # ENTRIES
    # =========================================================================

    def validate_entry(self, draft: Mapping[str, Any]) -> tuple[ValidationResult, str]:
        """
        Check a candidate entry without writing it.

        Returns:
            (validation_result, user_message)
        """
        validator = self._validator()
        result = validator.validate(draft)
        return result, validator.get_user_friendly_summary(result)

    async def add_entry(
        self,
        draft: Mapping[str, Any],
        correlation_id: Optional[UUID] = None,
    ) -> Entry:
        """
        Validate, normalize and store a new entry.

        Raises:
            LedgerValidationError: nothing was sent to storage
            StorageError: the write failed
        """
        correlation_id = correlation_id or create_correlation_id()

        result = self._validator().validate(draft)
        if not result.is_valid:
            await self._audit_logger.log_validation_failed(
                issues=[
                    {"field": i.field, "type": i.issue_type, "message": i.message}
                    for i in result.errors
                ],
                correlation_id=correlation_id,
                profile=str(draft.get("profile") or "") or None,
            )
            raise LedgerValidationError(result.errors)

        entry = self._normalizer().normalize({
            **draft,
            "amount": parse_positive_amount(draft.get("amount")),
        })
        await self._store(entry, correlation_id)
        await self.refresh(correlation_id)
        return entry

    async def delete_entry(
        self,
        entry_id: str,
        profile: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> bool:
        """Delete an entry; returns False when it did not exist."""
        correlation_id = correlation_id or create_correlation_id()
        deleted = await self._storage.delete_entry(entry_id)
        if deleted:
            await self._audit_logger.log_entry_deleted(
                entry_id=entry_id,
                correlation_id=correlation_id,
                profile=profile,
            )
        await self.refresh(correlation_id)
        return deleted

    async def _store(self, entry: Entry, correlation_id: UUID) -> str:
        try:
            entry_id = await self._storage.add_entry(entry)
        except StorageError as e:
            await self._audit_logger.log_external_service_error(
                service="ledger_storage",
                error_message=str(e),
                correlation_id=correlation_id,
            )
            raise
        await self._audit_logger.log_entry_saved(
            entry_id=entry_id,
            profile=entry.profile,
            amount=entry.amount,
            category=entry.category,
            correlation_id=correlation_id,
        )
        return entry_id

    # =========================================================================
    # IMPORT / EXPORT
    # =========================================================================

    async def import_json(
        self,
        text: str,
        correlation_id: Optional[UUID] = None,
    ) -> int:
        """
        Replace the whole ledger with the entries of a JSON file.

        The payload is fully parsed and its shape resolved before any
        normalization or write; a bad file changes nothing.

        Raises:
            ImportPayloadError: invalid JSON, wrong shape or file too large
            StorageError: the replace failed
        """
        correlation_id = correlation_id or create_correlation_id()

        try:
            size = len(text.encode("utf-8", "surrogatepass"))
            if size > self._settings.max_import_size_bytes:
                raise ImportPayloadError(
                    f"Import file exceeds {self._settings.max_import_size_mb} MB"
                )
            items = resolve_import_items(parse_import_payload(text))
        except ImportPayloadError as e:
            await self._audit_logger.log_import_rejected(
                reason=str(e),
                correlation_id=correlation_id,
            )
            raise

        entries = self._normalizer().normalize_many(items)
        try:
            count = await self._storage.replace_all(entries)
        except StorageError as e:
            await self._audit_logger.log_external_service_error(
                service="ledger_storage",
                error_message=str(e),
                correlation_id=correlation_id,
            )
            raise
        await self._audit_logger.log_ledger_replaced(
            count=count,
            correlation_id=correlation_id,
        )
        await self.refresh(correlation_id)
        return count

    def export_json(self) -> str:
        """The snapshot's entries as a JSON array import_json accepts back."""
        return dump_entries(self._snapshot.entries)

    # =========================================================================
    # FIXED CHARGES
    # =========================================================================

    async def apply_fixed_charges(
        self,
        month: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> list[Entry]:
        """
        Store the fixed charges still missing for ``month``.

        An empty result means nothing was missing; nothing is written.
        """
        correlation_id = correlation_id or create_correlation_id()
        month = month or self.current_month

        existing = await self._storage.list_entries(month)
        created = generate_for_month(
            month,
            self.config.fixed_charges,
            existing,
            self.config,
            now=self._now,
        )
        if not created:
            logger.info("fixed_charges_up_to_date", month=month)
            return []

        stored: list[str] = []
        try:
            for entry in created:
                stored.append(await self._store(entry, correlation_id))
        except StorageError as e:
            # Stored entries stay; a rerun only adds the missing ones
            await self._audit_logger.log_error(
                error_type="fixed_charges_incomplete",
                error_message=str(e),
                details={"month": month, "stored_ids": stored},
                correlation_id=correlation_id,
            )
            raise

        await self._audit_logger.log_fixed_charges_generated(
            month=month,
            entry_ids=[e.id for e in created],
            correlation_id=correlation_id,
        )
        await self.refresh(correlation_id)
        return created

    # =========================================================================
    # GOAL TRANSFERS
    # =========================================================================

    def _goal(self, goal_id: str) -> Goal:
        goal = self.config.goal(goal_id)
        if goal is None:
            raise LedgerValidationError([ValidationIssue(
                field="goal",
                issue_type="invalid_value",
                message=f"Unknown goal: {goal_id}",
                severity="error",
            )])
        return goal

    def _transfer_goal(self, goal_id: str, profile: str) -> Goal:
        """The goal to move money on, checked against the acting profile."""
        goal = self._goal(goal_id)
        if not self.config.has_profile(profile):
            raise LedgerValidationError([ValidationIssue(
                field="profile",
                issue_type="invalid_value",
                message=f"Unknown profile: {profile}",
                severity="error",
            )])
        if not goal.belongs_to(profile):
            raise LedgerValidationError([ValidationIssue(
                field="goal",
                issue_type="not_allowed",
                message=f"Goal '{goal.name}' does not belong to {profile}",
                severity="error",
            )])
        return goal

    async def transfer_goal_to_balance(
        self,
        goal_id: str,
        amount: int,
        credit_scope: Scope,
        profile: str,
        date: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> tuple[Entry, Entry]:
        """
        Withdraw from a goal into the personal or shared balance.

        Raises:
            LedgerValidationError: unknown goal or profile, a personal goal of
                another profile, or a non-positive amount
            StorageError: the debit was not stored (nothing written)
            PartialTransferError: only the debit was stored
        """
        goal = self._transfer_goal(goal_id, profile)
        debit, credit = move_goal_to_balance(
            goal,
            amount,
            credit_scope,
            profile,
            date=date or self._today(),
            category=self.config.saving_category,
            now=self._now,
        )
        return await self._write_transfer(goal, debit, credit, correlation_id)

    async def transfer_to_goal(
        self,
        goal_id: str,
        amount: int,
        source_scope: Scope,
        profile: str,
        date: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> tuple[Entry, Entry]:
        """
        Put money from the personal or shared balance into a goal.

        Raises:
            LedgerValidationError: unknown goal or profile, a personal goal of
                another profile, or a non-positive amount
            StorageError: the debit was not stored (nothing written)
            PartialTransferError: only the debit was stored
        """
        goal = self._transfer_goal(goal_id, profile)
        debit, credit = move_balance_to_goal(
            goal,
            amount,
            source_scope,
            profile,
            date=date or self._today(),
            category=self.config.saving_category,
            now=self._now,
        )
        return await self._write_transfer(goal, debit, credit, correlation_id)

    async def _write_transfer(
        self,
        goal: Goal,
        debit: Entry,
        credit: Entry,
        correlation_id: Optional[UUID],
    ) -> tuple[Entry, Entry]:
        """
        Two independent writes, debit first.

        No rollback: if the credit fails the debit stays in the ledger and
        is reported for manual deletion.
        """
        correlation_id = correlation_id or create_correlation_id()

        await self._store(debit, correlation_id)
        try:
            await self._store(credit, correlation_id)
        except StorageError as e:
            await self._audit_logger.log_goal_transfer_partial(
                goal_id=goal.id,
                orphan_entry_id=debit.id,
                error_message=str(e),
                profile=debit.profile,
                correlation_id=correlation_id,
            )
            raise PartialTransferError(
                f"Transfer on goal '{goal.name}' is one-sided: "
                f"entry {debit.id} was stored but its counterpart failed ({e})",
                orphan_entry=debit,
                missing_entry=credit,
            ) from e

        await self._audit_logger.log_goal_transfer_completed(
            goal_id=goal.id,
            amount=debit.amount,
            debit_id=debit.id,
            credit_id=credit.id,
            profile=debit.profile,
            correlation_id=correlation_id,
        )
        await self.refresh(correlation_id)
        return debit, credit

    # =========================================================================
    # CONFIGURATION
    # =========================================================================

    async def update_config(
        self,
        config: Configuration,
        profile: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> Configuration:
        """Write the configuration through, then re-fetch it."""
        correlation_id = correlation_id or create_correlation_id()
        await self._storage.set_config(config)
        await self._audit_logger.log_config_updated(
            correlation_id=correlation_id,
            profile=profile,
        )
        await self.refresh(correlation_id)
        return self.config

    async def register_device(
        self,
        device_id: str,
        profile: str,
        correlation_id: Optional[UUID] = None,
    ) -> bool:
        """Assign this device to a profile."""
        correlation_id = correlation_id or create_correlation_id()
        if not self.config.has_profile(profile):
            raise LedgerValidationError([ValidationIssue(
                field="profile",
                issue_type="invalid_value",
                message=f"Unknown profile: {profile}",
                severity="error",
            )])
        registered = await self._storage.register_device_profile(device_id, profile)
        await self._audit_logger.log_device_registered(
            device_id=device_id,
            profile=profile,
            correlation_id=correlation_id,
        )
        await self.refresh(correlation_id)
        return registered

    # =========================================================================
    # READ VIEWS
    # =========================================================================

    def dashboard(self, profile: str, month: Optional[str] = None) -> ProfileDashboard:
        """All derived views of ``profile`` for the selected month."""
        return build_dashboard(
            self._snapshot.entries,
            profile,
            month or self.current_month,
            self.config,
            current_month=self.current_month,
            months=self._snapshot.months,
        )

    def history(
        self,
        profile: Optional[str] = None,
        month: Optional[str] = None,
    ) -> list[Entry]:
        """
        Entries newest first.

        With a profile only what that profile may see; with a month as well,
        only that month.
        """
        entries = self._snapshot.entries
        if profile and month:
            entries = scope_entries(entries, profile, month)
        elif profile:
            entries = [e for e in entries if visible_to_profile(e, profile)]
        elif month:
            entries = [e for e in entries if month_key(e.date) == month]
        return sort_history(entries)

    def reconciliation_report(self) -> ReconciliationReport:
        """One-sided goal transfers present in the snapshot."""
        return reconcile_transfers(self._snapshot.entries)


def create_app_components(
    use_storage: bool = True,
) -> tuple[LedgerSession, UserPreferences, Optional[GoogleSheetsClient]]:
    """
    Factory function to create all application components.

    Args:
        use_storage: Whether to initialize Google Sheets storage.
                    Set to False for offline sessions and tests.

    Returns:
        (ledger_session, user_preferences, sheets_client)
    """
    settings = get_settings()
    configure_logging(settings.app.log_level)

    sheets_client = None
    storage: LedgerStorageInterface
    audit_storage: Optional[AuditStorageInterface] = None

    if use_storage:
        try:
            sheets_client = GoogleSheetsClient()
            storage = GoogleSheetsLedgerStorage(sheets_client)
            audit_storage = GoogleSheetsAuditStorage(sheets_client)
        except ValidationError as e:
            # Storage not configured - continue in memory
            logger.warning("storage_not_configured", error=str(e))
            sheets_client = None
            storage = InMemoryLedgerStorage()
            audit_storage = None
    else:
        storage = InMemoryLedgerStorage()

    session = LedgerSession(
        storage=storage,
        audit_logger=AuditLogger(audit_storage),  # Local-only logging without storage
        settings=settings.ledger,
    )
    preferences = load_preferences(settings.ledger.preferences_path)

    return session, preferences, sheets_client
