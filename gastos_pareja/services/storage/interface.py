"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Keep the spreadsheet backend the couple already uses
2. Use in-memory storage for testing and offline sessions
3. Keep ledger logic decoupled from storage implementation

The interface is intentionally narrow: it mirrors the handful of remote
calls the ledger needs. Filtering and aggregation happen in Python, over
the full snapshot, never in the backend.
"""

from abc import ABC, abstractmethod
from typing import Optional
from uuid import UUID

from gastos_pareja.models.audit import AuditEvent
from gastos_pareja.models.configuration import Configuration
from gastos_pareja.models.entry import Entry


class LedgerStorageInterface(ABC):
    """
    Abstract interface for ledger storage operations.

    Any storage implementation (Google Sheets, in-memory, etc.)
    must implement these methods. There are no transactions: each call
    succeeds or fails on its own, and the last write wins.
    """

    @abstractmethod
    async def list_entries(self, month: Optional[str] = None) -> list[Entry]:
        """
        List stored entries.

        Args:
            month: Only entries of this month (YYYY-MM) when given

        Returns:
            Normalized entries, in storage order

        Raises:
            StorageError: If the backend cannot be read
        """
        pass

    @abstractmethod
    async def list_months(self) -> list[str]:
        """
        Distinct month keys (YYYY-MM) present in storage.
        """
        pass

    @abstractmethod
    async def add_entry(self, entry: Entry) -> str:
        """
        Append an entry.

        Args:
            entry: The normalized entry to store

        Returns:
            The stored entry's id

        Raises:
            DuplicateError: If an entry with the same id exists
            StorageError: If save fails
        """
        pass

    @abstractmethod
    async def delete_entry(self, entry_id: str) -> bool:
        """
        Delete an entry by ID.

        Returns:
            True if deleted, False if it did not exist
        """
        pass

    @abstractmethod
    async def replace_all(self, entries: list[Entry]) -> int:
        """
        Destructively overwrite the whole ledger.

        Returns:
            Number of entries stored
        """
        pass

    @abstractmethod
    async def get_config(self) -> Configuration:
        """
        Fetch the ledger configuration.

        Returns the sample configuration when none has been stored yet.
        """
        pass

    @abstractmethod
    async def set_config(self, config: Configuration) -> bool:
        """
        Replace the stored configuration.
        """
        pass

    @abstractmethod
    async def register_device_profile(self, device_id: str, profile: str) -> bool:
        """
        Assign a device to a profile.
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Args:
            event: The audit event to log

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a correlation ID (e.g., both legs of a transfer).

        Returns:
            List of related events in chronological order
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events.

        Returns:
            List of recent events (newest first)
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass


class PartialTransferError(StorageError):
    """
    The first leg of a transfer was stored but the second was not.

    Nothing is rolled back; ``orphan_entry`` must be deleted by hand.
    """

    def __init__(self, message: str, orphan_entry: Entry, missing_entry: Entry):
        super().__init__(message)
        self.orphan_entry = orphan_entry
        self.missing_entry = missing_entry
