"""
In-Memory Storage Implementation

Used by tests and by sessions started without Google Sheets credentials.
Behaves like the spreadsheet backend: no transactions, last write wins,
and the configuration falls back to the sample one until a config is set.
"""

from typing import Optional
from uuid import UUID

from gastos_pareja.dates import month_key
from gastos_pareja.models.audit import AuditEvent
from gastos_pareja.models.configuration import Configuration
from gastos_pareja.models.entry import Entry
from gastos_pareja.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    LedgerStorageInterface,
)


class InMemoryLedgerStorage(LedgerStorageInterface):
    """Ledger storage backed by a list and a Configuration value."""

    def __init__(
        self,
        entries: Optional[list[Entry]] = None,
        config: Optional[Configuration] = None,
    ):
        self._entries: list[Entry] = list(entries or [])
        self._config = config or Configuration.default()

    async def list_entries(self, month: Optional[str] = None) -> list[Entry]:
        if month:
            return [e for e in self._entries if month_key(e.date) == month]
        return list(self._entries)

    async def list_months(self) -> list[str]:
        return sorted({month_key(e.date) for e in self._entries}, reverse=True)

    async def add_entry(self, entry: Entry) -> str:
        if any(e.id == entry.id for e in self._entries):
            raise DuplicateError(f"Entry already exists: {entry.id}")
        self._entries.append(entry)
        return entry.id

    async def delete_entry(self, entry_id: str) -> bool:
        for idx, entry in enumerate(self._entries):
            if entry.id == entry_id:
                del self._entries[idx]
                return True
        return False

    async def replace_all(self, entries: list[Entry]) -> int:
        self._entries = list(entries)
        return len(self._entries)

    async def get_config(self) -> Configuration:
        return self._config

    async def set_config(self, config: Configuration) -> bool:
        # Device assignments are kept, as in the spreadsheet's Devices sheet
        self._config = config.model_copy(
            update={"device_profiles": {**self._config.device_profiles, **config.device_profiles}}
        )
        return True

    async def register_device_profile(self, device_id: str, profile: str) -> bool:
        self._config = self._config.model_copy(
            update={"device_profiles": {**self._config.device_profiles, device_id: profile}}
        )
        return True


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only audit log kept in a list."""

    def __init__(self):
        self.events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self.events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self.events if e.correlation_id == correlation_id]
        return sorted(events, key=lambda e: e.timestamp)

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        return sorted(self.events, key=lambda e: e.timestamp, reverse=True)[:limit]
