"""Tests for the Google Sheets storage against an in-process fake worksheet."""

import asyncio
from uuid import uuid4

import pytest
from tenacity import wait_none

from gastos_pareja.models import AuditEventBuilder, Configuration, Nature
from gastos_pareja.services.storage import (
    DuplicateError,
    GoogleSheetsAuditStorage,
    GoogleSheetsLedgerStorage,
    StorageError,
)
from gastos_pareja.services.storage.google_sheets import (
    AUDIT_COLUMNS,
    CONFIG_COLUMNS,
    DEVICE_COLUMNS,
    ENTRY_COLUMNS,
)


class FakeWorksheet:
    """Keeps cells as strings, like the Sheets API returns them."""

    def __init__(self, header):
        self.values = [list(header)]
        self.row_count = 1000
        self.col_count = len(header)
        self.fail_updates = 0

    def get_all_values(self):
        return [list(row) for row in self.values]

    def col_values(self, col):
        return [row[col - 1] for row in self.values if len(row) >= col]

    def append_row(self, row, value_input_option=None):
        self.values.append([str(cell) for cell in row])

    def update(self, values=None, range_name=None, value_input_option=None):
        if self.fail_updates:
            self.fail_updates -= 1
            raise RuntimeError("APIError: [503]: The service is currently unavailable.")
        assert range_name == "A1"
        assert len(values) <= self.row_count
        assert all(len(row) <= self.col_count for row in values)
        for idx, row in enumerate(values):
            cells = [str(cell) for cell in row]
            if idx < len(self.values):
                self.values[idx] = cells
            else:
                self.values.append(cells)
        # The API trims trailing blank rows
        while self.values and not any(self.values[-1]):
            self.values.pop()

    def add_rows(self, count):
        self.row_count += count

    def add_cols(self, count):
        self.col_count += count

    def delete_rows(self, index):
        del self.values[index - 1]

    def update_cell(self, row, col, value):
        self.values[row - 1][col - 1] = str(value)


class FakeSheetsClient:
    def __init__(self):
        self.entries = FakeWorksheet(ENTRY_COLUMNS)
        self.config = FakeWorksheet(CONFIG_COLUMNS)
        self.devices = FakeWorksheet(DEVICE_COLUMNS)
        self.audit = FakeWorksheet(AUDIT_COLUMNS)

    def get_entries_sheet(self):
        return self.entries

    def get_config_sheet(self):
        return self.config

    def get_devices_sheet(self):
        return self.devices

    def get_audit_sheet(self):
        return self.audit


@pytest.fixture
def client() -> FakeSheetsClient:
    return FakeSheetsClient()


@pytest.fixture
def storage(client) -> GoogleSheetsLedgerStorage:
    return GoogleSheetsLedgerStorage(client)


@pytest.fixture
def no_retry_wait(monkeypatch):
    for method in (GoogleSheetsLedgerStorage.replace_all, GoogleSheetsLedgerStorage.set_config):
        monkeypatch.setattr(method.retry, "wait", wait_none())


class TestEntriesSheet:
    """Tests for entry rows."""

    def test_add_and_list(self, storage, client, make_entry):
        """Test an entry comes back unchanged from its row."""
        entry = make_entry(split="50_50", note="pan", nature="expense")

        assert asyncio.run(storage.add_entry(entry)) == entry.id
        assert client.entries.values[1][0] == entry.id

        listed = asyncio.run(storage.list_entries())
        assert [e.to_wire() for e in listed] == [entry.to_wire()]

    def test_duplicate_id_is_rejected(self, storage, make_entry):
        """Test the same id cannot be appended twice."""
        entry = make_entry(split="50_50")
        asyncio.run(storage.add_entry(entry))

        with pytest.raises(DuplicateError):
            asyncio.run(storage.add_entry(entry))

    def test_legacy_rows_are_upgraded_on_read(self, storage, client):
        """Test rows with an older column set are normalized by header name."""
        client.entries.values = [
            ["id", "paidBy", "amount", "date", "category", "type"],
            ["old-1", "pareja", "5000", "2023-11-02", "Comida", ""],
            ["", "", "", "", "", ""],
            ["old-2", "yo", "1200.5", "2023-11-03", "Sueldo", "income"],
        ]

        entries = asyncio.run(storage.list_entries())

        assert [e.id for e in entries] == ["old-1", "old-2"]
        assert entries[0].profile == "maria_ignacia"
        assert entries[0].amount == 5000
        assert entries[0].split == "50_50"
        assert entries[0].nature is None
        assert entries[1].profile == "pablo"
        assert entries[1].amount == 1201
        assert entries[1].direction.value == "in"

    def test_month_filter_and_months(self, storage, make_entry):
        """Test filtering by month and the distinct month list."""
        for date in ("2024-01-15", "2024-03-01", "2024-03-20"):
            asyncio.run(storage.add_entry(make_entry(date=date, split="50_50")))

        march = asyncio.run(storage.list_entries("2024-03"))

        assert [e.date for e in march] == ["2024-03-01", "2024-03-20"]
        assert asyncio.run(storage.list_months()) == ["2024-03", "2024-01"]

    def test_delete_entry(self, storage, make_entry):
        """Test deleting by id."""
        keep = make_entry(split="50_50")
        drop = make_entry(split="50_50")
        for entry in (keep, drop):
            asyncio.run(storage.add_entry(entry))

        assert asyncio.run(storage.delete_entry(drop.id))
        assert not asyncio.run(storage.delete_entry("missing"))
        assert [e.id for e in asyncio.run(storage.list_entries())] == [keep.id]

    def test_replace_all(self, storage, client, make_entry):
        """Test the sheet is rewritten with a header and the new rows."""
        asyncio.run(storage.add_entry(make_entry(split="50_50")))
        fresh = [make_entry(split="50_50", amount=n) for n in (1, 2, 3)]

        assert asyncio.run(storage.replace_all(fresh)) == 3
        assert client.entries.values[0] == ENTRY_COLUMNS
        assert [e.amount for e in asyncio.run(storage.list_entries())] == [1, 2, 3]

    def test_replace_all_with_fewer_rows(self, storage, client, make_entry):
        """Test rows beyond the new ledger are blanked in the same write."""
        for n in (1, 2, 3):
            asyncio.run(storage.add_entry(make_entry(split="50_50", amount=n)))

        asyncio.run(storage.replace_all([make_entry(split="50_50", amount=9)]))

        assert [e.amount for e in asyncio.run(storage.list_entries())] == [9]
        assert len(client.entries.values) == 2

    def test_failed_replace_keeps_previous_ledger(
        self, storage, client, make_entry, no_retry_wait
    ):
        """Test a write that keeps failing leaves the old rows and header in place."""
        kept = make_entry(split="50_50")
        asyncio.run(storage.add_entry(kept))
        client.entries.fail_updates = 3

        with pytest.raises(StorageError):
            asyncio.run(storage.replace_all([make_entry(split="50_50")]))

        assert client.entries.values[0] == ENTRY_COLUMNS
        assert [e.id for e in asyncio.run(storage.list_entries())] == [kept.id]

    def test_replace_all_retries_transient_errors(
        self, storage, client, make_entry, no_retry_wait
    ):
        """Test a single failed write is retried."""
        asyncio.run(storage.add_entry(make_entry(split="50_50")))
        fresh = make_entry(split="50_50")
        client.entries.fail_updates = 1

        assert asyncio.run(storage.replace_all([fresh])) == 1
        assert [e.id for e in asyncio.run(storage.list_entries())] == [fresh.id]

    def test_saving_leg_round_trip(self, storage, make_entry):
        """Test goal accounts and saving nature survive the sheet."""
        entry = make_entry(
            nature="saving", direction="in", type="income", account="goal:auto",
            category="Ahorro",
        )
        asyncio.run(storage.add_entry(entry))

        stored = asyncio.run(storage.list_entries())[0]
        assert stored.nature == Nature.SAVING
        assert stored.goal_id == "auto"


class TestConfigSheets:
    """Tests for the Config and Devices sheets."""

    def test_empty_config_sheet_gives_sample(self, storage):
        """Test a fresh spreadsheet starts with the sample configuration."""
        assert asyncio.run(storage.get_config()) == Configuration.default()

    def test_set_and_get_config(self, storage, client, config):
        """Test the configuration survives the key/JSON rows."""
        asyncio.run(storage.set_config(config))

        keys = [row[0] for row in client.config.values[1:]]
        assert "deviceProfiles" not in keys
        assert "fixedCharges" in keys
        assert asyncio.run(storage.get_config()) == config

    def test_failed_config_write_keeps_previous_config(
        self, storage, client, config, no_retry_wait
    ):
        """Test the Config sheet is not emptied by a failed save."""
        asyncio.run(storage.set_config(config))
        client.config.fail_updates = 3

        with pytest.raises(StorageError):
            asyncio.run(storage.set_config(Configuration.default()))

        assert asyncio.run(storage.get_config()) == config

    def test_devices_are_merged_into_config(self, storage, client, config):
        """Test device rows are registered and updated in place."""
        asyncio.run(storage.set_config(config))
        asyncio.run(storage.register_device_profile("phone-1", "A"))
        asyncio.run(storage.register_device_profile("phone-1", "B"))

        assert len(client.devices.values) == 2
        loaded = asyncio.run(storage.get_config())
        assert loaded.device_profiles == {"phone-1": "B"}


class TestAuditSheet:
    """Tests for the append-only audit log."""

    def test_append_and_read_back(self, client):
        """Test events are persisted and queried by correlation id."""
        audit = GoogleSheetsAuditStorage(client)
        correlation_id = uuid4()
        saved = AuditEventBuilder.entry_saved(
            entry_id="e-1",
            profile="A",
            amount=12500,
            category="Comida",
            correlation_id=correlation_id,
        )
        other = AuditEventBuilder.entry_saved(
            entry_id="e-2",
            profile="B",
            amount=10,
            category="Casa",
            correlation_id=uuid4(),
        )
        for event in (saved, other):
            assert asyncio.run(audit.append_event(event))

        events = asyncio.run(audit.get_events_by_correlation_id(correlation_id))

        assert [e.event_id for e in events] == [saved.event_id]
        assert events[0].details == {"amount": 12500, "category": "Comida"}
        assert events[0].is_user_action
        assert len(asyncio.run(audit.get_recent_events(limit=1))) == 1

    def test_malformed_rows_are_skipped(self, client):
        """Test hand-edited rows do not break reads."""
        client.audit.values.append(["not-a-uuid", "yesterday"])
        audit = GoogleSheetsAuditStorage(client)

        assert asyncio.run(audit.get_recent_events()) == []
