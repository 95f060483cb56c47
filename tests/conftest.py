"""Shared fixtures: a fixed two-profile configuration and an entry factory."""

import pytest

from gastos_pareja.config import LedgerSettings
from gastos_pareja.models import (
    Configuration,
    Entry,
    FixedChargeDefinition,
    Goal,
    Profile,
)


@pytest.fixture
def config() -> Configuration:
    return Configuration(
        profiles=[
            Profile(id="A", name="Ana", aliases=["yo"]),
            Profile(id="B", name="Beto", aliases=["pareja", "ella"]),
        ],
        expense_categories=["Comida", "Casa", "Transporte", "Otros"],
        income_categories=["Sueldo", "Otros"],
        income_categories_by_profile={"B": ["Honorarios", "Otros"]},
        budget_percents={
            "A": {"Comida": 0.20, "Casa": 0.35},
        },
        goals=[
            Goal(id="auto", name="Auto", profiles=["A"], target_amount=100000),
            Goal(id="viaje", name="Viaje", scope="shared", impact_key="Vacaciones"),
        ],
        fixed_charges=[
            FixedChargeDefinition(
                id="arriendo",
                name="Arriendo",
                category="Casa",
                amount=500000,
                scope="shared",
                applies_to="both",
                impact_key="Casa",
            ),
            FixedChargeDefinition(
                id="gym",
                name="Gimnasio",
                category="Otros",
                amount=30000,
                applies_to="A",
            ),
        ],
        impact_keys=["Casa", "Vacaciones", "Otros"],
    )


@pytest.fixture
def ledger_settings() -> LedgerSettings:
    return LedgerSettings(
        timezone=None,
        max_entry_amount=50_000_000,
        future_date_tolerance_days=31,
        max_import_size_mb=5,
    )


@pytest.fixture
def make_entry():
    """Build an Entry with sensible defaults; keyword arguments override them."""
    counter = {"n": 0}

    def _make(**fields) -> Entry:
        counter["n"] += 1
        data = {
            "profile": "A",
            "date": "2024-03-05",
            "amount": 1000,
            "category": "Comida",
            "created_at": f"2024-03-05T10:00:{counter['n'] % 60:02d}.000Z",
        }
        data.update(fields)
        return Entry(**data)

    return _make
