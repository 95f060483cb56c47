"""Recurring fixed-charge materialization."""

from gastos_pareja.fixed_charges.generator import (
    build_fixed_entry,
    fixed_key,
    generate_for_month,
    target_profiles,
)

__all__ = ["build_fixed_entry", "fixed_key", "generate_for_month", "target_profiles"]
