"""
Gastos Pareja - Source Package

Ledger engine for a couple's shared expense-and-income tracker.

DESIGN PRINCIPLES:
1. Entries are append-only facts; every view is derived from them
2. Legacy shapes are upgraded once, at ingestion
3. Private entries never leak across profiles
4. Every write is auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Gastos Pareja Team"
