"""Entry validation package."""

from gastos_pareja.validation.validator import EntryValidator, LedgerValidationError

__all__ = ["EntryValidator", "LedgerValidationError"]
