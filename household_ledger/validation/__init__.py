"""Validation package."""

from household_ledger.validation.validator import TransactionValidator, parse_iso_date

__all__ = ["TransactionValidator", "parse_iso_date"]
