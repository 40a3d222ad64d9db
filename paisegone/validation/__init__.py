"""Validation package."""

from paisegone.validation.validator import LedgerValidator

__all__ = ["LedgerValidator"]
