"""Validation package."""

from tijarati.validation.digits import to_latin_digits
from tijarati.validation.validator import RecordValidator, ValidationError

__all__ = ["RecordValidator", "ValidationError", "to_latin_digits"]
