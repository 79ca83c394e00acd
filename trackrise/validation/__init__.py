"""Validation package."""

from trackrise.validation.validator import (
    TransactionValidator,
    ValidationError,
    ValidationIssue,
    ValidationResult,
)

__all__ = [
    "TransactionValidator",
    "ValidationError",
    "ValidationIssue",
    "ValidationResult",
]
