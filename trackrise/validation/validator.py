"""
Transaction Validation

Validation runs in two stages:

STAGE 1 - SCHEMA VALIDATION (blocking):
- Amount must be greater than zero
- Description must not be blank
- Currency must be supported
- Category must exist and match the transaction type
- Image paths only belong to photo entries

STAGE 2 - SEMANTIC VALIDATION (warnings only):
- Dates far in the future
- Unusually large amounts

IMPORTANT: Validation NEVER silently fixes issues. It reports them.
The ledger store refuses inserts with stage 1 errors; warnings are shown
to the user during draft review.
"""

from datetime import timedelta
from decimal import Decimal
from typing import Optional, Union

from pydantic import BaseModel, Field

from trackrise.models.currency import format_currency, is_supported_currency
from trackrise.models.transaction import (
    Category,
    EntryMethod,
    Transaction,
    TransactionDraft,
    utcnow,
)

FUTURE_DATE_TOLERANCE = timedelta(days=7)
LARGE_AMOUNT_THRESHOLD = Decimal("10000000")


class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_value', 'type_mismatch')"
    )
    message: str
    severity: str = Field(..., pattern="^(error|warning|info)$")
    suggested_fix: Optional[str] = None


class ValidationResult(BaseModel):
    """Result of the two-stage validation."""

    schema_valid: bool
    issues: list[ValidationIssue] = Field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return self.schema_valid and not self.has_errors

    @property
    def has_errors(self) -> bool:
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def errors(self) -> list[ValidationIssue]:
        return [issue for issue in self.issues if issue.severity == "error"]

    @property
    def warnings(self) -> list[ValidationIssue]:
        return [issue for issue in self.issues if issue.severity == "warning"]


class ValidationError(Exception):
    """A transaction was rejected. Carries every blocking issue found."""

    def __init__(self, issues: list[ValidationIssue]):
        self.issues = issues
        message = "; ".join(f"{issue.field}: {issue.message}" for issue in issues)
        super().__init__(message or "Transaction is invalid")


Validatable = Union[Transaction, TransactionDraft]


class TransactionValidator:
    """
    Validates transactions and drafts.

    The caller resolves the category (the validator does no I/O) and
    passes ``None`` when the category id is unknown.
    """

    def _validate_schema(
        self,
        entry: Validatable,
        category: Optional[Category],
    ) -> list[ValidationIssue]:
        issues = []

        if entry.amount <= 0:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="invalid_value",
                message="Amount must be greater than zero",
                severity="error",
                suggested_fix="Enter the amount shown on the receipt or spoken",
            ))

        if not entry.description or not entry.description.strip():
            issues.append(ValidationIssue(
                field="description",
                issue_type="missing",
                message="Description is required",
                severity="error",
            ))

        if not is_supported_currency(entry.currency_code):
            issues.append(ValidationIssue(
                field="currency_code",
                issue_type="unsupported",
                message=f"Currency {entry.currency_code} is not supported",
                severity="error",
            ))

        if category is None:
            issues.append(ValidationIssue(
                field="category",
                issue_type="unknown",
                message=f"Unknown category: {entry.category}",
                severity="error",
                suggested_fix="Pick one of the listed categories",
            ))
        elif category.type != entry.type:
            issues.append(ValidationIssue(
                field="category",
                issue_type="type_mismatch",
                message=(
                    f"Category '{category.name}' is an {category.type.value} category "
                    f"but the transaction is {entry.type.value}"
                ),
                severity="error",
                suggested_fix=f"Pick an {entry.type.value} category",
            ))

        if entry.image_path and entry.entry_method != EntryMethod.PHOTO:
            issues.append(ValidationIssue(
                field="image_path",
                issue_type="invalid_value",
                message="Only photo entries may reference an image",
                severity="error",
            ))

        return issues

    def _validate_semantic(self, entry: Validatable) -> list[ValidationIssue]:
        issues = []

        if entry.date > utcnow() + FUTURE_DATE_TOLERANCE:
            issues.append(ValidationIssue(
                field="date",
                issue_type="future_date",
                message=f"Date ({entry.date.date()}) is in the future",
                severity="warning",
                suggested_fix="Please verify the date is correct",
            ))

        if entry.amount > LARGE_AMOUNT_THRESHOLD:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="suspicious_value",
                message=(
                    f"Amount ({format_currency(entry.amount, entry.currency_code)}) "
                    "seems unusually high"
                ),
                severity="warning",
                suggested_fix="Please verify this amount is correct",
            ))

        return issues

    def validate(
        self,
        entry: Validatable,
        category: Optional[Category],
    ) -> ValidationResult:
        """Run both stages. Stage 2 only runs when stage 1 passes."""
        issues = self._validate_schema(entry, category)
        schema_valid = not any(issue.severity == "error" for issue in issues)

        if schema_valid:
            issues.extend(self._validate_semantic(entry))

        return ValidationResult(schema_valid=schema_valid, issues=issues)

    def ensure_valid(
        self,
        entry: Validatable,
        category: Optional[Category],
    ) -> ValidationResult:
        """Validate and raise ValidationError on any blocking issue."""
        result = self.validate(entry, category)
        if result.has_errors:
            raise ValidationError(result.errors)
        return result

    def get_user_friendly_summary(self, result: ValidationResult) -> str:
        """Summary of validation results to show next to the review form."""
        if result.is_valid and not result.warnings:
            return "All checks passed. Please review the details below."

        lines = []

        if result.errors:
            lines.append("Please fix the following before saving:")
            for issue in result.errors:
                lines.append(f"   • {issue.message}")
                if issue.suggested_fix:
                    lines.append(f"     {issue.suggested_fix}")

        if result.warnings:
            if lines:
                lines.append("")
            lines.append("Please verify the following:")
            for issue in result.warnings:
                lines.append(f"   • {issue.message}")

        return "\n".join(lines)
