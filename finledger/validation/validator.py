"""
Record Validation

DESIGN DECISION: Validation happens in two distinct stages:

STAGE 1 - SHAPE VALIDATION:
- Things the record alone can tell us
- A transfer onto its own source account
- A zero amount
- A custom interval below one day

STAGE 2 - REFERENCE VALIDATION:
- Does every account / category the record points at still exist?
- Does the category type match the transaction type?
- This needs the ledger's collections, so it is skipped when the
  validator was built without them

WHY TWO STAGES:
1. Shape checks are cheap and need no context
2. Better error messages (know exactly what kind of issue)
3. The scheduler can validate templates before it has a snapshot

Errors block a posting, warnings never do.
"""

from typing import Iterable, Optional, Union

from finledger.engine.errors import ReferentialIntegrityViolation
from finledger.models.records import (
    Account,
    Category,
    Frequency,
    RecurringTransaction,
    Transaction,
    TransactionType,
    ValidationIssue,
    ValidationResult,
)

PostingRecord = Union[Transaction, RecurringTransaction]


class RecordValidator:
    """
    Validates transactions and recurring templates against the ledger.

    Stage 1: Shape validation (always runs)
    Stage 2: Reference validation (only when accounts were supplied)
    """

    def __init__(
        self,
        accounts: Optional[Iterable[Account]] = None,
        categories: Optional[Iterable[Category]] = None,
    ):
        """
        Initialize validator.

        Args:
            accounts: Known accounts. If None, reference checks are skipped.
            categories: Known categories. If None, category checks are skipped.
        """
        self._account_ids = (
            {acc.id for acc in accounts} if accounts is not None else None
        )
        self._categories = (
            {cat.id: cat for cat in categories} if categories is not None else None
        )

    def _validate_shape(self, record: PostingRecord) -> list[ValidationIssue]:
        """
        Stage 1: checks that need nothing but the record.
        """
        issues = []

        if record.type == TransactionType.TRANSFER and record.to_account_id == record.account_id:
            issues.append(ValidationIssue(
                field="to_account_id",
                issue_type="same_account",
                message=f"Transfer source and destination are the same account ({record.account_id})",
                severity="error",
            ))

        if record.amount == 0:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="zero_amount",
                message="Amount is zero",
                severity="warning",
            ))

        if (
            isinstance(record, RecurringTransaction)
            and record.frequency == Frequency.CUSTOM_DAYS
            and (record.custom_interval_days or 0) < 1
        ):
            issues.append(ValidationIssue(
                field="custom_interval_days",
                issue_type="invalid_interval",
                message=f"Custom interval must be at least 1 day (got {record.custom_interval_days})",
                severity="error",
            ))

        return issues

    def _validate_references(self, record: PostingRecord) -> list[ValidationIssue]:
        """
        Stage 2: checks against the known accounts and categories.
        """
        issues = []

        if self._account_ids is not None:
            if record.account_id not in self._account_ids:
                issues.append(ValidationIssue(
                    field="account_id",
                    issue_type="missing_reference",
                    message=f"Account {record.account_id} does not exist",
                    severity="error",
                ))
            if record.to_account_id and record.to_account_id not in self._account_ids:
                issues.append(ValidationIssue(
                    field="to_account_id",
                    issue_type="missing_reference",
                    message=f"Destination account {record.to_account_id} does not exist",
                    severity="error",
                ))

        if self._categories is not None and record.category_id:
            category = self._categories.get(record.category_id)
            if category is None:
                # A dangling category does not move money, so it never blocks.
                issues.append(ValidationIssue(
                    field="category_id",
                    issue_type="missing_reference",
                    message=f"Category {record.category_id} does not exist",
                    severity="warning",
                ))
            elif category.type != record.type:
                issues.append(ValidationIssue(
                    field="category_id",
                    issue_type="category_type_mismatch",
                    message=(
                        f"Category '{category.name}' is for {category.type.value.lower()}, "
                        f"not {record.type.value.lower()}"
                    ),
                    severity="warning",
                ))

        return issues

    def validate(self, record: PostingRecord) -> ValidationResult:
        """
        Run both stages and collect every issue found.
        """
        issues = self._validate_shape(record)
        issues.extend(self._validate_references(record))
        record_type = (
            "recurring_transaction"
            if isinstance(record, RecurringTransaction)
            else "transaction"
        )
        return ValidationResult(
            record_type=record_type,
            record_id=record.id,
            issues=issues,
        )

    def ensure_valid(self, record: PostingRecord) -> ValidationResult:
        """
        Validate and raise on any error-level issue.

        Raises:
            ReferentialIntegrityViolation: with every error message joined
        """
        result = self.validate(record)
        if result.has_errors:
            messages = "; ".join(
                issue.message for issue in result.issues if issue.severity == "error"
            )
            raise ReferentialIntegrityViolation(messages)
        return result

    def get_user_friendly_summary(self, result: ValidationResult) -> str:
        """
        Summarize a validation result in plain words for the user.
        """
        if not result.issues:
            return "All checks passed."

        lines = []
        errors = [i for i in result.issues if i.severity == "error"]
        warnings = [i for i in result.issues if i.severity == "warning"]

        if errors:
            lines.append("This record cannot be saved:")
            lines.extend(f"   • {issue.message}" for issue in errors)

        if warnings:
            if lines:
                lines.append("")
            lines.append("Please verify the following:")
            lines.extend(f"   • {issue.message}" for issue in warnings)

        return "\n".join(lines)
