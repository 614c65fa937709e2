"""
Audit Models for FinLedger

Every mutation of the ledger is logged for audit purposes.
This provides:
1. Traceability of every posting the scheduler made
2. Debugging information when a posting fails
3. A way to reconstruct why a balance changed

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuditEventType(str, Enum):
    """
    Types of events we audit.

    Every ledger mutation has its own event type.
    """
    # Transactions
    TRANSACTION_POSTED = "transaction_posted"
    TRANSACTION_DELETED = "transaction_deleted"

    # Recurring templates
    RECURRING_POSTED = "recurring_posted"
    RECURRING_EXHAUSTED = "recurring_exhausted"
    RECURRING_POSTING_FAILED = "recurring_posting_failed"
    RECURRING_CATCH_UP_LIMITED = "recurring_catch_up_limited"
    RECURRING_PAUSED = "recurring_paused"
    RECURRING_RESUMED = "recurring_resumed"

    # Credit cards
    INSTALLMENT_PAID = "installment_paid"

    # Loans
    LOAN_CREATED = "loan_created"
    LOAN_REPAYMENT_RECORDED = "loan_repayment_recorded"

    # Money boxes
    MONEY_BOX_DEPOSIT = "money_box_deposit"
    MONEY_BOX_WITHDRAWAL = "money_box_withdrawal"

    # Failures
    INTEGRITY_VIOLATION = "integrity_violation"
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    Every ledger mutation creates at least one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=_utcnow,
        description="When the event was recorded (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what record is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of record (e.g., 'transaction', 'loan', 'recurring')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the record this event relates to"
    )

    # Correlation - all events produced by one ledger call share it
    correlation_id: Optional[UUID] = None

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(default_factory=dict)

    error_message: Optional[str] = None
    is_user_action: bool = False

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.transaction_posted(tx_id, "EXPENSE", "30", cid)
        event = AuditEventBuilder.recurring_exhausted(rt_id, "Rent", cid)
    """

    @staticmethod
    def transaction_posted(
        transaction_id: str,
        transaction_type: str,
        amount: str,
        correlation_id: UUID,
        is_user_action: bool = True,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_POSTED,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description=f"Transaction posted: {transaction_type} {amount}",
            details={
                "type": transaction_type,
                "amount": amount,
            },
            is_user_action=is_user_action,
        )

    @staticmethod
    def transaction_deleted(
        transaction_id: str,
        detached_links: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_DELETED,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description=f"Transaction deleted ({detached_links} links detached)",
            details={"detached_links": detached_links},
            is_user_action=True,
        )

    @staticmethod
    def recurring_posted(
        template_id: str,
        transaction_id: str,
        due_date: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECURRING_POSTED,
            entity_type="recurring",
            entity_id=template_id,
            correlation_id=correlation_id,
            description=f"Recurring template posted for {due_date}",
            details={
                "transaction_id": transaction_id,
                "due_date": due_date,
            },
        )

    @staticmethod
    def recurring_exhausted(
        template_id: str,
        description: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECURRING_EXHAUSTED,
            entity_type="recurring",
            entity_id=template_id,
            correlation_id=correlation_id,
            description=f"Recurring template exhausted: {description}",
        )

    @staticmethod
    def recurring_posting_failed(
        template_id: str,
        error_message: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECURRING_POSTING_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="recurring",
            entity_id=template_id,
            correlation_id=correlation_id,
            description="Recurring template could not be posted",
            error_message=error_message,
        )

    @staticmethod
    def recurring_catch_up_limited(
        template_id: str,
        limit: int,
        next_due_date: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECURRING_CATCH_UP_LIMITED,
            severity=AuditSeverity.WARNING,
            entity_type="recurring",
            entity_id=template_id,
            correlation_id=correlation_id,
            description=f"Catch-up stopped after {limit} postings",
            details={
                "limit": limit,
                "next_due_date": next_due_date,
            },
        )

    @staticmethod
    def recurring_paused(template_id: str, correlation_id: UUID) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECURRING_PAUSED,
            entity_type="recurring",
            entity_id=template_id,
            correlation_id=correlation_id,
            description="Recurring template paused",
            is_user_action=True,
        )

    @staticmethod
    def recurring_resumed(template_id: str, correlation_id: UUID) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECURRING_RESUMED,
            entity_type="recurring",
            entity_id=template_id,
            correlation_id=correlation_id,
            description="Recurring template resumed",
            is_user_action=True,
        )

    @staticmethod
    def installment_paid(
        purchase_id: str,
        installments_paid: int,
        number_of_installments: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.INSTALLMENT_PAID,
            entity_type="installment_purchase",
            entity_id=purchase_id,
            correlation_id=correlation_id,
            description=f"Installment {installments_paid}/{number_of_installments} paid",
            details={
                "installments_paid": installments_paid,
                "number_of_installments": number_of_installments,
            },
            is_user_action=True,
        )

    @staticmethod
    def loan_created(
        loan_id: str,
        person_name: str,
        funding_source: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LOAN_CREATED,
            entity_type="loan",
            entity_id=loan_id,
            correlation_id=correlation_id,
            description=f"Loan to {person_name} created",
            details={"funding_source": funding_source},
            is_user_action=True,
        )

    @staticmethod
    def loan_repayment_recorded(
        loan_id: str,
        repayment_id: str,
        amount: str,
        status: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LOAN_REPAYMENT_RECORDED,
            entity_type="loan",
            entity_id=loan_id,
            correlation_id=correlation_id,
            description=f"Loan repayment of {amount} recorded",
            details={
                "repayment_id": repayment_id,
                "amount": amount,
                "status": status,
            },
            is_user_action=True,
        )

    @staticmethod
    def money_box_movement(
        money_box_id: str,
        movement_type: str,
        amount: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        event_type = (
            AuditEventType.MONEY_BOX_DEPOSIT
            if movement_type == "DEPOSIT"
            else AuditEventType.MONEY_BOX_WITHDRAWAL
        )
        return AuditEvent(
            event_type=event_type,
            entity_type="money_box",
            entity_id=money_box_id,
            correlation_id=correlation_id,
            description=f"Money box {movement_type.lower()} of {amount}",
            details={"amount": amount},
            is_user_action=True,
        )

    @staticmethod
    def integrity_violation(
        entity_type: str,
        entity_id: Optional[str],
        error_message: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.INTEGRITY_VIOLATION,
            severity=AuditSeverity.WARNING,
            entity_type=entity_type,
            entity_id=entity_id,
            correlation_id=correlation_id,
            description=f"Rejected {entity_type} mutation",
            error_message=error_message,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )
