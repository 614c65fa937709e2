"""
Audit Logger

DESIGN DECISION: Every ledger mutation is logged.
This provides:
1. Traceability of what the scheduler posted and why
2. Debugging capability when a posting fails
3. A history the user can review

The audit logger:
- Is synchronous, like the ledger itself
- Gracefully handles failures (a broken sink never fails a mutation)
- Supports correlation IDs to trace related events
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional
from uuid import UUID, uuid4

import structlog

from finledger.config.settings import LoggingSettings
from finledger.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity


def configure_logging(settings: Optional[LoggingSettings] = None) -> None:
    """
    Configure structlog for ledger log lines.

    JSON output by default, a console renderer when json_logs is off.
    Call once at application startup; FinanceLedger never calls it, so
    a host that already configured logging keeps its setup.
    """
    settings = settings or LoggingSettings()
    logging.basicConfig(format="%(message)s", level=settings.log_level)
    logging.getLogger().setLevel(settings.log_level)

    renderer = (
        structlog.processors.JSONRenderer()
        if settings.json_logs
        else structlog.dev.ConsoleRenderer()
    )
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


# =============================================================================
# Sinks
# =============================================================================

class AuditSink(ABC):
    """Where audit events are persisted beyond the local log."""

    @abstractmethod
    def append_event(self, event: AuditEvent) -> bool:
        """Store one event. Returns True on success."""


class InMemoryAuditSink(AuditSink):
    """Keeps events in a list. Used by tests and short-lived sessions."""

    def __init__(self):
        self.events: list[AuditEvent] = []

    def append_event(self, event: AuditEvent) -> bool:
        self.events.append(event)
        return True

    def of_type(self, event_type) -> list[AuditEvent]:
        return [e for e in self.events if e.event_type == event_type]


# =============================================================================
# Logger
# =============================================================================

class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. The sink, when one is configured
    """

    def __init__(self, sink: Optional[AuditSink] = None):
        """
        Args:
            sink: Persistence backend. If None, only logs locally.
        """
        self._sink = sink
        self._logger = structlog.get_logger("finledger.audit")

    @property
    def sink(self) -> Optional[AuditSink]:
        return self._sink

    def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to the sink if available.

        Returns True if the sink write succeeded (or no sink configured).
        """
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        elif event.severity == AuditSeverity.DEBUG:
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._sink is None:
            return True

        try:
            return self._sink.append_event(event)
        except Exception as e:
            # Log failure but don't raise
            self._logger.error(
                "audit_sink_failed",
                error=str(e),
                event_id=str(event.event_id),
            )
            return False

    def log_transaction_posted(
        self,
        transaction_id: str,
        transaction_type: str,
        amount: str,
        correlation_id: UUID,
        is_user_action: bool = True,
    ) -> None:
        self.log(AuditEventBuilder.transaction_posted(
            transaction_id=transaction_id,
            transaction_type=transaction_type,
            amount=amount,
            correlation_id=correlation_id,
            is_user_action=is_user_action,
        ))

    def log_transaction_deleted(
        self,
        transaction_id: str,
        detached_links: int,
        correlation_id: UUID,
    ) -> None:
        self.log(AuditEventBuilder.transaction_deleted(
            transaction_id=transaction_id,
            detached_links=detached_links,
            correlation_id=correlation_id,
        ))

    def log_recurring_posted(
        self,
        template_id: str,
        transaction_id: str,
        due_date: str,
        correlation_id: UUID,
    ) -> None:
        """Log one scheduler posting."""
        self.log(AuditEventBuilder.recurring_posted(
            template_id=template_id,
            transaction_id=transaction_id,
            due_date=due_date,
            correlation_id=correlation_id,
        ))

    def log_recurring_exhausted(
        self,
        template_id: str,
        description: str,
        correlation_id: UUID,
    ) -> None:
        self.log(AuditEventBuilder.recurring_exhausted(
            template_id=template_id,
            description=description,
            correlation_id=correlation_id,
        ))

    def log_recurring_posting_failed(
        self,
        template_id: str,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        self.log(AuditEventBuilder.recurring_posting_failed(
            template_id=template_id,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    def log_recurring_catch_up_limited(
        self,
        template_id: str,
        limit: int,
        next_due_date: str,
        correlation_id: UUID,
    ) -> None:
        self.log(AuditEventBuilder.recurring_catch_up_limited(
            template_id=template_id,
            limit=limit,
            next_due_date=next_due_date,
            correlation_id=correlation_id,
        ))

    def log_recurring_paused(self, template_id: str, correlation_id: UUID) -> None:
        self.log(AuditEventBuilder.recurring_paused(template_id, correlation_id))

    def log_recurring_resumed(self, template_id: str, correlation_id: UUID) -> None:
        self.log(AuditEventBuilder.recurring_resumed(template_id, correlation_id))

    def log_installment_paid(
        self,
        purchase_id: str,
        installments_paid: int,
        number_of_installments: int,
        correlation_id: UUID,
    ) -> None:
        self.log(AuditEventBuilder.installment_paid(
            purchase_id=purchase_id,
            installments_paid=installments_paid,
            number_of_installments=number_of_installments,
            correlation_id=correlation_id,
        ))

    def log_loan_created(
        self,
        loan_id: str,
        person_name: str,
        funding_source: str,
        correlation_id: UUID,
    ) -> None:
        self.log(AuditEventBuilder.loan_created(
            loan_id=loan_id,
            person_name=person_name,
            funding_source=funding_source,
            correlation_id=correlation_id,
        ))

    def log_loan_repayment_recorded(
        self,
        loan_id: str,
        repayment_id: str,
        amount: str,
        status: str,
        correlation_id: UUID,
    ) -> None:
        self.log(AuditEventBuilder.loan_repayment_recorded(
            loan_id=loan_id,
            repayment_id=repayment_id,
            amount=amount,
            status=status,
            correlation_id=correlation_id,
        ))

    def log_money_box_movement(
        self,
        money_box_id: str,
        movement_type: str,
        amount: str,
        correlation_id: UUID,
    ) -> None:
        self.log(AuditEventBuilder.money_box_movement(
            money_box_id=money_box_id,
            movement_type=movement_type,
            amount=amount,
            correlation_id=correlation_id,
        ))

    def log_integrity_violation(
        self,
        entity_type: str,
        entity_id: Optional[str],
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        """Log a mutation the validator rejected."""
        self.log(AuditEventBuilder.integrity_violation(
            entity_type=entity_type,
            entity_id=entity_id,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a ledger call and pass it through every
    event that call produces.
    """
    return uuid4()
