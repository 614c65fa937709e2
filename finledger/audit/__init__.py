"""Audit logging package."""

from finledger.audit.logger import (
    AuditLogger,
    AuditSink,
    InMemoryAuditSink,
    configure_logging,
    create_correlation_id,
)

__all__ = [
    "AuditLogger",
    "AuditSink",
    "InMemoryAuditSink",
    "configure_logging",
    "create_correlation_id",
]
