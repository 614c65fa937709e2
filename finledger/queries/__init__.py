"""Reference query package."""

from finledger.queries.references import ReferenceChecker, detach_transaction

__all__ = ["ReferenceChecker", "detach_transaction"]
