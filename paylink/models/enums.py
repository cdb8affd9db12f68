"""Enumerations for the payment transaction domain model."""

from enum import Enum


class TransactionStatus(str, Enum):
    """Lifecycle states for a payment transaction."""

    NEW = "new"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class AuditAction(str, Enum):
    """Actions recorded in the audit trail."""

    TRANSACTION_CREATED = "transaction_created"
    STATUS_CHANGED = "status_changed"
