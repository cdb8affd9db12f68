from paylink.models.enums import AuditAction, TransactionStatus
from paylink.models.transaction import AuditLog, Base, Transaction

__all__ = [
    "Base",
    "Transaction",
    "AuditLog",
    "TransactionStatus",
    "AuditAction",
]
