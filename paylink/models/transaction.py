"""SQLAlchemy models for payment transactions."""

import uuid
from datetime import datetime, timedelta, timezone

from sqlalchemy import Column, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import DeclarativeBase, relationship

from paylink.models.enums import TransactionStatus


class Base(DeclarativeBase):
    pass


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return uuid.uuid4().hex[:12]


class Transaction(Base):
    """
    A payment request against one provider.

    Everything except ``status`` and ``pending_reference`` is fixed at
    creation. ``status`` is only ever changed through the state machine, and
    ``version`` turns every status write into a compare-and-write keyed by
    (id, version), so two concurrent approvals cannot both land.
    ``approval_claimed_at`` marks the row while one request is talking to
    the gateway, so a duplicate approval is turned away before it makes a
    second gateway call.
    """

    __tablename__ = "transactions"

    id = Column(String(12), primary_key=True, default=_new_id)
    amount = Column(Numeric(18, 2), nullable=False)
    currency = Column(String(3), nullable=False)
    provider = Column(String(50), nullable=False, index=True)
    owner_id = Column(String(100), nullable=True, index=True)
    status = Column(String(20), nullable=False, default=TransactionStatus.NEW.value)
    payment_link = Column(Text, nullable=False)
    pending_reference = Column(String(255), nullable=True)  # PayPal order id, Stripe intent id
    approval_claimed_at = Column(DateTime(timezone=True), nullable=True)  # Set while an approval call is in flight
    version = Column(Integer, nullable=False, default=1)

    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    audit_logs = relationship("AuditLog", back_populates="transaction", lazy="raise")

    __mapper_args__ = {"version_id_col": version}

    @property
    def is_terminal(self) -> bool:
        return self.status in (TransactionStatus.COMPLETED.value, TransactionStatus.FAILED.value)

    def approval_in_flight(self, lease_seconds: float) -> bool:
        """True while another request holds an unexpired approval claim on this row."""
        claimed = self.approval_claimed_at
        if claimed is None:
            return False
        if claimed.tzinfo is None:
            claimed = claimed.replace(tzinfo=timezone.utc)  # SQLite drops the offset
        return claimed > _utcnow() - timedelta(seconds=lease_seconds)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "amount": self.amount,
            "currency": self.currency,
            "provider": self.provider,
            "owner_id": self.owner_id,
            "status": self.status,
            "payment_link": self.payment_link,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


class AuditLog(Base):
    """
    Immutable audit trail entry.

    Written by the audit notification sink for every creation and status
    change. Append-only; never modified.
    """

    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    transaction_id = Column(String(12), ForeignKey("transactions.id"), nullable=True, index=True)
    action = Column(String(50), nullable=False)
    details = Column(Text, nullable=True)
    timestamp = Column(DateTime(timezone=True), default=_utcnow)

    transaction = relationship("Transaction", back_populates="audit_logs")
