"""
Purchase: append-only audit row, one per monetary/token event.
Only refund fields change after status=completed.
"""
from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import Column, DateTime, Index, Numeric, String, Text

from mangashelf.db.base import Base, JSONType

PURCHASE_TYPES = ("chapter", "manga", "subscription", "donation")
PURCHASE_STATUSES = ("pending", "completed", "failed", "refunded")
PURCHASE_CURRENCIES = ("tokens", "usd", "eur", "gbp")
PAYMENT_METHODS = ("stripe", "paypal", "apple_pay", "google_pay", "tokens")


class Purchase(Base):
    __tablename__ = "purchases"
    __table_args__ = (
        Index("ix_purchases_user_created", "user_id", "created_at"),
        Index("ix_purchases_user_item", "user_id", "purchase_type", "item_id"),
    )

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    user_id = Column(String, nullable=False, index=True)
    purchase_type = Column(String, nullable=False)  # chapter / manga / subscription / donation
    item_id = Column(String, nullable=False)  # resolved through purchase_type, see ItemRef
    amount = Column(Numeric(10, 2, asdecimal=False), nullable=False)  # exact cents; floats in Python
    currency = Column(String, nullable=False, default="tokens")
    payment_method = Column(String, nullable=True)
    transaction_id = Column(String, nullable=True, index=True)  # gateway reconciliation
    status = Column(String, nullable=False, default="pending")
    refunded_at = Column(DateTime(timezone=True), nullable=True)
    refund_reason = Column(Text, nullable=True)
    description = Column(String, nullable=True)
    # "metadata" is reserved on declarative classes
    extra = Column("metadata", JSONType, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
