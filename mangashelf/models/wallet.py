"""
Wallet: token/coin balances (one per user) and the append-only transaction log.
Balance after replaying every WalletTransaction from zero must equal the stored balance.
"""
from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Integer, String

from mangashelf.db.base import Base

TRANSACTION_TYPES = ("purchase", "refund", "reward", "debit", "subscription")
CURRENCIES = ("tokens", "coins")


class Wallet(Base):
    __tablename__ = "wallets"
    __table_args__ = (
        CheckConstraint("tokens_balance >= 0", name="ck_wallet_tokens_non_negative"),
        CheckConstraint("coins_balance >= 0", name="ck_wallet_coins_non_negative"),
    )

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    user_id = Column(String, ForeignKey("users.id"), unique=True, nullable=False, index=True)
    tokens_balance = Column(Integer, nullable=False, default=0)
    coins_balance = Column(Integer, nullable=False, default=0)
    tokens_spent = Column(Integer, nullable=False, default=0)
    tokens_earned = Column(Integer, nullable=False, default=0)
    active_subscription_id = Column(String, nullable=True)  # weak ref, may point at an expired row
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )


class WalletTransaction(Base):
    __tablename__ = "wallet_transactions"

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    wallet_id = Column(String, ForeignKey("wallets.id"), nullable=False, index=True)
    user_id = Column(String, nullable=False, index=True)
    type = Column(String, nullable=False)  # purchase / refund / reward / debit / subscription
    amount = Column(Integer, nullable=False)  # signed: + credit, - debit
    currency = Column(String, nullable=False, default="tokens")
    balance_after = Column(Integer, nullable=False)
    description = Column(String, nullable=True)
    reference_id = Column(String, nullable=True, index=True)  # Purchase.id, Subscription.id, ...
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
