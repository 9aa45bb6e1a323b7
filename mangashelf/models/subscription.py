from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, Numeric, String, Text

from mangashelf.db.base import Base

BENEFIT_FLAGS = (
    "can_add_gif_profile",
    "can_add_banner",
    "auto_reader_enabled",
    "no_ads",
    "all_chapters_free",
)


class Subscription(Base):
    """
    Premium subscription. Expiry is passive: nothing flips is_active when expires_at
    passes, so entitlement is always is_active AND expires_at > now.
    """

    __tablename__ = "subscriptions"
    __table_args__ = (Index("ix_subscriptions_user_active", "user_id", "is_active"),)

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    user_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    tier = Column(String, nullable=False, default="premium")

    # Benefits
    can_add_gif_profile = Column(Boolean, nullable=False, default=True)
    can_add_banner = Column(Boolean, nullable=False, default=True)
    auto_reader_enabled = Column(Boolean, nullable=False, default=True)
    no_ads = Column(Boolean, nullable=False, default=True)
    all_chapters_free = Column(Boolean, nullable=False, default=True)

    start_date = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    expires_at = Column(DateTime(timezone=True), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    is_auto_renew = Column(Boolean, nullable=False, default=True)
    price = Column(Numeric(10, 2, asdecimal=False), nullable=False)
    billing_cycle = Column(String, nullable=False, default="monthly")
    purchase_method = Column(String, nullable=False, default="cash")  # cash / tokens
    purchase_id = Column(String, nullable=True)

    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    cancellation_reason = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))

    def benefits(self) -> dict[str, bool]:
        return {flag: bool(getattr(self, flag)) for flag in BENEFIT_FLAGS}
