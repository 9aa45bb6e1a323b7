from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import Boolean, Column, DateTime, Integer, String

from mangashelf.db.base import Base


class Manga(Base):
    __tablename__ = "manga"

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    title = Column(String, nullable=False)
    premium = Column(Boolean, nullable=False, default=False)  # requires purchase or subscription
    purchase_price = Column(Integer, nullable=False, default=0)  # tokens, whole title
    chapter_price = Column(Integer, nullable=False, default=0)  # tokens, default per chapter
    discounted_price = Column(Integer, nullable=False, default=0)
    discount_ends_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))

    def is_on_discount(self, now: datetime | None = None) -> bool:
        if not self.discounted_price or self.discount_ends_at is None:
            return False
        now = now or datetime.now(timezone.utc)
        ends = self.discount_ends_at
        if ends.tzinfo is None:
            ends = ends.replace(tzinfo=timezone.utc)
        return ends > now

    def current_price(self, now: datetime | None = None) -> int:
        if self.is_on_discount(now):
            return self.discounted_price
        return self.purchase_price
