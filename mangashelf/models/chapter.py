from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String

from mangashelf.db.base import Base


class Chapter(Base):
    __tablename__ = "chapters"

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    manga_id = Column(String, ForeignKey("manga.id"), nullable=False, index=True)
    number = Column(Integer, nullable=False)
    title = Column(String, nullable=False, default="")
    is_premium = Column(Boolean, nullable=False, default=False)
    price = Column(Integer, nullable=True)  # null = manga.chapter_price
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
