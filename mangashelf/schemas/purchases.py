from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class PurchaseOut(BaseModel):
    id: str
    purchase_type: str
    item_id: str
    amount: float
    currency: str
    payment_method: str | None
    transaction_id: str | None
    status: str
    description: str | None
    metadata: dict[str, Any] = Field(default_factory=dict, validation_alias="extra")
    refunded_at: datetime | None
    refund_reason: str | None
    created_at: datetime

    model_config = {"from_attributes": True}


class PurchaseChapterIn(BaseModel):
    chapter_id: str


class PurchaseMangaIn(BaseModel):
    manga_id: str


class RefundIn(BaseModel):
    reason: str | None = Field(None, max_length=500)


class AccessOut(BaseModel):
    granted: bool
    reason: str
