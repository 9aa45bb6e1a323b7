from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field


class SubscriptionOut(BaseModel):
    id: str
    tier: str
    start_date: datetime
    expires_at: datetime
    is_active: bool
    is_auto_renew: bool
    price: float
    billing_cycle: str
    purchase_method: str
    purchase_id: str | None
    cancelled_at: datetime | None
    cancellation_reason: str | None
    can_add_gif_profile: bool
    can_add_banner: bool
    auto_reader_enabled: bool
    no_ads: bool
    all_chapters_free: bool

    model_config = {"from_attributes": True}


class SubscribeIn(BaseModel):
    payment_method: Literal["cash", "tokens"] = "cash"


class CancelIn(BaseModel):
    reason: str | None = Field(None, max_length=500)


class DonationIn(BaseModel):
    tier_id: str = Field(..., pattern="^tier[1-4]$")
