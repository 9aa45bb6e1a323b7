"""
DTO for access decisions: ItemRef, AccessContext (input of decide_*), AccessDecision.
"""
from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field


class ItemKind(str, Enum):
    CHAPTER = "chapter"
    MANGA = "manga"
    SUBSCRIPTION = "subscription"
    DONATION = "donation"


class ItemRef(BaseModel):
    """What a purchase points at. Purchases are built from an ItemRef, never a bare id."""

    kind: ItemKind
    id: str

    model_config = {"frozen": True}

    @classmethod
    def chapter(cls, chapter_id: str) -> "ItemRef":
        return cls(kind=ItemKind.CHAPTER, id=chapter_id)

    @classmethod
    def manga(cls, manga_id: str) -> "ItemRef":
        return cls(kind=ItemKind.MANGA, id=manga_id)

    @classmethod
    def subscription(cls, subscription_id: str) -> "ItemRef":
        return cls(kind=ItemKind.SUBSCRIPTION, id=subscription_id)

    @classmethod
    def donation(cls, tier_id: str) -> "ItemRef":
        return cls(kind=ItemKind.DONATION, id=tier_id)


class AccessReason(str, Enum):
    LOGIN_REQUIRED = "LOGIN_REQUIRED"
    FREE_CONTENT = "FREE_CONTENT"
    ROLE_OVERRIDE = "ROLE_OVERRIDE"
    CHAPTER_PURCHASED = "CHAPTER_PURCHASED"
    MANGA_PURCHASED = "MANGA_PURCHASED"
    SUBSCRIPTION = "SUBSCRIPTION"
    PURCHASE_REQUIRED = "PURCHASE_REQUIRED"


# ----- Input for decide_* (single contract so signatures do not sprawl) -----


class AccessContext(BaseModel):
    """Everything the decision reads, loaded up front by AccessService."""

    user_id: str | None = None  # None = anonymous
    role: str = "user"
    item_premium: bool = False  # chapter.is_premium or manga.premium
    chapter_purchased: bool = False
    manga_purchased: bool = False
    subscription_entitled: bool = False  # is_active and expires_at > now
    subscription_all_chapters_free: bool = False

    model_config = {"frozen": True}


# ----- Decision (pure logic, no I/O) -----


class AccessDecision(BaseModel):
    granted: bool = Field(..., description="True = the user may read the item")
    reason: AccessReason = Field(..., description="Rule that decided the outcome")

    model_config = {"frozen": True}
