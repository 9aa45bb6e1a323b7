"""
Decision only: decide_chapter_access(ctx) / decide_manga_access(ctx) -> AccessDecision.
Pure functions, no I/O. Rules are evaluated in order and the first match wins:
anonymous, free item, staff role, chapter purchase, manga purchase, subscription.
"""
from __future__ import annotations

from mangashelf.entitlements.models import AccessContext, AccessDecision, AccessReason

OVERRIDE_ROLES = ("admin", "mod")


def decide_chapter_access(ctx: AccessContext) -> AccessDecision:
    """Chapter rules: the chapter itself or its manga may have been bought."""
    return _decide(ctx, check_chapter_purchase=True)


def decide_manga_access(ctx: AccessContext) -> AccessDecision:
    """Manga rules: same ladder without the chapter-purchase step."""
    return _decide(ctx, check_chapter_purchase=False)


def _decide(ctx: AccessContext, check_chapter_purchase: bool) -> AccessDecision:
    # Anonymous is a decision, not an error
    if ctx.user_id is None:
        return _deny(AccessReason.LOGIN_REQUIRED)

    if not ctx.item_premium:
        return _grant(AccessReason.FREE_CONTENT)

    if ctx.role in OVERRIDE_ROLES:
        return _grant(AccessReason.ROLE_OVERRIDE)

    if check_chapter_purchase and ctx.chapter_purchased:
        return _grant(AccessReason.CHAPTER_PURCHASED)

    if ctx.manga_purchased:
        return _grant(AccessReason.MANGA_PURCHASED)

    if ctx.subscription_entitled and ctx.subscription_all_chapters_free:
        return _grant(AccessReason.SUBSCRIPTION)

    return _deny(AccessReason.PURCHASE_REQUIRED)


def _grant(reason: AccessReason) -> AccessDecision:
    return AccessDecision(granted=True, reason=reason)


def _deny(reason: AccessReason) -> AccessDecision:
    return AccessDecision(granted=False, reason=reason)
