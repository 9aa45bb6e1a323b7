"""
Entitlements config: typed wrapper over mangashelf.core.config for prices and the donation ladder.
"""
from __future__ import annotations

import json
import logging

from mangashelf.core.config import settings

logger = logging.getLogger(__name__)


def get_subscription_price_tokens() -> int:
    return settings.subscription_price_tokens


def get_subscription_price_cash() -> float:
    return settings.subscription_price_cash


def get_subscription_currency() -> str:
    return settings.subscription_currency


def get_cash_payment_method() -> str:
    return settings.cash_payment_method


def get_donation_tiers() -> dict[str, dict]:
    """{tier_id: {"price": float, "tokens": int}}; malformed entries are skipped."""
    try:
        raw = json.loads(settings.donation_tiers)
    except (TypeError, ValueError):
        logger.error("donation_tiers_invalid_json")
        return {}
    if not isinstance(raw, dict):
        return {}
    tiers: dict[str, dict] = {}
    for tier_id, tier in raw.items():
        try:
            price = float(tier["price"])
            tokens = int(tier["tokens"])
        except (KeyError, TypeError, ValueError):
            logger.warning("donation_tier_skipped", extra={"tier_id": tier_id})
            continue
        if price <= 0 or tokens <= 0:
            logger.warning("donation_tier_skipped", extra={"tier_id": tier_id})
            continue
        tiers[tier_id] = {"price": price, "tokens": tokens}
    return tiers


def get_donation_tier(tier_id: str) -> dict | None:
    return get_donation_tiers().get(tier_id)
