"""
SubscriptionService: premium subscription lifecycle.

NONE -> ACTIVE -> (CANCELLED | EXPIRED). Expiry is never written: a subscription
counts only while is_active and expires_at > now (see is_currently_entitled).
"""
import calendar
import logging
from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy.orm import Session

from mangashelf.core.errors import AlreadySubscribedError, NoActiveSubscriptionError
from mangashelf.entitlements.config import (
    get_cash_payment_method,
    get_subscription_currency,
    get_subscription_price_cash,
    get_subscription_price_tokens,
)
from mangashelf.entitlements.models import ItemRef
from mangashelf.models.subscription import BENEFIT_FLAGS, Subscription
from mangashelf.services.purchases.service import PurchaseService
from mangashelf.services.wallet.service import WalletService
from mangashelf.utils.metrics import subscriptions_total

logger = logging.getLogger(__name__)

PURCHASE_METHODS = ("tokens", "cash")

# public feature name -> benefit column
FEATURES = {
    "gif_profile": "can_add_gif_profile",
    "banner": "can_add_banner",
    "auto_reader": "auto_reader_enabled",
    "no_ads": "no_ads",
    "all_chapters_free": "all_chapters_free",
}


def as_utc(dt: datetime) -> datetime:
    """SQLite hands back naive datetimes; everything here is stored in UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def add_months(dt: datetime, months: int) -> datetime:
    """Calendar months, clamping the day (Jan 31 + 1 month = Feb 28/29)."""
    month_index = dt.month - 1 + months
    year = dt.year + month_index // 12
    month = month_index % 12 + 1
    day = min(dt.day, calendar.monthrange(year, month)[1])
    return dt.replace(year=year, month=month, day=day)


def is_currently_entitled(subscription: Subscription | None, now: datetime | None = None) -> bool:
    if subscription is None or not subscription.is_active:
        return False
    now = now or datetime.now(timezone.utc)
    return as_utc(subscription.expires_at) > now


class SubscriptionService:
    def __init__(self, db: Session):
        self.db = db
        self.wallets = WalletService(db)

    def get_active_subscription(self, user_id: str, now: datetime | None = None) -> Subscription | None:
        now = now or datetime.now(timezone.utc)
        candidates = (
            self.db.query(Subscription)
            .filter(
                Subscription.user_id == user_id,
                Subscription.is_active.is_(True),
                Subscription.expires_at > now,
            )
            .order_by(Subscription.created_at.desc())
            .all()
        )
        for sub in candidates:
            if is_currently_entitled(sub, now):
                return sub
        return None

    def get(self, subscription_id: str) -> Subscription | None:
        return self.db.query(Subscription).filter(Subscription.id == subscription_id).one_or_none()

    def subscribe(self, user_id: str, payment_method: str) -> Subscription:
        """
        Start a premium subscription paid with tokens or cash.

        Token path debits the configured price first, so InsufficientBalance is raised
        before anything else is written. Cash is recorded as completed without a
        gateway check.
        """
        if payment_method not in PURCHASE_METHODS:
            raise ValueError(f"unknown subscription payment method: {payment_method}")

        # serialize concurrent subscribe calls of one user on the wallet row
        self.wallets.lock_wallet(user_id)
        if self.get_active_subscription(user_id) is not None:
            raise AlreadySubscribedError("User already has an active subscription")

        now = datetime.now(timezone.utc)
        subscription_id = str(uuid4())

        if payment_method == "tokens":
            price = get_subscription_price_tokens()
            self.wallets.debit(
                user_id,
                price,
                type="subscription",
                description="Premium subscription (monthly)",
                reference_id=subscription_id,
            )
            amount, currency, gateway = float(price), "tokens", "tokens"
        else:
            amount = get_subscription_price_cash()
            currency, gateway = get_subscription_currency(), get_cash_payment_method()

        purchase = PurchaseService(self.db).record_purchase(
            user_id,
            ItemRef.subscription(subscription_id),
            amount=amount,
            currency=currency,
            payment_method=gateway,
            description="Premium subscription (monthly)",
            metadata={"tier": "premium", "billing_cycle": "monthly"},
        )

        subscription = Subscription(
            id=subscription_id,
            user_id=user_id,
            tier="premium",
            start_date=now,
            expires_at=add_months(now, 1),
            is_active=True,
            is_auto_renew=True,
            price=amount,
            billing_cycle="monthly",
            purchase_method=payment_method,
            purchase_id=purchase.id,
        )
        self.db.add(subscription)
        self.db.flush()
        self.wallets.set_active_subscription(user_id, subscription.id)

        subscriptions_total.labels(event="created", purchase_method=payment_method).inc()
        logger.info(
            "subscription_created",
            extra={
                "user_id": user_id,
                "subscription_id": subscription.id,
                "purchase_id": purchase.id,
                "payment_method": payment_method,
                "amount": amount,
                "currency": currency,
            },
        )
        return subscription

    def cancel(self, user_id: str, reason: str | None = None) -> Subscription:
        """Benefits end immediately; expires_at stays as the historical paid-through date."""
        subscription = self.get_active_subscription(user_id)
        if subscription is None:
            raise NoActiveSubscriptionError("No active subscription found")
        self._deactivate(subscription, reason)
        subscriptions_total.labels(event="cancelled", purchase_method=subscription.purchase_method).inc()
        logger.info(
            "subscription_cancelled",
            extra={"user_id": user_id, "subscription_id": subscription.id, "reason": reason},
        )
        return subscription

    def deactivate_for_refund(self, subscription_id: str, reason: str | None = None) -> Subscription | None:
        subscription = self.get(subscription_id)
        if subscription is None or not subscription.is_active:
            return subscription
        self._deactivate(subscription, reason or "refunded")
        subscriptions_total.labels(event="refunded", purchase_method=subscription.purchase_method).inc()
        logger.info(
            "subscription_refunded",
            extra={"user_id": subscription.user_id, "subscription_id": subscription.id, "reason": reason},
        )
        return subscription

    def history(self, user_id: str, limit: int = 10, skip: int = 0) -> list[Subscription]:
        return (
            self.db.query(Subscription)
            .filter(Subscription.user_id == user_id)
            .order_by(Subscription.created_at.desc())
            .offset(skip)
            .limit(limit)
            .all()
        )

    def benefits(self, user_id: str) -> dict[str, bool]:
        subscription = self.get_active_subscription(user_id)
        if subscription is None:
            return {flag: False for flag in BENEFIT_FLAGS}
        return subscription.benefits()

    def check_feature(self, user_id: str, feature: str) -> bool:
        if feature not in FEATURES:
            raise ValueError(f"unknown feature: {feature}")
        return self.benefits(user_id)[FEATURES[feature]]

    @staticmethod
    def plans() -> list[dict]:
        return [
            {
                "id": "free",
                "name": "Free",
                "price_tokens": 0,
                "price_cash": 0.0,
                "currency": get_subscription_currency(),
                "billing_cycle": None,
                "benefits": {flag: False for flag in BENEFIT_FLAGS},
            },
            {
                "id": "premium",
                "name": "Premium",
                "price_tokens": get_subscription_price_tokens(),
                "price_cash": get_subscription_price_cash(),
                "currency": get_subscription_currency(),
                "billing_cycle": "monthly",
                "benefits": {flag: True for flag in BENEFIT_FLAGS},
            },
        ]

    def _deactivate(self, subscription: Subscription, reason: str | None) -> None:
        subscription.is_active = False
        subscription.is_auto_renew = False
        subscription.cancelled_at = datetime.now(timezone.utc)
        subscription.cancellation_reason = reason
        self.db.add(subscription)
        wallet = self.wallets.get_or_create_wallet(subscription.user_id)
        if wallet.active_subscription_id == subscription.id:
            wallet.active_subscription_id = None
            self.db.add(wallet)
        self.db.flush()
