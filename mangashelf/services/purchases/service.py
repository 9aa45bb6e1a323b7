"""
PurchaseService: append-only purchase records and the purchase flows.

Responsibilities:
- record_purchase: one audit row per monetary/token event (no deduplication)
- chapter / manga purchases paid with tokens
- donations (cash that buys tokens)
- refunds that reverse the wallet effect and the entitlement in one unit of work
- per-user purchase rate limit (Redis, shared across replicas)
"""
import logging
import math
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

import redis
from sqlalchemy import func
from sqlalchemy.orm import Session

from mangashelf.core.config import settings
from mangashelf.core.errors import AlreadyPurchasedError, InvalidStateError, NotFoundError
from mangashelf.entitlements.config import get_cash_payment_method, get_donation_tier
from mangashelf.entitlements.models import ItemKind, ItemRef
from mangashelf.models.chapter import Chapter
from mangashelf.models.manga import Manga
from mangashelf.models.purchase import (
    PAYMENT_METHODS,
    PURCHASE_CURRENCIES,
    PURCHASE_STATUSES,
    Purchase,
)
from mangashelf.services.wallet.service import WalletService
from mangashelf.utils.metrics import purchases_total, rate_limited_total, refunds_total

logger = logging.getLogger(__name__)


class PurchaseService:
    def __init__(self, db: Session, redis_client: redis.Redis | None = None):
        self.db = db
        self.wallets = WalletService(db)
        self._redis = redis_client

    # ------------------------------------------------------------------
    # Record store
    # ------------------------------------------------------------------

    def record_purchase(
        self,
        user_id: str,
        item: ItemRef,
        amount: float,
        currency: str,
        payment_method: str | None,
        status: str = "completed",
        description: str | None = None,
        metadata: dict[str, Any] | None = None,
        transaction_id: str | None = None,
        purchase_id: str | None = None,
    ) -> Purchase:
        if amount < 0:
            raise ValueError("amount must not be negative")
        if currency not in PURCHASE_CURRENCIES:
            raise ValueError(f"unknown currency: {currency}")
        if payment_method is not None and payment_method not in PAYMENT_METHODS:
            raise ValueError(f"unknown payment method: {payment_method}")
        if status not in PURCHASE_STATUSES:
            raise ValueError(f"unknown purchase status: {status}")

        purchase = Purchase(
            id=purchase_id or str(uuid4()),
            user_id=user_id,
            purchase_type=item.kind.value,
            item_id=item.id,
            amount=amount,
            currency=currency,
            payment_method=payment_method,
            transaction_id=transaction_id,
            status=status,
            description=description,
            extra=metadata or {},
        )
        self.db.add(purchase)
        self.db.flush()
        purchases_total.labels(purchase_type=item.kind.value, status=status).inc()
        logger.info(
            "purchase_recorded",
            extra={
                "user_id": user_id,
                "purchase_id": purchase.id,
                "purchase_type": item.kind.value,
                "item_id": item.id,
                "amount": amount,
                "currency": currency,
                "payment_method": payment_method,
            },
        )
        return purchase

    @staticmethod
    def item_ref(purchase: Purchase) -> ItemRef:
        return ItemRef(kind=ItemKind(purchase.purchase_type), id=purchase.item_id)

    def has_completed_purchase(self, user_id: str, item: ItemRef) -> bool:
        found = (
            self.db.query(Purchase.id)
            .filter(
                Purchase.user_id == user_id,
                Purchase.purchase_type == item.kind.value,
                Purchase.item_id == item.id,
                Purchase.status == "completed",
            )
            .first()
        )
        return found is not None

    def list_purchases(self, user_id: str, limit: int = 50) -> list[Purchase]:
        return (
            self.db.query(Purchase)
            .filter(Purchase.user_id == user_id)
            .order_by(Purchase.created_at.desc())
            .limit(limit)
            .all()
        )

    def purchase_history(self, user_id: str, page: int = 1, limit: int = 20) -> dict:
        page = max(page, 1)
        query = self.db.query(Purchase).filter(Purchase.user_id == user_id)
        total = query.count()
        items = (
            query.order_by(Purchase.created_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return {
            "items": items,
            "page": page,
            "limit": limit,
            "total": total,
            "pages": math.ceil(total / limit) if limit else 0,
        }

    # ------------------------------------------------------------------
    # Purchase flows
    # ------------------------------------------------------------------

    def purchase_chapter(self, user_id: str, chapter_id: str) -> Purchase:
        chapter = self.db.query(Chapter).filter(Chapter.id == chapter_id).one_or_none()
        if not chapter:
            raise NotFoundError("Chapter not found")
        if not chapter.is_premium:
            raise InvalidStateError("Chapter is free to read")
        if self.has_completed_purchase(user_id, ItemRef.chapter(chapter.id)):
            raise AlreadyPurchasedError("Chapter already purchased")
        if self.has_completed_purchase(user_id, ItemRef.manga(chapter.manga_id)):
            raise AlreadyPurchasedError("Manga already purchased")

        manga = self.db.query(Manga).filter(Manga.id == chapter.manga_id).one_or_none()
        price = chapter.price if chapter.price is not None else (manga.chapter_price if manga else 0)
        description = f"Chapter {chapter.number}: {chapter.title}"

        purchase_id = str(uuid4())
        if price > 0:
            self.wallets.debit(user_id, price, type="debit", description=description, reference_id=purchase_id)

        return self.record_purchase(
            user_id,
            ItemRef.chapter(chapter.id),
            amount=price,
            currency="tokens",
            payment_method="tokens",
            description=description,
            metadata={"manga_id": chapter.manga_id, "chapter_number": chapter.number},
            purchase_id=purchase_id,
        )

    def purchase_manga(self, user_id: str, manga_id: str) -> Purchase:
        manga = self.db.query(Manga).filter(Manga.id == manga_id).one_or_none()
        if not manga:
            raise NotFoundError("Manga not found")
        if not manga.premium:
            raise InvalidStateError("Manga is free to read")
        if self.has_completed_purchase(user_id, ItemRef.manga(manga.id)):
            raise AlreadyPurchasedError("Manga already purchased")

        price = manga.current_price()
        description = f"Manga: {manga.title}"
        premium_chapters = (
            self.db.query(func.count(Chapter.id))
            .filter(Chapter.manga_id == manga.id, Chapter.is_premium.is_(True))
            .scalar()
        )

        purchase_id = str(uuid4())
        if price > 0:
            self.wallets.debit(user_id, price, type="debit", description=description, reference_id=purchase_id)

        return self.record_purchase(
            user_id,
            ItemRef.manga(manga.id),
            amount=price,
            currency="tokens",
            payment_method="tokens",
            description=description,
            metadata={
                "manga_title": manga.title,
                "chapter_count": premium_chapters,
                "discounted": manga.is_on_discount(),
            },
            purchase_id=purchase_id,
        )

    def make_donation(self, user_id: str, tier_id: str, payment_method: str | None = None) -> Purchase:
        """Cash donation along the tier ladder; the tier's tokens land in the wallet."""
        tier = get_donation_tier(tier_id)
        if tier is None:
            raise NotFoundError(f"Unknown donation tier: {tier_id}")

        purchase = self.record_purchase(
            user_id,
            ItemRef.donation(tier_id),
            amount=tier["price"],
            currency=settings.subscription_currency,
            payment_method=payment_method or get_cash_payment_method(),
            description=f"Donation {tier_id}",
            metadata={"tier_id": tier_id, "tokens_granted": tier["tokens"]},
        )
        self.wallets.credit(
            user_id,
            tier["tokens"],
            type="purchase",
            description=f"Donation {tier_id}",
            reference_id=purchase.id,
        )
        logger.info(
            "donation_completed",
            extra={"user_id": user_id, "purchase_id": purchase.id, "tier_id": tier_id, "amount": tier["price"]},
        )
        return purchase

    # ------------------------------------------------------------------
    # Refund
    # ------------------------------------------------------------------

    def mark_refunded(self, purchase_id: str, reason: str | None = None) -> Purchase:
        """
        Mark a completed purchase as refunded and undo what it paid for.

        Gateway-side refunds (cash) must be issued separately before calling this.
        """
        purchase = (
            self.db.query(Purchase)
            .filter(Purchase.id == purchase_id)
            .with_for_update()
            .one_or_none()
        )
        if not purchase:
            raise NotFoundError("Purchase not found")
        if purchase.status != "completed":
            raise InvalidStateError(f"Only completed purchases can be refunded (status: {purchase.status})")

        purchase.status = "refunded"
        purchase.refunded_at = datetime.now(timezone.utc)
        purchase.refund_reason = reason
        self.db.add(purchase)
        self.db.flush()

        reversed_tokens = 0
        if purchase.payment_method == "tokens" and purchase.currency == "tokens" and purchase.amount > 0:
            reversed_tokens = int(purchase.amount)
            self.wallets.credit(
                purchase.user_id,
                reversed_tokens,
                type="refund",
                description=f"Refund: {purchase.description or purchase.purchase_type}",
                reference_id=purchase.id,
            )

        if purchase.purchase_type == ItemKind.SUBSCRIPTION.value:
            from mangashelf.services.subscriptions.service import SubscriptionService

            SubscriptionService(self.db).deactivate_for_refund(purchase.item_id, reason=reason or "refunded")

        if purchase.purchase_type == ItemKind.DONATION.value:
            granted = int((purchase.extra or {}).get("tokens_granted", 0))
            # take back what was granted, never below zero
            deduction = min(granted, self.wallets.get_balance(purchase.user_id))
            if deduction > 0:
                self.wallets.debit(
                    purchase.user_id,
                    deduction,
                    type="refund",
                    description=f"Refund: {purchase.description or 'donation'}",
                    reference_id=purchase.id,
                )
            reversed_tokens = -deduction

        refunds_total.labels(purchase_type=purchase.purchase_type).inc()
        logger.info(
            "purchase_refunded",
            extra={
                "user_id": purchase.user_id,
                "purchase_id": purchase.id,
                "purchase_type": purchase.purchase_type,
                "amount": reversed_tokens,
                "reason": reason,
            },
        )
        return purchase

    # ------------------------------------------------------------------
    # Admin reads
    # ------------------------------------------------------------------

    def list_all(
        self,
        status: str | None = None,
        purchase_type: str | None = None,
        user_id: str | None = None,
        limit: int = 50,
        skip: int = 0,
    ) -> tuple[list[Purchase], int]:
        query = self.db.query(Purchase)
        if status:
            query = query.filter(Purchase.status == status)
        if purchase_type:
            query = query.filter(Purchase.purchase_type == purchase_type)
        if user_id:
            query = query.filter(Purchase.user_id == user_id)
        total = query.count()
        items = query.order_by(Purchase.created_at.desc()).offset(skip).limit(limit).all()
        return items, total

    def stats(self) -> dict:
        rows = (
            self.db.query(
                Purchase.purchase_type,
                Purchase.status,
                Purchase.currency,
                func.count(Purchase.id),
                func.coalesce(func.sum(Purchase.amount), 0),
            )
            .group_by(Purchase.purchase_type, Purchase.status, Purchase.currency)
            .all()
        )
        by_type: dict[str, dict] = {}
        for purchase_type, status, currency, count, total in rows:
            bucket = by_type.setdefault(purchase_type, {"count": 0, "by_status": {}, "revenue": {}})
            bucket["count"] += count
            bucket["by_status"][status] = bucket["by_status"].get(status, 0) + count
            if status == "completed":
                bucket["revenue"][currency] = round(bucket["revenue"].get(currency, 0) + float(total), 2)
        return {
            "total": sum(b["count"] for b in by_type.values()),
            "by_type": by_type,
        }

    # ------------------------------------------------------------------
    # Rate-limit (Redis, shared by every API replica)
    # ------------------------------------------------------------------

    def check_rate_limit(self, user_id: str) -> bool:
        """At most purchase_rate_limit purchases per purchase_rate_window_seconds."""
        if self._redis is None:
            return True
        key = f"purchase_rate:{user_id}"
        try:
            current = self._redis.incr(key)
            if current == 1:
                self._redis.expire(key, settings.purchase_rate_window_seconds)
        except redis.RedisError as e:
            logger.warning("purchase_rate_limit_redis_error", extra={"error": str(e)})
            return True  # fail open: Redis outage must not block purchases
        if current > settings.purchase_rate_limit:
            rate_limited_total.inc()
            logger.warning("purchase_rate_limited", extra={"user_id": user_id})
            return False
        return True
