from typing import Literal

import redis
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from mangashelf.api.deps import get_current_user, get_redis, idempotency_guard, release_idempotency_key
from mangashelf.core.errors import EntitlementError
from mangashelf.db.session import get_db
from mangashelf.entitlements.config import get_donation_tiers
from mangashelf.models.user import User
from mangashelf.schemas.purchases import PurchaseOut
from mangashelf.schemas.subscriptions import CancelIn, DonationIn, SubscribeIn, SubscriptionOut
from mangashelf.services.purchases.service import PurchaseService
from mangashelf.services.subscriptions.service import SubscriptionService
from mangashelf.services.wallet.service import WalletService

router = APIRouter(prefix="/subscriptions", tags=["subscriptions"])

Feature = Literal["gif_profile", "banner", "auto_reader", "no_ads", "all_chapters_free"]


@router.get("/plans")
def plans():
    return {"success": True, "plans": SubscriptionService.plans()}


@router.get("/me")
def my_subscription(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    sub = SubscriptionService(db).get_active_subscription(user.id)
    return {
        "success": True,
        "has_subscription": sub is not None,
        "subscription": SubscriptionOut.model_validate(sub) if sub else None,
    }


@router.get("/history")
def subscription_history(
    limit: int = Query(10, ge=1, le=100),
    skip: int = Query(0, ge=0),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    items = SubscriptionService(db).history(user.id, limit=limit, skip=skip)
    return {"success": True, "subscriptions": [SubscriptionOut.model_validate(s) for s in items]}


@router.get("/check-feature")
def check_feature(
    feature: Feature = Query(...),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    allowed = SubscriptionService(db).check_feature(user.id, feature)
    return {"success": True, "feature": feature, "has_access": allowed}


@router.get("/benefits")
def benefits(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return {"success": True, "benefits": SubscriptionService(db).benefits(user.id)}


@router.post("/create")
def create_subscription(
    payload: SubscribeIn,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    sub = SubscriptionService(db).subscribe(user.id, payload.payment_method)
    db.commit()
    return {"success": True, "subscription": SubscriptionOut.model_validate(sub)}


@router.post("/subscribe-with-tokens")
def subscribe_with_tokens(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    sub = SubscriptionService(db).subscribe(user.id, "tokens")
    db.commit()
    balance = WalletService(db).get_balance(user.id)
    return {
        "success": True,
        "subscription": SubscriptionOut.model_validate(sub),
        "tokens_balance": balance,
    }


@router.post("/cancel")
def cancel_subscription(
    payload: CancelIn,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    sub = SubscriptionService(db).cancel(user.id, payload.reason)
    db.commit()
    return {"success": True, "subscription": SubscriptionOut.model_validate(sub)}


@router.get("/tokens/balance")
def tokens_balance(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    wallet = WalletService(db).get_wallet(user.id)
    db.commit()
    return {"success": True, **wallet}


@router.get("/donations/options")
def donation_options():
    tiers = get_donation_tiers()
    return {
        "success": True,
        "options": [{"id": tier_id, **tier} for tier_id, tier in tiers.items()],
    }


@router.post("/donations/make")
def make_donation(
    payload: DonationIn,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    redis_client: redis.Redis = Depends(get_redis),
    idempotency_key: str | None = Depends(idempotency_guard),
):
    svc = PurchaseService(db, redis_client)
    if not svc.check_rate_limit(user.id):
        release_idempotency_key(redis_client, idempotency_key)
        raise HTTPException(status_code=429, detail="Too many purchases, try again later")
    try:
        purchase = svc.make_donation(user.id, payload.tier_id)
    except EntitlementError:
        release_idempotency_key(redis_client, idempotency_key)
        raise
    db.commit()
    return {
        "success": True,
        "purchase": PurchaseOut.model_validate(purchase),
        "tokens_balance": WalletService(db).get_balance(user.id),
    }
