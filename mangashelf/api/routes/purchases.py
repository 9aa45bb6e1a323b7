import redis
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from mangashelf.api.deps import (
    get_current_user,
    get_optional_user,
    get_redis,
    idempotency_guard,
    release_idempotency_key,
)
from mangashelf.core.errors import EntitlementError
from mangashelf.db.session import get_db
from mangashelf.models.user import User
from mangashelf.schemas.purchases import AccessOut, PurchaseChapterIn, PurchaseMangaIn, PurchaseOut
from mangashelf.services.access.service import AccessService
from mangashelf.services.purchases.service import PurchaseService
from mangashelf.services.wallet.service import WalletService

router = APIRouter(prefix="/purchases", tags=["purchases"])


@router.get("")
def list_purchases(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    items = PurchaseService(db).list_purchases(user.id, limit=50)
    return {"success": True, "purchases": [PurchaseOut.model_validate(p) for p in items]}


@router.get("/history")
def purchase_history(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    history = PurchaseService(db).purchase_history(user.id, page=page, limit=limit)
    return {
        "success": True,
        "purchases": [PurchaseOut.model_validate(p) for p in history["items"]],
        "pagination": {
            "page": history["page"],
            "limit": history["limit"],
            "total": history["total"],
            "pages": history["pages"],
        },
    }


@router.get("/check/manga/{manga_id}")
def check_manga_access(
    manga_id: str,
    user: User | None = Depends(get_optional_user),
    db: Session = Depends(get_db),
):
    decision = AccessService(db).has_manga_access(user.id if user else None, manga_id)
    return {"success": True, "access": AccessOut(granted=decision.granted, reason=decision.reason.value)}


@router.get("/check/chapter/{chapter_id}")
def check_chapter_access(
    chapter_id: str,
    user: User | None = Depends(get_optional_user),
    db: Session = Depends(get_db),
):
    decision = AccessService(db).has_chapter_access(user.id if user else None, chapter_id)
    return {"success": True, "access": AccessOut(granted=decision.granted, reason=decision.reason.value)}


@router.post("/chapter")
def purchase_chapter(
    payload: PurchaseChapterIn,
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
        purchase = svc.purchase_chapter(user.id, payload.chapter_id)
    except EntitlementError:
        release_idempotency_key(redis_client, idempotency_key)
        raise
    db.commit()
    return {
        "success": True,
        "purchase": PurchaseOut.model_validate(purchase),
        "tokens_balance": WalletService(db).get_balance(user.id),
    }


@router.post("/manga")
def purchase_manga(
    payload: PurchaseMangaIn,
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
        purchase = svc.purchase_manga(user.id, payload.manga_id)
    except EntitlementError:
        release_idempotency_key(redis_client, idempotency_key)
        raise
    db.commit()
    return {
        "success": True,
        "purchase": PurchaseOut.model_validate(purchase),
        "chapters_unlocked": purchase.extra.get("chapter_count", 0),
        "tokens_balance": WalletService(db).get_balance(user.id),
    }
