"""
Admin API: purchases (list, stats, refund), wallets (adjust, ledger verification),
users (role, ban, unban), audit trail. Every mutation is written to the audit log.
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from mangashelf.api.deps import require_roles
from mangashelf.core.errors import NotFoundError
from mangashelf.db.session import get_db
from mangashelf.models.user import User
from mangashelf.schemas.purchases import PurchaseOut, RefundIn
from mangashelf.schemas.users import BanIn, RoleIn, UserOut
from mangashelf.schemas.wallet import WalletAdjustIn
from mangashelf.services.audit.service import AuditService
from mangashelf.services.purchases.service import PurchaseService
from mangashelf.services.users.service import UserService
from mangashelf.services.wallet.service import WalletService

router = APIRouter(prefix="/admin", tags=["admin"])

require_admin = require_roles("admin")


# ---------- Purchases ----------
@router.get("/purchases")
def purchases_list(
    status: str | None = Query(None),
    purchase_type: str | None = Query(None),
    user_id: str | None = Query(None),
    limit: int = Query(50, ge=1, le=100),
    skip: int = Query(0, ge=0),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    items, total = PurchaseService(db).list_all(
        status=status, purchase_type=purchase_type, user_id=user_id, limit=limit, skip=skip
    )
    return {"items": [PurchaseOut.model_validate(p) for p in items], "total": total}


@router.get("/purchases/stats")
def purchases_stats(admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    return PurchaseService(db).stats()


@router.post("/purchases/{purchase_id}/refund")
def purchases_refund(
    purchase_id: str,
    payload: RefundIn,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    purchase = PurchaseService(db).mark_refunded(purchase_id, payload.reason)
    AuditService(db).log(
        actor_type="admin",
        actor_id=admin.id,
        action="refund",
        entity_type="purchase",
        entity_id=purchase.id,
        payload={"reason": payload.reason, "purchase_type": purchase.purchase_type, "amount": purchase.amount},
    )
    db.commit()
    return {"success": True, "purchase": PurchaseOut.model_validate(purchase)}


# ---------- Wallets ----------
@router.post("/wallets/{user_id}/adjust")
def wallets_adjust(
    user_id: str,
    payload: WalletAdjustIn,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    if UserService(db).get(user_id) is None:
        raise NotFoundError("User not found")
    svc = WalletService(db)
    op = svc.credit if payload.operation == "credit" else svc.debit
    new_balance = op(
        user_id,
        payload.amount,
        type=payload.type,
        description=payload.description or f"Admin {payload.operation}",
        currency=payload.currency,
    )
    AuditService(db).log(
        actor_type="admin",
        actor_id=admin.id,
        action=f"wallet_{payload.operation}",
        entity_type="wallet",
        entity_id=user_id,
        payload=payload.model_dump(),
    )
    db.commit()
    return {"success": True, "currency": payload.currency, "balance": new_balance}


@router.get("/wallets/{user_id}/verify")
def wallets_verify(user_id: str, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    return WalletService(db).verify_ledger(user_id)


# ---------- Users ----------
@router.post("/users/{user_id}/role")
def users_set_role(
    user_id: str,
    payload: RoleIn,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    user = UserService(db).set_role(user_id, payload.role)
    AuditService(db).log("admin", admin.id, "set_role", "user", user_id, {"role": payload.role})
    db.commit()
    return {"success": True, "user": UserOut.model_validate(user)}


@router.post("/users/{user_id}/ban")
def users_ban(
    user_id: str,
    payload: BanIn,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    user = UserService(db).ban(user_id, reason=payload.reason, expires_at=payload.expires_at)
    AuditService(db).log(
        "admin",
        admin.id,
        "ban",
        "user",
        user_id,
        {"reason": payload.reason, "expires_at": payload.expires_at.isoformat() if payload.expires_at else None},
    )
    db.commit()
    return {"success": True, "user": UserOut.model_validate(user)}


@router.post("/users/{user_id}/unban")
def users_unban(user_id: str, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    user = UserService(db).unban(user_id)
    AuditService(db).log("admin", admin.id, "unban", "user", user_id)
    db.commit()
    return {"success": True, "user": UserOut.model_validate(user)}


# ---------- Audit ----------
@router.get("/audit")
def audit_list(
    entity_type: str | None = Query(None),
    limit: int = Query(50, ge=1, le=200),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    entries = AuditService(db).list_recent(entity_type=entity_type, limit=limit)
    return {
        "items": [
            {
                "id": e.id,
                "actor_type": e.actor_type,
                "actor_id": e.actor_id,
                "action": e.action,
                "entity_type": e.entity_type,
                "entity_id": e.entity_id,
                "payload": e.payload,
                "created_at": e.created_at,
            }
            for e in entries
        ]
    }
