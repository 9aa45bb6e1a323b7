from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from mangashelf.api.deps import get_current_user
from mangashelf.db.session import get_db
from mangashelf.models.user import User
from mangashelf.schemas.wallet import WalletOut, WalletTransactionOut
from mangashelf.services.wallet.service import WalletService

router = APIRouter(prefix="/wallet", tags=["wallet"])


@router.get("")
def get_wallet(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    svc = WalletService(db)
    wallet = svc.get_wallet(user.id)
    db.commit()  # wallet may have been created lazily
    return {"success": True, "wallet": WalletOut(**wallet)}


@router.get("/transactions")
def list_transactions(
    limit: int = Query(50, ge=1, le=100),
    skip: int = Query(0, ge=0),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    items = WalletService(db).list_transactions(user.id, limit=limit, skip=skip)
    return {
        "success": True,
        "transactions": [WalletTransactionOut.model_validate(t) for t in items],
    }
