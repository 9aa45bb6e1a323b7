from mangashelf.db.base import Base
from mangashelf.models.audit_log import AuditLog
from mangashelf.models.chapter import Chapter
from mangashelf.models.manga import Manga
from mangashelf.models.purchase import Purchase
from mangashelf.models.subscription import Subscription
from mangashelf.models.user import User
from mangashelf.models.wallet import Wallet, WalletTransaction

__all__ = [
    "Base",
    "AuditLog",
    "Chapter",
    "Manga",
    "Purchase",
    "Subscription",
    "User",
    "Wallet",
    "WalletTransaction",
]
