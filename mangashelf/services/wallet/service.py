"""
WalletService: token/coin balances and the append-only transaction log.

Every balance change goes through credit() or debit(), which write exactly one
WalletTransaction next to the balance update. Nothing here commits: the route
owns the unit of work.
"""
import logging

from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from mangashelf.core.errors import InsufficientBalanceError
from mangashelf.models.wallet import CURRENCIES, TRANSACTION_TYPES, Wallet, WalletTransaction
from mangashelf.utils.metrics import debit_rejected_total, wallet_operations_total

logger = logging.getLogger(__name__)

_BALANCE_COLUMNS = {
    "tokens": Wallet.tokens_balance,
    "coins": Wallet.coins_balance,
}


class WalletService:
    def __init__(self, db: Session):
        self.db = db

    # ------------------------------------------------------------------
    # Wallet lookup
    # ------------------------------------------------------------------

    def get_or_create_wallet(self, user_id: str) -> Wallet:
        wallet = self.db.query(Wallet).filter(Wallet.user_id == user_id).one_or_none()
        if wallet:
            return wallet
        wallet = Wallet(
            user_id=user_id,
            tokens_balance=0,
            coins_balance=0,
            tokens_spent=0,
            tokens_earned=0,
        )
        try:
            # savepoint: a lost insert race must not undo the caller's pending writes
            with self.db.begin_nested():
                self.db.add(wallet)
                self.db.flush()
        except IntegrityError:
            return self.db.query(Wallet).filter(Wallet.user_id == user_id).one()
        logger.info("wallet_created", extra={"user_id": user_id, "wallet_id": wallet.id})
        return wallet

    def lock_wallet(self, user_id: str) -> Wallet:
        """Wallet row under FOR UPDATE; serializes per-user flows such as subscribe."""
        wallet = self.get_or_create_wallet(user_id)
        return (
            self.db.query(Wallet)
            .filter(Wallet.id == wallet.id)
            .with_for_update()
            .populate_existing()
            .one()
        )

    def get_wallet(self, user_id: str) -> dict[str, int]:
        wallet = self.get_or_create_wallet(user_id)
        return {
            "tokens_balance": wallet.tokens_balance,
            "coins_balance": wallet.coins_balance,
        }

    def get_balance(self, user_id: str, currency: str = "tokens") -> int:
        return self.get_wallet(user_id)[f"{currency}_balance"]

    # ------------------------------------------------------------------
    # Balance changes
    # ------------------------------------------------------------------

    def credit(
        self,
        user_id: str,
        amount: int,
        type: str,
        description: str | None = None,
        reference_id: str | None = None,
        currency: str = "tokens",
    ) -> int:
        """Atomically add amount and append one transaction. Returns the new balance."""
        self._validate(amount, type, currency)
        wallet = self.get_or_create_wallet(user_id)
        column = _BALANCE_COLUMNS[currency]

        values = {column: column + amount}
        if currency == "tokens" and type != "refund":
            values[Wallet.tokens_earned] = Wallet.tokens_earned + amount
        self.db.execute(
            update(Wallet)
            .where(Wallet.id == wallet.id)
            .values(values)
            .execution_options(synchronize_session=False)
        )
        self.db.refresh(wallet)
        new_balance = getattr(wallet, column.key)

        self._append(wallet, type, amount, currency, new_balance, description, reference_id)
        wallet_operations_total.labels(operation="credit", currency=currency).inc()
        logger.info(
            "wallet_credited",
            extra={
                "user_id": user_id,
                "wallet_id": wallet.id,
                "amount": amount,
                "currency": currency,
                "reason": type,
                "new_balance": new_balance,
            },
        )
        return new_balance

    def debit(
        self,
        user_id: str,
        amount: int,
        type: str,
        description: str | None = None,
        reference_id: str | None = None,
        currency: str = "tokens",
    ) -> int:
        """
        Atomically subtract amount and append one transaction. Returns the new balance.

        A single conditional UPDATE (balance >= amount) decides the outcome, so two
        concurrent debits can never overdraw. On rejection nothing is written.
        """
        self._validate(amount, type, currency)
        wallet = self.get_or_create_wallet(user_id)
        column = _BALANCE_COLUMNS[currency]

        values = {column: column - amount}
        if currency == "tokens" and type != "refund":
            values[Wallet.tokens_spent] = Wallet.tokens_spent + amount
        result = self.db.execute(
            update(Wallet)
            .where(Wallet.id == wallet.id, column >= amount)
            .values(values)
            .execution_options(synchronize_session=False)
        )
        self.db.refresh(wallet)
        if result.rowcount == 0:
            available = getattr(wallet, column.key)
            debit_rejected_total.labels(currency=currency).inc()
            logger.info(
                "wallet_debit_rejected",
                extra={"user_id": user_id, "amount": amount, "currency": currency, "new_balance": available},
            )
            raise InsufficientBalanceError(required=amount, available=available, currency=currency)

        new_balance = getattr(wallet, column.key)
        self._append(wallet, type, -amount, currency, new_balance, description, reference_id)
        wallet_operations_total.labels(operation="debit", currency=currency).inc()
        logger.info(
            "wallet_debited",
            extra={
                "user_id": user_id,
                "wallet_id": wallet.id,
                "amount": amount,
                "currency": currency,
                "reason": type,
                "new_balance": new_balance,
            },
        )
        return new_balance

    def set_active_subscription(self, user_id: str, subscription_id: str | None) -> None:
        wallet = self.get_or_create_wallet(user_id)
        wallet.active_subscription_id = subscription_id
        self.db.add(wallet)
        self.db.flush()

    # ------------------------------------------------------------------
    # Ledger reads / audit
    # ------------------------------------------------------------------

    def list_transactions(self, user_id: str, limit: int = 50, skip: int = 0) -> list[WalletTransaction]:
        return (
            self.db.query(WalletTransaction)
            .filter(WalletTransaction.user_id == user_id)
            .order_by(WalletTransaction.created_at.desc())
            .offset(skip)
            .limit(limit)
            .all()
        )

    def replay_balance(self, user_id: str) -> dict[str, int]:
        """Sum of signed amounts per currency, starting from zero."""
        rows = (
            self.db.query(WalletTransaction.currency, func.coalesce(func.sum(WalletTransaction.amount), 0))
            .filter(WalletTransaction.user_id == user_id)
            .group_by(WalletTransaction.currency)
            .all()
        )
        replayed = {currency: 0 for currency in CURRENCIES}
        for currency, total in rows:
            replayed[currency] = int(total)
        return replayed

    def verify_ledger(self, user_id: str) -> dict:
        stored = self.get_wallet(user_id)
        replayed = self.replay_balance(user_id)
        mismatches = {
            currency: {"stored": stored[f"{currency}_balance"], "replayed": replayed[currency]}
            for currency in CURRENCIES
            if stored[f"{currency}_balance"] != replayed[currency]
        }
        if mismatches:
            logger.error("wallet_ledger_mismatch", extra={"user_id": user_id, "reason": str(mismatches)})
        return {
            "user_id": user_id,
            "consistent": not mismatches,
            "stored": stored,
            "replayed": replayed,
            "mismatches": mismatches,
        }

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _validate(amount: int, type: str, currency: str) -> None:
        if amount <= 0:
            raise ValueError("amount must be positive")
        if type not in TRANSACTION_TYPES:
            raise ValueError(f"unknown transaction type: {type}")
        if currency not in CURRENCIES:
            raise ValueError(f"unknown currency: {currency}")

    def _append(
        self,
        wallet: Wallet,
        type: str,
        signed_amount: int,
        currency: str,
        balance_after: int,
        description: str | None,
        reference_id: str | None,
    ) -> WalletTransaction:
        entry = WalletTransaction(
            wallet_id=wallet.id,
            user_id=wallet.user_id,
            type=type,
            amount=signed_amount,
            currency=currency,
            balance_after=balance_after,
            description=description,
            reference_id=reference_id,
        )
        self.db.add(entry)
        self.db.flush()
        return entry
