"""Tests for WalletService: balances, append-only log, ledger replay."""
from unittest.mock import MagicMock, patch

import pytest

from mangashelf.core.errors import InsufficientBalanceError
from mangashelf.models.purchase import Purchase
from mangashelf.models.wallet import Wallet, WalletTransaction
from mangashelf.services.purchases.service import PurchaseService
from mangashelf.services.wallet.service import WalletService


class TestWalletLookup:
    def test_wallet_created_lazily_with_zero_balances(self, db, make_user):
        user = make_user()
        svc = WalletService(db)

        assert svc.get_wallet(user.id) == {"tokens_balance": 0, "coins_balance": 0}
        assert svc.get_or_create_wallet(user.id).id == svc.get_or_create_wallet(user.id).id


class TestCreditDebit:
    def test_credit_appends_one_transaction(self, db, make_user):
        user = make_user()
        svc = WalletService(db)

        new_balance = svc.credit(user.id, 200, type="reward", description="Welcome bonus")

        assert new_balance == 200
        txs = svc.list_transactions(user.id)
        assert len(txs) == 1
        assert txs[0].amount == 200
        assert txs[0].balance_after == 200
        assert txs[0].type == "reward"

    def test_debit_decrements_and_records_negative_amount(self, db, make_user):
        user = make_user()
        svc = WalletService(db)
        svc.credit(user.id, 200, type="reward")

        new_balance = svc.debit(user.id, 130, type="subscription", reference_id="sub-1")

        assert new_balance == 70
        debit_tx = db.query(WalletTransaction).filter(WalletTransaction.reference_id == "sub-1").one()
        assert debit_tx.amount == -130
        assert debit_tx.balance_after == 70
        wallet = svc.get_or_create_wallet(user.id)
        assert wallet.tokens_spent == 130
        assert wallet.tokens_earned == 200

    def test_insufficient_balance_leaves_state_unchanged(self, db, make_user):
        user = make_user()
        svc = WalletService(db)
        svc.credit(user.id, 100, type="reward")

        with pytest.raises(InsufficientBalanceError) as exc_info:
            svc.debit(user.id, 130, type="subscription")

        assert exc_info.value.required == 130
        assert exc_info.value.available == 100
        assert svc.get_balance(user.id) == 100
        assert len(svc.list_transactions(user.id)) == 1

    def test_debit_exact_balance_reaches_zero(self, db, make_user):
        user = make_user()
        svc = WalletService(db)
        svc.credit(user.id, 50, type="reward")

        assert svc.debit(user.id, 50, type="debit") == 0

    @pytest.mark.parametrize("amount", [0, -5])
    def test_non_positive_amount_rejected(self, db, make_user, amount):
        user = make_user()
        svc = WalletService(db)

        with pytest.raises(ValueError):
            svc.credit(user.id, amount, type="reward")
        with pytest.raises(ValueError):
            svc.debit(user.id, amount, type="debit")

    def test_unknown_type_rejected(self, db, make_user):
        user = make_user()
        with pytest.raises(ValueError):
            WalletService(db).credit(user.id, 10, type="gift")

    def test_coins_tracked_separately(self, db, make_user):
        user = make_user()
        svc = WalletService(db)
        svc.credit(user.id, 30, type="reward", currency="coins")
        svc.credit(user.id, 10, type="reward")

        assert svc.get_wallet(user.id) == {"tokens_balance": 10, "coins_balance": 30}
        with pytest.raises(InsufficientBalanceError):
            svc.debit(user.id, 20, type="debit")


class TestLedgerReplay:
    def test_replay_matches_stored_balance(self, db, make_user):
        user = make_user()
        svc = WalletService(db)
        svc.credit(user.id, 500, type="purchase")
        svc.debit(user.id, 130, type="subscription")
        svc.debit(user.id, 20, type="debit")
        svc.credit(user.id, 20, type="refund")
        svc.credit(user.id, 5, type="reward", currency="coins")

        assert svc.replay_balance(user.id) == {"tokens": 370, "coins": 5}
        report = svc.verify_ledger(user.id)
        assert report["consistent"] is True
        assert report["mismatches"] == {}

    def test_verify_detects_tampered_balance(self, db, make_user):
        user = make_user()
        svc = WalletService(db)
        svc.credit(user.id, 100, type="reward")
        wallet = svc.get_or_create_wallet(user.id)
        wallet.tokens_balance = 999
        db.flush()

        report = svc.verify_ledger(user.id)

        assert report["consistent"] is False
        assert report["mismatches"]["tokens"] == {"stored": 999, "replayed": 100}


class TestWalletCreationRace:
    """Another request inserts the wallet between our lookup and our insert."""

    def _lose_first_lookup(self, db):
        real_query = db.query
        state = {"raced": False}

        def query(*entities):
            if entities == (Wallet,) and not state["raced"]:
                state["raced"] = True
                stale = MagicMock()
                stale.filter.return_value.one_or_none.return_value = None
                return stale
            return real_query(*entities)

        return patch.object(db, "query", side_effect=query)

    def test_lost_insert_returns_existing_wallet(self, db, make_user):
        user = make_user()
        existing = WalletService(db).get_or_create_wallet(user.id)
        db.commit()

        with self._lose_first_lookup(db):
            wallet = WalletService(db).get_or_create_wallet(user.id)

        assert wallet.id == existing.id
        assert db.query(Wallet).filter(Wallet.user_id == user.id).count() == 1

    def test_lost_insert_keeps_pending_purchase(self, db, make_user):
        user = make_user()
        WalletService(db).get_or_create_wallet(user.id)
        db.commit()

        with self._lose_first_lookup(db):
            purchase = PurchaseService(db).make_donation(user.id, "tier1")
        db.commit()

        purchases = db.query(Purchase).filter(Purchase.user_id == user.id).all()
        assert [p.id for p in purchases] == [purchase.id]
        svc = WalletService(db)
        assert svc.get_balance(user.id) == 50
        txs = svc.list_transactions(user.id)
        assert [(tx.amount, tx.reference_id) for tx in txs] == [(50, purchase.id)]
        assert svc.verify_ledger(user.id)["consistent"] is True
