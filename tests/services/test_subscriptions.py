"""Tests for SubscriptionService: subscribe, cancel, passive expiry, benefits."""
from datetime import datetime, timedelta, timezone

import pytest

from mangashelf.core.errors import (
    AlreadySubscribedError,
    InsufficientBalanceError,
    NoActiveSubscriptionError,
)
from mangashelf.models.purchase import Purchase
from mangashelf.models.subscription import Subscription
from mangashelf.services.subscriptions.service import (
    SubscriptionService,
    add_months,
    as_utc,
    is_currently_entitled,
)
from mangashelf.services.wallet.service import WalletService


def _expired_subscription(db, user_id):
    now = datetime.now(timezone.utc)
    sub = Subscription(
        user_id=user_id,
        start_date=now - timedelta(days=40),
        expires_at=now - timedelta(days=10),
        is_active=True,
        price=4.99,
        purchase_method="cash",
    )
    db.add(sub)
    db.flush()
    return sub


class TestAddMonths:
    def test_regular_month(self):
        assert add_months(datetime(2026, 3, 15, 12, 0), 1) == datetime(2026, 4, 15, 12, 0)

    def test_clamps_to_month_end(self):
        assert add_months(datetime(2026, 1, 31), 1) == datetime(2026, 2, 28)
        assert add_months(datetime(2028, 1, 31), 1) == datetime(2028, 2, 29)

    def test_year_rollover(self):
        assert add_months(datetime(2026, 12, 5), 1) == datetime(2027, 1, 5)


class TestIsCurrentlyEntitled:
    def test_none(self):
        assert is_currently_entitled(None) is False

    def test_active_flag_alone_is_not_enough(self, db, make_user):
        user = make_user()
        sub = _expired_subscription(db, user.id)
        assert sub.is_active is True
        assert is_currently_entitled(sub) is False

    def test_inactive_but_not_expired(self, db, make_user):
        user = make_user()
        sub = _expired_subscription(db, user.id)
        sub.expires_at = datetime.now(timezone.utc) + timedelta(days=5)
        sub.is_active = False
        assert is_currently_entitled(sub) is False


class TestSubscribe:
    def test_subscribe_with_tokens(self, db, make_user):
        user = make_user()
        wallets = WalletService(db)
        wallets.credit(user.id, 200, type="purchase")
        svc = SubscriptionService(db)

        sub = svc.subscribe(user.id, "tokens")

        assert sub.is_active is True
        assert sub.purchase_method == "tokens"
        assert sub.price == 130
        assert wallets.get_balance(user.id) == 70
        assert as_utc(sub.expires_at) == add_months(as_utc(sub.start_date), 1)
        assert wallets.get_or_create_wallet(user.id).active_subscription_id == sub.id
        purchase = db.query(Purchase).filter(Purchase.id == sub.purchase_id).one()
        assert purchase.purchase_type == "subscription"
        assert purchase.item_id == sub.id
        assert purchase.status == "completed"
        assert purchase.currency == "tokens"
        assert svc.get_active_subscription(user.id).id == sub.id

    def test_insufficient_tokens_writes_nothing(self, db, make_user):
        user = make_user()
        wallets = WalletService(db)
        wallets.credit(user.id, 100, type="purchase")
        svc = SubscriptionService(db)

        with pytest.raises(InsufficientBalanceError):
            svc.subscribe(user.id, "tokens")

        assert wallets.get_balance(user.id) == 100
        assert db.query(Subscription).count() == 0
        assert db.query(Purchase).count() == 0

    def test_subscribe_with_cash(self, db, make_user):
        user = make_user()
        svc = SubscriptionService(db)

        sub = svc.subscribe(user.id, "cash")

        assert sub.price == pytest.approx(4.99)
        purchase = db.query(Purchase).filter(Purchase.id == sub.purchase_id).one()
        assert purchase.currency == "usd"
        assert purchase.payment_method == "stripe"
        assert WalletService(db).get_balance(user.id) == 0

    def test_already_subscribed(self, db, make_user):
        user = make_user()
        svc = SubscriptionService(db)
        svc.subscribe(user.id, "cash")

        with pytest.raises(AlreadySubscribedError):
            svc.subscribe(user.id, "cash")

    def test_expired_subscription_allows_new_one(self, db, make_user):
        user = make_user()
        _expired_subscription(db, user.id)
        svc = SubscriptionService(db)

        assert svc.get_active_subscription(user.id) is None
        sub = svc.subscribe(user.id, "cash")
        assert svc.get_active_subscription(user.id).id == sub.id

    def test_unknown_payment_method(self, db, make_user):
        user = make_user()
        with pytest.raises(ValueError):
            SubscriptionService(db).subscribe(user.id, "stars")


class TestCancel:
    def test_cancel_revokes_immediately(self, db, make_user):
        user = make_user()
        svc = SubscriptionService(db)
        sub = svc.subscribe(user.id, "cash")
        expires_at = sub.expires_at

        cancelled = svc.cancel(user.id, "too expensive")

        assert cancelled.is_active is False
        assert cancelled.is_auto_renew is False
        assert cancelled.cancelled_at is not None
        assert cancelled.cancellation_reason == "too expensive"
        assert cancelled.expires_at == expires_at
        assert svc.get_active_subscription(user.id) is None
        assert WalletService(db).get_or_create_wallet(user.id).active_subscription_id is None

    def test_cancel_without_subscription(self, db, make_user):
        user = make_user()
        with pytest.raises(NoActiveSubscriptionError):
            SubscriptionService(db).cancel(user.id)

    def test_cancel_expired_subscription(self, db, make_user):
        user = make_user()
        _expired_subscription(db, user.id)
        with pytest.raises(NoActiveSubscriptionError):
            SubscriptionService(db).cancel(user.id)


class TestBenefits:
    def test_benefits_without_subscription(self, db, make_user):
        user = make_user()
        svc = SubscriptionService(db)

        assert not any(svc.benefits(user.id).values())
        assert svc.check_feature(user.id, "no_ads") is False

    def test_benefits_with_subscription(self, db, make_user):
        user = make_user()
        svc = SubscriptionService(db)
        svc.subscribe(user.id, "cash")

        assert all(svc.benefits(user.id).values())
        assert svc.check_feature(user.id, "gif_profile") is True

    def test_unknown_feature(self, db, make_user):
        user = make_user()
        with pytest.raises(ValueError):
            SubscriptionService(db).check_feature(user.id, "teleport")

    def test_history_includes_cancelled(self, db, make_user):
        user = make_user()
        svc = SubscriptionService(db)
        svc.subscribe(user.id, "cash")
        svc.cancel(user.id)
        svc.subscribe(user.id, "cash")

        assert len(svc.history(user.id)) == 2

    def test_plans(self):
        plans = SubscriptionService.plans()
        assert [p["id"] for p in plans] == ["free", "premium"]
        assert plans[1]["price_tokens"] == 130
