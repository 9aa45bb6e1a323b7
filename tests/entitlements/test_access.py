"""
Unit tests for decide_chapter_access / decide_manga_access: pure rule ladder, no storage.
"""
import unittest

from mangashelf.entitlements import (
    AccessContext,
    AccessReason,
    decide_chapter_access,
    decide_manga_access,
)


class TestDecideChapterAccess(unittest.TestCase):
    """Rule order: anonymous, free, staff, chapter, manga, subscription."""

    def test_anonymous_login_required(self):
        decision = decide_chapter_access(AccessContext(user_id=None, item_premium=True))
        self.assertFalse(decision.granted)
        self.assertEqual(decision.reason, AccessReason.LOGIN_REQUIRED)

    def test_anonymous_login_required_even_for_free_content(self):
        decision = decide_chapter_access(AccessContext(user_id=None, item_premium=False))
        self.assertFalse(decision.granted)
        self.assertEqual(decision.reason, AccessReason.LOGIN_REQUIRED)

    def test_free_content(self):
        decision = decide_chapter_access(AccessContext(user_id="u1", item_premium=False))
        self.assertTrue(decision.granted)
        self.assertEqual(decision.reason, AccessReason.FREE_CONTENT)

    def test_admin_and_mod_override(self):
        for role in ("admin", "mod"):
            decision = decide_chapter_access(AccessContext(user_id="u1", role=role, item_premium=True))
            self.assertTrue(decision.granted)
            self.assertEqual(decision.reason, AccessReason.ROLE_OVERRIDE)

    def test_chapter_purchase_wins_over_manga_purchase(self):
        ctx = AccessContext(user_id="u1", item_premium=True, chapter_purchased=True, manga_purchased=True)
        decision = decide_chapter_access(ctx)
        self.assertTrue(decision.granted)
        self.assertEqual(decision.reason, AccessReason.CHAPTER_PURCHASED)

    def test_manga_purchase(self):
        ctx = AccessContext(user_id="u1", item_premium=True, manga_purchased=True)
        self.assertEqual(decide_chapter_access(ctx).reason, AccessReason.MANGA_PURCHASED)

    def test_subscription_with_all_chapters_free(self):
        ctx = AccessContext(
            user_id="u1",
            item_premium=True,
            subscription_entitled=True,
            subscription_all_chapters_free=True,
        )
        decision = decide_chapter_access(ctx)
        self.assertTrue(decision.granted)
        self.assertEqual(decision.reason, AccessReason.SUBSCRIPTION)

    def test_subscription_without_benefit_requires_purchase(self):
        ctx = AccessContext(
            user_id="u1",
            item_premium=True,
            subscription_entitled=True,
            subscription_all_chapters_free=False,
        )
        decision = decide_chapter_access(ctx)
        self.assertFalse(decision.granted)
        self.assertEqual(decision.reason, AccessReason.PURCHASE_REQUIRED)

    def test_nothing_matches_purchase_required(self):
        decision = decide_chapter_access(AccessContext(user_id="u1", item_premium=True))
        self.assertFalse(decision.granted)
        self.assertEqual(decision.reason, AccessReason.PURCHASE_REQUIRED)


class TestDecideMangaAccess(unittest.TestCase):
    def test_chapter_purchase_ignored_for_manga(self):
        ctx = AccessContext(user_id="u1", item_premium=True, chapter_purchased=True)
        decision = decide_manga_access(ctx)
        self.assertFalse(decision.granted)
        self.assertEqual(decision.reason, AccessReason.PURCHASE_REQUIRED)

    def test_manga_purchased(self):
        ctx = AccessContext(user_id="u1", item_premium=True, manga_purchased=True)
        self.assertEqual(decide_manga_access(ctx).reason, AccessReason.MANGA_PURCHASED)

    def test_context_is_frozen(self):
        ctx = AccessContext(user_id="u1")
        with self.assertRaises(Exception):
            ctx.user_id = "u2"


if __name__ == "__main__":
    unittest.main()
