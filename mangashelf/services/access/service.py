"""
AccessService loads an AccessContext from storage and hands it to the pure decision
in mangashelf.entitlements. It never raises for "not entitled", only for unknown ids.
"""
import logging

from sqlalchemy.orm import Session

from mangashelf.core.errors import NotFoundError
from mangashelf.entitlements import (
    AccessContext,
    AccessDecision,
    ItemRef,
    decide_chapter_access,
    decide_manga_access,
)
from mangashelf.models.chapter import Chapter
from mangashelf.models.manga import Manga
from mangashelf.models.user import User
from mangashelf.services.purchases.service import PurchaseService
from mangashelf.services.subscriptions.service import SubscriptionService
from mangashelf.utils.metrics import access_decisions_total

logger = logging.getLogger(__name__)


class AccessService:
    def __init__(self, db: Session):
        self.db = db
        self.purchases = PurchaseService(db)
        self.subscriptions = SubscriptionService(db)

    def has_chapter_access(self, user_id: str | None, chapter_id: str) -> AccessDecision:
        chapter = self.db.query(Chapter).filter(Chapter.id == chapter_id).one_or_none()
        if not chapter:
            raise NotFoundError("Chapter not found")
        ctx = self._context(user_id, item_premium=bool(chapter.is_premium), chapter=chapter)
        decision = decide_chapter_access(ctx)
        access_decisions_total.labels(item_kind="chapter", reason=decision.reason.value).inc()
        return decision

    def has_manga_access(self, user_id: str | None, manga_id: str) -> AccessDecision:
        manga = self.db.query(Manga).filter(Manga.id == manga_id).one_or_none()
        if not manga:
            raise NotFoundError("Manga not found")
        ctx = self._context(user_id, item_premium=bool(manga.premium), manga_id=manga.id)
        decision = decide_manga_access(ctx)
        access_decisions_total.labels(item_kind="manga", reason=decision.reason.value).inc()
        return decision

    def list_chapters_with_access(self, user_id: str | None, manga_id: str) -> list[dict]:
        """Every chapter of a manga, ordered by number, with its access decision."""
        manga = self.db.query(Manga).filter(Manga.id == manga_id).one_or_none()
        if not manga:
            raise NotFoundError("Manga not found")
        chapters = (
            self.db.query(Chapter)
            .filter(Chapter.manga_id == manga_id)
            .order_by(Chapter.number)
            .all()
        )
        result = []
        for chapter in chapters:
            ctx = self._context(user_id, item_premium=bool(chapter.is_premium), chapter=chapter)
            decision = decide_chapter_access(ctx)
            result.append(
                {
                    "chapter": chapter,
                    "price": chapter.price if chapter.price is not None else manga.chapter_price,
                    "decision": decision,
                }
            )
        return result

    def _context(
        self,
        user_id: str | None,
        item_premium: bool,
        chapter: Chapter | None = None,
        manga_id: str | None = None,
    ) -> AccessContext:
        if user_id is None:
            return AccessContext(user_id=None, item_premium=item_premium)
        if not item_premium:
            # nothing else is consulted for free content
            return AccessContext(user_id=user_id, item_premium=False)

        user = self.db.query(User).filter(User.id == user_id).one_or_none()
        role = user.role if user else "user"
        manga_id = chapter.manga_id if chapter is not None else manga_id

        subscription = self.subscriptions.get_active_subscription(user_id)
        return AccessContext(
            user_id=user_id,
            role=role,
            item_premium=True,
            chapter_purchased=(
                chapter is not None
                and self.purchases.has_completed_purchase(user_id, ItemRef.chapter(chapter.id))
            ),
            manga_purchased=self.purchases.has_completed_purchase(user_id, ItemRef.manga(manga_id)),
            subscription_entitled=subscription is not None,
            subscription_all_chapters_free=bool(subscription and subscription.all_chapters_free),
        )
