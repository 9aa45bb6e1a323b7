"""Shared fixtures: in-memory SQLite database, seeded catalog, mocked Redis."""
import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["JWT_SECRET_KEY"] = "test-secret-key-for-mangashelf"
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/15")

from unittest.mock import MagicMock  # noqa: E402

import pytest  # noqa: E402

from mangashelf.db.session import SessionLocal, engine  # noqa: E402
from mangashelf.models import Base, Chapter, Manga, User  # noqa: E402


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def make_user(db):
    def _make(role="user", external_uid=None, **kwargs):
        user = User(
            external_uid=external_uid or f"ext-{os.urandom(4).hex()}",
            role=role,
            is_banned=kwargs.pop("is_banned", False),
            **kwargs,
        )
        db.add(user)
        db.commit()
        return user

    return _make


@pytest.fixture
def catalog(db):
    """One premium manga (chapter_price 20, purchase_price 150) with a free and two premium chapters."""
    manga = Manga(title="Blue Lotus", premium=True, purchase_price=150, chapter_price=20)
    db.add(manga)
    db.flush()
    free = Chapter(manga_id=manga.id, number=1, title="Arrival", is_premium=False)
    paid = Chapter(manga_id=manga.id, number=2, title="The Gate", is_premium=True)
    priced = Chapter(manga_id=manga.id, number=3, title="Ashes", is_premium=True, price=35)
    db.add_all([free, paid, priced])
    db.commit()
    return {"manga": manga, "free": free, "paid": paid, "priced": priced}


@pytest.fixture
def redis_mock():
    client = MagicMock()
    client.incr.return_value = 1
    client.set.return_value = True
    return client

