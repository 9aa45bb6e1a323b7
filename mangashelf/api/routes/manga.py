from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from mangashelf.api.deps import get_optional_user
from mangashelf.db.session import get_db
from mangashelf.models.user import User
from mangashelf.services.access.service import AccessService

router = APIRouter(prefix="/manga", tags=["manga"])


@router.get("/{manga_id}/chapters")
def chapters_with_access(
    manga_id: str,
    user: User | None = Depends(get_optional_user),
    db: Session = Depends(get_db),
):
    """Chapter list of a manga, each with whether the caller may read it."""
    rows = AccessService(db).list_chapters_with_access(user.id if user else None, manga_id)
    return {
        "success": True,
        "chapters": [
            {
                "id": row["chapter"].id,
                "number": row["chapter"].number,
                "title": row["chapter"].title,
                "is_premium": row["chapter"].is_premium,
                "price": row["price"],
                "is_accessible": row["decision"].granted,
                "reason": row["decision"].reason.value,
            }
            for row in rows
        ],
    }
