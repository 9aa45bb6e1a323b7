from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field


class UserOut(BaseModel):
    id: str
    external_uid: str
    username: str | None
    role: str
    is_banned: bool
    ban_reason: str | None
    ban_expires_at: datetime | None

    model_config = {"from_attributes": True}


class RoleIn(BaseModel):
    role: Literal["user", "mod", "admin"]


class BanIn(BaseModel):
    reason: str | None = Field(None, max_length=500)
    expires_at: datetime | None = None
