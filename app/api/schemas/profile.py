from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel

from app.api.schemas.auth import SessionUserResponse


class ProfileResponse(BaseModel):
    user: SessionUserResponse
    avatar_url: str | None
    session_expires_at: datetime
