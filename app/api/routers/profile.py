from __future__ import annotations

from fastapi import APIRouter, Depends

from app.api.deps import get_current_session
from app.api.schemas.auth import SessionUserResponse
from app.api.schemas.profile import ProfileResponse
from app.domain.entities.session import Session


router = APIRouter()


@router.get("/profile", response_model=ProfileResponse)
def get_profile(session: Session = Depends(get_current_session)):
    return ProfileResponse(
        user=SessionUserResponse(
            id=session.user_id,
            email=session.email,
            display_name=session.user.display_name,
        ),
        avatar_url=session.user.avatar_url,
        session_expires_at=session.expires_at,
    )
