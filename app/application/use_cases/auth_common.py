from __future__ import annotations

from datetime import datetime, timezone
from urllib.parse import urljoin

from app.application.dto.auth import SessionOutput, SessionUserOutput
from app.domain.entities.session import Session


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def normalize_email(email: str) -> str:
    return email.strip().lower()


def build_redirect_url(site_url: str, path: str) -> str:
    if not site_url:
        return path
    return urljoin(site_url.rstrip("/") + "/", path.lstrip("/"))


def build_session_output(session: Session) -> SessionOutput:
    return SessionOutput(
        user=SessionUserOutput(
            id=session.user.id,
            email=session.user.email,
            display_name=session.user.display_name,
        ),
        issued_at=session.issued_at,
        expires_at=session.expires_at,
    )
