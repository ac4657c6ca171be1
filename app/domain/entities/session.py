from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Literal

from app.domain.entities.user import AuthUser


SessionStatus = Literal["unknown", "absent", "authenticated"]

AuthEventKind = Literal[
    "INITIAL_SESSION",
    "SIGNED_IN",
    "SIGNED_OUT",
    "TOKEN_REFRESHED",
    "USER_UPDATED",
    "PASSWORD_RECOVERY",
]


@dataclass(frozen=True)
class Session:
    user: AuthUser
    access_token: str
    refresh_token: str
    issued_at: datetime
    expires_at: datetime

    @property
    def user_id(self) -> str:
        return self.user.id

    @property
    def email(self) -> str:
        return self.user.email

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at <= now


@dataclass(frozen=True)
class SessionState:
    """Snapshot of the active session.

    ``unknown`` means the initial lookup has not finished yet and must never
    be read as ``absent``.
    """

    status: SessionStatus
    session: Session | None = None

    @classmethod
    def unknown(cls) -> SessionState:
        return cls(status="unknown")

    @classmethod
    def absent(cls) -> SessionState:
        return cls(status="absent")

    @classmethod
    def of(cls, session: Session | None) -> SessionState:
        if session is None:
            return cls.absent()
        return cls(status="authenticated", session=session)

    @property
    def is_unknown(self) -> bool:
        return self.status == "unknown"

    @property
    def is_authenticated(self) -> bool:
        return self.status == "authenticated"

    @property
    def user_id(self) -> str | None:
        return self.session.user_id if self.session is not None else None


@dataclass(frozen=True)
class AuthEvent:
    kind: AuthEventKind
    session: Session | None


@dataclass(frozen=True)
class PendingConfirmation:
    email: str
    session: Session | None = None

    @property
    def requires_confirmation(self) -> bool:
        return self.session is None
