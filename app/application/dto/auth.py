from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Literal

from app.domain.entities.session import Session


SignOutScope = Literal["local", "all"]

CallbackOutcome = Literal["recovery_redirect", "success", "signin_prompt", "error", "abandoned"]


@dataclass(frozen=True)
class SignInInput:
    email: str
    password: str
    remember: bool = True


@dataclass(frozen=True)
class SignUpInput:
    email: str
    password: str


@dataclass(frozen=True)
class SignUpOutput:
    email: str
    requires_confirmation: bool
    session: Session | None


@dataclass(frozen=True)
class PasswordResetInput:
    email: str


@dataclass(frozen=True)
class VerifyCodeInput:
    code: str
    purpose: str = "signup"


@dataclass(frozen=True)
class SignOutInput:
    scope: SignOutScope = "local"


@dataclass(frozen=True)
class SessionUserOutput:
    id: str
    email: str
    display_name: str | None


@dataclass(frozen=True)
class SessionOutput:
    user: SessionUserOutput
    issued_at: datetime
    expires_at: datetime


@dataclass(frozen=True)
class AuthPaths:
    signin_path: str = "/signin"
    password_update_path: str = "/update-password"
    landing_path: str = "/"
    manual_confirm_path: str = "/auth/manual-confirm"


@dataclass(frozen=True)
class CallbackResolution:
    outcome: CallbackOutcome
    redirect_to: str | None
    message: str | None = None
    # Where the user can enter a confirmation code by hand.
    manual_confirm_to: str | None = None


@dataclass(frozen=True)
class ReconcileReport:
    stale_user_ids: tuple[str, ...]
    revived_user_ids: tuple[str, ...]
    orphan_token_user_ids: tuple[str, ...]


@dataclass(frozen=True)
class SwitchOutcome:
    session: Session
    return_path: str
