from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field


class LoginRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=255)
    password: str = Field(..., min_length=1, max_length=256)
    remember: bool = True


class SignUpRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=255)
    password: str = Field(..., min_length=1, max_length=256)


class PasswordResetRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=255)


class VerifyCodeRequest(BaseModel):
    code: str = Field(..., min_length=1, max_length=2048)
    purpose: Literal["signup", "email", "recovery", "invite", "magiclink", "email_change"] = "signup"


class SessionUserResponse(BaseModel):
    id: str
    email: str
    display_name: str | None


class SessionResponse(BaseModel):
    user: SessionUserResponse
    issued_at: datetime
    expires_at: datetime


class SessionStateResponse(BaseModel):
    status: Literal["unknown", "absent", "authenticated"]
    session: SessionResponse | None


class SignUpResponse(BaseModel):
    email: str
    requires_confirmation: bool
    message: str
    session: SessionResponse | None


class OkResponse(BaseModel):
    ok: bool
    message: str | None = None
