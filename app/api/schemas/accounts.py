from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from app.api.schemas.auth import SessionResponse


class AccountResponse(BaseModel):
    user_id: str
    email: str
    display_name: str | None
    avatar_url: str | None
    last_used_at: datetime
    needs_reauthentication: bool


class AccountListResponse(BaseModel):
    accounts: list[AccountResponse]


class SwitchAccountResponse(BaseModel):
    session: SessionResponse
    return_path: str


class PendingSwitchRequest(BaseModel):
    return_path: str = Field("/", min_length=1, max_length=2048)


class PendingSwitchResponse(BaseModel):
    user_id: str
    return_path: str
    requested_at: datetime


class ReconcileResponse(BaseModel):
    stale_user_ids: list[str]
    revived_user_ids: list[str]
    orphan_token_user_ids: list[str]
