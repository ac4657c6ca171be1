from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from pydantic import AliasChoices, BaseModel, Field, field_validator


SCHEMA_VERSION = 1


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    # Naive timestamps from older writers are taken as UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class StoredAccountRecord(BaseModel):
    id: str = Field(..., min_length=1)
    email: str
    username: str | None = None
    full_name: str | None = None
    avatar_url: str | None = None
    # Legacy documents carry epoch milliseconds; pydantic accepts both forms.
    last_used: datetime
    stale: bool = False

    @field_validator("last_used")
    @classmethod
    def validate_last_used(cls, v):
        return _as_utc(v)


class StoredAccountsDocument(BaseModel):
    schema_version: int = SCHEMA_VERSION
    accounts: list[dict[str, Any]] = Field(default_factory=list)


class RefreshTokenEntryRecord(BaseModel):
    account_id: str = Field(..., min_length=1, validation_alias=AliasChoices("account_id", "accountId"))
    refresh_token: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("refresh_token", "refreshToken"),
    )
    stored_at: datetime = Field(default_factory=_utcnow, validation_alias=AliasChoices("stored_at", "timestamp"))

    @field_validator("stored_at")
    @classmethod
    def validate_stored_at(cls, v):
        return _as_utc(v)


class RefreshTokenDocument(BaseModel):
    schema_version: int = SCHEMA_VERSION
    tokens: list[dict[str, Any]] = Field(default_factory=list)


class PendingSwitchRecord(BaseModel):
    schema_version: int = SCHEMA_VERSION
    account_id: str = Field(..., min_length=1)
    return_path: str = "/"
    requested_at: datetime = Field(default_factory=_utcnow)

    @field_validator("requested_at")
    @classmethod
    def validate_requested_at(cls, v):
        return _as_utc(v)


class StoredUserRecord(BaseModel):
    id: str = Field(..., min_length=1)
    email: str = ""
    user_metadata: dict[str, Any] = Field(default_factory=dict)


class StoredSessionRecord(BaseModel):
    schema_version: int = SCHEMA_VERSION
    access_token: str = Field(..., min_length=1)
    refresh_token: str = Field(..., min_length=1)
    issued_at: datetime
    expires_at: datetime
    user: StoredUserRecord

    @field_validator("issued_at", "expires_at")
    @classmethod
    def validate_timestamps(cls, v):
        return _as_utc(v)
