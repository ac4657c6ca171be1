from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class AccountEntry:
    user_id: str
    email: str
    last_used_at: datetime
    display_name: str | None = None
    avatar_url: str | None = None
    stale: bool = False


@dataclass(frozen=True)
class RefreshTokenRecord:
    user_id: str
    refresh_token: str
    stored_at: datetime


@dataclass(frozen=True)
class PendingSwitch:
    user_id: str
    return_path: str
    requested_at: datetime
