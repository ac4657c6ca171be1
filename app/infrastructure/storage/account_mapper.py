from __future__ import annotations

from app.domain.entities.account import AccountEntry, PendingSwitch, RefreshTokenRecord
from app.infrastructure.storage.schemas import (
    PendingSwitchRecord,
    RefreshTokenEntryRecord,
    StoredAccountRecord,
)


def map_record_to_account(record: StoredAccountRecord) -> AccountEntry:
    return AccountEntry(
        user_id=record.id,
        email=record.email,
        last_used_at=record.last_used,
        display_name=record.full_name or record.username,
        avatar_url=record.avatar_url,
        stale=record.stale,
    )


def map_account_to_record(entry: AccountEntry) -> StoredAccountRecord:
    return StoredAccountRecord(
        id=entry.user_id,
        email=entry.email,
        full_name=entry.display_name,
        avatar_url=entry.avatar_url,
        last_used=entry.last_used_at,
        stale=entry.stale,
    )


def map_record_to_refresh_token(record: RefreshTokenEntryRecord) -> RefreshTokenRecord:
    return RefreshTokenRecord(
        user_id=record.account_id,
        refresh_token=record.refresh_token,
        stored_at=record.stored_at,
    )


def map_refresh_token_to_record(token: RefreshTokenRecord) -> RefreshTokenEntryRecord:
    return RefreshTokenEntryRecord(
        account_id=token.user_id,
        refresh_token=token.refresh_token,
        stored_at=token.stored_at,
    )


def map_record_to_pending_switch(record: PendingSwitchRecord) -> PendingSwitch:
    return PendingSwitch(
        user_id=record.account_id,
        return_path=record.return_path,
        requested_at=record.requested_at,
    )


def map_pending_switch_to_record(pending: PendingSwitch) -> PendingSwitchRecord:
    return PendingSwitchRecord(
        account_id=pending.user_id,
        return_path=pending.return_path,
        requested_at=pending.requested_at,
    )
