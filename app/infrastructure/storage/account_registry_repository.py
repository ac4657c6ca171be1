from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from pydantic import ValidationError

from app.application.ports.account_registry_port import AccountRegistryPort
from app.domain.entities.account import AccountEntry, PendingSwitch, RefreshTokenRecord
from app.infrastructure.storage.account_mapper import (
    map_account_to_record,
    map_pending_switch_to_record,
    map_record_to_account,
    map_record_to_pending_switch,
    map_record_to_refresh_token,
    map_refresh_token_to_record,
)
from app.infrastructure.storage.schemas import (
    SCHEMA_VERSION,
    PendingSwitchRecord,
    RefreshTokenDocument,
    RefreshTokenEntryRecord,
    StoredAccountRecord,
    StoredAccountsDocument,
)
from app.infrastructure.storage.storage_adapter import StorageAdapter


logger = logging.getLogger(__name__)


STORED_ACCOUNTS_KEY = "stored_accounts"
REFRESH_TOKENS_KEY = "account_refresh_tokens"
PENDING_SWITCH_KEY = "pending_account_switch"

_EPOCH = datetime.fromtimestamp(0, tz=timezone.utc)


def _unwrap(value: Any, field: str) -> list[Any]:
    # Bare lists are the unversioned layout written by earlier clients.
    if isinstance(value, list):
        return value
    if isinstance(value, dict):
        items = value.get(field)
        return items if isinstance(items, list) else []
    return []


class StorageAccountRegistryRepository(AccountRegistryPort):
    def __init__(self, storage: StorageAdapter):
        self._storage = storage

    def load_accounts(self) -> list[AccountEntry]:
        raw = self._storage.read(STORED_ACCOUNTS_KEY, default=None)
        if raw is None:
            return []
        version = raw.get("schema_version") if isinstance(raw, dict) else None
        if isinstance(version, int) and version > SCHEMA_VERSION:
            logger.warning(
                "account_registry_repository: unsupported_schema key=%s version=%s",
                STORED_ACCOUNTS_KEY,
                version,
            )
            return []

        accounts: dict[str, AccountEntry] = {}
        for item in _unwrap(raw, "accounts"):
            entry = self._parse_account(item)
            if entry is not None:
                accounts[entry.user_id] = entry
        return list(accounts.values())

    def save_accounts(self, accounts: list[AccountEntry]) -> bool:
        document = StoredAccountsDocument(
            accounts=[map_account_to_record(entry).model_dump(mode="json") for entry in accounts],
        )
        return self._storage.write(STORED_ACCOUNTS_KEY, document.model_dump(mode="json"))

    def load_refresh_tokens(self) -> dict[str, RefreshTokenRecord]:
        raw = self._storage.read(REFRESH_TOKENS_KEY, default=None)
        if raw is None:
            return {}

        tokens: dict[str, RefreshTokenRecord] = {}
        for item in _unwrap(raw, "tokens"):
            try:
                record = RefreshTokenEntryRecord.model_validate(item)
            except ValidationError:
                logger.warning("account_registry_repository: invalid_token_record_dropped")
                continue
            tokens[record.account_id] = map_record_to_refresh_token(record)
        return tokens

    def save_refresh_tokens(self, tokens: dict[str, RefreshTokenRecord]) -> bool:
        document = RefreshTokenDocument(
            tokens=[map_refresh_token_to_record(token).model_dump(mode="json") for token in tokens.values()],
        )
        return self._storage.write(REFRESH_TOKENS_KEY, document.model_dump(mode="json"))

    def read_pending_switch(self) -> PendingSwitch | None:
        raw = self._storage.read(PENDING_SWITCH_KEY, default=None)
        if raw is None:
            return None
        if isinstance(raw, str):
            # Bare account id written by earlier clients.
            raw = {"account_id": raw}
        try:
            record = PendingSwitchRecord.model_validate(raw)
        except ValidationError:
            logger.warning("account_registry_repository: invalid_pending_switch_dropped")
            self._storage.remove(PENDING_SWITCH_KEY)
            return None
        return map_record_to_pending_switch(record)

    def write_pending_switch(self, pending: PendingSwitch) -> bool:
        record = map_pending_switch_to_record(pending)
        return self._storage.write(PENDING_SWITCH_KEY, record.model_dump(mode="json"))

    def clear_pending_switch(self) -> bool:
        return self._storage.remove(PENDING_SWITCH_KEY)

    def purge(self) -> bool:
        results = [
            self._storage.remove(STORED_ACCOUNTS_KEY),
            self._storage.remove(REFRESH_TOKENS_KEY),
            self._storage.remove(PENDING_SWITCH_KEY),
        ]
        return all(results)

    @staticmethod
    def _parse_account(item: Any) -> AccountEntry | None:
        try:
            return map_record_to_account(StoredAccountRecord.model_validate(item))
        except ValidationError:
            pass

        # Keep identifiable but malformed entries visible as needing re-authentication.
        if isinstance(item, dict) and isinstance(item.get("id"), str) and item["id"]:
            logger.warning("account_registry_repository: malformed_account_marked_stale user_id=%s", item["id"])
            email = item.get("email")
            return AccountEntry(
                user_id=item["id"],
                email=email if isinstance(email, str) else "",
                last_used_at=_EPOCH,
                stale=True,
            )

        logger.warning("account_registry_repository: unidentifiable_account_dropped")
        return None
