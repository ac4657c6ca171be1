from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime
from typing import Callable

from app.application.dto.auth import ReconcileReport, SwitchOutcome
from app.application.ports.account_registry_port import AccountRegistryPort
from app.application.ports.auth_provider_port import AuthProviderPort, Unsubscribe
from app.application.services.session_store import SessionStore
from app.application.use_cases.auth_common import utcnow
from app.domain.entities.account import AccountEntry, PendingSwitch, RefreshTokenRecord
from app.domain.entities.session import Session, SessionState
from app.domain.exceptions import (
    InvalidOrExpiredCodeError,
    NoStoredCredentialError,
    RefreshSessionInvalidError,
    RefreshUserMismatchError,
)


logger = logging.getLogger(__name__)


class AccountRegistry:
    """Remembered accounts and their refresh tokens.

    The in-memory view is authoritative for reads and is written through the
    repository on every change. An entry is stale exactly when no refresh token
    is cached for it; stale entries stay listed until removed.
    """

    def __init__(
        self,
        *,
        repository: AccountRegistryPort,
        auth_provider: AuthProviderPort,
        session_store: SessionStore,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._repository = repository
        self._auth_provider = auth_provider
        self._session_store = session_store
        self._clock = clock
        self._accounts: dict[str, AccountEntry] = {}
        self._tokens: dict[str, RefreshTokenRecord] = {}
        self._load()

    def add_or_update(self, entry: AccountEntry, *, refresh_token: str | None = None) -> AccountEntry:
        now = self._clock()
        if refresh_token:
            self._tokens[entry.user_id] = RefreshTokenRecord(
                user_id=entry.user_id,
                refresh_token=refresh_token,
                stored_at=now,
            )
            self._repository.save_refresh_tokens(dict(self._tokens))

        existing = self._accounts.get(entry.user_id)
        updated = replace(
            entry,
            last_used_at=now,
            display_name=entry.display_name or (existing.display_name if existing else None),
            avatar_url=entry.avatar_url or (existing.avatar_url if existing else None),
            stale=entry.user_id not in self._tokens,
        )
        self._accounts[entry.user_id] = updated
        self._repository.save_accounts(list(self._accounts.values()))
        logger.debug(
            "account_registry: upserted user_id=%s stale=%s",
            updated.user_id,
            updated.stale,
        )
        return updated

    def remember(self, session: Session) -> AccountEntry:
        return self.add_or_update(
            AccountEntry(
                user_id=session.user_id,
                email=session.email,
                last_used_at=self._clock(),
                display_name=session.user.display_name,
                avatar_url=session.user.avatar_url,
            ),
            refresh_token=session.refresh_token,
        )

    def remove(self, user_id: str) -> bool:
        removed = self._accounts.pop(user_id, None) is not None
        had_token = self._tokens.pop(user_id, None) is not None
        if removed:
            self._repository.save_accounts(list(self._accounts.values()))
        if had_token:
            self._repository.save_refresh_tokens(dict(self._tokens))
        pending = self._repository.read_pending_switch()
        if pending is not None and pending.user_id == user_id:
            self._repository.clear_pending_switch()
        if removed:
            logger.info("account_registry: removed user_id=%s", user_id)
        return removed

    def list(self) -> list[AccountEntry]:
        return sorted(
            self._accounts.values(),
            key=lambda entry: (entry.last_used_at, entry.user_id),
            reverse=True,
        )

    def get(self, user_id: str) -> AccountEntry | None:
        return self._accounts.get(user_id)

    def has_credential(self, user_id: str) -> bool:
        return user_id in self._tokens

    async def switch_to(self, user_id: str) -> Session:
        entry = self._accounts.get(user_id)
        if entry is None:
            raise NoStoredCredentialError("Account is not remembered on this device.")

        record = self._tokens.get(user_id)
        if record is None:
            self._mark_stale(user_id)
            raise NoStoredCredentialError("Account needs to sign in again.")

        try:
            session = await self._auth_provider.refresh(record.refresh_token, expected_user_id=user_id)
        except RefreshUserMismatchError as exc:
            logger.warning(
                "account_registry: switch_user_mismatch requested=%s received=%s",
                user_id,
                exc.session.user_id,
            )
            self._mark_stale(user_id)
            self.remember(exc.session)
            raise NoStoredCredentialError("Stored credential belongs to another account.") from exc
        except (RefreshSessionInvalidError, InvalidOrExpiredCodeError) as exc:
            logger.warning(
                "account_registry: switch_rejected user_id=%s error=%s",
                user_id,
                type(exc).__name__,
            )
            self._mark_stale(user_id)
            raise NoStoredCredentialError("Stored credential was rejected; sign in again.") from exc

        self.remember(session)
        self._session_store.adopt(session)
        logger.info("account_registry: switched user_id=%s", user_id)
        return session

    def reconcile(self) -> ReconcileReport:
        self._load()
        stale: list[str] = []
        revived: list[str] = []
        for user_id, entry in list(self._accounts.items()):
            has_token = user_id in self._tokens
            if not has_token and not entry.stale:
                self._accounts[user_id] = replace(entry, stale=True)
                stale.append(user_id)
            elif has_token and entry.stale:
                self._accounts[user_id] = replace(entry, stale=False)
                revived.append(user_id)

        orphans = [user_id for user_id in self._tokens if user_id not in self._accounts]
        for user_id in orphans:
            del self._tokens[user_id]

        if stale or revived:
            self._repository.save_accounts(list(self._accounts.values()))
        if orphans:
            self._repository.save_refresh_tokens(dict(self._tokens))

        report = ReconcileReport(
            stale_user_ids=tuple(stale),
            revived_user_ids=tuple(revived),
            orphan_token_user_ids=tuple(orphans),
        )
        logger.info(
            "account_registry: reconciled accounts=%s stale=%s revived=%s orphans=%s",
            len(self._accounts),
            len(stale),
            len(revived),
            len(orphans),
        )
        return report

    def purge(self) -> None:
        self._accounts.clear()
        self._tokens.clear()
        self._repository.purge()
        logger.info("account_registry: purged")

    def begin_switch(self, user_id: str, *, return_path: str = "/") -> PendingSwitch:
        if user_id not in self._accounts:
            raise NoStoredCredentialError("Account is not remembered on this device.")
        pending = PendingSwitch(user_id=user_id, return_path=return_path, requested_at=self._clock())
        self._repository.write_pending_switch(pending)
        return pending

    async def complete_pending_switch(self) -> SwitchOutcome | None:
        pending = self._repository.read_pending_switch()
        if pending is None:
            return None
        # Single use: cleared before the attempt so a failure cannot loop.
        self._repository.clear_pending_switch()
        session = await self.switch_to(pending.user_id)
        return SwitchOutcome(session=session, return_path=pending.return_path or "/")

    def track(self, session_store: SessionStore) -> Unsubscribe:
        return session_store.watch(self._on_session_state)

    def _on_session_state(self, state: SessionState) -> None:
        session = state.session
        if session is None or session.user_id not in self._accounts:
            return
        record = self._tokens.get(session.user_id)
        if record is not None and record.refresh_token == session.refresh_token:
            return
        self._tokens[session.user_id] = RefreshTokenRecord(
            user_id=session.user_id,
            refresh_token=session.refresh_token,
            stored_at=self._clock(),
        )
        self._repository.save_refresh_tokens(dict(self._tokens))
        entry = self._accounts[session.user_id]
        if entry.stale:
            self._accounts[session.user_id] = replace(entry, stale=False)
            self._repository.save_accounts(list(self._accounts.values()))

    def _mark_stale(self, user_id: str) -> None:
        if self._tokens.pop(user_id, None) is not None:
            self._repository.save_refresh_tokens(dict(self._tokens))
        entry = self._accounts.get(user_id)
        if entry is not None and not entry.stale:
            self._accounts[user_id] = replace(entry, stale=True)
            self._repository.save_accounts(list(self._accounts.values()))

    def _load(self) -> None:
        self._accounts = {entry.user_id: entry for entry in self._repository.load_accounts()}
        self._tokens = dict(self._repository.load_refresh_tokens())
