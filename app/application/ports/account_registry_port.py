from __future__ import annotations

from typing import Protocol

from app.domain.entities.account import AccountEntry, PendingSwitch, RefreshTokenRecord


class AccountRegistryPort(Protocol):
    def load_accounts(self) -> list[AccountEntry]:
        ...

    def save_accounts(self, accounts: list[AccountEntry]) -> bool:
        ...

    def load_refresh_tokens(self) -> dict[str, RefreshTokenRecord]:
        ...

    def save_refresh_tokens(self, tokens: dict[str, RefreshTokenRecord]) -> bool:
        ...

    def read_pending_switch(self) -> PendingSwitch | None:
        ...

    def write_pending_switch(self, pending: PendingSwitch) -> bool:
        ...

    def clear_pending_switch(self) -> bool:
        ...

    def purge(self) -> bool:
        ...
