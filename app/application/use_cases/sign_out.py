from __future__ import annotations

from app.application.dto.auth import SignOutInput
from app.application.services.account_registry import AccountRegistry
from app.application.services.session_store import SessionStore


class SignOutUseCase:
    def __init__(self, *, session_store: SessionStore, account_registry: AccountRegistry):
        self._session_store = session_store
        self._account_registry = account_registry

    async def execute(self, command: SignOutInput) -> None:
        if command.scope not in ("local", "all"):
            raise ValueError("scope must be 'local' or 'all'.")

        await self._session_store.sign_out()
        if command.scope == "all":
            self._account_registry.purge()
