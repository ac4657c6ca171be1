from __future__ import annotations

from app.application.dto.auth import SessionOutput, VerifyCodeInput
from app.application.ports.auth_provider_port import AuthProviderPort
from app.application.services.account_registry import AccountRegistry
from app.application.services.session_store import SessionStore

from .auth_common import build_session_output


class VerifyOneTimeCodeUseCase:
    def __init__(
        self,
        *,
        auth_provider: AuthProviderPort,
        session_store: SessionStore,
        account_registry: AccountRegistry,
    ):
        self._auth_provider = auth_provider
        self._session_store = session_store
        self._account_registry = account_registry

    async def execute(self, command: VerifyCodeInput) -> SessionOutput:
        code = command.code.strip()
        if not code:
            raise ValueError("Confirmation code is required.")

        session = await self._auth_provider.verify_one_time_code(code=code, purpose=command.purpose)
        self._account_registry.remember(session)
        self._session_store.adopt(session)
        return build_session_output(session)
