from __future__ import annotations

import logging

from app.application.dto.auth import SessionOutput, SignInInput
from app.application.ports.auth_provider_port import AuthProviderPort
from app.application.services.account_registry import AccountRegistry
from app.application.services.session_store import SessionStore

from .auth_common import build_session_output, normalize_email


logger = logging.getLogger(__name__)


class SignInWithPasswordUseCase:
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

    async def execute(self, command: SignInInput) -> SessionOutput:
        email = normalize_email(command.email)
        if not email or not command.password:
            raise ValueError("Please enter both email and password.")

        session = await self._auth_provider.sign_in_with_password(
            email=email,
            password=command.password,
        )
        if command.remember:
            self._account_registry.remember(session)
        self._session_store.adopt(session)
        logger.info("sign_in: succeeded user_id=%s", session.user_id)
        return build_session_output(session)
