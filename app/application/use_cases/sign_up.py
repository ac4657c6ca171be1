from __future__ import annotations

from app.application.dto.auth import SignUpInput, SignUpOutput
from app.application.ports.auth_provider_port import AuthProviderPort
from app.application.services.account_registry import AccountRegistry
from app.application.services.session_store import SessionStore

from .auth_common import build_redirect_url, normalize_email


class SignUpUseCase:
    def __init__(
        self,
        *,
        auth_provider: AuthProviderPort,
        session_store: SessionStore,
        account_registry: AccountRegistry,
        site_url: str,
        callback_path: str,
    ):
        self._auth_provider = auth_provider
        self._session_store = session_store
        self._account_registry = account_registry
        self._redirect_to = build_redirect_url(site_url, callback_path)

    async def execute(self, command: SignUpInput) -> SignUpOutput:
        email = normalize_email(command.email)
        if not email or not command.password:
            raise ValueError("Please enter both email and password.")

        pending = await self._auth_provider.sign_up(
            email=email,
            password=command.password,
            redirect_to=self._redirect_to,
        )
        # Providers without mandatory confirmation return a live session.
        if pending.session is not None:
            self._account_registry.remember(pending.session)
            self._session_store.adopt(pending.session)

        return SignUpOutput(
            email=pending.email,
            requires_confirmation=pending.requires_confirmation,
            session=pending.session,
        )
