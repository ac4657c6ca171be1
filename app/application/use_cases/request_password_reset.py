from __future__ import annotations

from app.application.dto.auth import PasswordResetInput
from app.application.ports.auth_provider_port import AuthProviderPort

from .auth_common import build_redirect_url, normalize_email


class RequestPasswordResetUseCase:
    def __init__(self, *, auth_provider: AuthProviderPort, site_url: str, password_update_path: str):
        self._auth_provider = auth_provider
        self._redirect_to = build_redirect_url(site_url, password_update_path)

    async def execute(self, command: PasswordResetInput) -> None:
        email = normalize_email(command.email)
        if not email:
            raise ValueError("Please enter your email address.")
        await self._auth_provider.request_password_reset(email=email, redirect_to=self._redirect_to)
