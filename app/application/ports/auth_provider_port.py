from __future__ import annotations

from typing import Callable, Protocol

from app.domain.entities.session import AuthEvent, PendingConfirmation, Session


AuthEventListener = Callable[[AuthEvent], None]
Unsubscribe = Callable[[], None]


class AuthProviderPort(Protocol):
    async def get_session(self) -> Session | None:
        ...

    async def refresh(self, refresh_token: str | None = None, *, expected_user_id: str | None = None) -> Session:
        ...

    async def sign_in_with_password(self, *, email: str, password: str) -> Session:
        ...

    async def sign_up(self, *, email: str, password: str, redirect_to: str) -> PendingConfirmation:
        ...

    async def sign_out(self) -> None:
        ...

    async def request_password_reset(self, *, email: str, redirect_to: str) -> None:
        ...

    async def verify_one_time_code(self, *, code: str, purpose: str) -> Session:
        ...

    def subscribe(self, callback: AuthEventListener) -> Unsubscribe:
        ...
