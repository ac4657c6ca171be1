from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Iterable, Mapping
from urllib.parse import urlencode

from app.application.dto.auth import AuthPaths, CallbackResolution
from app.application.ports.auth_provider_port import AuthProviderPort
from app.application.services.account_registry import AccountRegistry
from app.application.services.session_store import SessionStore
from app.domain.entities.auth_action import PendingAuthAction
from app.domain.entities.session import Session
from app.domain.exceptions import InvalidOrExpiredCodeError


logger = logging.getLogger(__name__)


CONFIRMATION_PROMPT = "Please check your email and click the confirmation link."
EXPIRED_CODE_PROMPT = "This confirmation link is invalid or has expired. Please sign in or request a new one."
RETRY_MESSAGE = "Authentication failed. Please try again."


class CallbackFlowState(str, Enum):
    START = "start"
    CLASSIFY = "classify"
    RECOVERY_REDIRECT = "recovery_redirect"
    SESSION_CHECK = "session_check"
    RESOLVED = "resolved"
    ABANDONED = "abandoned"


class AuthCallbackFlow:
    """Resolution of one inbound auth redirect.

    ``resolve`` runs at most once per instance and later calls return the same
    result. After ``cancel`` the flow no longer touches the session store.
    """

    def __init__(
        self,
        *,
        params: Mapping[str, str] | Iterable[tuple[str, str]],
        auth_provider: AuthProviderPort,
        session_store: SessionStore,
        paths: AuthPaths,
        account_registry: AccountRegistry | None = None,
    ):
        pairs = list(params.items()) if isinstance(params, Mapping) else list(params)
        self._pairs = pairs
        self._action = PendingAuthAction.from_params(dict(pairs))
        self._auth_provider = auth_provider
        self._session_store = session_store
        self._account_registry = account_registry
        self._paths = paths
        self._state = CallbackFlowState.START
        self._task: asyncio.Future | None = None
        self._cancelled = False

    @property
    def state(self) -> CallbackFlowState:
        return self._state

    @property
    def action(self) -> PendingAuthAction:
        return self._action

    @property
    def is_alive(self) -> bool:
        return not self._cancelled and not self._session_store.is_closed

    def cancel(self) -> None:
        self._cancelled = True
        if self._state != CallbackFlowState.RESOLVED:
            self._state = CallbackFlowState.ABANDONED

    async def resolve(self) -> CallbackResolution:
        if self._task is None:
            self._task = asyncio.ensure_future(self._run())
        return await self._task

    async def _run(self) -> CallbackResolution:
        if not self.is_alive:
            return self._abandon()

        self._state = CallbackFlowState.CLASSIFY
        if self._action.kind == "recovery":
            # Recovery tokens are single purpose: forward them untouched.
            self._state = CallbackFlowState.RECOVERY_REDIRECT
            return self._finish(
                CallbackResolution(
                    outcome="recovery_redirect",
                    redirect_to=self._with_query(self._paths.password_update_path, self._pairs),
                )
            )

        self._state = CallbackFlowState.SESSION_CHECK
        if self._action.has_code:
            return await self._verify_code()
        return await self._check_session()

    async def _verify_code(self) -> CallbackResolution:
        purpose = self._action.declared_type or "signup"
        try:
            session = await self._auth_provider.verify_one_time_code(
                code=self._action.token or "",
                purpose=purpose,
            )
        except InvalidOrExpiredCodeError:
            logger.info("auth_callback: code_rejected purpose=%s", purpose)
            if not self.is_alive:
                return self._abandon()
            return self._finish(self._signin_prompt(EXPIRED_CODE_PROMPT))
        except Exception as exc:
            logger.warning("auth_callback: verify_failed error=%s", type(exc).__name__)
            if not self.is_alive:
                return self._abandon()
            return self._finish(self._error())

        return self._succeed(session)

    async def _check_session(self) -> CallbackResolution:
        try:
            session = await self._auth_provider.get_session()
        except Exception as exc:
            logger.warning("auth_callback: session_check_failed error=%s", type(exc).__name__)
            if not self.is_alive:
                return self._abandon()
            return self._finish(self._error())

        if session is None:
            if not self.is_alive:
                return self._abandon()
            return self._finish(self._signin_prompt(CONFIRMATION_PROMPT))
        return self._succeed(session)

    def _succeed(self, session: Session) -> CallbackResolution:
        if not self.is_alive:
            return self._abandon()
        if self._account_registry is not None:
            self._account_registry.remember(session)
        self._session_store.adopt(session)
        return self._finish(CallbackResolution(outcome="success", redirect_to=self._success_target()))

    def _success_target(self) -> str:
        target = self._action.redirect_to
        if target and target.startswith("/") and not target.startswith("//"):
            return target
        return self._paths.landing_path

    def _signin_prompt(self, message: str) -> CallbackResolution:
        manual_confirm_to = self._with_query(
            self._paths.manual_confirm_path,
            [("type", self._action.declared_type)] if self._action.declared_type else [],
        )
        return CallbackResolution(
            outcome="signin_prompt",
            redirect_to=self._with_query(
                self._paths.signin_path,
                [("message", message), ("manual_confirm", manual_confirm_to)],
            ),
            message=message,
            manual_confirm_to=manual_confirm_to,
        )

    def _error(self) -> CallbackResolution:
        return CallbackResolution(outcome="error", redirect_to=self._paths.signin_path, message=RETRY_MESSAGE)

    def _finish(self, resolution: CallbackResolution) -> CallbackResolution:
        self._state = CallbackFlowState.RESOLVED
        logger.info("auth_callback: resolved outcome=%s", resolution.outcome)
        return resolution

    def _abandon(self) -> CallbackResolution:
        self._state = CallbackFlowState.ABANDONED
        logger.info("auth_callback: abandoned")
        return CallbackResolution(outcome="abandoned", redirect_to=None)

    @staticmethod
    def _with_query(path: str, pairs: list[tuple[str, str]]) -> str:
        if not pairs:
            return path
        return f"{path}?{urlencode(pairs)}"


class ResolveAuthCallbackUseCase:
    def __init__(
        self,
        *,
        auth_provider: AuthProviderPort,
        session_store: SessionStore,
        paths: AuthPaths,
        account_registry: AccountRegistry | None = None,
    ):
        self._auth_provider = auth_provider
        self._session_store = session_store
        self._paths = paths
        self._account_registry = account_registry

    def start(self, params: Mapping[str, str] | Iterable[tuple[str, str]]) -> AuthCallbackFlow:
        return AuthCallbackFlow(
            params=params,
            auth_provider=self._auth_provider,
            session_store=self._session_store,
            paths=self._paths,
            account_registry=self._account_registry,
        )

    async def execute(self, params: Mapping[str, str] | Iterable[tuple[str, str]]) -> CallbackResolution:
        return await self.start(params).resolve()
