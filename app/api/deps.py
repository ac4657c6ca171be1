from __future__ import annotations

import logging
from dataclasses import dataclass

from fastapi import Depends, HTTPException, Request

from app.application.dto.auth import AuthPaths
from app.application.ports.auth_provider_port import AuthProviderPort, Unsubscribe
from app.application.services.account_registry import AccountRegistry
from app.application.services.session_store import SessionStore
from app.application.use_cases.check_route_access import CheckRouteAccessUseCase
from app.application.use_cases.request_password_reset import RequestPasswordResetUseCase
from app.application.use_cases.resolve_auth_callback import ResolveAuthCallbackUseCase
from app.application.use_cases.sign_in_with_password import SignInWithPasswordUseCase
from app.application.use_cases.sign_out import SignOutUseCase
from app.application.use_cases.sign_up import SignUpUseCase
from app.application.use_cases.verify_one_time_code import VerifyOneTimeCodeUseCase
from app.domain.entities.session import Session, SessionState
from app.domain.services.route_guard import RoutePolicy
from app.infrastructure.clients.supabase_auth_client import (
    SupabaseAuthClient,
    SupabaseAuthClientSettings,
)
from app.infrastructure.db.engine import get_engine
from app.infrastructure.db.repositories.key_value_repository import SqlKeyValueRepository
from app.infrastructure.storage.account_registry_repository import StorageAccountRegistryRepository
from app.infrastructure.storage.storage_adapter import StorageAdapter
from app.shared.config import Settings


logger = logging.getLogger(__name__)


@dataclass
class AuthRuntime:
    settings: Settings
    storage: StorageAdapter
    auth_provider: AuthProviderPort
    session_store: SessionStore
    account_registry: AccountRegistry
    route_policy: RoutePolicy
    paths: AuthPaths
    untrack_registry: Unsubscribe | None = None


def build_storage(settings: Settings) -> StorageAdapter:
    if not settings.storage_dsn:
        logger.warning("deps: storage_unavailable reason=missing_dsn")
        return StorageAdapter(None)
    try:
        engine = get_engine(settings.storage_dsn)
    except Exception as exc:
        logger.warning("deps: storage_unavailable error=%s", exc)
        return StorageAdapter(None)
    return StorageAdapter(SqlKeyValueRepository(engine))


def build_auth_provider(settings: Settings, storage: StorageAdapter) -> SupabaseAuthClient:
    if not settings.supabase_url or not settings.supabase_anon_key:
        logger.error("deps: supabase_not_configured SUPABASE_URL and SUPABASE_ANON_KEY are required")
    return SupabaseAuthClient(
        SupabaseAuthClientSettings(
            supabase_url=settings.supabase_url,
            anon_key=settings.supabase_anon_key,
            timeout_seconds=settings.auth_timeout_seconds,
            refresh_margin_seconds=settings.auth_refresh_margin_seconds,
            storage_key=settings.auth_storage_key,
        ),
        storage=storage,
    )


def build_runtime(
    settings: Settings,
    *,
    storage: StorageAdapter | None = None,
    auth_provider: AuthProviderPort | None = None,
) -> AuthRuntime:
    storage = storage if storage is not None else build_storage(settings)
    auth_provider = auth_provider if auth_provider is not None else build_auth_provider(settings, storage)
    session_store = SessionStore(auth_provider=auth_provider)
    account_registry = AccountRegistry(
        repository=StorageAccountRegistryRepository(storage),
        auth_provider=auth_provider,
        session_store=session_store,
    )
    return AuthRuntime(
        settings=settings,
        storage=storage,
        auth_provider=auth_provider,
        session_store=session_store,
        account_registry=account_registry,
        route_policy=RoutePolicy(
            protected_prefixes=settings.protected_path_prefixes,
            signin_path=settings.signin_path,
        ),
        paths=AuthPaths(
            signin_path=settings.signin_path,
            password_update_path=settings.password_update_path,
            landing_path=settings.landing_path,
            manual_confirm_path=settings.manual_confirm_path,
        ),
    )


async def start_runtime(runtime: AuthRuntime) -> None:
    await runtime.session_store.bootstrap()
    runtime.account_registry.reconcile()
    runtime.untrack_registry = runtime.account_registry.track(runtime.session_store)


async def stop_runtime(runtime: AuthRuntime) -> None:
    if runtime.untrack_registry is not None:
        runtime.untrack_registry()
        runtime.untrack_registry = None
    runtime.session_store.teardown()
    aclose = getattr(runtime.auth_provider, "aclose", None)
    if aclose is not None:
        await aclose()


def get_runtime(request: Request) -> AuthRuntime:
    runtime = getattr(request.app.state, "runtime", None)
    if runtime is None:
        raise HTTPException(status_code=503, detail="Auth runtime is not started.")
    return runtime


def get_session_store(runtime: AuthRuntime = Depends(get_runtime)) -> SessionStore:
    return runtime.session_store


def get_account_registry(runtime: AuthRuntime = Depends(get_runtime)) -> AccountRegistry:
    return runtime.account_registry


def get_sign_in_use_case(runtime: AuthRuntime = Depends(get_runtime)) -> SignInWithPasswordUseCase:
    return SignInWithPasswordUseCase(
        auth_provider=runtime.auth_provider,
        session_store=runtime.session_store,
        account_registry=runtime.account_registry,
    )


def get_sign_up_use_case(runtime: AuthRuntime = Depends(get_runtime)) -> SignUpUseCase:
    return SignUpUseCase(
        auth_provider=runtime.auth_provider,
        session_store=runtime.session_store,
        account_registry=runtime.account_registry,
        site_url=runtime.settings.site_url,
        callback_path=runtime.settings.auth_callback_path,
    )


def get_request_password_reset_use_case(
    runtime: AuthRuntime = Depends(get_runtime),
) -> RequestPasswordResetUseCase:
    return RequestPasswordResetUseCase(
        auth_provider=runtime.auth_provider,
        site_url=runtime.settings.site_url,
        password_update_path=runtime.settings.password_update_path,
    )


def get_verify_one_time_code_use_case(
    runtime: AuthRuntime = Depends(get_runtime),
) -> VerifyOneTimeCodeUseCase:
    return VerifyOneTimeCodeUseCase(
        auth_provider=runtime.auth_provider,
        session_store=runtime.session_store,
        account_registry=runtime.account_registry,
    )


def get_sign_out_use_case(runtime: AuthRuntime = Depends(get_runtime)) -> SignOutUseCase:
    return SignOutUseCase(
        session_store=runtime.session_store,
        account_registry=runtime.account_registry,
    )


def get_resolve_auth_callback_use_case(
    runtime: AuthRuntime = Depends(get_runtime),
) -> ResolveAuthCallbackUseCase:
    return ResolveAuthCallbackUseCase(
        auth_provider=runtime.auth_provider,
        session_store=runtime.session_store,
        paths=runtime.paths,
        account_registry=runtime.account_registry,
    )


def build_check_route_access_use_case(runtime: AuthRuntime) -> CheckRouteAccessUseCase:
    store = runtime.session_store

    async def _resolve_state() -> SessionState:
        return store.state

    return CheckRouteAccessUseCase(resolve_state=_resolve_state, policy=runtime.route_policy)


def get_current_session(store: SessionStore = Depends(get_session_store)) -> Session:
    session = store.session
    if session is None:
        raise HTTPException(status_code=401, detail="Not signed in.")
    return session
