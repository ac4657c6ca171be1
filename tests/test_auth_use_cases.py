from __future__ import annotations

import asyncio

import pytest

from app.application.dto.auth import (
    PasswordResetInput,
    SignInInput,
    SignOutInput,
    SignUpInput,
    VerifyCodeInput,
)
from app.application.services.account_registry import AccountRegistry
from app.application.services.session_store import SessionStore
from app.application.use_cases.request_password_reset import RequestPasswordResetUseCase
from app.application.use_cases.sign_in_with_password import SignInWithPasswordUseCase
from app.application.use_cases.sign_out import SignOutUseCase
from app.application.use_cases.sign_up import SignUpUseCase
from app.application.use_cases.verify_one_time_code import VerifyOneTimeCodeUseCase
from app.domain.entities.session import PendingConfirmation
from app.domain.exceptions import InvalidCredentialsError, InvalidOrExpiredCodeError
from app.infrastructure.storage.account_registry_repository import StorageAccountRegistryRepository
from app.infrastructure.storage.memory_backend import InMemoryKeyValueBackend
from app.infrastructure.storage.storage_adapter import StorageAdapter
from fakes import FakeAuthProvider, make_session


def build(provider: FakeAuthProvider):
    store = SessionStore(auth_provider=provider)
    registry = AccountRegistry(
        repository=StorageAccountRegistryRepository(StorageAdapter(InMemoryKeyValueBackend())),
        auth_provider=provider,
        session_store=store,
    )
    return store, registry


def test_sign_in_adopts_session_and_remembers_account():
    provider = FakeAuthProvider()
    provider.passwords["ada@example.com"] = ("secret", make_session("user-1", email="ada@example.com"))
    store, registry = build(provider)
    use_case = SignInWithPasswordUseCase(auth_provider=provider, session_store=store, account_registry=registry)

    output = asyncio.run(use_case.execute(SignInInput(email="  Ada@Example.com ", password="secret")))

    assert output.user.id == "user-1"
    assert output.user.email == "ada@example.com"
    assert store.state.user_id == "user-1"
    assert registry.has_credential("user-1")


def test_sign_in_without_remember_skips_registry():
    provider = FakeAuthProvider()
    provider.passwords["ada@example.com"] = ("secret", make_session("user-1"))
    store, registry = build(provider)
    use_case = SignInWithPasswordUseCase(auth_provider=provider, session_store=store, account_registry=registry)

    asyncio.run(use_case.execute(SignInInput(email="ada@example.com", password="secret", remember=False)))

    assert registry.list() == []
    assert store.state.is_authenticated


def test_sign_in_rejects_blank_fields_before_calling_provider():
    provider = FakeAuthProvider()
    store, registry = build(provider)
    use_case = SignInWithPasswordUseCase(auth_provider=provider, session_store=store, account_registry=registry)

    with pytest.raises(ValueError):
        asyncio.run(use_case.execute(SignInInput(email=" ", password="x")))

    assert provider.calls == []


def test_sign_in_wrong_password_keeps_state():
    provider = FakeAuthProvider()
    provider.passwords["ada@example.com"] = ("secret", make_session("user-1"))
    store, registry = build(provider)
    use_case = SignInWithPasswordUseCase(auth_provider=provider, session_store=store, account_registry=registry)

    with pytest.raises(InvalidCredentialsError):
        asyncio.run(use_case.execute(SignInInput(email="ada@example.com", password="nope")))

    assert store.session is None
    assert registry.list() == []


def test_sign_up_requires_confirmation_and_uses_callback_url():
    provider = FakeAuthProvider()
    store, registry = build(provider)
    use_case = SignUpUseCase(
        auth_provider=provider,
        session_store=store,
        account_registry=registry,
        site_url="https://blog.example.com/",
        callback_path="/auth/callback",
    )

    output = asyncio.run(use_case.execute(SignUpInput(email="New@Example.com", password="pw")))

    assert output.requires_confirmation is True
    assert output.session is None
    assert provider.calls == [("sign_up", "new@example.com", "https://blog.example.com/auth/callback")]
    assert store.session is None


def test_sign_up_with_immediate_session_signs_in():
    provider = FakeAuthProvider()
    session = make_session("user-7")
    provider.sign_up_result = PendingConfirmation(email="user-7@example.com", session=session)
    store, registry = build(provider)
    use_case = SignUpUseCase(
        auth_provider=provider,
        session_store=store,
        account_registry=registry,
        site_url="",
        callback_path="/auth/callback",
    )

    output = asyncio.run(use_case.execute(SignUpInput(email="user-7@example.com", password="pw")))

    assert output.requires_confirmation is False
    assert store.state.user_id == "user-7"
    assert registry.has_credential("user-7")


def test_password_reset_points_to_update_page():
    provider = FakeAuthProvider()
    use_case = RequestPasswordResetUseCase(
        auth_provider=provider,
        site_url="https://blog.example.com",
        password_update_path="/update-password",
    )

    asyncio.run(use_case.execute(PasswordResetInput(email="Ada@Example.com")))

    assert provider.calls == [
        ("request_password_reset", "ada@example.com", "https://blog.example.com/update-password")
    ]


def test_verify_code_adopts_session():
    provider = FakeAuthProvider()
    provider.codes["code-1"] = make_session("user-1")
    store, registry = build(provider)
    use_case = VerifyOneTimeCodeUseCase(auth_provider=provider, session_store=store, account_registry=registry)

    output = asyncio.run(use_case.execute(VerifyCodeInput(code=" code-1 ", purpose="magiclink")))

    assert output.user.id == "user-1"
    assert provider.calls == [("verify_one_time_code", "code-1", "magiclink")]
    assert store.state.is_authenticated


def test_verify_code_rejected():
    provider = FakeAuthProvider()
    store, registry = build(provider)
    use_case = VerifyOneTimeCodeUseCase(auth_provider=provider, session_store=store, account_registry=registry)

    with pytest.raises(InvalidOrExpiredCodeError):
        asyncio.run(use_case.execute(VerifyCodeInput(code="expired")))


def test_sign_out_local_keeps_remembered_accounts():
    async def scenario():
        provider = FakeAuthProvider(session=make_session("user-1"))
        store, registry = build(provider)
        await store.bootstrap()
        registry.remember(make_session("user-1"))
        use_case = SignOutUseCase(session_store=store, account_registry=registry)

        await use_case.execute(SignOutInput(scope="local"))

        assert store.state.status == "absent"
        assert [entry.user_id for entry in registry.list()] == ["user-1"]

    asyncio.run(scenario())


def test_sign_out_all_purges_registry():
    async def scenario():
        provider = FakeAuthProvider(session=make_session("user-1"))
        store, registry = build(provider)
        await store.bootstrap()
        registry.remember(make_session("user-1"))
        use_case = SignOutUseCase(session_store=store, account_registry=registry)

        await use_case.execute(SignOutInput(scope="all"))

        assert store.state.status == "absent"
        assert registry.list() == []

    asyncio.run(scenario())


def test_sign_out_rejects_unknown_scope():
    provider = FakeAuthProvider()
    store, registry = build(provider)
    use_case = SignOutUseCase(session_store=store, account_registry=registry)

    with pytest.raises(ValueError):
        asyncio.run(use_case.execute(SignOutInput(scope="everywhere")))

    assert provider.calls == []
