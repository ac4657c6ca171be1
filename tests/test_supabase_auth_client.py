from __future__ import annotations

import asyncio
import json
from datetime import datetime, timedelta, timezone

import httpx
import jwt
import pytest

from app.domain.exceptions import (
    InvalidCredentialsError,
    InvalidOrExpiredCodeError,
    ProviderUnavailableError,
    RefreshSessionInvalidError,
    RefreshUserMismatchError,
    SignUpRejectedError,
)
from app.infrastructure.clients.supabase_auth_client import (
    SupabaseAuthClient,
    SupabaseAuthClientSettings,
)
from app.infrastructure.storage.memory_backend import InMemoryKeyValueBackend
from app.infrastructure.storage.storage_adapter import StorageAdapter


STORAGE_KEY = "test-auth-storage"


def _settings() -> SupabaseAuthClientSettings:
    return SupabaseAuthClientSettings(
        supabase_url="https://project.supabase.co",
        anon_key="anon",
        timeout_seconds=5,
        refresh_margin_seconds=60,
        storage_key=STORAGE_KEY,
    )


def _token_payload(user_id: str = "user-1", *, refresh_token: str = "r1", lifetime: int = 3600) -> dict:
    now = int(datetime.now(timezone.utc).timestamp())
    access_token = jwt.encode(
        {"sub": user_id, "email": f"{user_id}@example.com", "iat": now, "exp": now + lifetime},
        "test-secret-with-at-least-32-bytes!!",
        algorithm="HS256",
    )
    return {
        "access_token": access_token,
        "refresh_token": refresh_token,
        "expires_in": lifetime,
        "user": {
            "id": user_id,
            "email": f"{user_id}@example.com",
            "user_metadata": {"full_name": "Ada Lovelace"},
        },
    }


def _client(handler, backend: InMemoryKeyValueBackend | None = None):
    backend = backend if backend is not None else InMemoryKeyValueBackend()
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    client = SupabaseAuthClient(_settings(), storage=StorageAdapter(backend), http_client=http)
    return client, backend


def test_sign_in_parses_session_and_persists_it():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=_token_payload())

    async def scenario():
        client, backend = _client(handler)
        events = []
        client.subscribe(events.append)

        session = await client.sign_in_with_password(email="user-1@example.com", password="pw")

        assert session.user_id == "user-1"
        assert session.user.display_name == "Ada Lovelace"
        assert session.expires_at > session.issued_at
        assert [event.kind for event in events] == ["SIGNED_IN"]
        assert json.loads(backend.items[STORAGE_KEY])["refresh_token"] == "r1"
        await client.aclose()

    asyncio.run(scenario())

    request = seen[0]
    assert request.url.path == "/auth/v1/token"
    assert request.url.params["grant_type"] == "password"
    assert request.headers["apikey"] == "anon"


def test_sign_in_rejection_maps_to_invalid_credentials():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"error": "invalid_grant", "error_description": "Invalid login credentials"})

    client, _ = _client(handler)

    with pytest.raises(InvalidCredentialsError):
        asyncio.run(client.sign_in_with_password(email="a@example.com", password="bad"))


def test_server_error_maps_to_provider_unavailable():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, text="maintenance")

    client, _ = _client(handler)

    with pytest.raises(ProviderUnavailableError):
        asyncio.run(client.sign_in_with_password(email="a@example.com", password="pw"))


def test_transport_error_maps_to_provider_unavailable():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("unreachable", request=request)

    client, _ = _client(handler)

    with pytest.raises(ProviderUnavailableError):
        asyncio.run(client.request_password_reset(email="a@example.com", redirect_to="http://x/update"))


def test_sign_up_without_session_requires_confirmation():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.params["redirect_to"] == "http://localhost/auth/callback"
        return httpx.Response(200, json={"id": "user-2", "email": "new@example.com"})

    client, _ = _client(handler)

    pending = asyncio.run(
        client.sign_up(email="new@example.com", password="pw", redirect_to="http://localhost/auth/callback")
    )

    assert pending.requires_confirmation is True
    assert pending.email == "new@example.com"


def test_sign_up_rejection():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(422, json={"msg": "User already registered"})

    client, _ = _client(handler)

    with pytest.raises(SignUpRejectedError, match="already registered"):
        asyncio.run(client.sign_up(email="a@example.com", password="pw", redirect_to="/"))


def test_verify_rejection_maps_to_invalid_code():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(403, json={"msg": "Token has expired or is invalid"})

    client, _ = _client(handler)

    with pytest.raises(InvalidOrExpiredCodeError):
        asyncio.run(client.verify_one_time_code(code="abc", purpose="signup"))


def test_get_session_restores_valid_session_from_storage():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(200, json=_token_payload())

    async def scenario():
        first, backend = _client(handler)
        await first.sign_in_with_password(email="a@example.com", password="pw")

        second, _ = _client(handler, backend)
        session = await second.get_session()

        assert session is not None
        assert session.user_id == "user-1"

    asyncio.run(scenario())

    assert len(calls) == 1


def test_get_session_refreshes_when_close_to_expiry():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.params["grant_type"] == "password":
            return httpx.Response(200, json=_token_payload(refresh_token="r1", lifetime=30))
        body = json.loads(request.content)
        assert body["refresh_token"] == "r1"
        return httpx.Response(200, json=_token_payload(refresh_token="r2"))

    async def scenario():
        client, _ = _client(handler)
        events = []
        await client.sign_in_with_password(email="a@example.com", password="pw")
        client.subscribe(events.append)

        session = await client.get_session()

        assert session.refresh_token == "r2"
        assert [event.kind for event in events] == ["TOKEN_REFRESHED"]

    asyncio.run(scenario())


def test_get_session_drops_session_when_refresh_rejected():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.params["grant_type"] == "password":
            return httpx.Response(200, json=_token_payload(lifetime=30))
        return httpx.Response(400, json={"error_description": "Invalid Refresh Token"})

    async def scenario():
        client, backend = _client(handler)
        await client.sign_in_with_password(email="a@example.com", password="pw")
        events = []
        client.subscribe(events.append)

        assert await client.get_session() is None
        assert STORAGE_KEY not in backend.items
        assert [event.kind for event in events] == ["SIGNED_OUT"]

    asyncio.run(scenario())


def test_refresh_without_token_is_rejected():
    client, _ = _client(lambda request: httpx.Response(500))

    with pytest.raises(RefreshSessionInvalidError):
        asyncio.run(client.refresh())


def test_sign_out_clears_even_when_token_already_revoked():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/logout"):
            assert request.headers["authorization"].startswith("Bearer ")
            return httpx.Response(401, json={"msg": "invalid JWT"})
        return httpx.Response(200, json=_token_payload())

    async def scenario():
        client, backend = _client(handler)
        await client.sign_in_with_password(email="a@example.com", password="pw")

        await client.sign_out()

        assert await client.get_session() is None
        assert STORAGE_KEY not in backend.items

    asyncio.run(scenario())


def test_corrupt_stored_session_is_discarded():
    backend = InMemoryKeyValueBackend({STORAGE_KEY: json.dumps({"access_token": ""})})
    client, _ = _client(lambda request: httpx.Response(500), backend)

    assert asyncio.run(client.get_session()) is None
    assert STORAGE_KEY not in backend.items


def test_expiry_falls_back_to_expires_in_for_opaque_tokens():
    def handler(request: httpx.Request) -> httpx.Response:
        payload = _token_payload()
        payload["access_token"] = "opaque-token"
        payload["expires_in"] = 120
        return httpx.Response(200, json=payload)

    client, _ = _client(handler)

    session = asyncio.run(client.sign_in_with_password(email="a@example.com", password="pw"))

    assert session.expires_at - session.issued_at <= timedelta(seconds=121)


def test_refresh_for_another_user_keeps_active_session():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.params["grant_type"] == "password":
            return httpx.Response(200, json=_token_payload("user-1", refresh_token="r1"))
        return httpx.Response(200, json=_token_payload("user-9", refresh_token="r9"))

    async def scenario():
        client, backend = _client(handler)
        await client.sign_in_with_password(email="a@example.com", password="pw")
        events = []
        client.subscribe(events.append)

        with pytest.raises(RefreshUserMismatchError) as excinfo:
            await client.refresh("r-other", expected_user_id="user-2")

        assert excinfo.value.session.user_id == "user-9"
        assert events == []
        assert json.loads(backend.items[STORAGE_KEY])["refresh_token"] == "r1"

    asyncio.run(scenario())
