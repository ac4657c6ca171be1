from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
import logging
from typing import Any

import httpx
import jwt
from pydantic import ValidationError

from app.application.ports.auth_provider_port import AuthEventListener, AuthProviderPort, Unsubscribe
from app.domain.entities.session import AuthEvent, AuthEventKind, PendingConfirmation, Session
from app.domain.entities.user import AuthUser
from app.domain.exceptions import (
    AuthError,
    InvalidCredentialsError,
    InvalidOrExpiredCodeError,
    ProviderUnavailableError,
    RefreshSessionInvalidError,
    RefreshUserMismatchError,
    SignUpRejectedError,
)
from app.infrastructure.storage.schemas import StoredSessionRecord, StoredUserRecord
from app.infrastructure.storage.storage_adapter import StorageAdapter


logger = logging.getLogger(__name__)


class ProviderRejectedError(RuntimeError):
    def __init__(self, status_code: int, message: str):
        super().__init__(message)
        self.status_code = status_code
        self.message = message


@dataclass(frozen=True)
class SupabaseAuthClientSettings:
    supabase_url: str
    anon_key: str
    timeout_seconds: float
    refresh_margin_seconds: int
    storage_key: str


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SupabaseAuthClient(AuthProviderPort):
    """Auth gateway over the Supabase GoTrue REST API.

    Holds the current session, persists it through the storage adapter and
    notifies subscribers after every change.
    """

    def __init__(
        self,
        settings: SupabaseAuthClientSettings,
        *,
        storage: StorageAdapter,
        http_client: httpx.AsyncClient | None = None,
    ):
        self._settings = settings
        self._storage = storage
        self._http = http_client or httpx.AsyncClient(timeout=settings.timeout_seconds)
        self._session: Session | None = None
        self._loaded = False
        self._listeners: list[AuthEventListener] = []

    async def aclose(self) -> None:
        await self._http.aclose()

    async def get_session(self) -> Session | None:
        session = self._current_session()
        if session is None:
            return None

        margin = timedelta(seconds=self._settings.refresh_margin_seconds)
        if not session.is_expired(utcnow() + margin):
            return session

        try:
            return await self._exchange_refresh_token(session.refresh_token)
        except RefreshSessionInvalidError:
            logger.info("supabase_auth_client: stored_session_expired user_id=%s", session.user_id)
            self._set_session(None, "SIGNED_OUT")
            return None

    async def refresh(self, refresh_token: str | None = None, *, expected_user_id: str | None = None) -> Session:
        token = refresh_token
        if token is None:
            current = self._current_session()
            token = current.refresh_token if current is not None else None
        if not token:
            raise RefreshSessionInvalidError("No refresh token available.")
        return await self._exchange_refresh_token(token, expected_user_id=expected_user_id)

    async def sign_in_with_password(self, *, email: str, password: str) -> Session:
        try:
            payload = await self._request(
                "POST",
                "/token",
                params={"grant_type": "password"},
                json={"email": email, "password": password},
            )
        except ProviderRejectedError as exc:
            raise InvalidCredentialsError("Invalid login credentials.") from exc

        session = self._parse_session(payload)
        self._set_session(session, "SIGNED_IN")
        return session

    async def sign_up(self, *, email: str, password: str, redirect_to: str) -> PendingConfirmation:
        try:
            payload = await self._request(
                "POST",
                "/signup",
                params={"redirect_to": redirect_to},
                json={"email": email, "password": password},
            )
        except ProviderRejectedError as exc:
            raise SignUpRejectedError(exc.message) from exc

        if payload.get("access_token"):
            session = self._parse_session(payload)
            self._set_session(session, "SIGNED_IN")
            return PendingConfirmation(email=session.email or email, session=session)

        user = payload.get("user") if isinstance(payload.get("user"), dict) else payload
        return PendingConfirmation(email=str(user.get("email") or email))

    async def sign_out(self) -> None:
        session = self._current_session()
        if session is not None:
            try:
                await self._request(
                    "POST",
                    "/logout",
                    params={"scope": "local"},
                    headers={"Authorization": f"Bearer {session.access_token}"},
                )
            except ProviderRejectedError as exc:
                # The token is already unusable server-side; the local clear still applies.
                logger.info(
                    "supabase_auth_client: logout_rejected status=%s",
                    exc.status_code,
                )
        self._set_session(None, "SIGNED_OUT")

    async def request_password_reset(self, *, email: str, redirect_to: str) -> None:
        try:
            await self._request(
                "POST",
                "/recover",
                params={"redirect_to": redirect_to},
                json={"email": email},
            )
        except ProviderRejectedError as exc:
            raise AuthError(exc.message) from exc

    async def verify_one_time_code(self, *, code: str, purpose: str) -> Session:
        try:
            payload = await self._request(
                "POST",
                "/verify",
                json={"type": purpose, "token_hash": code},
            )
        except ProviderRejectedError as exc:
            raise InvalidOrExpiredCodeError("Confirmation code is invalid or has expired.") from exc

        session = self._parse_session(payload)
        self._set_session(session, "PASSWORD_RECOVERY" if purpose == "recovery" else "SIGNED_IN")
        return session

    def subscribe(self, callback: AuthEventListener) -> Unsubscribe:
        self._listeners.append(callback)

        def _unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return _unsubscribe

    async def _exchange_refresh_token(self, refresh_token: str, *, expected_user_id: str | None = None) -> Session:
        try:
            payload = await self._request(
                "POST",
                "/token",
                params={"grant_type": "refresh_token"},
                json={"refresh_token": refresh_token},
            )
        except ProviderRejectedError as exc:
            raise RefreshSessionInvalidError("Refresh token was rejected.") from exc

        session = self._parse_session(payload)
        if expected_user_id is not None and session.user_id != expected_user_id:
            # Leave the active session untouched.
            raise RefreshUserMismatchError("Refresh token belongs to another user.", session=session)
        current = self._current_session()
        same_user = current is not None and current.user_id == session.user_id
        self._set_session(session, "TOKEN_REFRESHED" if same_user else "SIGNED_IN")
        return session

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict | None = None,
        json: dict | None = None,
        headers: dict | None = None,
    ) -> dict:
        url = f"{self._settings.supabase_url.rstrip('/')}/auth/v1{path}"
        request_headers = {"apikey": self._settings.anon_key}
        if headers:
            request_headers.update(headers)

        try:
            response = await self._http.request(
                method,
                url,
                params=params,
                json=json,
                headers=request_headers,
            )
        except httpx.HTTPError as exc:
            logger.warning("supabase_auth_client: transport_error path=%s error=%s", path, type(exc).__name__)
            raise ProviderUnavailableError("Auth provider is unreachable.") from exc

        if response.status_code >= 500:
            logger.warning("supabase_auth_client: provider_error path=%s status=%s", path, response.status_code)
            raise ProviderUnavailableError("Auth provider is unavailable.")

        payload = _json_body(response)
        if response.status_code >= 400:
            raise ProviderRejectedError(response.status_code, _error_message(payload))
        return payload

    def _parse_session(self, payload: dict[str, Any]) -> Session:
        access_token = payload.get("access_token")
        refresh_token = payload.get("refresh_token")
        user = payload.get("user")
        if not access_token or not refresh_token or not isinstance(user, dict) or not user.get("id"):
            raise ProviderUnavailableError("Auth provider returned an incomplete session.")

        claims = _token_claims(str(access_token))
        now = utcnow()
        issued_at = _from_epoch(claims.get("iat")) or now
        expires_at = _from_epoch(payload.get("expires_at")) or _from_epoch(claims.get("exp"))
        if expires_at is None:
            expires_at = now + timedelta(seconds=int(payload.get("expires_in") or 3600))

        metadata = user.get("user_metadata")
        return Session(
            user=AuthUser(
                id=str(user["id"]),
                email=str(user.get("email") or claims.get("email") or ""),
                metadata=metadata if isinstance(metadata, dict) else {},
            ),
            access_token=str(access_token),
            refresh_token=str(refresh_token),
            issued_at=issued_at,
            expires_at=expires_at,
        )

    def _current_session(self) -> Session | None:
        if not self._loaded:
            self._session = self._load_session()
            self._loaded = True
        return self._session

    def _load_session(self) -> Session | None:
        raw = self._storage.read(self._settings.storage_key, default=None)
        if raw is None:
            return None
        try:
            record = StoredSessionRecord.model_validate(raw)
        except ValidationError:
            logger.warning("supabase_auth_client: stored_session_invalid key=%s", self._settings.storage_key)
            self._storage.remove(self._settings.storage_key)
            return None
        return Session(
            user=AuthUser(
                id=record.user.id,
                email=record.user.email,
                metadata=record.user.user_metadata,
            ),
            access_token=record.access_token,
            refresh_token=record.refresh_token,
            issued_at=record.issued_at,
            expires_at=record.expires_at,
        )

    def _set_session(self, session: Session | None, kind: AuthEventKind) -> None:
        self._session = session
        self._loaded = True
        if session is None:
            self._storage.remove(self._settings.storage_key)
        else:
            record = StoredSessionRecord(
                access_token=session.access_token,
                refresh_token=session.refresh_token,
                issued_at=session.issued_at,
                expires_at=session.expires_at,
                user=StoredUserRecord(
                    id=session.user.id,
                    email=session.user.email,
                    user_metadata=dict(session.user.metadata),
                ),
            )
            self._storage.write(self._settings.storage_key, record.model_dump(mode="json"))

        event = AuthEvent(kind=kind, session=session)
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("supabase_auth_client: listener_failed kind=%s", kind)


def _json_body(response: httpx.Response) -> dict:
    try:
        body = response.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


def _error_message(payload: dict) -> str:
    for key in ("error_description", "msg", "message", "error"):
        value = payload.get(key)
        if isinstance(value, str) and value:
            return value
    return "Request rejected by auth provider."


def _token_claims(access_token: str) -> dict:
    # Claims are read for timestamps only; the provider validates the token.
    try:
        return jwt.decode(access_token, options={"verify_signature": False})
    except jwt.PyJWTError:
        return {}


def _from_epoch(value: Any) -> datetime | None:
    if value is None:
        return None
    try:
        return datetime.fromtimestamp(int(value), tz=timezone.utc)
    except (TypeError, ValueError, OverflowError):
        return None
