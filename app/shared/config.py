from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv


load_dotenv()


def _env(name: str, default: str | None = None) -> str | None:
    return os.getenv(name, default)


def _csv(name: str, default: str) -> tuple[str, ...]:
    value = _env(name, default) or ""
    return tuple(item.strip() for item in value.split(",") if item.strip())


@dataclass(frozen=True)
class Settings:
    supabase_url: str
    supabase_anon_key: str
    auth_timeout_seconds: float
    auth_refresh_margin_seconds: int
    auth_storage_key: str
    storage_dsn: str
    site_url: str
    protected_path_prefixes: tuple[str, ...]
    signin_path: str
    password_update_path: str
    landing_path: str
    auth_callback_path: str
    manual_confirm_path: str
    route_guard_wait_seconds: float
    log_level: str


def get_settings() -> Settings:
    return Settings(
        supabase_url=_env("SUPABASE_URL", ""),
        supabase_anon_key=_env("SUPABASE_ANON_KEY", ""),
        auth_timeout_seconds=float(_env("AUTH_TIMEOUT_SECONDS", "10")),
        auth_refresh_margin_seconds=int(_env("AUTH_REFRESH_MARGIN_SECONDS", "60")),
        auth_storage_key=_env("AUTH_STORAGE_KEY", "history-blog-auth-storage"),
        storage_dsn=_env("STORAGE_DSN", "sqlite:///./.client_storage.db"),
        site_url=_env("SITE_URL", "http://localhost:8000"),
        protected_path_prefixes=_csv("PROTECTED_PATH_PREFIXES", "/profile"),
        signin_path=_env("SIGNIN_PATH", "/signin"),
        password_update_path=_env("PASSWORD_UPDATE_PATH", "/update-password"),
        landing_path=_env("LANDING_PATH", "/"),
        auth_callback_path=_env("AUTH_CALLBACK_PATH", "/auth/callback"),
        manual_confirm_path=_env("MANUAL_CONFIRM_PATH", "/auth/manual-confirm"),
        route_guard_wait_seconds=float(_env("ROUTE_GUARD_WAIT_SECONDS", "2")),
        log_level=_env("LOG_LEVEL", "INFO"),
    )
