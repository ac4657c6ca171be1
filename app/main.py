from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.deps import build_runtime, start_runtime, stop_runtime
from app.api.route_guard import install_route_guard
from app.api.routers import accounts, auth, callback, profile
from app.application.ports.auth_provider_port import AuthProviderPort
from app.infrastructure.storage.storage_adapter import StorageAdapter
from app.shared.config import Settings, get_settings


logger = logging.getLogger(__name__)


def create_app(
    *,
    settings: Settings | None = None,
    storage: StorageAdapter | None = None,
    auth_provider: AuthProviderPort | None = None,
) -> FastAPI:
    settings = settings or get_settings()
    logging.getLogger("app").setLevel(settings.log_level.upper())

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        runtime = build_runtime(settings, storage=storage, auth_provider=auth_provider)
        await start_runtime(runtime)
        app.state.runtime = runtime
        logger.info("main: runtime_started status=%s", runtime.session_store.state.status)
        try:
            yield
        finally:
            app.state.runtime = None
            await stop_runtime(runtime)
            logger.info("main: runtime_stopped")

    app = FastAPI(title="Session Core API", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    install_route_guard(app)

    app.include_router(auth.router)
    app.include_router(accounts.router)
    app.include_router(callback.router)
    app.include_router(profile.router)
    return app


app = create_app()
