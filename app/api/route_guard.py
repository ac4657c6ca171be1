from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, RedirectResponse

from app.api.deps import build_check_route_access_use_case


logger = logging.getLogger(__name__)


def install_route_guard(app: FastAPI) -> None:
    """Gate protected paths on the current session.

    While the session is still unknown the guard waits for the store to become
    ready and answers 503 if it does not, so a protected page is never served
    or redirected on a guess.
    """

    @app.middleware("http")
    async def route_guard(request: Request, call_next):
        runtime = getattr(request.app.state, "runtime", None)
        if runtime is None:
            return await call_next(request)

        use_case = build_check_route_access_use_case(runtime)
        path = request.url.path
        decision = await use_case.execute(path)
        if decision.kind == "defer":
            await runtime.session_store.wait_until_ready(runtime.settings.route_guard_wait_seconds)
            decision = await use_case.execute(path)

        if decision.kind == "defer":
            logger.info("route_guard: still_loading path=%s", path)
            return JSONResponse(
                status_code=503,
                content={"status": "loading"},
                headers={"Retry-After": "1"},
            )
        if decision.kind == "redirect":
            logger.info("route_guard: redirect path=%s", path)
            return RedirectResponse(url=decision.target or runtime.settings.signin_path, status_code=307)
        return await call_next(request)
