from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, RedirectResponse

from app.api.deps import AuthRuntime, get_resolve_auth_callback_use_case, get_runtime
from app.api.schemas.callback import CallbackErrorResponse, RetryAction
from app.application.use_cases.resolve_auth_callback import ResolveAuthCallbackUseCase


router = APIRouter()


@router.get("/auth/callback")
async def auth_callback(
    request: Request,
    use_case: ResolveAuthCallbackUseCase = Depends(get_resolve_auth_callback_use_case),
    runtime: AuthRuntime = Depends(get_runtime),
):
    resolution = await use_case.execute(request.query_params.multi_items())

    if resolution.outcome == "error":
        body = CallbackErrorResponse(
            detail=resolution.message or "Authentication failed.",
            action=RetryAction(label="Back to Sign In", href=runtime.paths.signin_path),
        )
        return JSONResponse(status_code=400, content=body.model_dump())

    if resolution.outcome == "abandoned" or resolution.redirect_to is None:
        return JSONResponse(status_code=409, content={"detail": "Authentication was interrupted."})

    return RedirectResponse(url=resolution.redirect_to, status_code=303)
