from __future__ import annotations

from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, Query

from app.api.deps import (
    get_request_password_reset_use_case,
    get_session_store,
    get_sign_in_use_case,
    get_sign_out_use_case,
    get_sign_up_use_case,
    get_verify_one_time_code_use_case,
)
from app.api.schemas.auth import (
    LoginRequest,
    OkResponse,
    PasswordResetRequest,
    SessionResponse,
    SessionStateResponse,
    SignUpRequest,
    SignUpResponse,
    VerifyCodeRequest,
)
from app.application.dto.auth import (
    PasswordResetInput,
    SessionOutput,
    SignInInput,
    SignOutInput,
    SignUpInput,
    VerifyCodeInput,
)
from app.application.services.session_store import SessionStore
from app.application.use_cases.auth_common import build_session_output
from app.application.use_cases.request_password_reset import RequestPasswordResetUseCase
from app.application.use_cases.sign_in_with_password import SignInWithPasswordUseCase
from app.application.use_cases.sign_out import SignOutUseCase
from app.application.use_cases.sign_up import SignUpUseCase
from app.application.use_cases.verify_one_time_code import VerifyOneTimeCodeUseCase
from app.domain.entities.session import SessionState
from app.domain.exceptions import (
    AuthError,
    InvalidCredentialsError,
    InvalidOrExpiredCodeError,
    ProviderUnavailableError,
    SignUpRejectedError,
)


router = APIRouter()


def session_response(output: SessionOutput) -> SessionResponse:
    return SessionResponse(
        user={
            "id": output.user.id,
            "email": output.user.email,
            "display_name": output.user.display_name,
        },
        issued_at=output.issued_at,
        expires_at=output.expires_at,
    )


def session_state_response(state: SessionState) -> SessionStateResponse:
    session = session_response(build_session_output(state.session)) if state.session is not None else None
    return SessionStateResponse(status=state.status, session=session)


@router.post("/v1/auth/login", response_model=SessionResponse)
async def login(
    req: LoginRequest,
    use_case: SignInWithPasswordUseCase = Depends(get_sign_in_use_case),
):
    try:
        output = await use_case.execute(
            SignInInput(email=req.email, password=req.password, remember=req.remember)
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except InvalidCredentialsError as exc:
        raise HTTPException(status_code=401, detail=str(exc)) from exc
    except ProviderUnavailableError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc

    return session_response(output)


@router.post("/v1/auth/signup", response_model=SignUpResponse)
async def signup(
    req: SignUpRequest,
    use_case: SignUpUseCase = Depends(get_sign_up_use_case),
):
    try:
        output = await use_case.execute(SignUpInput(email=req.email, password=req.password))
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except SignUpRejectedError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except ProviderUnavailableError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc

    session = session_response(build_session_output(output.session)) if output.session is not None else None
    message = (
        "Check your email for the confirmation link."
        if output.requires_confirmation
        else "Account created."
    )
    return SignUpResponse(
        email=output.email,
        requires_confirmation=output.requires_confirmation,
        message=message,
        session=session,
    )


@router.post("/v1/auth/logout", response_model=OkResponse)
async def logout(
    scope: Literal["local", "all"] = Query(default="local"),
    use_case: SignOutUseCase = Depends(get_sign_out_use_case),
):
    try:
        await use_case.execute(SignOutInput(scope=scope))
    except ProviderUnavailableError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    return OkResponse(ok=True)


@router.post("/v1/auth/password-reset", response_model=OkResponse)
async def password_reset(
    req: PasswordResetRequest,
    use_case: RequestPasswordResetUseCase = Depends(get_request_password_reset_use_case),
):
    try:
        await use_case.execute(PasswordResetInput(email=req.email))
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except ProviderUnavailableError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    except AuthError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return OkResponse(ok=True, message="Check your email for the password reset link.")


@router.post("/v1/auth/verify", response_model=SessionResponse)
async def verify_code(
    req: VerifyCodeRequest,
    use_case: VerifyOneTimeCodeUseCase = Depends(get_verify_one_time_code_use_case),
):
    try:
        output = await use_case.execute(VerifyCodeInput(code=req.code, purpose=req.purpose))
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except InvalidOrExpiredCodeError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except ProviderUnavailableError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    return session_response(output)


@router.post("/v1/auth/refresh", response_model=SessionStateResponse)
async def refresh_session(store: SessionStore = Depends(get_session_store)):
    state = await store.refresh()
    return session_state_response(state)


@router.get("/v1/auth/session", response_model=SessionStateResponse)
def get_session_state(store: SessionStore = Depends(get_session_store)):
    return session_state_response(store.state)
