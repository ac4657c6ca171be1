from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from app.api.deps import get_account_registry
from app.api.routers.auth import session_response
from app.api.schemas.accounts import (
    AccountListResponse,
    AccountResponse,
    PendingSwitchRequest,
    PendingSwitchResponse,
    ReconcileResponse,
    SwitchAccountResponse,
)
from app.api.schemas.auth import OkResponse
from app.application.services.account_registry import AccountRegistry
from app.application.use_cases.auth_common import build_session_output
from app.domain.entities.account import AccountEntry
from app.domain.exceptions import NoStoredCredentialError, ProviderUnavailableError


router = APIRouter()


def _account_response(entry: AccountEntry) -> AccountResponse:
    return AccountResponse(
        user_id=entry.user_id,
        email=entry.email,
        display_name=entry.display_name,
        avatar_url=entry.avatar_url,
        last_used_at=entry.last_used_at,
        needs_reauthentication=entry.stale,
    )


@router.get("/v1/accounts", response_model=AccountListResponse)
def list_accounts(registry: AccountRegistry = Depends(get_account_registry)):
    return AccountListResponse(accounts=[_account_response(entry) for entry in registry.list()])


@router.delete("/v1/accounts", response_model=OkResponse)
def purge_accounts(registry: AccountRegistry = Depends(get_account_registry)):
    registry.purge()
    return OkResponse(ok=True)


@router.post("/v1/accounts/reconcile", response_model=ReconcileResponse)
def reconcile_accounts(registry: AccountRegistry = Depends(get_account_registry)):
    report = registry.reconcile()
    return ReconcileResponse(
        stale_user_ids=list(report.stale_user_ids),
        revived_user_ids=list(report.revived_user_ids),
        orphan_token_user_ids=list(report.orphan_token_user_ids),
    )


@router.post("/v1/accounts/pending-switch/complete", response_model=SwitchAccountResponse)
async def complete_pending_switch(registry: AccountRegistry = Depends(get_account_registry)):
    try:
        outcome = await registry.complete_pending_switch()
    except NoStoredCredentialError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except ProviderUnavailableError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc

    if outcome is None:
        raise HTTPException(status_code=404, detail="No account switch is pending.")
    return SwitchAccountResponse(
        session=session_response(build_session_output(outcome.session)),
        return_path=outcome.return_path,
    )


@router.post("/v1/accounts/{user_id}/switch", response_model=SwitchAccountResponse)
async def switch_account(
    user_id: str,
    registry: AccountRegistry = Depends(get_account_registry),
):
    try:
        session = await registry.switch_to(user_id)
    except NoStoredCredentialError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except ProviderUnavailableError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc

    return SwitchAccountResponse(
        session=session_response(build_session_output(session)),
        return_path="/",
    )


@router.post("/v1/accounts/{user_id}/pending-switch", response_model=PendingSwitchResponse)
def begin_pending_switch(
    user_id: str,
    req: PendingSwitchRequest,
    registry: AccountRegistry = Depends(get_account_registry),
):
    try:
        pending = registry.begin_switch(user_id, return_path=req.return_path)
    except NoStoredCredentialError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return PendingSwitchResponse(
        user_id=pending.user_id,
        return_path=pending.return_path,
        requested_at=pending.requested_at,
    )


@router.delete("/v1/accounts/{user_id}", response_model=OkResponse)
def remove_account(
    user_id: str,
    registry: AccountRegistry = Depends(get_account_registry),
):
    if not registry.remove(user_id):
        raise HTTPException(status_code=404, detail="Account not found.")
    return OkResponse(ok=True)
