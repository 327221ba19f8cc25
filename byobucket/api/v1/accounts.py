from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Response

from byobucket.core.errors import PersistenceError
from byobucket.dependencies import get_admin, get_store
from byobucket.schemas.account import AccountResponse, AccountUpsert
from byobucket.store.credential_store import CredentialStore, TenantAccount

router = APIRouter(dependencies=[Depends(get_admin)])
logger = logging.getLogger(__name__)


@router.put("/accounts/{owner_id}", response_model=AccountResponse)
async def save_account(
    owner_id: str,
    body: AccountUpsert,
    store: CredentialStore = Depends(get_store),
) -> AccountResponse:
    """Register AWS credentials for a Heroku team or user, replacing any existing ones."""
    try:
        await store.save_account(
            TenantAccount(
                owner_id=owner_id,
                aws_access_key_id=body.aws_access_key_id,
                aws_secret_access_key=body.aws_secret_access_key,
            )
        )
    except PersistenceError as exc:
        logger.error("Error saving account: %s", exc)
        raise HTTPException(status_code=500, detail="Error saving account") from exc
    logger.info("admin.save_account", extra={"owner_id": owner_id})
    return AccountResponse(owner_id=owner_id, aws_access_key_id=body.aws_access_key_id)


@router.get("/accounts", response_model=list[AccountResponse])
async def list_accounts(
    owner_id: list[str] = Query(default=[]),
    store: CredentialStore = Depends(get_store),
) -> list[AccountResponse]:
    """Which of the given owners have registered credentials."""
    try:
        keys = await store.find_accounts(owner_id)
    except PersistenceError as exc:
        raise HTTPException(status_code=500, detail="Error listing accounts") from exc
    return [
        AccountResponse(owner_id=oid, aws_access_key_id=keys[oid])
        for oid in owner_id
        if oid in keys
    ]


@router.delete("/accounts/{owner_id}", status_code=204)
async def delete_account(
    owner_id: str,
    store: CredentialStore = Depends(get_store),
) -> Response:
    try:
        await store.delete_account(owner_id)
    except PersistenceError as exc:
        raise HTTPException(status_code=500, detail="Error deleting account") from exc
    logger.info("admin.delete_account", extra={"owner_id": owner_id})
    return Response(status_code=204)
