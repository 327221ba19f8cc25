from __future__ import annotations

from fastapi import Depends, Header, Request
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from byobucket.core.security import verify_addon_credentials, verify_admin_key
from byobucket.provisioning.orchestrator import ProvisioningOrchestrator
from byobucket.provisioning.queue import WorkQueue
from byobucket.store.credential_store import CredentialStore

_basic = HTTPBasic()


def get_store(request: Request) -> CredentialStore:
    """The CredentialStore built in the app lifespan."""
    return request.app.state.store


def get_orchestrator(request: Request) -> ProvisioningOrchestrator:
    return request.app.state.orchestrator


def get_work_queue(request: Request) -> WorkQueue:
    return request.app.state.work_queue


async def get_addon_caller(
    credentials: HTTPBasicCredentials = Depends(_basic),
) -> None:
    """Validate the basic-auth credentials on add-on provider API calls."""
    verify_addon_credentials(credentials)


async def get_admin(
    x_admin_key: str = Header(..., alias="X-Admin-Key"),
) -> None:
    """Validate X-Admin-Key header (admin-only endpoints)."""
    verify_admin_key(x_admin_key)
