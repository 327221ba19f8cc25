from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Response

from byobucket.core.errors import PersistenceError
from byobucket.dependencies import get_addon_caller, get_orchestrator, get_store, get_work_queue
from byobucket.provisioning.ids import new_provider_resource_id
from byobucket.provisioning.orchestrator import ProvisioningOrchestrator
from byobucket.provisioning.queue import WorkQueue
from byobucket.schemas.addon import (
    AsyncCreateAddonResponse,
    CreateAddonRequest,
    PlanChangeRequest,
    PlanChangeResponse,
)
from byobucket.store.credential_store import CredentialStore

router = APIRouter(dependencies=[Depends(get_addon_caller)])
logger = logging.getLogger(__name__)

_PROVISIONING_MESSAGE = (
    "Your bucket is being provisioned and will be ready shortly. "
    "Provisioning fails if AWS credentials have not been registered for the app owner."
)


@router.post("/resources", response_model=AsyncCreateAddonResponse, status_code=202)
async def create_resource(
    body: CreateAddonRequest,
    work_queue: WorkQueue = Depends(get_work_queue),
    orchestrator: ProvisioningOrchestrator = Depends(get_orchestrator),
) -> AsyncCreateAddonResponse:
    """Accept a provisioning request. The bucket is created asynchronously."""
    provider_resource_id = new_provider_resource_id()
    logger.info(
        "Provisioning add-on %s as %s", body.uuid, provider_resource_id,
        extra={"addon_id": body.uuid, "region": body.region, "plan": body.plan},
    )
    work_queue.submit(
        f"create:{provider_resource_id}",
        orchestrator.create_resource,
        body,
        provider_resource_id,
    )
    return AsyncCreateAddonResponse(id=provider_resource_id, message=_PROVISIONING_MESSAGE)


@router.put("/resources/{resource_id}", response_model=PlanChangeResponse)
async def change_plan(resource_id: str, body: PlanChangeRequest) -> PlanChangeResponse:
    """Single-plan add-on: acknowledge without changing config."""
    logger.info("Plan change for %s to %s", resource_id, body.plan)
    return PlanChangeResponse(message=f"Plan changed to {body.plan} for {resource_id}")


@router.delete("/resources/{resource_id}", status_code=204)
async def delete_resource(
    resource_id: str,
    store: CredentialStore = Depends(get_store),
    work_queue: WorkQueue = Depends(get_work_queue),
    orchestrator: ProvisioningOrchestrator = Depends(get_orchestrator),
) -> Response:
    """Mark the resource for deletion, then tear it down asynchronously."""
    logger.info("Deleting add-on resource %s", resource_id)
    try:
        await store.mark_for_deletion(resource_id)
    except PersistenceError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    work_queue.submit(f"delete:{resource_id}", orchestrator.delete_resource, resource_id)
    return Response(status_code=204)
