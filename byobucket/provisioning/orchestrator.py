from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

from byobucket.cloud.bucket_controller import (
    AWSError,
    BucketController,
    ProvisionedBucket,
    bucket_name,
    user_name,
)
from byobucket.cloud.retry import FixedDelayRetry
from byobucket.config import settings
from byobucket.core.errors import (
    AuthExchangeError,
    CloudProvisioningError,
    ProvisioningError,
    ReportError,
    ResourceNotFoundError,
)
from byobucket.db.models import AddonResource
from byobucket.heroku.client import HerokuClient
from byobucket.schemas.addon import CreateAddonRequest
from byobucket.store.credential_store import CredentialStore, TenantAccount

logger = logging.getLogger(__name__)

ClientFactory = Callable[[str], Awaitable[HerokuClient]]
ControllerFactory = Callable[[TenantAccount], BucketController]


def default_controller_factory(account: TenantAccount) -> BucketController:
    """Build a controller acting with the owner's own AWS credentials."""
    return BucketController.from_credentials(
        region=settings.aws_region,
        aws_access_key_id=account.aws_access_key_id,
        aws_secret_access_key=account.aws_secret_access_key,
        policy_retry=FixedDelayRetry(
            initial_delay=settings.policy_initial_delay_s,
            retries=settings.policy_max_retries,
            delay=settings.policy_retry_delay_s,
            retry_on=AWSError,
        ),
    )


class ProvisioningOrchestrator:
    """Runs the create and delete workflows for one add-on at a time.

    There is no transaction spanning Heroku, AWS and the database. The create
    workflow reports failure to Heroku for every error after the grant
    exchange so the add-on is never left pending; the delete workflow only
    records ``deleted_at`` once AWS teardown fully succeeded.
    """

    def __init__(
        self,
        store: CredentialStore,
        client_factory: ClientFactory | None = None,
        controller_factory: ControllerFactory | None = None,
        compensate_failed_creates: bool = False,
    ) -> None:
        self._store = store
        self._client_factory = client_factory or HerokuClient.from_grant
        self._controller_factory = controller_factory or default_controller_factory
        self._compensate = compensate_failed_creates

    async def create_resource(self, request: CreateAddonRequest, provider_resource_id: str) -> bool:
        addon_id = request.uuid
        log_extra = {"addon_id": addon_id, "provider_resource_id": provider_resource_id}

        # 1. Grant exchange. Without a token nothing can be reported, so the
        #    event is dropped and Heroku times the add-on out on its own.
        try:
            if request.oauth_grant is None:
                raise AuthExchangeError("Create request carries no OAuth grant")
            client = await self._client_factory(request.oauth_grant.code)
        except AuthExchangeError as exc:
            logger.error("Dropping provisioning of add-on %s: %s", addon_id, exc, extra=log_extra)
            return False

        bucket: ProvisionedBucket | None = None
        controller: BucketController | None = None
        try:
            # 2. Owner lookup
            owner_id = await client.owner_id(addon_id)
            logger.info("Add-on %s is owned by %s", addon_id, owner_id, extra=log_extra)

            # 3. Owner's AWS credentials
            account = await self._store.find_account(owner_id)

            # 4. Bucket, IAM user, access key, bucket policy
            controller = self._controller_factory(account)
            try:
                bucket = await asyncio.to_thread(controller.create_bucket, provider_resource_id)
            except CloudProvisioningError as exc:
                bucket = exc.bucket
                raise
            except Exception:
                logger.error(
                    "Possibly orphaned AWS resources for %s: bucket %s, IAM user %s",
                    provider_resource_id,
                    bucket_name(provider_resource_id),
                    user_name(provider_resource_id),
                    extra=log_extra,
                )
                raise

            # 5. Config vars on the add-on
            await client.set_addon_config(addon_id, bucket.config_vars())

            # 6. Local record
            await self._store.save_resource(
                AddonResource(
                    owner_id=owner_id,
                    provider_resource_id=provider_resource_id,
                    heroku_resource_id=addon_id,
                    aws_access_key_id=bucket.aws_access_key_id,
                )
            )
        except ProvisioningError as exc:
            logger.error("Couldn't provision add-on %s: %s", addon_id, exc, extra=log_extra)
            await self._fail(client, addon_id, controller, bucket, provider_resource_id)
            return False
        except Exception:
            logger.exception("Unexpected error provisioning add-on %s", addon_id, extra=log_extra)
            await self._fail(client, addon_id, controller, bucket, provider_resource_id)
            return False

        # 7. Success
        try:
            await client.complete_provisioning(addon_id)
        except ReportError as exc:
            logger.error("Add-on %s provisioned but reporting success failed: %s", addon_id, exc, extra=log_extra)
        finally:
            await client.aclose()
        logger.info("Add-on provisioning completed for %s", addon_id, extra=log_extra)
        return True

    async def delete_resource(self, provider_resource_id: str) -> bool:
        """Tear down the AWS resources behind an add-on already marked for deletion."""
        try:
            resource, account = await self._store.find_resource_and_owner(provider_resource_id)
        except ResourceNotFoundError:
            logger.info("Nothing to delete for resource %s", provider_resource_id)
            return True
        except ProvisioningError as exc:
            logger.error(
                "Cannot complete resource deletion. Error finding account for resource %s: %s",
                provider_resource_id,
                exc,
            )
            return False

        if resource.deleted_at is not None:
            logger.info("Resource %s was already deleted at %s", provider_resource_id, resource.deleted_at)
            return True

        controller = self._controller_factory(account)
        if not await asyncio.to_thread(
            controller.delete_bucket, provider_resource_id, resource.aws_access_key_id
        ):
            logger.error(
                "Resource deletion incomplete for %s. Left marked for deletion",
                provider_resource_id,
            )
            return False

        logger.info("Resource deletion complete for %s", provider_resource_id)
        try:
            await self._store.set_deleted(provider_resource_id)
        except ProvisioningError as exc:
            logger.error(
                "Resource deletion complete for %s but failed to update database: %s",
                provider_resource_id,
                exc,
            )
            return False
        return True

    async def _fail(
        self,
        client: HerokuClient,
        addon_id: str,
        controller: BucketController | None,
        bucket: ProvisionedBucket | None,
        provider_resource_id: str,
    ) -> None:
        try:
            if bucket is not None:
                await self._handle_orphan(controller, bucket, provider_resource_id)
            try:
                await client.fail_provisioning(addon_id)
            except ReportError as exc:
                logger.error("Reporting failed provisioning of add-on %s failed: %s", addon_id, exc)
        finally:
            await client.aclose()

    async def _handle_orphan(
        self,
        controller: BucketController | None,
        bucket: ProvisionedBucket,
        provider_resource_id: str,
    ) -> None:
        if not self._compensate or controller is None:
            logger.error(
                "Orphaned AWS resources for %s: bucket %s, IAM user %s",
                provider_resource_id,
                bucket.name,
                bucket.user_name,
            )
            return
        cleaned = await asyncio.to_thread(
            controller.delete_bucket, provider_resource_id, bucket.aws_access_key_id
        )
        if cleaned:
            logger.info("Removed AWS resources of failed provisioning %s", provider_resource_id)
        else:
            logger.error(
                "Orphaned AWS resources for %s after incomplete cleanup: bucket %s, IAM user %s",
                provider_resource_id,
                bucket.name,
                bucket.user_name,
            )
