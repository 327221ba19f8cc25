from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from byobucket.cloud.policy import scoped_bucket_policy
from byobucket.cloud.retry import FixedDelayRetry
from byobucket.core.errors import CloudProvisioningError, RetryExhaustedError

logger = logging.getLogger(__name__)

AWSError = (BotoCoreError, ClientError)

_BUCKET_COLLISION_CODES = ("BucketAlreadyExists", "BucketAlreadyOwnedByYou")
_S3_GONE_CODES = ("NoSuchBucket",)
_IAM_GONE_CODES = ("NoSuchEntity",)


def bucket_name(provider_resource_id: str) -> str:
    return f"bucket-{provider_resource_id}"


def user_name(provider_resource_id: str) -> str:
    return f"user-{provider_resource_id}"


def _error_code(exc: BaseException) -> str | None:
    if isinstance(exc, ClientError):
        return exc.response.get("Error", {}).get("Code")
    return None


@dataclass
class ProvisionedBucket:
    """What exists in AWS for one add-on. Fields fill in as creation proceeds."""

    name: str
    region: str
    user_name: str
    user_arn: str | None = None
    aws_access_key_id: str | None = None
    aws_secret_access_key: str | None = None

    def config_vars(self) -> dict[str, str]:
        return {
            "BUCKET_NAME": self.name,
            "AWS_ACCESS_KEY_ID": self.aws_access_key_id or "",
            "AWS_SECRET_ACCESS_KEY": self.aws_secret_access_key or "",
        }

    def __repr__(self) -> str:
        return (
            f"ProvisionedBucket(name={self.name!r}, user_name={self.user_name!r}, "
            f"aws_access_key_id={self.aws_access_key_id!r})"
        )


class BucketController:
    """Creates and destroys the bucket + IAM user pair behind one add-on.

    All calls are blocking boto3 calls made with the owner's own AWS
    credentials. Run from async code via asyncio.to_thread().
    """

    def __init__(
        self,
        s3_client: Any,
        iam_client: Any,
        region: str = "us-east-1",
        policy_retry: FixedDelayRetry | None = None,
    ) -> None:
        self._s3 = s3_client
        self._iam = iam_client
        self.region = region
        self._policy_retry = policy_retry or FixedDelayRetry(retry_on=AWSError)

    @classmethod
    def from_credentials(
        cls,
        region: str,
        aws_access_key_id: str,
        aws_secret_access_key: str,
        policy_retry: FixedDelayRetry | None = None,
    ) -> BucketController:
        session = boto3.session.Session(
            aws_access_key_id=aws_access_key_id,
            aws_secret_access_key=aws_secret_access_key,
            region_name=region,
        )
        return cls(
            s3_client=session.client("s3"),
            iam_client=session.client("iam"),
            region=region,
            policy_retry=policy_retry,
        )

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def create_bucket(self, provider_resource_id: str) -> ProvisionedBucket:
        """Create bucket, IAM user, access key and a bucket policy scoped to that user.

        Raises CloudProvisioningError on any failure. Resources created before
        the failure are left in place and attached to the error as ``bucket``.
        """
        bucket = ProvisionedBucket(
            name=bucket_name(provider_resource_id),
            region=self.region,
            user_name=user_name(provider_resource_id),
        )

        # S3 bucket
        kwargs: dict[str, Any] = {"Bucket": bucket.name}
        if self.region != "us-east-1":
            kwargs["CreateBucketConfiguration"] = {"LocationConstraint": self.region}
        try:
            self._s3.create_bucket(**kwargs)
        except AWSError as exc:
            if _error_code(exc) in _BUCKET_COLLISION_CODES:
                logger.error("Bucket name collision for %s", bucket.name)
                raise CloudProvisioningError(f"Bucket name {bucket.name} is already taken") from exc
            logger.error("Error creating bucket %s: %s", bucket.name, exc)
            raise CloudProvisioningError(f"Error creating bucket {bucket.name}: {exc}") from exc
        logger.info("Created bucket %s in %s", bucket.name, bucket.region)

        # IAM user that will access the bucket
        try:
            created = self._iam.create_user(UserName=bucket.user_name)
        except AWSError as exc:
            logger.error("Error creating IAM user %s: %s", bucket.user_name, exc)
            raise CloudProvisioningError(f"Error creating IAM user {bucket.user_name}: {exc}", bucket) from exc
        bucket.user_arn = created["User"]["Arn"]
        logger.info("Created IAM user %s", bucket.user_arn)

        # Credentials for the IAM user
        try:
            key = self._iam.create_access_key(UserName=bucket.user_name)["AccessKey"]
        except AWSError as exc:
            logger.error("Error creating access key for IAM user %s: %s", bucket.user_name, exc)
            raise CloudProvisioningError(f"Error creating access key for {bucket.user_name}: {exc}", bucket) from exc
        bucket.aws_access_key_id = key["AccessKeyId"]
        bucket.aws_secret_access_key = key["SecretAccessKey"]
        logger.info("Created access key %s for IAM user %s", bucket.aws_access_key_id, bucket.user_arn)

        # A freshly created IAM user is not immediately visible to S3, so the
        # policy is applied after a delay and retried a fixed number of times.
        policy = scoped_bucket_policy(provider_resource_id, bucket.name, bucket.user_arn)
        try:
            self._policy_retry.call(
                lambda: self._s3.put_bucket_policy(Bucket=bucket.name, Policy=policy.to_json()),
                description=f"Setting bucket policy for {bucket.name}",
            )
        except RetryExhaustedError as exc:
            logger.error("%s: failed to set bucket policy. Giving up.", bucket.name)
            raise CloudProvisioningError(
                f"Could not set bucket policy on {bucket.name} after {exc.attempts} attempts: {exc.last_error}",
                bucket,
            ) from exc
        logger.info("Bucket policy set for %s", bucket.name)
        return bucket

    # ------------------------------------------------------------------
    # Destroy
    # ------------------------------------------------------------------

    def delete_bucket(self, provider_resource_id: str, aws_access_key_id: str | None) -> bool:
        """Best-effort teardown. Every step runs even if an earlier one failed.

        Returns True only if objects, bucket, access key and user are all gone.
        Nothing is rolled back on partial failure. When ``aws_access_key_id`` is
        None every access key on the user is removed.
        """
        name = bucket_name(provider_resource_id)
        user = user_name(provider_resource_id)

        purged = self.delete_all_objects(name)
        bucket_deleted = self._attempt(
            f"deleting bucket {name}",
            lambda: self._s3.delete_bucket(Bucket=name),
            _S3_GONE_CODES,
        )
        if aws_access_key_id is not None:
            key_deleted = self._attempt(
                f"deleting access key {aws_access_key_id} of IAM user {user}",
                lambda: self._iam.delete_access_key(UserName=user, AccessKeyId=aws_access_key_id),
                _IAM_GONE_CODES,
            )
        else:
            key_deleted = self._attempt(
                f"deleting access keys of IAM user {user}",
                lambda: self._delete_user_keys(user),
                _IAM_GONE_CODES,
            )
        user_deleted = self._attempt(
            f"deleting IAM user {user}",
            lambda: self._iam.delete_user(UserName=user),
            _IAM_GONE_CODES,
        )
        return purged and bucket_deleted and key_deleted and user_deleted

    def delete_all_objects(self, name: str) -> bool:
        """Empty the bucket so it can be deleted. Returns False if anything was left behind."""
        while True:
            try:
                listing = self._s3.list_objects_v2(Bucket=name)
            except AWSError as exc:
                if _error_code(exc) in _S3_GONE_CODES:
                    logger.info("Bucket %s does not exist. Nothing to purge", name)
                    return True
                logger.error("Error listing objects for bucket %s: %s", name, exc)
                return False

            contents = listing.get("Contents") or []
            if not contents:
                logger.info("No more objects to delete from %s", name)
                return True

            objects = [{"Key": obj["Key"]} for obj in contents]
            try:
                result = self._s3.delete_objects(
                    Bucket=name,
                    Delete={"Objects": objects, "Quiet": True},
                )
            except AWSError as exc:
                logger.error("Error deleting objects from %s: %s", name, exc)
                return False
            errors = result.get("Errors") or []
            if errors:
                logger.error(
                    "Failed to delete %d of %d objects from %s (first: %s)",
                    len(errors),
                    len(objects),
                    name,
                    errors[0].get("Message"),
                )
                return False
            logger.info("Deleted %d objects from %s", len(objects), name)

    def _delete_user_keys(self, user: str) -> None:
        listing = self._iam.list_access_keys(UserName=user)
        for key in listing.get("AccessKeyMetadata", []):
            self._iam.delete_access_key(UserName=user, AccessKeyId=key["AccessKeyId"])

    def _attempt(
        self,
        description: str,
        fn: Callable[[], object],
        gone_codes: tuple[str, ...] = (),
    ) -> bool:
        try:
            fn()
        except AWSError as exc:
            if _error_code(exc) in gone_codes:
                logger.info("Skipped %s: already gone", description)
                return True
            logger.error("Error %s: %s", description, exc)
            return False
        logger.info("Done %s", description)
        return True
