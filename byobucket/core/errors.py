from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from byobucket.cloud.bucket_controller import ProvisionedBucket


class ProvisioningError(Exception):
    """Base class for every failure the provisioning workflows know how to report."""


class AuthExchangeError(ProvisioningError):
    """The one-time OAuth grant could not be exchanged for a bearer token."""


class OwnerLookupError(ProvisioningError, LookupError):
    """The owning team/user of an add-on instance could not be resolved."""


class AccountNotFoundError(ProvisioningError):
    """No AWS credentials are registered for the owner."""


class ResourceNotFoundError(ProvisioningError):
    """No add-on resource record exists for the provider resource id."""


class CloudProvisioningError(ProvisioningError):
    """Bucket, IAM user, access key or bucket policy creation failed.

    ``bucket`` holds whatever was created before the failure so callers can
    clean it up; it is None when nothing was created.
    """

    def __init__(self, message: str, bucket: ProvisionedBucket | None = None) -> None:
        super().__init__(message)
        self.bucket = bucket


class ConfigPushError(ProvisioningError):
    """Config vars could not be set on the add-on."""


class PersistenceError(ProvisioningError):
    """Database read/write failed or a stored secret could not be decrypted."""


class ReportError(ProvisioningError):
    """Provisioning outcome could not be reported to the platform."""


class RetryExhaustedError(Exception):
    """Every attempt allowed by a retry policy failed."""

    def __init__(self, attempts: int, last_error: BaseException) -> None:
        super().__init__(f"gave up after {attempts} attempts: {last_error}")
        self.attempts = attempts
        self.last_error = last_error
