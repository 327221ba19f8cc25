from __future__ import annotations

import json
from dataclasses import dataclass, field

POLICY_VERSION = "2012-10-17"

# Everything the add-on user may do with its own bucket. Nothing here touches
# other buckets, IAM, or account-level settings.
BUCKET_USER_ACTIONS: tuple[str, ...] = (
    "s3:AbortMultipartUpload",
    "s3:DeleteObject",
    "s3:DeleteObjectVersion",
    "s3:GetAccelerateConfiguration",
    "s3:GetBucketAcl",
    "s3:GetBucketCORS",
    "s3:GetBucketLocation",
    "s3:GetBucketLogging",
    "s3:GetBucketNotification",
    "s3:GetBucketVersioning",
    "s3:GetBucketWebsite",
    "s3:GetLifecycleConfiguration",
    "s3:GetObject",
    "s3:GetObjectAcl",
    "s3:GetObjectTorrent",
    "s3:GetObjectVersion",
    "s3:GetObjectVersionAcl",
    "s3:GetObjectVersionTorrent",
    "s3:GetReplicationConfiguration",
    "s3:ListBucket",
    "s3:ListBucketMultipartUploads",
    "s3:ListBucketVersions",
    "s3:ListMultipartUploadParts",
    "s3:PutAccelerateConfiguration",
    "s3:PutBucketAcl",
    "s3:PutBucketCORS",
    "s3:PutBucketLogging",
    "s3:PutBucketNotification",
    "s3:PutBucketRequestPayment",
    "s3:PutBucketTagging",
    "s3:PutBucketVersioning",
    "s3:PutBucketWebsite",
    "s3:PutLifecycleConfiguration",
    "s3:PutReplicationConfiguration",
    "s3:PutObject",
    "s3:PutObjectAcl",
    "s3:PutObjectVersionAcl",
    "s3:ReplicateDelete",
    "s3:ReplicateObject",
    "s3:RestoreObject",
)


def bucket_arn(bucket_name: str) -> str:
    return f"arn:aws:s3:::{bucket_name}"


@dataclass(frozen=True)
class PolicyStatement:
    sid: str
    actions: tuple[str, ...]
    resources: tuple[str, ...]
    principals: tuple[str, ...]
    effect: str = "Allow"

    def to_dict(self) -> dict:
        return {
            "Sid": self.sid,
            "Action": list(self.actions),
            "Effect": self.effect,
            "Resource": list(self.resources),
            "Principal": {"AWS": list(self.principals)},
        }


@dataclass(frozen=True)
class BucketPolicy:
    policy_id: str
    statements: tuple[PolicyStatement, ...] = field(default_factory=tuple)
    version: str = POLICY_VERSION

    def to_dict(self) -> dict:
        return {
            "Id": self.policy_id,
            "Version": self.version,
            "Statement": [s.to_dict() for s in self.statements],
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2)


def _sid_token(value: str) -> str:
    # Sid and Id only accept alphanumerics
    return "".join(c for c in value if c.isalnum())


def scoped_bucket_policy(provider_resource_id: str, bucket_name: str, user_arn: str) -> BucketPolicy:
    """Policy granting exactly one IAM user access to exactly one bucket and its objects."""
    token = _sid_token(provider_resource_id)
    statement = PolicyStatement(
        sid=f"Stmt{token}",
        actions=BUCKET_USER_ACTIONS,
        resources=(bucket_arn(bucket_name), f"{bucket_arn(bucket_name)}/*"),
        principals=(user_arn,),
    )
    return BucketPolicy(policy_id=f"Policy{token}", statements=(statement,))
