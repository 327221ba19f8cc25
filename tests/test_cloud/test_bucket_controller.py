from __future__ import annotations

import json
import logging
from unittest.mock import call

import pytest
from botocore.exceptions import ClientError

from byobucket.cloud.bucket_controller import BucketController, bucket_name, user_name
from byobucket.core.errors import CloudProvisioningError


def _client_error(code: str, operation: str = "Operation") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": f"{code} happened"}}, operation)


# ---------------------------------------------------------------------------
# Create
# ---------------------------------------------------------------------------


def test_create_bucket_happy_path(controller, s3_client, iam_client, sleeps) -> None:
    bucket = controller.create_bucket("abc123")

    s3_client.create_bucket.assert_called_once_with(Bucket="bucket-abc123")
    iam_client.create_user.assert_called_once_with(UserName="user-abc123")
    iam_client.create_access_key.assert_called_once_with(UserName="user-abc123")
    assert bucket.name == "bucket-abc123"
    assert bucket.user_arn == "arn:aws:iam::123456789012:user/user-abc123"
    assert bucket.config_vars() == {
        "BUCKET_NAME": "bucket-abc123",
        "AWS_ACCESS_KEY_ID": "AKIAMINTEDKEY0001",
        "AWS_SECRET_ACCESS_KEY": "minted-secret",
    }
    assert "minted-secret" not in repr(bucket)
    assert sleeps == [3.0]


def test_create_bucket_policy_scoped_to_bucket_and_user(controller, s3_client) -> None:
    controller.create_bucket("abc123")

    kwargs = s3_client.put_bucket_policy.call_args.kwargs
    assert kwargs["Bucket"] == "bucket-abc123"
    policy = json.loads(kwargs["Policy"])
    (statement,) = policy["Statement"]
    assert statement["Effect"] == "Allow"
    assert statement["Principal"] == {"AWS": ["arn:aws:iam::123456789012:user/user-abc123"]}
    assert statement["Resource"] == ["arn:aws:s3:::bucket-abc123", "arn:aws:s3:::bucket-abc123/*"]


def test_create_bucket_outside_us_east_1_sets_location(s3_client, iam_client, no_sleep_retry, caplog) -> None:
    controller = BucketController(s3_client, iam_client, region="eu-west-1", policy_retry=no_sleep_retry)

    with caplog.at_level(logging.INFO, logger="byobucket.cloud.bucket_controller"):
        bucket = controller.create_bucket("abc123")

    s3_client.create_bucket.assert_called_once_with(
        Bucket="bucket-abc123",
        CreateBucketConfiguration={"LocationConstraint": "eu-west-1"},
    )
    assert bucket.region == "eu-west-1"
    assert "Created bucket bucket-abc123 in eu-west-1" in caplog.text


def test_policy_fails_five_times_then_succeeds(controller, s3_client, sleeps) -> None:
    s3_client.put_bucket_policy.side_effect = [_client_error("MalformedPolicy")] * 5 + [{}]

    bucket = controller.create_bucket("abc123")

    assert bucket.aws_access_key_id == "AKIAMINTEDKEY0001"
    assert s3_client.put_bucket_policy.call_count == 6
    assert sleeps == [3.0] * 6


def test_policy_fails_every_attempt(controller, s3_client) -> None:
    s3_client.put_bucket_policy.side_effect = _client_error("MalformedPolicy")

    with pytest.raises(CloudProvisioningError) as exc_info:
        controller.create_bucket("abc123")

    assert s3_client.put_bucket_policy.call_count == 6
    # bucket and user are left in place for the caller to deal with
    assert exc_info.value.bucket is not None
    assert exc_info.value.bucket.aws_access_key_id == "AKIAMINTEDKEY0001"
    s3_client.delete_bucket.assert_not_called()


def test_bucket_name_collision_is_not_retried(controller, s3_client, iam_client) -> None:
    s3_client.create_bucket.side_effect = _client_error("BucketAlreadyExists", "CreateBucket")

    with pytest.raises(CloudProvisioningError, match="already taken") as exc_info:
        controller.create_bucket("abc123")

    assert exc_info.value.bucket is None
    assert s3_client.create_bucket.call_count == 1
    iam_client.create_user.assert_not_called()


def test_create_user_failure_carries_partial_bucket(controller, iam_client) -> None:
    iam_client.create_user.side_effect = _client_error("LimitExceeded", "CreateUser")

    with pytest.raises(CloudProvisioningError) as exc_info:
        controller.create_bucket("abc123")

    assert exc_info.value.bucket.name == "bucket-abc123"
    assert exc_info.value.bucket.user_arn is None
    iam_client.create_access_key.assert_not_called()


# ---------------------------------------------------------------------------
# Destroy
# ---------------------------------------------------------------------------


def test_delete_bucket_purges_then_deletes_everything(controller, s3_client, iam_client) -> None:
    s3_client.list_objects_v2.side_effect = [
        {"Contents": [{"Key": "a.txt"}, {"Key": "b/c.txt"}]},
        {"KeyCount": 0},
    ]

    assert controller.delete_bucket("abc123", "AKIAMINTEDKEY0001") is True

    s3_client.delete_objects.assert_called_once_with(
        Bucket="bucket-abc123",
        Delete={"Objects": [{"Key": "a.txt"}, {"Key": "b/c.txt"}], "Quiet": True},
    )
    s3_client.delete_bucket.assert_called_once_with(Bucket="bucket-abc123")
    iam_client.delete_access_key.assert_called_once_with(
        UserName="user-abc123", AccessKeyId="AKIAMINTEDKEY0001"
    )
    iam_client.delete_user.assert_called_once_with(UserName="user-abc123")


def test_delete_user_failure_reports_partial_teardown(controller, s3_client, iam_client) -> None:
    iam_client.delete_user.side_effect = _client_error("DeleteConflict", "DeleteUser")

    assert controller.delete_bucket("abc123", "AKIAMINTEDKEY0001") is False

    s3_client.delete_bucket.assert_called_once()
    iam_client.delete_access_key.assert_called_once()


def test_delete_bucket_failure_does_not_stop_iam_cleanup(controller, s3_client, iam_client) -> None:
    s3_client.delete_bucket.side_effect = _client_error("BucketNotEmpty", "DeleteBucket")

    assert controller.delete_bucket("abc123", "AKIAMINTEDKEY0001") is False

    iam_client.delete_access_key.assert_called_once()
    iam_client.delete_user.assert_called_once()


def test_purge_with_object_errors_fails_but_continues(controller, s3_client, iam_client) -> None:
    s3_client.list_objects_v2.return_value = {"Contents": [{"Key": "locked"}]}
    s3_client.delete_objects.return_value = {
        "Errors": [{"Key": "locked", "Code": "AccessDenied", "Message": "Access Denied"}]
    }

    assert controller.delete_bucket("abc123", "AKIAMINTEDKEY0001") is False

    assert s3_client.delete_objects.call_count == 1
    s3_client.delete_bucket.assert_called_once()
    iam_client.delete_user.assert_called_once()


def test_delete_of_already_deleted_resources_succeeds(controller, s3_client, iam_client) -> None:
    s3_client.list_objects_v2.side_effect = _client_error("NoSuchBucket", "ListObjectsV2")
    s3_client.delete_bucket.side_effect = _client_error("NoSuchBucket", "DeleteBucket")
    iam_client.delete_access_key.side_effect = _client_error("NoSuchEntity", "DeleteAccessKey")
    iam_client.delete_user.side_effect = _client_error("NoSuchEntity", "DeleteUser")

    assert controller.delete_bucket("abc123", "AKIAMINTEDKEY0001") is True


def test_delete_without_key_id_removes_all_user_keys(controller, iam_client) -> None:
    iam_client.list_access_keys.return_value = {
        "AccessKeyMetadata": [{"AccessKeyId": "AKIA1"}, {"AccessKeyId": "AKIA2"}]
    }

    assert controller.delete_bucket("abc123", None) is True

    iam_client.delete_access_key.assert_has_calls(
        [
            call(UserName="user-abc123", AccessKeyId="AKIA1"),
            call(UserName="user-abc123", AccessKeyId="AKIA2"),
        ]
    )


def test_names_are_derived_from_provider_id() -> None:
    assert bucket_name("abc") == "bucket-abc"
    assert user_name("abc") == "user-abc"
