from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest
from cryptography.fernet import Fernet

from byobucket.cloud.bucket_controller import AWSError, BucketController
from byobucket.cloud.retry import FixedDelayRetry
from byobucket.core.crypto import SecretCipher


@pytest.fixture
def fernet_key() -> str:
    return Fernet.generate_key().decode("utf-8")


@pytest.fixture
def cipher(fernet_key: str) -> SecretCipher:
    return SecretCipher([fernet_key])


@pytest.fixture
def sleeps() -> list[float]:
    """Delays requested by a retry policy, instead of actually sleeping."""
    return []


@pytest.fixture
def no_sleep_retry(sleeps: list[float]) -> FixedDelayRetry:
    return FixedDelayRetry(
        initial_delay=3.0,
        retries=5,
        delay=3.0,
        retry_on=AWSError,
        sleep=sleeps.append,
    )


@pytest.fixture
def s3_client() -> MagicMock:
    s3 = MagicMock()
    s3.list_objects_v2.return_value = {"KeyCount": 0}
    s3.delete_objects.return_value = {}
    return s3


@pytest.fixture
def iam_client() -> MagicMock:
    iam = MagicMock()
    iam.create_user.side_effect = lambda UserName: {
        "User": {"UserName": UserName, "Arn": f"arn:aws:iam::123456789012:user/{UserName}"}
    }
    iam.create_access_key.return_value = {
        "AccessKey": {"AccessKeyId": "AKIAMINTEDKEY0001", "SecretAccessKey": "minted-secret"}
    }
    iam.list_access_keys.return_value = {"AccessKeyMetadata": []}
    return iam


@pytest.fixture
def controller(s3_client: MagicMock, iam_client: MagicMock, no_sleep_retry: FixedDelayRetry) -> BucketController:
    return BucketController(s3_client, iam_client, region="us-east-1", policy_retry=no_sleep_retry)


def _make_db_session(**attrs: object) -> AsyncMock:
    session = AsyncMock()
    session.add = MagicMock()
    session.commit = AsyncMock()
    session.__aenter__ = AsyncMock(return_value=session)
    session.__aexit__ = AsyncMock(return_value=False)
    for name, value in attrs.items():
        setattr(session, name, value)
    return session


@pytest.fixture
def make_session():
    """Factory for mock AsyncSessions usable as ``async with factory() as session``."""
    return _make_db_session
