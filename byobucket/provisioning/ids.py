from __future__ import annotations

import secrets

# 128 random bits as lowercase hex, so "bucket-<id>" is a valid S3 bucket name
_ID_BYTES = 16


def new_provider_resource_id() -> str:
    """Return a fresh provider resource id, used to name the bucket and IAM user."""
    return secrets.token_hex(_ID_BYTES)
