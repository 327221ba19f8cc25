from __future__ import annotations

import secrets

from fastapi import HTTPException
from fastapi.security import HTTPBasicCredentials

from byobucket.config import settings


def verify_addon_credentials(credentials: HTTPBasicCredentials) -> None:
    """Constant-time check of the basic-auth pair Heroku sends with add-on calls. Raises 401."""
    valid_user = secrets.compare_digest(
        credentials.username.encode("utf-8"), settings.addon_username.encode("utf-8")
    )
    valid_password = bool(settings.addon_password) and secrets.compare_digest(
        credentials.password.encode("utf-8"), settings.addon_password.encode("utf-8")
    )
    if not (valid_user and valid_password):
        raise HTTPException(
            status_code=401,
            detail="Invalid add-on credentials",
            headers={"WWW-Authenticate": "Basic"},
        )


def verify_admin_key(key: str) -> None:
    """Constant-time comparison against the admin API key. Raises 403 on mismatch."""
    if not settings.admin_api_key or not secrets.compare_digest(key, settings.admin_api_key):
        raise HTTPException(status_code=403, detail="Invalid admin key")
