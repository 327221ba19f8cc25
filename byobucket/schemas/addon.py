from __future__ import annotations

from typing import Any

from pydantic import BaseModel


class OAuthGrant(BaseModel):
    code: str
    expires_at: str | None = None
    type: str = "authorization_code"


class CreateAddonRequest(BaseModel):
    uuid: str  # Heroku add-on instance id
    heroku_id: str | None = None
    plan: str | None = None
    region: str | None = None
    callback_url: str | None = None
    oauth_grant: OAuthGrant | None = None
    options: dict[str, Any] = {}


class AsyncCreateAddonResponse(BaseModel):
    id: str  # provider resource id; Heroku uses it as {id} in later calls
    message: str


class PlanChangeRequest(BaseModel):
    plan: str
    heroku_id: str | None = None
    uuid: str | None = None


class PlanChangeResponse(BaseModel):
    message: str
    config: dict[str, str] = {}
