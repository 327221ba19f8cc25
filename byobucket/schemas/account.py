from __future__ import annotations

from pydantic import BaseModel, Field


class AccountUpsert(BaseModel):
    aws_access_key_id: str = Field(min_length=16, max_length=128)
    aws_secret_access_key: str = Field(min_length=1)


class AccountResponse(BaseModel):
    owner_id: str
    aws_access_key_id: str  # the secret is never returned
