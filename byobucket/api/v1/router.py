from __future__ import annotations

from fastapi import APIRouter

from byobucket.api.v1 import accounts, addon

router = APIRouter()
router.include_router(addon.router, prefix="/addon/heroku", tags=["addon"])
router.include_router(accounts.router, prefix="/admin", tags=["admin"])
