from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import httpx

from byobucket.config import settings
from byobucket.core.errors import (
    AuthExchangeError,
    ConfigPushError,
    OwnerLookupError,
    ReportError,
)

logger = logging.getLogger(__name__)

_ACCEPT = "application/vnd.heroku+json; version=3"


@dataclass(frozen=True)
class Authorization:
    access_token: str
    token_type: str = "Bearer"
    refresh_token: str | None = None
    expires_in: int | None = None

    def header(self) -> str:
        return f"{self.token_type} {self.access_token}"

    def __repr__(self) -> str:
        return f"Authorization(token_type={self.token_type!r}, expires_in={self.expires_in!r})"


def _describe(response: httpx.Response) -> str:
    return f"Unexpected HTTP response ({response.status_code}): {response.text[:500]!r}"


async def exchange_grant(
    code: str,
    *,
    client_secret: str | None = None,
    id_url: str | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> Authorization:
    """Trade a one-time OAuth grant code for a bearer token."""
    client_secret = client_secret if client_secret is not None else settings.heroku_oauth_secret
    id_url = id_url or settings.heroku_id_url
    try:
        async with httpx.AsyncClient(
            transport=transport, timeout=settings.heroku_timeout_s
        ) as http:
            response = await http.post(
                f"{id_url}/oauth/token",
                data={
                    "grant_type": "authorization_code",
                    "client_secret": client_secret,
                    "code": code,
                },
            )
    except httpx.HTTPError as exc:
        raise AuthExchangeError(f"OAuth grant exchange failed: {exc}") from exc

    if not response.is_success:
        raise AuthExchangeError(f"OAuth grant exchange failed. {_describe(response)}")
    try:
        body = response.json()
        return Authorization(
            access_token=body["access_token"],
            token_type=body.get("token_type") or "Bearer",
            refresh_token=body.get("refresh_token"),
            expires_in=body.get("expires_in"),
        )
    except (ValueError, KeyError, TypeError) as exc:
        raise AuthExchangeError("OAuth token response is missing access_token") from exc


class HerokuClient:
    """Platform API calls made on behalf of one add-on, with one bearer token.

    Use as an async context manager, or call ``aclose()`` when done.
    """

    def __init__(
        self,
        authorization: Authorization,
        *,
        api_url: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._http = httpx.AsyncClient(
            base_url=api_url or settings.heroku_api_url,
            transport=transport,
            timeout=settings.heroku_timeout_s,
            headers={
                "Accept": _ACCEPT,
                "Content-Type": "application/json",
                "Authorization": authorization.header(),
            },
        )

    @classmethod
    async def from_grant(
        cls,
        code: str,
        *,
        client_secret: str | None = None,
        id_url: str | None = None,
        api_url: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> HerokuClient:
        authorization = await exchange_grant(
            code, client_secret=client_secret, id_url=id_url, transport=transport
        )
        return cls(authorization, api_url=api_url, transport=transport)

    async def __aenter__(self) -> HerokuClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _get_json(self, path: str) -> Any:
        response = await self._http.get(path)
        if not response.is_success:
            raise OwnerLookupError(f"GET {path} failed. {_describe(response)}")
        return response.json()

    async def owner_id(self, addon_id: str) -> str:
        """Resolve the team or user owning the app the add-on is attached to.

        Two chained lookups: add-on -> app, then app -> owner.
        """
        try:
            addon = await self._get_json(f"/addons/{addon_id}")
            app_id = addon["app"]["id"]
            app = await self._get_json(f"/apps/{app_id}")
            owner_id = app["owner"]["id"]
        except httpx.HTTPError as exc:
            raise OwnerLookupError(f"Owner lookup for add-on {addon_id} failed: {exc}") from exc
        except (ValueError, KeyError, TypeError) as exc:
            raise OwnerLookupError(
                f"Owner lookup for add-on {addon_id} returned an unexpected response"
            ) from exc
        if not owner_id:
            raise OwnerLookupError(f"Add-on {addon_id} has no owner")
        return owner_id

    async def set_addon_config(self, addon_id: str, config: dict[str, str]) -> None:
        payload = {"config": [{"name": name, "value": value} for name, value in config.items()]}
        try:
            response = await self._http.patch(f"/addons/{addon_id}/config", json=payload)
        except httpx.HTTPError as exc:
            raise ConfigPushError(f"Setting config for add-on {addon_id} failed: {exc}") from exc
        if not response.is_success:
            raise ConfigPushError(f"Setting config for add-on {addon_id} failed. {_describe(response)}")
        logger.info("Set %d config vars on add-on %s", len(config), addon_id)

    async def report_provisioning(self, addon_id: str, success: bool) -> None:
        action = "provision" if success else "deprovision"
        try:
            response = await self._http.post(f"/addons/{addon_id}/actions/{action}")
        except httpx.HTTPError as exc:
            raise ReportError(f"Reporting {action} for add-on {addon_id} failed: {exc}") from exc
        if not response.is_success:
            raise ReportError(f"Reporting {action} for add-on {addon_id} failed. {_describe(response)}")

    async def complete_provisioning(self, addon_id: str) -> None:
        await self.report_provisioning(addon_id, True)

    async def fail_provisioning(self, addon_id: str) -> None:
        await self.report_provisioning(addon_id, False)
