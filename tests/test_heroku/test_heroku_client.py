from __future__ import annotations

import json
from urllib.parse import parse_qs

import httpx
import pytest

from byobucket.core.errors import (
    AuthExchangeError,
    ConfigPushError,
    OwnerLookupError,
    ReportError,
)
from byobucket.heroku.client import Authorization, HerokuClient, exchange_grant


def _transport(routes: dict[tuple[str, str], httpx.Response], seen: list[httpx.Request] | None = None) -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        response = routes.get((request.method, request.url.path))
        if response is None:
            return httpx.Response(404, json={"id": "not_found"})
        return response

    return httpx.MockTransport(handler)


def _client(routes: dict, seen: list | None = None) -> HerokuClient:
    return HerokuClient(Authorization(access_token="tok"), transport=_transport(routes, seen))


# ---------------------------------------------------------------------------
# Grant exchange
# ---------------------------------------------------------------------------


async def test_exchange_grant_posts_code_and_secret() -> None:
    seen: list[httpx.Request] = []
    transport = _transport(
        {("POST", "/oauth/token"): httpx.Response(
            200,
            json={"access_token": "tok", "refresh_token": "ref", "expires_in": 28800, "token_type": "Bearer"},
        )},
        seen,
    )

    auth = await exchange_grant("code-abc", client_secret="client-secret", transport=transport)

    assert auth.access_token == "tok"
    assert auth.header() == "Bearer tok"
    assert "tok" not in repr(auth)
    form = parse_qs(seen[0].content.decode())
    assert form == {
        "grant_type": ["authorization_code"],
        "client_secret": ["client-secret"],
        "code": ["code-abc"],
    }


async def test_exchange_grant_rejected() -> None:
    transport = _transport({("POST", "/oauth/token"): httpx.Response(401, json={"id": "unauthorized"})})

    with pytest.raises(AuthExchangeError):
        await exchange_grant("expired", client_secret="s", transport=transport)


async def test_exchange_grant_malformed_body() -> None:
    transport = _transport({("POST", "/oauth/token"): httpx.Response(200, json={"nope": 1})})

    with pytest.raises(AuthExchangeError):
        await exchange_grant("code", client_secret="s", transport=transport)


async def test_from_grant_uses_token_for_api_calls() -> None:
    seen: list[httpx.Request] = []
    transport = _transport(
        {
            ("POST", "/oauth/token"): httpx.Response(200, json={"access_token": "tok", "token_type": "Bearer"}),
            ("POST", "/addons/add-123/actions/provision"): httpx.Response(200, json={}),
        },
        seen,
    )

    async with await HerokuClient.from_grant("code", client_secret="s", transport=transport) as client:
        await client.complete_provisioning("add-123")

    api_call = seen[-1]
    assert api_call.headers["Authorization"] == "Bearer tok"
    assert api_call.headers["Accept"] == "application/vnd.heroku+json; version=3"


# ---------------------------------------------------------------------------
# Owner lookup
# ---------------------------------------------------------------------------


async def test_owner_id_chains_addon_and_app_lookups() -> None:
    client = _client({
        ("GET", "/addons/add-123"): httpx.Response(200, json={"app": {"id": "app-1", "name": "my-app"}}),
        ("GET", "/apps/app-1"): httpx.Response(200, json={"owner": {"id": "T1", "email": "team@example.com"}}),
    })

    async with client:
        assert await client.owner_id("add-123") == "T1"


async def test_owner_id_addon_lookup_fails() -> None:
    async with _client({}) as client:
        with pytest.raises(OwnerLookupError):
            await client.owner_id("add-404")


async def test_owner_id_unexpected_shape() -> None:
    client = _client({
        ("GET", "/addons/add-123"): httpx.Response(200, json={"app": {"id": "app-1"}}),
        ("GET", "/apps/app-1"): httpx.Response(200, json={"organization": None}),
    })

    async with client:
        with pytest.raises(OwnerLookupError):
            await client.owner_id("add-123")


async def test_owner_lookup_error_is_a_lookup_error() -> None:
    assert issubclass(OwnerLookupError, LookupError)


# ---------------------------------------------------------------------------
# Config + outcome
# ---------------------------------------------------------------------------


async def test_set_addon_config_sends_config_vars() -> None:
    seen: list[httpx.Request] = []
    client = _client({("PATCH", "/addons/add-123/config"): httpx.Response(200, json=[])}, seen)

    async with client:
        await client.set_addon_config("add-123", {"BUCKET_NAME": "bucket-abc", "AWS_ACCESS_KEY_ID": "AKIA"})

    assert json.loads(seen[0].content) == {
        "config": [
            {"name": "BUCKET_NAME", "value": "bucket-abc"},
            {"name": "AWS_ACCESS_KEY_ID", "value": "AKIA"},
        ]
    }


async def test_set_addon_config_failure() -> None:
    client = _client({("PATCH", "/addons/add-123/config"): httpx.Response(422, json={"id": "invalid_params"})})

    async with client:
        with pytest.raises(ConfigPushError):
            await client.set_addon_config("add-123", {"BUCKET_NAME": "b"})


@pytest.mark.parametrize("success,action", [(True, "provision"), (False, "deprovision")])
async def test_report_provisioning_endpoint(success: bool, action: str) -> None:
    seen: list[httpx.Request] = []
    client = _client({("POST", f"/addons/add-123/actions/{action}"): httpx.Response(200, json={})}, seen)

    async with client:
        await client.report_provisioning("add-123", success)

    assert seen[0].url.path == f"/addons/add-123/actions/{action}"


async def test_report_failure_raises_report_error() -> None:
    client = _client({("POST", "/addons/add-123/actions/deprovision"): httpx.Response(500, text="oops")})

    async with client:
        with pytest.raises(ReportError):
            await client.fail_provisioning("add-123")
