# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.

"""
Tests for the AuthSessionManager component, including the full login/logout flow.
"""

from unittest.mock import AsyncMock, MagicMock, patch
from urllib.parse import parse_qs, urlsplit

import httpx
import pytest
from conftest import FakeIdP

from opencloud_auth.config import OpenCloudAuthConfig
from opencloud_auth.exceptions import (
    AuthorizationCallbackError,
    DiscoveryError,
    NotInitializedError,
    TokenExchangeError,
)
from opencloud_auth.manager import AuthSessionManager
from opencloud_auth.models import LogoutResult
from opencloud_auth.session import MemorySessionStore
from opencloud_auth.webfinger import OIDC_ISSUER_REL

SERVER = "https://example.com"
ISSUER = "https://idp.example.com"

PROVIDER_CONFIG = {
    "issuer": ISSUER,
    "authorization_endpoint": f"{ISSUER}/authorize",
    "token_endpoint": f"{ISSUER}/token",
    "jwks_uri": f"{ISSUER}/jwks",
}


def add_discovery(idp: FakeIdP, end_session: bool = False) -> None:
    idp.add(
        "GET",
        f"{SERVER}/.well-known/webfinger",
        httpx.Response(
            200,
            json={"subject": "acct:opencloud@example.com", "links": [{"rel": OIDC_ISSUER_REL, "href": ISSUER}]},
        ),
    )
    config = dict(PROVIDER_CONFIG)
    if end_session:
        config["end_session_endpoint"] = f"{ISSUER}/logout"
    idp.add("GET", f"{ISSUER}/.well-known/openid-configuration", httpx.Response(200, json=config))


@pytest.fixture
def store() -> MemorySessionStore:
    return MemorySessionStore()


@pytest.fixture
def manager(config: OpenCloudAuthConfig, client: httpx.AsyncClient, store: MemorySessionStore) -> AuthSessionManager:
    return AuthSessionManager(config, client=client, session_store=store)


async def login(idp: FakeIdP, manager: AuthSessionManager, id_token: str | None = "idt") -> None:
    add_discovery(idp, end_session=True)
    body = {"access_token": "tok1"}
    if id_token:
        body["id_token"] = id_token
    idp.add("POST", f"{ISSUER}/token", httpx.Response(200, json=body))
    assert (await manager.initialize("example.com")).success
    await manager.exchange_code_for_tokens("abc")


@pytest.mark.asyncio
async def test_end_to_end_flow(idp: FakeIdP, manager: AuthSessionManager, store: MemorySessionStore) -> None:
    add_discovery(idp)
    idp.add("POST", f"{ISSUER}/token", httpx.Response(200, json={"access_token": "tok1"}))

    result = await manager.initialize("example.com")
    assert result.success is True
    assert result.insecure_warning is False
    assert manager.server is not None
    assert manager.server.url == SERVER

    webfinger_request = idp.requests[0]
    assert webfinger_request.url.params["resource"] == "acct:opencloud@example.com"

    auth_url = manager.get_authorization_url()
    assert auth_url.startswith(f"{ISSUER}/authorize?")
    query = parse_qs(urlsplit(auth_url).query)
    assert query["client_id"] == ["OpenCloudAndroid"]
    assert query["redirect_uri"] == ["oc://android.opencloud.eu"]
    assert query["scope"] == ["openid profile email"]
    assert query["response_type"] == ["code"]
    assert query["state"][0]

    assert manager.is_authenticated() is False
    tokens = await manager.exchange_code_for_tokens("abc")
    assert tokens.access_token == "tok1"
    assert manager.is_authenticated() is True
    assert store.token == "tok1"
    assert store.server_url == SERVER
    assert manager.session is not None
    assert manager.session.server_url == SERVER
    assert manager.session.id_token is None

    requests_before_logout = len(idp.requests)
    logout = await manager.logout()
    assert logout == LogoutResult(redirect_url=None, status=0)
    assert len(idp.requests) == requests_before_logout
    assert manager.is_authenticated() is False
    assert store.is_authenticated() is False
    assert manager.provider_config is None
    assert manager.server is None


@pytest.mark.asyncio
async def test_initialize_insecure_server(idp: FakeIdP, manager: AuthSessionManager) -> None:
    idp.add("GET", "http://example.com/.well-known/webfinger", httpx.Response(404))
    idp.add("GET", "http://example.com/.well-known/openid-configuration", httpx.Response(200, json=PROVIDER_CONFIG))

    result = await manager.initialize("http://example.com/")

    assert result.success is True
    assert result.insecure_warning is True


@pytest.mark.asyncio
async def test_initialize_failure_clears_state(idp: FakeIdP, manager: AuthSessionManager) -> None:
    add_discovery(idp)
    assert (await manager.initialize("example.com")).success

    idp.add("GET", "https://broken.example.com/.well-known/openid-configuration", httpx.Response(500))
    result = await manager.initialize("broken.example.com")

    assert result.success is False
    assert result.insecure_warning is False
    assert manager.server is None
    assert manager.provider_config is None
    with pytest.raises(NotInitializedError):
        manager.get_authorization_url()


@pytest.mark.asyncio
async def test_initialize_failure_on_insecure_server_reports_no_warning(manager: AuthSessionManager) -> None:
    result = await manager.initialize("http://nothing.example.com")
    assert result.success is False
    assert result.insecure_warning is False


@pytest.mark.asyncio
async def test_initialize_without_host_fails(manager: AuthSessionManager) -> None:
    result = await manager.initialize("   ")
    assert result.success is False


def test_get_authorization_url_requires_initialize(manager: AuthSessionManager) -> None:
    with pytest.raises(NotInitializedError):
        manager.get_authorization_url()


@pytest.mark.asyncio
async def test_exchange_requires_initialize(idp: FakeIdP, manager: AuthSessionManager) -> None:
    with pytest.raises(NotInitializedError):
        await manager.exchange_code_for_tokens("abc")
    assert idp.requests == []


@pytest.mark.asyncio
async def test_authorization_url_state_changes(idp: FakeIdP, manager: AuthSessionManager) -> None:
    add_discovery(idp)
    await manager.initialize("example.com")

    first = parse_qs(urlsplit(manager.get_authorization_url()).query)["state"][0]
    second = parse_qs(urlsplit(manager.get_authorization_url("openid")).query)
    assert first != second["state"][0]
    assert second["scope"] == ["openid"]


@pytest.mark.asyncio
async def test_missing_endpoints_raise_discovery_error(idp: FakeIdP, manager: AuthSessionManager) -> None:
    idp.add("GET", f"{SERVER}/.well-known/openid-configuration", httpx.Response(200, json={"issuer": SERVER}))
    assert (await manager.initialize("example.com")).success

    with pytest.raises(DiscoveryError, match="authorization_endpoint"):
        manager.get_authorization_url()
    with pytest.raises(DiscoveryError, match="token_endpoint"):
        await manager.exchange_code_for_tokens("abc")


@pytest.mark.asyncio
async def test_failed_exchange_leaves_no_session(
    idp: FakeIdP, manager: AuthSessionManager, store: MemorySessionStore
) -> None:
    add_discovery(idp)
    idp.add("POST", f"{ISSUER}/token", httpx.Response(401, text="unauthorized"))
    await manager.initialize("example.com")

    with pytest.raises(TokenExchangeError) as exc:
        await manager.exchange_code_for_tokens("bad")

    assert exc.value.status == 401
    assert manager.is_authenticated() is False
    assert manager.session is None
    assert store.is_authenticated() is False


@pytest.mark.asyncio
async def test_exchange_overwrites_previous_session(idp: FakeIdP, manager: AuthSessionManager) -> None:
    await login(idp, manager)
    idp.add("POST", f"{ISSUER}/token", httpx.Response(200, json={"access_token": "tok2"}))

    await manager.exchange_code_for_tokens("again")

    assert manager.session is not None
    assert manager.session.access_token.get_secret_value() == "tok2"
    assert manager.session.id_token is None


@pytest.mark.asyncio
async def test_development_mode_exposes_request_id(
    idp: FakeIdP, config: OpenCloudAuthConfig, client: httpx.AsyncClient
) -> None:
    dev_config = config.model_copy(update={"development_mode": True})
    manager = AuthSessionManager(dev_config, client=client)
    add_discovery(idp)
    idp.add("POST", f"{ISSUER}/token", httpx.Response(500))
    await manager.initialize("example.com")

    with pytest.raises(TokenExchangeError) as exc:
        await manager.exchange_code_for_tokens("abc")

    assert exc.value.request_id is not None
    assert f"request ID: {exc.value.request_id}" in str(exc.value)


@pytest.mark.asyncio
async def test_handle_callback(idp: FakeIdP, manager: AuthSessionManager) -> None:
    add_discovery(idp)
    idp.add("POST", f"{ISSUER}/token", httpx.Response(200, json={"access_token": "tok1"}))
    await manager.initialize("example.com")
    state = parse_qs(urlsplit(manager.get_authorization_url()).query)["state"][0]

    tokens = await manager.handle_callback(f"oc://android.opencloud.eu?code=xyz&state={state}")

    assert tokens.access_token == "tok1"
    assert manager.is_authenticated() is True
    token_request = idp.requests[-1]
    assert parse_qs(token_request.content.decode())["code"] == ["xyz"]


@pytest.mark.asyncio
async def test_handle_callback_rejects_wrong_state(idp: FakeIdP, manager: AuthSessionManager) -> None:
    add_discovery(idp)
    await manager.initialize("example.com")
    manager.get_authorization_url()

    with pytest.raises(AuthorizationCallbackError, match="State mismatch"):
        await manager.handle_callback("oc://android.opencloud.eu?code=xyz&state=forged")

    assert all(r.method == "GET" for r in idp.requests)


@pytest.mark.asyncio
async def test_logout_with_idp_redirect(idp: FakeIdP, manager: AuthSessionManager, store: MemorySessionStore) -> None:
    await login(idp, manager)
    idp.add("GET", f"{ISSUER}/logout", httpx.Response(300, headers={"Location": "https://idp/confirm"}))

    result = await manager.logout()

    assert result == LogoutResult(redirect_url="https://idp/confirm", status=300)
    assert manager.is_authenticated() is False
    assert store.is_authenticated() is False

    logout_request = idp.requests[-1]
    assert logout_request.url.params["client_id"] == "OpenCloudAndroid"
    assert logout_request.url.params["id_token_hint"] == "idt"
    assert logout_request.url.params["post_logout_redirect_uri"] == "oc://android.opencloud.eu/logout"
    assert logout_request.headers["Accept"].startswith("text/html")


@pytest.mark.asyncio
async def test_logout_idp_200(idp: FakeIdP, manager: AuthSessionManager) -> None:
    await login(idp, manager, id_token=None)
    idp.add("GET", f"{ISSUER}/logout", httpx.Response(200))

    result = await manager.logout()

    assert result == LogoutResult(redirect_url=None, status=200)
    assert "id_token_hint" not in idp.requests[-1].url.params


@pytest.mark.asyncio
async def test_logout_clears_local_state_when_idp_unreachable(
    idp: FakeIdP, manager: AuthSessionManager, store: MemorySessionStore
) -> None:
    await login(idp, manager)
    idp.add("GET", f"{ISSUER}/logout", httpx.ConnectError("offline"))

    result = await manager.logout()

    assert result.status == 0
    assert result.redirect_url is not None
    assert result.redirect_url.startswith(f"{ISSUER}/logout?client_id=OpenCloudAndroid")
    assert manager.is_authenticated() is False
    assert manager.provider_config is None
    assert store.is_authenticated() is False


@pytest.mark.asyncio
async def test_logout_clears_state_before_network_call(idp: FakeIdP, manager: AuthSessionManager) -> None:
    await login(idp, manager)
    observed: dict[str, bool] = {}

    def check_state(request: httpx.Request) -> httpx.Response:
        observed["authenticated"] = manager.is_authenticated()
        observed["has_config"] = manager.provider_config is not None
        return httpx.Response(200)

    idp.add("GET", f"{ISSUER}/logout", check_state)

    await manager.logout()

    assert observed == {"authenticated": False, "has_config": False}


@pytest.mark.asyncio
async def test_logout_without_idp(idp: FakeIdP, manager: AuthSessionManager) -> None:
    await login(idp, manager)
    count = len(idp.requests)

    result = await manager.logout(initiate_idp_logout=False)

    assert result == LogoutResult(redirect_url=None, status=0)
    assert len(idp.requests) == count
    assert manager.is_authenticated() is False


@pytest.mark.asyncio
async def test_logout_when_never_logged_in(manager: AuthSessionManager) -> None:
    result = await manager.logout()
    assert result == LogoutResult(redirect_url=None, status=0)


@pytest.mark.asyncio
async def test_logout_with_invalid_end_session_endpoint(idp: FakeIdP, manager: AuthSessionManager) -> None:
    idp.add(
        "GET",
        f"{SERVER}/.well-known/openid-configuration",
        httpx.Response(200, json={**PROVIDER_CONFIG, "end_session_endpoint": "/relative"}),
    )
    await manager.initialize("example.com")
    count = len(idp.requests)

    result = await manager.logout()

    assert result == LogoutResult(redirect_url=None, status=0)
    assert len(idp.requests) == count


@pytest.mark.asyncio
async def test_manager_lifecycle_internal_client(config: OpenCloudAuthConfig) -> None:
    with patch("opencloud_auth.manager.HTTPXClientInstrumentor") as instrumentor:
        mgr = AuthSessionManager(config)
        instrumentor.return_value.instrument_client.assert_called_once_with(mgr._client)

    assert mgr._internal_client is True
    assert mgr._client.timeout.read == config.http_timeout
    assert isinstance(mgr.session_store, MemorySessionStore)

    with patch.object(mgr._client, "aclose", new_callable=AsyncMock) as mock_close:
        async with mgr:
            pass
        mock_close.assert_awaited_once()


@pytest.mark.asyncio
async def test_manager_external_client_not_closed(config: OpenCloudAuthConfig) -> None:
    client = MagicMock(spec=httpx.AsyncClient)
    client.aclose = AsyncMock()

    async with AuthSessionManager(config, client=client) as mgr:
        assert mgr._internal_client is False
        assert mgr.transport.client is client

    client.aclose.assert_not_called()
