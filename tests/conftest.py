# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.

from collections.abc import Callable

import httpx
import pytest

from opencloud_auth.config import OpenCloudAuthConfig
from opencloud_auth.transport import HttpTransport

Route = httpx.Response | Exception | Callable[[httpx.Request], httpx.Response]


class FakeIdP:
    """
    Routes requests by method and URL (query ignored) to canned responses and records them.
    Unknown routes answer 404.
    """

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], Route] = {}
        self.requests: list[httpx.Request] = []

    def add(self, method: str, url: str, route: Route) -> None:
        self.routes[(method.upper(), url)] = route

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = (request.method, f"{request.url.scheme}://{request.url.host}{request.url.path}")
        route = self.routes.get(key)
        if route is None:
            return httpx.Response(404, text="Not Found")
        if isinstance(route, Exception):
            raise route
        if callable(route):
            return route(request)
        # Fresh copy so a route can be hit more than once
        return httpx.Response(route.status_code, headers=route.headers, content=route.content)

    def urls(self) -> list[str]:
        return [str(r.url) for r in self.requests]


@pytest.fixture
def config() -> OpenCloudAuthConfig:
    return OpenCloudAuthConfig(
        client_id="OpenCloudAndroid",
        redirect_uri="oc://android.opencloud.eu",
        post_logout_redirect_uri="oc://android.opencloud.eu/logout",
        app_version="1.2.3",
        platform="android",
    )


@pytest.fixture
def idp() -> FakeIdP:
    return FakeIdP()


@pytest.fixture
def client(idp: FakeIdP) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(idp))


@pytest.fixture
def transport(client: httpx.AsyncClient, config: OpenCloudAuthConfig) -> HttpTransport:
    return HttpTransport(client, config.http_logging, config.user_agent)
