# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.

"""
WebFingerClient component for discovering the OIDC issuer of a server (RFC 7033).
"""

from urllib.parse import quote

import httpx
from pydantic import ValidationError

from opencloud_auth.exceptions import WebFingerError
from opencloud_auth.models import WebFingerLink, WebFingerResponse
from opencloud_auth.transport import HttpTransport
from opencloud_auth.utils.logger import logger

OIDC_ISSUER_REL = "http://openid.net/specs/connect/1.0/issuer"
WEBFINGER_PATH = "/.well-known/webfinger"


class WebFingerClient:
    """
    Looks up the OIDC issuer a server delegates authentication to.

    Attributes:
        transport (HttpTransport): The transport used for the lookup.
    """

    def __init__(self, transport: HttpTransport) -> None:
        self.transport = transport

    @staticmethod
    def build_url(server_url: str, resource: str) -> str:
        """
        Builds the WebFinger endpoint URL for a resource.

        Args:
            server_url: The server base URL.
            resource: The resource to look up (e.g. acct:opencloud@cloud.example.com).

        Returns:
            str: `{server_url}/.well-known/webfinger?resource={urlencoded resource}`.
        """
        base_url = server_url[:-1] if server_url.endswith("/") else server_url
        return f"{base_url}{WEBFINGER_PATH}?resource={quote(resource, safe='')}"

    async def discover(self, server_url: str, resource: str) -> WebFingerResponse:
        """
        Fetches the WebFinger document for a resource.

        Returns:
            WebFingerResponse: The parsed JRD document.

        Raises:
            WebFingerError: If the request fails, returns a non-2xx status, or the body is not a JRD.
        """
        url = self.build_url(server_url, resource)

        try:
            response = await self.transport.perform_request(url, "GET", prefix="WebFinger")
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise WebFingerError(f"WebFinger request to {url} failed: {e}") from e

        if not response.is_success:
            raise WebFingerError(
                f"WebFinger discovery failed: {response.status_code} {response.reason_phrase}",
                status=response.status_code,
            )

        try:
            return WebFingerResponse.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise WebFingerError(f"Invalid WebFinger response from {url}: {e}") from e

    @staticmethod
    def find_link_by_rel(document: WebFingerResponse, rel: str) -> WebFingerLink | None:
        """Returns the first link with the given relation, or None."""
        return next((link for link in document.links if link.rel == rel), None)

    async def discover_issuer(self, server_url: str, resource: str) -> str:
        """
        Resolves the OIDC issuer for a server.

        Falls back to `server_url` itself when the lookup fails or names no issuer,
        treating the server as its own issuer. Never raises.

        Args:
            server_url: The normalized server URL.
            resource: The resource to look up.

        Returns:
            str: The issuer URL.
        """
        try:
            document = await self.discover(server_url, resource)
        except WebFingerError as e:
            logger.warning(f"WebFinger discovery failed, using {server_url} as issuer: {e}")
            return server_url

        link = self.find_link_by_rel(document, OIDC_ISSUER_REL)
        if link is None or not link.href:
            logger.warning(f"No OIDC issuer link in WebFinger response, using {server_url} as issuer")
            return server_url

        logger.info(f"Discovered OIDC issuer {link.href} for {server_url}")
        return link.href
