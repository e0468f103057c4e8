# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.

"""
OIDC Provider component for fetching the provider configuration and building authorization URLs.
"""

import secrets
from urllib.parse import urlencode

import httpx

from opencloud_auth.exceptions import DiscoveryError
from opencloud_auth.models import OidcProviderConfig
from opencloud_auth.transport import HttpTransport
from opencloud_auth.utils.logger import logger
from opencloud_auth.webfinger import WebFingerClient

WELL_KNOWN_PATH = "/.well-known/openid-configuration"
DEFAULT_SCOPES = "openid profile email"


def generate_state(nbytes: int = 16) -> str:
    """
    Generates an opaque anti-CSRF state token from a cryptographically secure source.
    """
    return secrets.token_urlsafe(nbytes)


class OIDCProvider:
    """
    Fetches the Identity Provider's configuration, locating the issuer through WebFinger.

    Attributes:
        transport (HttpTransport): The transport used for configuration requests.
        webfinger (WebFingerClient): The issuer discovery client.
    """

    def __init__(self, transport: HttpTransport, webfinger: WebFingerClient | None = None) -> None:
        """
        Initialize the OIDCProvider.

        Args:
            transport: The transport to use for requests.
            webfinger: Issuer discovery client. Defaults to one sharing `transport`.
        """
        self.transport = transport
        self.webfinger = webfinger or WebFingerClient(transport)

    async def fetch_configuration(self, issuer_url: str) -> OidcProviderConfig:
        """
        Fetches the OIDC configuration of an issuer.

        No retries are performed; the caller decides whether to try again.

        Args:
            issuer_url: The issuer URL (e.g. https://idp.example.com).

        Returns:
            OidcProviderConfig: The provider configuration.

        Raises:
            DiscoveryError: If the request fails, returns a non-2xx status, or the body is not a JSON object.
        """
        base_url = issuer_url[:-1] if issuer_url.endswith("/") else issuer_url
        config_url = f"{base_url}{WELL_KNOWN_PATH}"

        try:
            response = await self.transport.perform_request(config_url, "GET", prefix="OIDC")
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise DiscoveryError(f"Failed to fetch OIDC configuration from {config_url}: {e}") from e

        if not response.is_success:
            raise DiscoveryError(
                f"Failed to fetch OIDC configuration: {response.status_code} {response.reason_phrase}",
                status=response.status_code,
                status_text=response.reason_phrase,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise DiscoveryError(f"Invalid JSON in OIDC configuration from {config_url}: {e}") from e

        if not isinstance(data, dict):
            raise DiscoveryError(f"OIDC configuration from {config_url} is not a JSON object")

        return OidcProviderConfig.model_validate(data)

    async def discover_configuration(self, server_url: str, resource: str) -> OidcProviderConfig:
        """
        Runs issuer discovery, then fetches that issuer's configuration.

        If discovery fell back to `server_url`, the configuration is still fetched
        from it and any failure propagates.

        Args:
            server_url: The normalized server URL.
            resource: The WebFinger resource (e.g. acct:opencloud@cloud.example.com).

        Returns:
            OidcProviderConfig: The provider configuration.

        Raises:
            DiscoveryError: If the configuration cannot be fetched.
        """
        issuer_url = await self.webfinger.discover_issuer(server_url, resource)
        config = await self.fetch_configuration(issuer_url)
        logger.info(f"Loaded OIDC configuration for issuer {config.issuer or issuer_url}")
        return config

    @staticmethod
    def build_authorization_url(
        config: OidcProviderConfig,
        client_id: str,
        redirect_uri: str,
        scopes: str = DEFAULT_SCOPES,
        state: str | None = None,
    ) -> str:
        """
        Builds the authorization-code flow URL the user is sent to.

        Args:
            config: Provider configuration with an authorization_endpoint.
            client_id: The OIDC Client ID.
            redirect_uri: Where the IdP sends the code.
            scopes: Space separated scopes.
            state: Anti-CSRF state; omitted from the URL when None or empty.

        Returns:
            str: The authorization URL.
        """
        params = {
            "client_id": client_id,
            "redirect_uri": redirect_uri,
            "response_type": "code",
            "scope": scopes,
        }
        if state:
            params["state"] = state

        endpoint = config.authorization_endpoint or ""
        separator = "&" if "?" in endpoint else "?"
        return f"{endpoint}{separator}{urlencode(params)}"
