# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.

"""
AuthSessionManager component for orchestrating discovery, login and logout.
"""

from typing import Any

import httpx
from opentelemetry import trace
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor
from pydantic import SecretStr

from opencloud_auth.callback import extract_authorization_code
from opencloud_auth.config import OpenCloudAuthConfig
from opencloud_auth.exceptions import DiscoveryError, NotInitializedError, OpenCloudAuthError
from opencloud_auth.locator import normalize_server_url, webfinger_resource
from opencloud_auth.logout import EndSessionClient, build_end_session_url
from opencloud_auth.models import (
    AuthSession,
    InitializeResult,
    LogoutResult,
    OidcProviderConfig,
    ServerReference,
    TokenResponse,
)
from opencloud_auth.oidc_provider import OIDCProvider, generate_state
from opencloud_auth.session import MemorySessionStore, SessionStore
from opencloud_auth.token_exchange import TokenExchangeClient
from opencloud_auth.transport import HttpTransport
from opencloud_auth.utils.logger import logger

tracer = trace.get_tracer(__name__)


class AuthSessionManager:
    """
    Owns the state of one authentication attempt and the resulting session.

    Initialization attempts must be serialized by the caller: a second `initialize`
    racing a first overwrites the provider configuration.
    """

    def __init__(
        self,
        config: OpenCloudAuthConfig,
        client: httpx.AsyncClient | None = None,
        session_store: SessionStore | None = None,
    ) -> None:
        """
        Initialize the AuthSessionManager.

        Args:
            config: The configuration object.
            client: External async client (optional). If not provided, one is created
                with the configured timeout and closed on exit.
            session_store: Receives the credentials of the authenticated session.
                Defaults to a MemorySessionStore.
        """
        self.config = config
        self._internal_client = client is None

        if client:
            self._client = client
        else:
            self._client = httpx.AsyncClient(timeout=self.config.http_timeout)
            # Instrument the client for distributed tracing
            HTTPXClientInstrumentor().instrument_client(self._client)

        self.session_store: SessionStore = session_store if session_store is not None else MemorySessionStore()

        self.transport = HttpTransport(self._client, self.config.http_logging, self.config.user_agent)
        self.oidc_provider = OIDCProvider(self.transport)
        self.token_client = TokenExchangeClient(self.transport, include_request_id=self.config.development_mode)
        self.end_session_client = EndSessionClient(self.transport, timeout=self.config.logout_timeout)

        self._server: ServerReference | None = None
        self._provider_config: OidcProviderConfig | None = None
        self._pending_state: str | None = None
        self._session: AuthSession | None = None

    async def __aenter__(self) -> "AuthSessionManager":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        if self._internal_client:
            await self._client.aclose()

    @property
    def server(self) -> ServerReference | None:
        return self._server

    @property
    def provider_config(self) -> OidcProviderConfig | None:
        return self._provider_config

    @property
    def session(self) -> AuthSession | None:
        return self._session

    def is_authenticated(self) -> bool:
        """Returns True when a token exchange succeeded and no logout happened since."""
        return self._session is not None and bool(self._session.access_token.get_secret_value())

    async def initialize(self, server_input: str) -> InitializeResult:
        """
        Discovers the OIDC configuration for a user-entered server.

        Either both the server reference and the configuration are stored, or neither is.

        Args:
            server_input: The server address as typed by the user.

        Returns:
            InitializeResult: success, and whether the server uses plain http://.
        """
        with tracer.start_as_current_span("opencloud_auth.initialize") as span:
            server = normalize_server_url(server_input)
            span.set_attribute("opencloud_auth.server_url", server.url)
            if server.is_insecure:
                logger.warning(f"Server {server.url} is reached over an insecure connection")

            try:
                resource = webfinger_resource(server.url, self.config.webfinger_account)
                provider_config = await self.oidc_provider.discover_configuration(server.url, resource)
            except OpenCloudAuthError as e:
                logger.error(f"Failed to discover configuration for {server.url}: {e}")
                span.record_exception(e)
                self._server = None
                self._provider_config = None
                return InitializeResult(success=False, insecure_warning=False)

            self._server = server
            self._provider_config = provider_config
            return InitializeResult(success=True, insecure_warning=server.is_insecure)

    def _require_initialized(self) -> tuple[ServerReference, OidcProviderConfig]:
        if self._server is None or self._provider_config is None:
            raise NotInitializedError("Auth session not initialized. Call initialize() first.")
        return self._server, self._provider_config

    def get_authorization_url(self, scopes: str | None = None) -> str:
        """
        Builds the URL to send the user to for login, with a fresh state token.

        Args:
            scopes: Scopes to request. Defaults to the configured default scopes.

        Returns:
            str: The authorization URL.

        Raises:
            NotInitializedError: If `initialize` has not succeeded.
            DiscoveryError: If the provider configuration has no authorization_endpoint.
        """
        _, provider_config = self._require_initialized()
        if not provider_config.authorization_endpoint:
            raise DiscoveryError("Provider configuration has no authorization_endpoint")

        self._pending_state = generate_state()
        return self.oidc_provider.build_authorization_url(
            provider_config,
            self.config.client_id,
            self.config.redirect_uri,
            scopes or self.config.default_scopes,
            self._pending_state,
        )

    async def exchange_code_for_tokens(self, code: str) -> TokenResponse:
        """
        Exchanges an authorization code and commits the resulting session.

        Args:
            code: The authorization code from the redirect.

        Returns:
            TokenResponse: The issued tokens.

        Raises:
            NotInitializedError: If `initialize` has not succeeded.
            DiscoveryError: If the provider configuration has no token_endpoint.
            TokenExchangeError: If the token endpoint rejects the code.
            httpx.HTTPError: If the request fails at the transport level.
        """
        server, provider_config = self._require_initialized()
        if not provider_config.token_endpoint:
            raise DiscoveryError("Provider configuration has no token_endpoint")

        with tracer.start_as_current_span("opencloud_auth.exchange_code"):
            tokens = await self.token_client.exchange_code(
                provider_config.token_endpoint,
                code,
                self.config.client_id,
                self.config.redirect_uri,
            )

        session = AuthSession(
            server_url=server.url,
            access_token=SecretStr(tokens.access_token),
            id_token=SecretStr(tokens.id_token) if tokens.id_token else None,
            client_id=self.config.client_id,
            redirect_uri=self.config.redirect_uri,
        )
        self.session_store.set_credentials(tokens.access_token, server.url)
        self._session = session
        self._pending_state = None
        logger.info(f"Authenticated against {server.url}")
        return tokens

    async def handle_callback(self, callback_url: str) -> TokenResponse:
        """
        Completes login from the authorization redirect URL.

        The state in the URL must match the one issued by `get_authorization_url`.

        Raises:
            AuthorizationCallbackError: If the callback carries an error, no code, or a wrong state.
            NotInitializedError: If `initialize` has not succeeded.
            TokenExchangeError: If the token endpoint rejects the code.
        """
        self._require_initialized()
        code = extract_authorization_code(callback_url, expected_state=self._pending_state)
        return await self.exchange_code_for_tokens(code)

    async def logout(self, initiate_idp_logout: bool = True) -> LogoutResult:
        """
        Ends the session locally and, when possible, at the Identity Provider.

        Local state is cleared before any network call, so logout succeeds locally even
        if the IdP cannot be reached.

        Args:
            initiate_idp_logout: Also call the IdP end-session endpoint.

        Returns:
            LogoutResult: A redirect URL the caller may open, and the IdP status (0 without a response).
        """
        provider_config = self._provider_config
        id_token = self._session.id_token.get_secret_value() if self._session and self._session.id_token else None
        client_id = self._session.client_id if self._session else self.config.client_id

        self._server = None
        self._provider_config = None
        self._pending_state = None
        self._session = None
        self.session_store.clear()
        logger.info("Local session cleared")

        end_session_endpoint = provider_config.end_session_endpoint if provider_config else None
        if not initiate_idp_logout or not end_session_endpoint:
            return LogoutResult(redirect_url=None, status=0)

        logout_url = build_end_session_url(
            end_session_endpoint,
            client_id,
            id_token_hint=id_token,
            post_logout_redirect_uri=self.config.post_logout_redirect_uri,
        )
        if logout_url is None:
            return LogoutResult(redirect_url=None, status=0)

        with tracer.start_as_current_span("opencloud_auth.logout"):
            return await self.end_session_client.end_session(logout_url)
