# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.

"""
Server discovery and OpenID Connect login/logout for OpenCloud clients.
"""

__version__ = "0.1.0"

from .callback import extract_authorization_code
from .config import HttpLoggingConfig, OpenCloudAuthConfig
from .exceptions import (
    AuthorizationCallbackError,
    DiscoveryError,
    LogoutNetworkError,
    NotInitializedError,
    OpenCloudAuthError,
    TokenExchangeError,
)
from .locator import normalize_server_url
from .manager import AuthSessionManager
from .models import AuthSession, InitializeResult, LogoutResult, OidcProviderConfig, ServerReference, TokenResponse
from .oidc_provider import OIDCProvider
from .session import MemorySessionStore, SessionStore
from .webfinger import WebFingerClient

__all__ = [
    "AuthSession",
    "AuthSessionManager",
    "AuthorizationCallbackError",
    "DiscoveryError",
    "HttpLoggingConfig",
    "InitializeResult",
    "LogoutNetworkError",
    "LogoutResult",
    "MemorySessionStore",
    "NotInitializedError",
    "OIDCProvider",
    "OidcProviderConfig",
    "OpenCloudAuthConfig",
    "OpenCloudAuthError",
    "ServerReference",
    "SessionStore",
    "TokenExchangeError",
    "TokenResponse",
    "WebFingerClient",
    "extract_authorization_code",
    "normalize_server_url",
]
