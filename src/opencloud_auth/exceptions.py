# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.

"""
Custom exceptions for the opencloud-auth package.
"""


class OpenCloudAuthError(Exception):
    """Base exception for all opencloud-auth errors."""


class WebFingerError(OpenCloudAuthError):
    """
    Raised when a WebFinger lookup fails.
    Always recovered by the issuer fallback; never reaches callers of `discover_issuer`.
    """

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class DiscoveryError(OpenCloudAuthError):
    """
    Raised when the OIDC configuration cannot be retrieved.

    Attributes:
        status (int | None): HTTP status of the failed response, None for transport failures.
        status_text (str | None): HTTP reason phrase of the failed response.
    """

    def __init__(self, message: str, status: int | None = None, status_text: str | None = None) -> None:
        super().__init__(message)
        self.status = status
        self.status_text = status_text


class NotInitializedError(OpenCloudAuthError):
    """Raised when an operation needs a discovered provider configuration and none is set."""


class TokenExchangeError(OpenCloudAuthError):
    """
    Raised when the token endpoint rejects an authorization code exchange.

    Attributes:
        status (int): HTTP status returned by the token endpoint.
        status_text (str): HTTP reason phrase returned by the token endpoint.
        body (str): Response body, truncated, kept for diagnostics only.
        request_id (str | None): Correlation ID sent with the request.
    """

    def __init__(
        self,
        message: str,
        status: int,
        status_text: str,
        body: str = "",
        request_id: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status = status
        self.status_text = status_text
        self.body = body
        self.request_id = request_id


class AuthorizationCallbackError(OpenCloudAuthError):
    """Raised when the authorization redirect does not carry a usable code."""


class LogoutNetworkError(OpenCloudAuthError):
    """
    Raised when the IdP end-session request fails at the transport level.
    Not fatal: the local session is already cleared when this is raised.
    """
