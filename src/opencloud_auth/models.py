# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.

"""
Data models for the opencloud-auth package.
"""

from typing import Any
from urllib.parse import urlsplit

from pydantic import BaseModel, ConfigDict, Field, SecretStr, ValidationError, field_validator


class ServerReference(BaseModel):
    """
    A user-entered server address after normalization.

    Attributes:
        raw_input (str): The value exactly as the user typed it.
        url (str): The normalized server URL (scheme added, trailing slash removed).
        is_insecure (bool): True when the server is reached over plain http://.
    """

    model_config = ConfigDict(frozen=True)

    raw_input: str
    url: str
    is_insecure: bool = False

    @property
    def hostname(self) -> str:
        return urlsplit(self.url).hostname or ""


class WebFingerLink(BaseModel):
    """A single link entry of a WebFinger JRD document."""

    model_config = ConfigDict(frozen=True, extra="allow")

    rel: str
    href: str | None = None
    type: str | None = None
    titles: dict[str, Any] | None = None
    properties: dict[str, Any] | None = None


class WebFingerResponse(BaseModel):
    """
    WebFinger JSON Resource Descriptor (RFC 7033).
    """

    model_config = ConfigDict(frozen=True, extra="allow")

    subject: str | None = None
    aliases: list[Any] = Field(default_factory=list)
    properties: dict[str, Any] = Field(default_factory=dict)
    links: list[WebFingerLink] = Field(default_factory=list)

    @field_validator("subject", mode="before")
    @classmethod
    def ignore_non_string_subject(cls, v: Any) -> str | None:
        return v if isinstance(v, str) else None

    @field_validator("aliases", mode="before")
    @classmethod
    def ignore_non_list_aliases(cls, v: Any) -> list[Any]:
        return v if isinstance(v, list) else []

    @field_validator("properties", mode="before")
    @classmethod
    def ignore_non_object_properties(cls, v: Any) -> dict[str, Any]:
        return v if isinstance(v, dict) else {}

    @field_validator("links", mode="before")
    @classmethod
    def drop_invalid_links(cls, v: Any) -> list[WebFingerLink]:
        """Drops entries that are not valid links, keeping the rest in order."""
        if not isinstance(v, list):
            return []
        links = []
        for entry in v:
            try:
                links.append(WebFingerLink.model_validate(entry))
            except ValidationError:
                continue
        return links


class OidcProviderConfig(BaseModel):
    """
    OIDC Configuration from .well-known/openid-configuration.

    Every field is optional and a value of the wrong type reads as absent;
    consumers check for the endpoints they need.
    """

    model_config = ConfigDict(frozen=True, extra="allow")

    issuer: str | None = Field(default=None, description="The OIDC issuer URL.")
    authorization_endpoint: str | None = Field(default=None, description="The authorization endpoint URL.")
    token_endpoint: str | None = Field(default=None, description="The token endpoint URL.")
    end_session_endpoint: str | None = Field(default=None, description="The RP-initiated logout endpoint URL.")
    userinfo_endpoint: str | None = Field(default=None, description="The userinfo endpoint URL.")
    jwks_uri: str | None = Field(default=None, description="The URL to the JWKS.")
    response_types_supported: list[str] | None = None
    grant_types_supported: list[str] | None = None
    scopes_supported: list[str] | None = None

    @field_validator(
        "issuer",
        "authorization_endpoint",
        "token_endpoint",
        "end_session_endpoint",
        "userinfo_endpoint",
        "jwks_uri",
        mode="before",
    )
    @classmethod
    def ignore_non_string(cls, v: Any) -> str | None:
        return v if isinstance(v, str) else None

    @field_validator("response_types_supported", "grant_types_supported", "scopes_supported", mode="before")
    @classmethod
    def ignore_non_string_list(cls, v: Any) -> list[str] | None:
        if isinstance(v, list) and all(isinstance(item, str) for item in v):
            return v
        return None


class TokenResponse(BaseModel):
    """
    Response from the token endpoint.

    Attributes:
        access_token (str): The access token issued by the authorization server.
        id_token (str | None): The ID token, kept for the logout hint.
        refresh_token (str | None): The refresh token, if issued.
        token_type (str): The type of the token (e.g. "Bearer").
        expires_in (int | None): The lifetime in seconds of the access token.
        scope (str | None): The granted scopes.
    """

    model_config = ConfigDict(extra="allow")

    access_token: str = Field(..., min_length=1)
    id_token: str | None = None
    refresh_token: str | None = None
    token_type: str = "Bearer"
    expires_in: int | None = None
    scope: str | None = None


class AuthSession(BaseModel):
    """
    The authenticated session created by a successful code exchange.

    This model is frozen (immutable); tokens are held as SecretStr so they never appear in logs.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    server_url: str
    access_token: SecretStr
    id_token: SecretStr | None = None
    client_id: str
    redirect_uri: str


class InitializeResult(BaseModel):
    """Outcome of `AuthSessionManager.initialize`."""

    model_config = ConfigDict(frozen=True)

    success: bool
    insecure_warning: bool = False


class LogoutResult(BaseModel):
    """
    Outcome of a logout.

    Attributes:
        redirect_url (str | None): A URL the caller may open in a browser, if any.
        status (int): HTTP status of the IdP response, 0 when no response was obtained.
    """

    model_config = ConfigDict(frozen=True)

    redirect_url: str | None = None
    status: int = 0
