# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.

"""
Configuration for the opencloud-auth package.
"""

import platform as host_platform

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class HttpLoggingConfig(BaseModel):
    """
    Request/response logging settings for the HTTP transport.

    Attributes:
        enable_debug_logging (bool): Log response headers and bodies.
        generate_curl_commands (bool): Log an equivalent curl command for every request.
        max_request_body_log_length (int): Characters of request bodies to log.
        max_response_body_log_length (int): Characters of response bodies to log.
    """

    enable_debug_logging: bool = False
    generate_curl_commands: bool = False
    max_request_body_log_length: int = Field(default=500, ge=0)
    max_response_body_log_length: int = Field(default=1000, ge=0)


class OpenCloudAuthConfig(BaseSettings):
    """
    Configuration settings for opencloud-auth.

    Attributes:
        client_id (str): The OIDC Client ID registered for this app.
        redirect_uri (str): The redirect URI the IdP sends the authorization code to.
        post_logout_redirect_uri (str | None): Where the IdP returns the user after logout.
        default_scopes (str): Space separated scopes requested at login.
        webfinger_account (str): Account name used in the WebFinger `acct:` resource.
        http_timeout (float): Timeout in seconds for discovery and token requests.
        logout_timeout (float): Upper bound in seconds for the IdP end-session call.
        user_agent (str | None): User-Agent header. Defaults to "{app_name}/{app_version} ({platform})".
        development_mode (bool): Expose request correlation IDs in error messages.
    """

    model_config = SettingsConfigDict(
        env_prefix="OPENCLOUD_AUTH_",
        env_nested_delimiter="__",
        case_sensitive=False,
    )

    client_id: str = Field(..., min_length=1)
    redirect_uri: str
    post_logout_redirect_uri: str | None = None
    default_scopes: str = "openid profile email"
    webfinger_account: str = "opencloud"
    http_timeout: float = Field(default=30.0, gt=0, description="Timeout in seconds for all IdP network operations.")
    logout_timeout: float = Field(default=5.0, gt=0)
    app_name: str = "OpenCloudMobile"
    app_version: str = "1.0.0"
    platform: str = Field(default_factory=lambda: host_platform.system().lower() or "unknown")
    user_agent: str | None = None
    development_mode: bool = False
    http_logging: HttpLoggingConfig = Field(default_factory=HttpLoggingConfig)

    @field_validator("redirect_uri", "post_logout_redirect_uri")
    @classmethod
    def validate_uri(cls, v: str | None) -> str | None:
        """
        Ensures redirect URIs are absolute (custom app schemes such as oc:// are allowed).
        """
        if v is not None and "://" not in v:
            raise ValueError(f"Redirect URI must be absolute, got '{v}'")
        return v

    @field_validator("default_scopes")
    @classmethod
    def normalize_scopes(cls, v: str) -> str:
        """
        Collapses whitespace between scopes.

        Raises:
            ValueError: If no scope is left.
        """
        scopes = v.split()
        if not scopes:
            raise ValueError("At least one scope must be configured.")
        return " ".join(scopes)

    @model_validator(mode="after")
    def set_default_user_agent(self) -> "OpenCloudAuthConfig":
        """
        Sets default User-Agent if not provided.
        """
        if self.user_agent is None:
            self.user_agent = f"{self.app_name}/{self.app_version} ({self.platform})"
        return self
