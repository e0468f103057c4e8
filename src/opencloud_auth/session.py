# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.

"""
Session store contract and an in-memory implementation.
"""

from typing import Protocol

from pydantic import SecretStr

from opencloud_auth.utils.logger import logger


class SessionStore(Protocol):
    """Protocol for the store that receives the credentials of an authenticated session."""

    def set_credentials(self, access_token: str, server_url: str) -> None:
        """Replaces any stored credentials."""
        ...

    def clear(self) -> None:
        """Removes the stored credentials."""
        ...


class MemorySessionStore:
    """
    In-memory implementation of SessionStore.
    Nothing is persisted; credentials live as long as the instance.
    """

    def __init__(self) -> None:
        self._server_url: str | None = None
        self._token: SecretStr | None = None

    def set_credentials(self, access_token: str, server_url: str) -> None:
        self._server_url = server_url
        self._token = SecretStr(access_token)
        logger.info(f"Credentials set for {server_url}")

    def clear(self) -> None:
        self._server_url = None
        self._token = None
        logger.info("Credentials cleared")

    @property
    def server_url(self) -> str | None:
        return self._server_url

    @property
    def token(self) -> str | None:
        return self._token.get_secret_value() if self._token else None

    def is_authenticated(self) -> bool:
        return bool(self._server_url) and bool(self.token)
