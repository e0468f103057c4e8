# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.

"""
EndSessionClient component for RP-initiated logout at the Identity Provider.
"""

import anyio
import httpx

from opencloud_auth.exceptions import LogoutNetworkError
from opencloud_auth.models import LogoutResult
from opencloud_auth.transport import HttpTransport
from opencloud_auth.utils.logger import logger

LOGOUT_ACCEPT = "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"


def build_end_session_url(
    endpoint: str,
    client_id: str,
    id_token_hint: str | None = None,
    post_logout_redirect_uri: str | None = None,
) -> str | None:
    """
    Builds the end-session URL with client_id and the optional hint and redirect.

    Returns:
        str | None: The URL, or None if `endpoint` is not a valid absolute URL.
    """
    params = {"client_id": client_id}
    if id_token_hint:
        params["id_token_hint"] = id_token_hint
    if post_logout_redirect_uri:
        params["post_logout_redirect_uri"] = post_logout_redirect_uri

    try:
        url = httpx.URL(endpoint)
    except (httpx.InvalidURL, TypeError) as e:
        logger.warning(f"Cannot build logout URL from end_session_endpoint {endpoint!r}: {e}")
        return None

    if not url.is_absolute_url:
        logger.warning(f"end_session_endpoint {endpoint!r} is not an absolute URL")
        return None

    return str(url.copy_merge_params(params))


class EndSessionClient:
    """
    Calls the IdP end-session endpoint and interprets its answer.

    Attributes:
        transport (HttpTransport): The transport used for the logout request.
        timeout (float | None): Upper bound in seconds for the request, None for no bound.
    """

    def __init__(self, transport: HttpTransport, timeout: float | None = None) -> None:
        self.transport = transport
        self.timeout = timeout

    async def end_session(self, logout_url: str) -> LogoutResult:
        """
        Terminates the IdP session.

        A transport failure or timeout is not raised: the result then carries
        `logout_url` with status 0 so the caller can retry in an external browser.

        Args:
            logout_url: The URL built by `build_end_session_url`.

        Returns:
            LogoutResult: The redirect to offer (if any) and the HTTP status.
        """
        try:
            response = await self._request(logout_url)
        except LogoutNetworkError as e:
            logger.warning(f"IdP logout failed, returning logout URL for browser fallback: {e}")
            return LogoutResult(redirect_url=logout_url, status=0)

        return self.interpret_response(response)

    async def _request(self, logout_url: str) -> httpx.Response:
        """
        Raises:
            LogoutNetworkError: If the request fails or exceeds the timeout.
        """
        try:
            with anyio.fail_after(self.timeout):
                return await self.transport.perform_request(
                    logout_url,
                    "GET",
                    prefix="Logout",
                    headers={"Accept": LOGOUT_ACCEPT},
                    content_type=None,
                )
        except TimeoutError as e:
            raise LogoutNetworkError(f"IdP logout timed out after {self.timeout}s") from e
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise LogoutNetworkError(f"IdP logout request failed: {e}") from e

    @staticmethod
    def interpret_response(response: httpx.Response) -> LogoutResult:
        """
        Maps the IdP response to a LogoutResult.

        3xx responses yield their Location so the caller may show the confirmation page;
        every other status yields no redirect.
        """
        status = response.status_code

        if 300 <= status < 400:
            location = response.headers.get("location")
            if not location:
                logger.warning(f"IdP logout returned {status} without a Location header")
            else:
                logger.info(f"IdP logout redirected ({status}) to {location}")
            return LogoutResult(redirect_url=location or None, status=status)

        if 200 <= status < 300:
            logger.info(f"IdP logout completed with status {status}")
        else:
            logger.warning(f"IdP logout returned error status {status}")
        return LogoutResult(redirect_url=None, status=status)
