# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.

"""
TokenExchangeClient component for the authorization code grant (RFC 6749, section 4.1.3).
"""

from pydantic import ValidationError

from opencloud_auth.exceptions import TokenExchangeError
from opencloud_auth.models import TokenResponse
from opencloud_auth.transport import FORM_CONTENT_TYPE, REQUEST_ID_HEADER, HttpTransport
from opencloud_auth.utils.logger import logger

MAX_ERROR_BODY_LENGTH = 2000


class TokenExchangeClient:
    """
    Exchanges authorization codes for tokens at the token endpoint.

    Attributes:
        transport (HttpTransport): The transport used for token requests.
        include_request_id (bool): Append the correlation ID to error messages.
    """

    def __init__(self, transport: HttpTransport, include_request_id: bool = False) -> None:
        self.transport = transport
        self.include_request_id = include_request_id

    async def exchange_code(
        self,
        token_endpoint: str,
        code: str,
        client_id: str,
        redirect_uri: str,
    ) -> TokenResponse:
        """
        Exchanges an authorization code for tokens.

        Args:
            token_endpoint: The provider's token endpoint.
            code: The authorization code from the redirect.
            client_id: The OIDC Client ID.
            redirect_uri: The redirect URI used in the authorization request.

        Returns:
            TokenResponse: The issued tokens.

        Raises:
            TokenExchangeError: If the endpoint answers with a non-2xx status or an unusable body.
            httpx.HTTPError: If the request fails at the transport level.
        """
        data = {
            "grant_type": "authorization_code",
            "code": code,
            "client_id": client_id,
            "redirect_uri": redirect_uri,
        }

        response = await self.transport.perform_request(
            token_endpoint,
            "POST",
            prefix="Token",
            body=data,
            content_type=FORM_CONTENT_TYPE,
        )
        request_id = response.request.headers.get(REQUEST_ID_HEADER)

        if not response.is_success:
            body = response.text[:MAX_ERROR_BODY_LENGTH]
            logger.error(f"Token exchange failed with status {response.status_code}: {body}")
            raise TokenExchangeError(
                self._message(f"Token exchange failed: {response.status_code} {response.reason_phrase}", request_id),
                status=response.status_code,
                status_text=response.reason_phrase,
                body=body,
                request_id=request_id,
            )

        try:
            tokens = TokenResponse.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            logger.error(f"Invalid token response: {e}")
            raise TokenExchangeError(
                self._message("Token exchange returned an invalid token response", request_id),
                status=response.status_code,
                status_text=response.reason_phrase,
                body=response.text[:MAX_ERROR_BODY_LENGTH],
                request_id=request_id,
            ) from e

        logger.info("Token exchange succeeded.")
        return tokens

    def _message(self, message: str, request_id: str | None) -> str:
        if self.include_request_id and request_id:
            return f"{message} (request ID: {request_id})"
        return message
