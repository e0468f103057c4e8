# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.

"""
HTTP transport shared by every network operation: correlation IDs, standard headers,
request/response logging and manual redirect handling.
"""

import json
import shlex
import time
import uuid
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any
from urllib.parse import urlencode

import httpx

from opencloud_auth.config import HttpLoggingConfig
from opencloud_auth.utils.logger import logger

if TYPE_CHECKING:
    from loguru import Logger

REQUEST_ID_HEADER = "X-Request-ID"
STANDARD_ACCEPT = "application/json, text/plain, */*"
JSON_CONTENT_TYPE = "application/json"
FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"


def generate_request_id() -> str:
    """Returns a fresh UUID v4 used to correlate a request across logs."""
    return str(uuid.uuid4())


def create_standard_headers(
    request_id: str,
    user_agent: str | None = None,
    token: str | None = None,
    content_type: str | None = JSON_CONTENT_TYPE,
) -> dict[str, str]:
    """
    Builds the headers every request carries.

    Args:
        request_id: The correlation ID to send as X-Request-ID.
        user_agent: The client identification header value.
        token: Bearer token; adds an Authorization header when given.
        content_type: Content-Type to declare, or None to omit it.

    Returns:
        dict[str, str]: The header mapping.
    """
    headers = {
        "Accept": STANDARD_ACCEPT,
        REQUEST_ID_HEADER: request_id,
    }
    if content_type:
        headers["Content-Type"] = content_type
    if token:
        headers["Authorization"] = f"Bearer {token}"
    if user_agent:
        headers["User-Agent"] = user_agent
    return headers


def redact_headers(headers: Mapping[str, str]) -> dict[str, str]:
    """Returns a copy of the headers with the Authorization credential replaced."""
    loggable = dict(headers)
    for key, value in headers.items():
        if key.lower() == "authorization":
            auth_type = value.split(" ")[0] or "Bearer"
            loggable[key] = f"{auth_type} [REDACTED]"
    return loggable


def encode_body(body: Any, content_type: str | None) -> str | None:
    """
    Serializes a request body according to its content type.
    Mappings become JSON or form data; anything else is sent as its string form.
    """
    if not body:
        return None
    if content_type == JSON_CONTENT_TYPE:
        return json.dumps(body)
    if content_type == FORM_CONTENT_TYPE and isinstance(body, Mapping):
        return urlencode({key: str(value) for key, value in body.items()})
    return str(body)


def generate_curl_command(
    url: str,
    method: str,
    headers: Mapping[str, str],
    body: str | None = None,
    redact_auth: bool = True,
) -> str:
    """
    Renders an equivalent curl command for debugging a request.
    The bearer token is replaced by a placeholder unless `redact_auth` is False.
    """
    parts = ["curl", "-v", shlex.quote(url)]
    for key, value in headers.items():
        if redact_auth and key.lower() == "authorization":
            value = "Bearer YOUR_TOKEN_HERE"
        parts.extend(["-H", shlex.quote(f"{key}: {value}")])
    if method.upper() != "GET":
        parts.extend(["-X", method.upper()])
    if body:
        parts.extend(["-d", shlex.quote(body)])
    return " ".join(parts)


class HttpTransport:
    """
    Performs requests through an httpx.AsyncClient with standardized logging.

    Redirects are never followed, so callers always see the raw status and Location header.

    Attributes:
        client (httpx.AsyncClient): The underlying HTTP client.
        logging_config (HttpLoggingConfig): What to log about requests and responses.
        user_agent (str | None): The User-Agent sent with every request.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        logging_config: HttpLoggingConfig | None = None,
        user_agent: str | None = None,
    ) -> None:
        self.client = client
        self.logging_config = logging_config or HttpLoggingConfig()
        self.user_agent = user_agent

    async def perform_request(
        self,
        url: str,
        method: str = "GET",
        *,
        prefix: str,
        headers: Mapping[str, str] | None = None,
        token: str | None = None,
        body: Any = None,
        content_type: str | None = JSON_CONTENT_TYPE,
    ) -> httpx.Response:
        """
        Sends a request and logs both sides of the exchange.

        Args:
            url: Absolute URL to request.
            method: HTTP method.
            prefix: Log prefix identifying the caller (e.g. "WebFinger", "OIDC").
            headers: Extra headers; they override the standard ones.
            token: Bearer token for the Authorization header.
            body: Request body, serialized according to `content_type`.
            content_type: Content-Type of the body, None to send no Content-Type.

        Returns:
            httpx.Response: The raw response, whatever its status.

        Raises:
            httpx.HTTPError: If the request fails at the transport level.
        """
        request_id = generate_request_id()
        log = logger.bind(request_id=request_id)
        merged_headers = {
            **create_standard_headers(request_id, self.user_agent, token, content_type),
            **(headers or {}),
        }
        content = encode_body(body, content_type)

        self._log_request(log, prefix, url, method, merged_headers, content)

        if self.logging_config.generate_curl_commands:
            curl_command = generate_curl_command(url, method, merged_headers, content)
            log.debug(f"[{prefix}] Equivalent curl command for debugging:\n{curl_command}")

        start_time = time.perf_counter()
        try:
            response = await self.client.request(
                method,
                url,
                headers=merged_headers,
                content=content,
                follow_redirects=False,
            )
        except httpx.HTTPError as e:
            log.error(f"[{prefix}] Request failed: {type(e).__name__}: {e}")
            raise

        duration_ms = int((time.perf_counter() - start_time) * 1000)
        self._log_response(log, prefix, request_id, response, duration_ms)
        return response

    def _log_request(
        self,
        log: "Logger",
        prefix: str,
        url: str,
        method: str,
        headers: Mapping[str, str],
        body: str | None,
    ) -> None:
        log.info(f"[{prefix}] {method} {url}")
        log.debug(f"[{prefix}] Request headers: {json.dumps(redact_headers(headers))}")
        if body:
            max_length = self.logging_config.max_request_body_log_length
            log.debug(f"[{prefix}] Request body (first {max_length} chars): {body[:max_length]}")

    def _log_response(
        self,
        log: "Logger",
        prefix: str,
        request_id: str,
        response: httpx.Response,
        duration_ms: int,
    ) -> None:
        log.info(f"[{prefix}] Response {response.status_code} {response.reason_phrase} in {duration_ms}ms")

        # Diagnostic only, a mismatch never fails the request
        response_request_id = response.headers.get("x-request-id")
        if response_request_id:
            if response_request_id == request_id:
                log.debug(f"[{prefix}] Server returned matching X-Request-ID")
            else:
                log.debug(f"[{prefix}] Server returned different X-Request-ID: {response_request_id}")

        if not self.logging_config.enable_debug_logging:
            return

        log.debug(f"[{prefix}] Response headers: {json.dumps(dict(response.headers))}")

        content_type = response.headers.get("content-type", "")
        max_length = self.logging_config.max_response_body_log_length
        if "application/json" in content_type or content_type.startswith("text/"):
            text = response.text
            log.debug(f"[{prefix}] Response body (first {max_length} chars): {text[:max_length]}")
            if len(text) > max_length:
                log.debug(f"[{prefix}] Response body truncated ({len(text)} chars total)")
        else:
            log.debug(f"[{prefix}] Response body not logged (content-type: {content_type})")
