# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.

"""
Parsing of the authorization redirect (callback) URL.
"""

import hmac
from urllib.parse import parse_qs, urlsplit

from opencloud_auth.exceptions import AuthorizationCallbackError


def extract_authorization_code(callback_url: str, expected_state: str | None = None) -> str:
    """
    Extracts the authorization code from the redirect URL's query string.

    Args:
        callback_url: The full redirect URL (e.g. oc://android.opencloud.eu?code=abc&state=xyz).
        expected_state: The state sent in the authorization request. When given,
            the callback must carry the same value.

    Returns:
        str: The authorization code.

    Raises:
        AuthorizationCallbackError: If the IdP reported an error, the code is missing,
            or the state does not match.
    """
    try:
        query = urlsplit(callback_url).query
    except ValueError as e:
        raise AuthorizationCallbackError(f"Malformed callback URL: {e}") from e

    params = parse_qs(query)

    error = params.get("error", [None])[0]
    if error:
        description = params.get("error_description", [None])[0]
        detail = f": {description}" if description else ""
        raise AuthorizationCallbackError(f"Authorization failed with '{error}'{detail}")

    if expected_state is not None:
        state = params.get("state", [""])[0]
        if not hmac.compare_digest(state.encode(), expected_state.encode()):
            raise AuthorizationCallbackError("State mismatch in authorization callback.")

    code = params.get("code", [""])[0]
    if not code:
        raise AuthorizationCallbackError("No authorization code found in the callback URL.")

    return code
