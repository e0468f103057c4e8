# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.

"""
Normalization of user-entered server addresses.
"""

from urllib.parse import urlsplit

from opencloud_auth.exceptions import DiscoveryError
from opencloud_auth.models import ServerReference


def normalize_server_url(value: str) -> ServerReference:
    """
    Turns user input into a well-formed server URL.

    Plain http:// input is kept but flagged as insecure, input without a scheme
    gets https://, and one trailing slash is removed. Blank input, or a bare scheme
    such as "https://", yields an empty url. Never fails.

    Args:
        value: The server address as typed by the user (e.g. "cloud.example.com").

    Returns:
        ServerReference: The normalized URL and its insecure flag.
    """
    url = value.strip()
    is_insecure = False
    lowered = url.lower()

    if lowered.startswith("http://"):
        is_insecure = True
    elif not lowered.startswith("https://"):
        url = f"https://{url}"

    if not url.split("://", 1)[1].strip("/"):
        return ServerReference(raw_input=value, url="", is_insecure=False)

    if url.endswith("/"):
        url = url[:-1]

    return ServerReference(raw_input=value, url=url, is_insecure=is_insecure)


def webfinger_resource(server_url: str, account: str = "opencloud") -> str:
    """
    Builds the WebFinger resource identifier for a server, e.g. acct:opencloud@cloud.example.com.

    Raises:
        DiscoveryError: If the URL has no hostname.
    """
    try:
        hostname = urlsplit(server_url).hostname
    except ValueError as e:
        raise DiscoveryError(f"Invalid server URL '{server_url}': {e}") from e

    if not hostname:
        raise DiscoveryError(f"Server URL '{server_url}' has no hostname")

    return f"acct:{account}@{hostname}"
