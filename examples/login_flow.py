# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.

import asyncio
import contextlib
import sys

from opencloud_auth import AuthSessionManager, OpenCloudAuthConfig


async def main(server: str) -> None:
    """
    Walks through discovery, login and logout against a real OpenCloud server.
    The authorization step needs a browser: open the printed URL, log in, then paste
    the URL the IdP redirected to.
    """
    config = OpenCloudAuthConfig(
        client_id="OpenCloudAndroid",
        redirect_uri="oc://android.opencloud.eu",
        post_logout_redirect_uri="oc://android.opencloud.eu",
        http_timeout=10.0,
    )

    async with AuthSessionManager(config) as manager:
        result = await manager.initialize(server)
        if not result.success:
            print(">>> Failed to connect: could not discover the server configuration")
            return
        if result.insecure_warning:
            print(">>> Warning: the server is reached over plain http://")

        print(f">>> Open in a browser:\n{manager.get_authorization_url()}")
        callback_url = input(">>> Paste the redirect URL: ").strip()

        await manager.handle_callback(callback_url)
        print(f">>> Authenticated: {manager.is_authenticated()}")

        logout = await manager.logout()
        if logout.redirect_url and 300 <= logout.status < 400:
            print(f">>> Server logout confirmation page: {logout.redirect_url}")
        else:
            print(f">>> Logged out (IdP status {logout.status})")


if __name__ == "__main__":
    with contextlib.suppress(KeyboardInterrupt):
        asyncio.run(main(sys.argv[1] if len(sys.argv) > 1 else "localhost:9200"))
