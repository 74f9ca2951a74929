import asyncio
import contextlib
import os
import sys

# Add src to path for running directly
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "../src")))

from coreason_rp import CoreasonRPError, RelyingPartyAsync, RelyingPartyConfig


async def main() -> None:
    """
    Walks through the Authorization Code flow against a Provider.

    The redirect step happens in the user's browser; here the callback URL is read
    from stdin, as it would be received by a web handler.
    """
    config = RelyingPartyConfig(
        client_id="your-client-id",
        client_secret="your-client-secret",
        redirect_uri="https://your-app.example.com/callback",
        authorization_endpoint="https://auth.example.com/authorize",
        token_endpoint="https://auth.example.com/token",
        userinfo_endpoint="https://auth.example.com/userinfo",
        http_timeout=10.0,
    )

    async with RelyingPartyAsync(config) as rp:
        print(">>> Send the user to:")
        print(rp.build_authorization_url())
        # A web application would persist rp.state and rp.nonce in the session here
        # and rebuild the engine from them when the callback arrives.

        callback_url = input(">>> Paste the callback URL: ").strip()
        result = await rp.handle_callback(callback_url)
        if not result.is_success:
            print(f">>> Authorization failed: {result.error} {result.error_description or ''}")
            return

        tokens = result.raise_for_error()
        if tokens.id_token:
            # Structural check only: the signature is NOT verified.
            print(f">>> ID token claims valid: {rp.validate_id_token(tokens.id_token)}")

        try:
            user_info = await rp.get_user_info(tokens.access_token)
            print(f">>> Signed in with claims: {sorted(user_info.claims())}")
        except CoreasonRPError as e:
            print(f">>> Userinfo unavailable: {e}")


if __name__ == "__main__":
    with contextlib.suppress(KeyboardInterrupt):
        asyncio.run(main())
