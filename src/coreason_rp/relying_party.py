# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_rp

"""
RelyingParty component orchestrating the OpenID Connect Authorization Code flow.
"""

from collections.abc import Awaitable, Callable, Mapping
from contextlib import AbstractContextManager
from typing import Any, TypeVar

import anyio
import httpx
from anyio.from_thread import BlockingPortal, start_blocking_portal
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor

from coreason_rp.authorization import AuthorizationRequestBuilder
from coreason_rp.callback import CallbackValidator
from coreason_rp.config import RelyingPartyConfig
from coreason_rp.flow_secrets import generate_flow_secret
from coreason_rp.id_token import IdTokenValidator
from coreason_rp.models import CallbackResult, FlowSecret, IdTokenClaims, TokenResponse, UserInfo
from coreason_rp.token_client import TokenClient
from coreason_rp.transport import create_http_client
from coreason_rp.userinfo import UserInfoClient
from coreason_rp.utils.logger import logger

T = TypeVar("T")


def _coerce_config(config: RelyingPartyConfig | Mapping[str, Any]) -> RelyingPartyConfig:
    if isinstance(config, RelyingPartyConfig):
        return config
    return RelyingPartyConfig(**dict(config))


def _flow_secret(supplied: str | None, config: RelyingPartyConfig) -> FlowSecret:
    if supplied:
        return FlowSecret(value=supplied)
    return generate_flow_secret(allow_insecure=config.allow_insecure_randomness)


class RelyingPartyAsync:
    """
    Async implementation of the Relying Party (The Core).

    One instance serves one authorization attempt: `state` and `nonce` are fixed
    at construction. To resume a flow in another process, build a new instance
    from a configuration carrying the persisted `state` and `nonce`.
    """

    def __init__(
        self,
        config: RelyingPartyConfig | Mapping[str, Any],
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """
        Initialize the RelyingPartyAsync.

        Args:
            config: The configuration object, or a mapping of its fields.
            client: External async client (optional). If not provided, a client using
                `SafeHTTPTransport` is created and closed with this instance.

        Raises:
            ConfigurationError: If a required field is missing or no secure randomness is available.
        """
        self.config = _coerce_config(config)
        self._internal_client = client is None

        if client is not None:
            self._client = client
        else:
            self._client = create_http_client(self.config.http_timeout, self.config.unsafe_local_dev)

        HTTPXClientInstrumentor().instrument_client(self._client)

        self._state = _flow_secret(self.config.state, self.config)
        self._nonce = _flow_secret(self.config.nonce, self.config)

        self.authorization = AuthorizationRequestBuilder(self.config, self._state.value, self._nonce.value)
        self.token_client = TokenClient(self.config, self._client)
        self.callback_validator = CallbackValidator(self.token_client, self._state.value)
        self.id_token_validator = IdTokenValidator(self.config.client_id, self._nonce.value, self.config.pii_salt)
        self.userinfo_client = UserInfoClient(self.config, self._client)

    async def __aenter__(self) -> "RelyingPartyAsync":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Closes the HTTP client if this instance created it."""
        if self._internal_client:
            await self._client.aclose()

    @property
    def state(self) -> str:
        """The anti-CSRF value for this flow. Persist it to resume the flow elsewhere."""
        return self._state.value

    @property
    def nonce(self) -> str:
        """The replay-protection value for this flow. Persist it to resume the flow elsewhere."""
        return self._nonce.value

    @property
    def secrets_are_secure(self) -> bool:
        """False if state or nonce came from the non-cryptographic fallback generator."""
        return self._state.secure and self._nonce.secure

    def build_authorization_url(self) -> str:
        """
        Builds the URL to redirect the user to for authorization.

        Returns:
            str: The authorization endpoint URL with the encoded request.
        """
        return self.authorization.build_url()

    async def exchange_code(self, code: str) -> TokenResponse:
        """
        Exchanges an authorization code for tokens.

        Raises:
            TokenRequestError: On a non-success response from the token endpoint.
            TokenResponseFormatError: If the response body cannot be parsed.
        """
        return await self.token_client.exchange_code(code)

    async def get_token(self, code: str) -> TokenResponse:
        """Alias of `exchange_code`, for use outside of `handle_callback`."""
        return await self.exchange_code(code)

    async def refresh_token(self, refresh_token: str) -> TokenResponse:
        """
        Obtains new tokens with a refresh token.

        Raises:
            TokenRefreshError: On a non-success response from the token endpoint.
            TokenResponseFormatError: If the response body cannot be parsed.
        """
        return await self.token_client.refresh_token(refresh_token)

    async def handle_callback(self, redirected_url: str) -> CallbackResult:
        """
        Validates the authorization response and redeems its code. Never raises.

        Args:
            redirected_url: The URL the Provider redirected the user agent to.

        Returns:
            CallbackResult: The token response, or the error that stopped the flow.
        """
        return await self.callback_validator.handle(redirected_url)

    def validate_id_token(self, id_token: str) -> bool:
        """
        Structurally validates an ID token (exp, iss, aud, nonce). Signatures are NOT verified.
        """
        return self.id_token_validator.validate(id_token)

    def decode_id_token(self, id_token: str) -> IdTokenClaims:
        """
        Decodes an ID token's claims without validating them.

        Raises:
            InvalidIdTokenError: If the token is malformed or lacks required claims.
        """
        return self.id_token_validator.decode(id_token)

    async def get_user_info(self, access_token: str) -> UserInfo:
        """
        Fetches the user's claims from the userinfo endpoint.

        Raises:
            ConfigurationError: If no userinfo endpoint is configured.
            UserInfoRequestError: On a non-success response from the userinfo endpoint.
        """
        return await self.userinfo_client.get_user_info(access_token)


class RelyingParty:
    """
    Sync Facade for RelyingPartyAsync.

    Inside a ``with`` block, network calls run on a background event loop shared
    for the block, through one engine and one HTTP client. Outside of one, each
    network call runs on its own event loop with a one-shot engine that is closed
    when the call returns. State and nonce are fixed at construction either way.
    """

    def __init__(
        self,
        config: RelyingPartyConfig | Mapping[str, Any],
        client: httpx.AsyncClient | None = None,
    ) -> None:
        config = _coerce_config(config)
        self._state = _flow_secret(config.state, config)
        self._nonce = _flow_secret(config.nonce, config)
        # Engines built from this config continue the same flow
        self._config = config.model_copy(update={"state": self._state.value, "nonce": self._nonce.value})
        self._external_client = client

        self.authorization = AuthorizationRequestBuilder(self._config, self._state.value, self._nonce.value)
        self.id_token_validator = IdTokenValidator(self._config.client_id, self._nonce.value, self._config.pii_salt)

        self._async: RelyingPartyAsync | None = None
        self._portal: BlockingPortal | None = None
        self._portal_cm: AbstractContextManager[BlockingPortal] | None = None

    def __enter__(self) -> "RelyingParty":
        self._portal_cm = start_blocking_portal()
        self._portal = self._portal_cm.__enter__()
        try:
            self._async = RelyingPartyAsync(self._config, client=self._external_client)
        except BaseException:
            self._portal_cm.__exit__(None, None, None)
            self._portal = None
            self._portal_cm = None
            raise
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        if self._portal is None or self._portal_cm is None:
            return
        try:
            if self._async is not None:
                self._portal.call(self._async.__aexit__, exc_type, exc_val, exc_tb)
        finally:
            self._portal_cm.__exit__(None, None, None)
            self._async = None
            self._portal = None
            self._portal_cm = None

    def _run(self, method: Callable[[RelyingPartyAsync], Awaitable[T]]) -> T:
        if self._portal is not None and self._async is not None:
            engine = self._async

            async def _in_portal() -> T:
                return await method(engine)

            return self._portal.call(_in_portal)

        async def _oneshot() -> T:
            async with RelyingPartyAsync(self._config, client=self._external_client) as engine:
                return await method(engine)

        logger.debug("RelyingParty used outside a context manager; using a one-shot event loop.")
        return anyio.run(_oneshot)

    @property
    def config(self) -> RelyingPartyConfig:
        return self._config

    @property
    def state(self) -> str:
        return self._state.value

    @property
    def nonce(self) -> str:
        return self._nonce.value

    @property
    def secrets_are_secure(self) -> bool:
        return self._state.secure and self._nonce.secure

    def build_authorization_url(self) -> str:
        return self.authorization.build_url()

    def validate_id_token(self, id_token: str) -> bool:
        return self.id_token_validator.validate(id_token)

    def decode_id_token(self, id_token: str) -> IdTokenClaims:
        return self.id_token_validator.decode(id_token)

    def exchange_code(self, code: str) -> TokenResponse:
        return self._run(lambda rp: rp.exchange_code(code))

    def get_token(self, code: str) -> TokenResponse:
        return self._run(lambda rp: rp.get_token(code))

    def refresh_token(self, refresh_token: str) -> TokenResponse:
        return self._run(lambda rp: rp.refresh_token(refresh_token))

    def handle_callback(self, redirected_url: str) -> CallbackResult:
        return self._run(lambda rp: rp.handle_callback(redirected_url))

    def get_user_info(self, access_token: str) -> UserInfo:
        return self._run(lambda rp: rp.get_user_info(access_token))
