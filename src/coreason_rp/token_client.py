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
TokenClient component for the authorization_code and refresh_token grants.
"""

import json

import httpx
from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode
from pydantic import ValidationError

from coreason_rp.config import RelyingPartyConfig
from coreason_rp.exceptions import (
    OversizedResponseError,
    SecurityError,
    TokenRefreshError,
    TokenRequestError,
    TokenResponseFormatError,
    TransportError,
)
from coreason_rp.models import TokenResponse
from coreason_rp.transport import bounded_request
from coreason_rp.utils.logger import logger

tracer = trace.get_tracer(__name__)

FORM_HEADERS = {
    "Content-Type": "application/x-www-form-urlencoded",
    "Accept": "application/json",
}


class TokenClient:
    """
    Exchanges authorization codes and refresh tokens at the token endpoint.

    Stateless apart from the configuration it reads. No retries are performed:
    authorization codes are single-use, so retrying is left to the caller.
    """

    def __init__(self, config: RelyingPartyConfig, client: httpx.AsyncClient) -> None:
        """
        Initialize the TokenClient.

        Args:
            config: The Relying Party configuration.
            client: The async HTTP client to use for requests.
        """
        self.config = config
        self.client = client

    def _client_credentials(self) -> dict[str, str]:
        credentials = {"client_id": self.config.client_id}
        if self.config.client_secret is not None:
            credentials["client_secret"] = self.config.client_secret.get_secret_value()
        return credentials

    async def exchange_code(self, code: str) -> TokenResponse:
        """
        Exchanges an authorization code for tokens.

        Args:
            code: The authorization code received on the callback.

        Returns:
            TokenResponse: The tokens issued by the Provider.

        Raises:
            TokenRequestError: If the token endpoint answers with a non-success status or cannot be reached.
            TokenResponseFormatError: If a successful response body cannot be parsed.
        """
        data = {
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": self.config.redirect_uri,
            **self._client_credentials(),
        }
        return await self._request_token(data, TokenRequestError, "Token request failed")

    async def refresh_token(self, refresh_token: str) -> TokenResponse:
        """
        Obtains fresh tokens with a refresh token.

        Args:
            refresh_token: The refresh token from an earlier token response.

        Returns:
            TokenResponse: The tokens issued by the Provider.

        Raises:
            TokenRefreshError: If the token endpoint answers with a non-success status or cannot be reached.
            TokenResponseFormatError: If a successful response body cannot be parsed.
        """
        data = {
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
            **self._client_credentials(),
        }
        return await self._request_token(data, TokenRefreshError, "Token refresh failed")

    async def _request_token(
        self,
        data: dict[str, str],
        error_cls: type[TransportError],
        failure_prefix: str,
    ) -> TokenResponse:
        grant_type = data["grant_type"]
        with tracer.start_as_current_span("token_request") as span:
            span.set_attribute("oauth.grant_type", grant_type)
            try:
                response = await bounded_request(
                    self.client,
                    "POST",
                    self.config.token_endpoint,
                    data=data,
                    headers=FORM_HEADERS,
                )
            except (httpx.HTTPError, SecurityError, OversizedResponseError) as e:
                logger.error(f"Token endpoint unreachable for grant {grant_type}: {e}")
                span.record_exception(e)
                span.set_status(Status(StatusCode.ERROR, str(e)))
                raise error_cls(f"{failure_prefix}: {e}", reason=str(e)) from e

            span.set_attribute("http.status_code", response.status_code)
            if not response.is_success:
                logger.warning(f"{failure_prefix} ({grant_type}): HTTP {response.status_code} {response.reason}")
                span.set_status(Status(StatusCode.ERROR, response.reason))
                raise error_cls(
                    f"{failure_prefix}: {response.reason}",
                    status_code=response.status_code,
                    reason=response.reason,
                )

            try:
                token_response = TokenResponse.model_validate(response.json())
            except (json.JSONDecodeError, UnicodeDecodeError, ValidationError) as e:
                logger.error(f"Invalid token response for grant {grant_type}")
                span.record_exception(e)
                span.set_status(Status(StatusCode.ERROR, "invalid token response"))
                raise TokenResponseFormatError(f"Invalid token response: {e}") from e

            logger.info(f"Token endpoint issued {token_response.token_type} token for grant {grant_type}")
            span.set_status(Status(StatusCode.OK))
            return token_response
