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
CallbackValidator component for processing the authorization response redirect.
"""

import hmac
from urllib.parse import parse_qs, urlsplit

from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode

from coreason_rp.models import CallbackErrorCode, CallbackResult
from coreason_rp.token_client import TokenClient
from coreason_rp.utils.logger import logger

tracer = trace.get_tracer(__name__)


def _first(params: dict[str, list[str]], name: str) -> str | None:
    values = params.get(name)
    return values[0] if values else None


class CallbackValidator:
    """
    Validates the redirect back from the Provider and redeems the authorization code.

    Runs, in order: provider-reported error check, state check, code extraction,
    code exchange. Every outcome is reported through a CallbackResult.
    """

    def __init__(self, token_client: TokenClient, state: str) -> None:
        """
        Initialize the CallbackValidator.

        Args:
            token_client: Used to exchange the authorization code.
            state: The state value sent in the authorization request.
        """
        self.token_client = token_client
        self.state = state

    async def handle(self, redirected_url: str) -> CallbackResult:
        """
        Processes one callback URL.

        Never raises: malformed URLs, protocol errors and token endpoint failures
        are all returned as error results.

        Args:
            redirected_url: The full URL the user agent was redirected to.

        Returns:
            CallbackResult: Either the error or the token response.
        """
        with tracer.start_as_current_span("handle_callback") as span:
            result = await self._handle(redirected_url)
            if result.is_success:
                span.set_status(Status(StatusCode.OK))
            else:
                span.set_attribute("oauth.error", str(result.error))
                span.set_status(Status(StatusCode.ERROR, str(result.error)))
            return result

    async def _handle(self, redirected_url: str) -> CallbackResult:
        try:
            params = parse_qs(urlsplit(redirected_url).query, keep_blank_values=True)
        except (TypeError, ValueError) as e:
            logger.warning(f"Unparseable callback URL: {e}")
            return CallbackResult(
                error=CallbackErrorCode.INVALID_RESPONSE,
                error_description=f"Callback URL could not be parsed: {e}",
            )

        # Provider-reported errors take precedence over local validation
        error = _first(params, "error")
        if error:
            description = _first(params, "error_description") or None
            logger.info(f"Provider reported authorization error: {error}")
            return CallbackResult(error=error, error_description=description)

        state = _first(params, "state")
        if not state or not hmac.compare_digest(state.encode("utf-8"), self.state.encode("utf-8")):
            logger.warning("Callback rejected: state parameter does not match")
            return CallbackResult(
                error=CallbackErrorCode.INVALID_STATE,
                error_description="State parameter does not match",
            )

        code = _first(params, "code")
        if not code:
            logger.warning("Callback rejected: authorization code is missing")
            return CallbackResult(
                error=CallbackErrorCode.INVALID_RESPONSE,
                error_description="Authorization code is missing",
            )

        try:
            token_response = await self.token_client.exchange_code(code)
        except Exception as e:
            # Callback handling reports every failure through its result
            logger.warning(f"Authorization code exchange failed: {e}")
            return CallbackResult(error=CallbackErrorCode.TOKEN_ERROR, error_description=str(e))

        return CallbackResult(token_response=token_response)
