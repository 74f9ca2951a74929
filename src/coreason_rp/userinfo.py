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
UserInfoClient component for fetching profile claims.
"""

import json

import httpx
from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode
from pydantic import ValidationError

from coreason_rp.config import RelyingPartyConfig
from coreason_rp.exceptions import (
    ConfigurationError,
    OversizedResponseError,
    SecurityError,
    UserInfoRequestError,
)
from coreason_rp.models import UserInfo
from coreason_rp.transport import bounded_request
from coreason_rp.utils.logger import anonymize, logger

tracer = trace.get_tracer(__name__)


class UserInfoClient:
    """
    Retrieves claims about the authenticated user from the userinfo endpoint.
    """

    def __init__(self, config: RelyingPartyConfig, client: httpx.AsyncClient) -> None:
        self.config = config
        self.client = client

    async def get_user_info(self, access_token: str) -> UserInfo:
        """
        Fetches the userinfo claims for an access token.

        Args:
            access_token: The access token, sent as a Bearer credential.

        Returns:
            UserInfo: The user's claims.

        Raises:
            ConfigurationError: If no userinfo endpoint is configured.
            UserInfoRequestError: If the endpoint answers with a non-success status,
                cannot be reached, or returns a body that is not a claim set.
        """
        endpoint = self.config.userinfo_endpoint
        if not endpoint:
            raise ConfigurationError("userinfo_endpoint is not configured")

        with tracer.start_as_current_span("get_user_info") as span:
            try:
                response = await bounded_request(
                    self.client,
                    "GET",
                    endpoint,
                    headers={"Authorization": f"Bearer {access_token}", "Accept": "application/json"},
                )
            except (httpx.HTTPError, SecurityError, OversizedResponseError) as e:
                logger.error(f"Userinfo endpoint unreachable: {e}")
                span.record_exception(e)
                span.set_status(Status(StatusCode.ERROR, str(e)))
                raise UserInfoRequestError(f"UserInfo request failed: {e}", reason=str(e)) from e

            span.set_attribute("http.status_code", response.status_code)
            if not response.is_success:
                logger.warning(f"UserInfo request failed: HTTP {response.status_code} {response.reason}")
                span.set_status(Status(StatusCode.ERROR, response.reason))
                raise UserInfoRequestError(
                    f"UserInfo request failed: {response.reason}",
                    status_code=response.status_code,
                    reason=response.reason,
                )

            try:
                user_info = UserInfo.model_validate(response.json())
            except (json.JSONDecodeError, UnicodeDecodeError, ValidationError) as e:
                logger.error("Invalid userinfo response")
                span.record_exception(e)
                span.set_status(Status(StatusCode.ERROR, "invalid userinfo response"))
                raise UserInfoRequestError(
                    f"UserInfo request failed: invalid response body: {e}",
                    status_code=response.status_code,
                    reason=response.reason,
                ) from e

            user_hash = anonymize(user_info.sub, self.config.pii_salt)
            logger.info(f"Userinfo retrieved for user {user_hash}")
            span.set_attribute("enduser.id", user_hash)
            span.set_status(Status(StatusCode.OK))
            return user_info
