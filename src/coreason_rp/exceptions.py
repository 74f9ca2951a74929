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
Custom exceptions for the coreason-rp package.
"""


class CoreasonRPError(Exception):
    """Base exception for all coreason-rp errors."""


class ConfigurationError(CoreasonRPError):
    """Raised when required Relying Party setup is missing or invalid."""


class InsecureRandomnessError(ConfigurationError):
    """Raised when no cryptographically secure randomness source is available."""


class TransportError(CoreasonRPError):
    """
    Raised when an endpoint answers with a non-success HTTP status or cannot be reached.

    Attributes:
        status_code (int | None): The HTTP status code, or None if no response was received.
        reason (str): The HTTP status text (reason phrase) or the transport failure description.
    """

    def __init__(self, message: str, status_code: int | None = None, reason: str = "") -> None:
        super().__init__(message)
        self.status_code = status_code
        self.reason = reason


class TokenRequestError(TransportError):
    """Raised when the authorization_code exchange fails at the token endpoint."""


class TokenRefreshError(TransportError):
    """Raised when the refresh_token grant fails at the token endpoint."""


class UserInfoRequestError(TransportError):
    """Raised when the userinfo endpoint request fails."""


class TokenResponseFormatError(CoreasonRPError):
    """Raised when a successful token endpoint response cannot be parsed."""


class OversizedResponseError(CoreasonRPError):
    """Raised when an HTTP response is too large."""


class SecurityError(CoreasonRPError):
    """Raised when a request targets a prohibited network location."""


class ProtocolError(CoreasonRPError):
    """
    Raised from a failed CallbackResult on demand (see `CallbackResult.raise_for_error`).

    Attributes:
        error (str): The OAuth 2.0 error code (provider-reported or local).
        error_description (str | None): Human-readable detail, if any.
    """

    def __init__(self, error: str, error_description: str | None = None) -> None:
        message = f"{error}: {error_description}" if error_description else error
        super().__init__(message)
        self.error = error
        self.error_description = error_description


class InvalidIdTokenError(CoreasonRPError):
    """Raised when an ID token cannot be decoded into a claim set."""
