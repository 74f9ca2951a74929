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
OpenID Connect Relying Party: authorization requests, code and refresh token
exchange, callback validation, ID token claim checks and userinfo retrieval.
"""

__version__ = "0.1.0"
__author__ = "Gowtham A Rao"
__email__ = "gowtham.rao@coreason.ai"

from .config import RelyingPartyConfig
from .exceptions import (
    ConfigurationError,
    CoreasonRPError,
    InsecureRandomnessError,
    InvalidIdTokenError,
    ProtocolError,
    TokenRefreshError,
    TokenRequestError,
    TokenResponseFormatError,
    TransportError,
    UserInfoRequestError,
)
from .models import CallbackErrorCode, CallbackResult, IdTokenClaims, TokenResponse, UserInfo
from .relying_party import RelyingParty, RelyingPartyAsync

__all__ = [
    "CallbackErrorCode",
    "CallbackResult",
    "ConfigurationError",
    "CoreasonRPError",
    "IdTokenClaims",
    "InsecureRandomnessError",
    "InvalidIdTokenError",
    "ProtocolError",
    "RelyingParty",
    "RelyingPartyAsync",
    "RelyingPartyConfig",
    "TokenRefreshError",
    "TokenRequestError",
    "TokenResponse",
    "TokenResponseFormatError",
    "TransportError",
    "UserInfo",
    "UserInfoRequestError",
]
