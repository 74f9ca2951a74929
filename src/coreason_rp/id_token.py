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
IdTokenValidator component for structural validation of ID token claims.

WARNING: this validator does NOT verify the token signature. It checks the
token's shape and its exp/iss/aud/nonce claims only. A token must not be
trusted as proof of identity unless its signature has been verified against
the Provider's keys (``jwks_uri``) by a separate component.
"""

import hmac
import math
import time
from typing import Any

from authlib.common.encoding import json_loads, to_bytes, urlsafe_b64decode
from pydantic import SecretStr, ValidationError

from coreason_rp.exceptions import InvalidIdTokenError
from coreason_rp.models import IdTokenClaims
from coreason_rp.utils.logger import anonymize, logger


def decode_payload(id_token: str) -> dict[str, Any]:
    """
    Splits a compact JWS and decodes its payload segment, without any verification.

    Args:
        id_token: The compact serialized token (header.payload.signature).

    Returns:
        dict[str, Any]: The decoded claim set.

    Raises:
        InvalidIdTokenError: If the token does not have three segments or the payload is not a JSON object.
    """
    parts = id_token.split(".")
    if len(parts) != 3:
        raise InvalidIdTokenError(f"Expected 3 token segments, got {len(parts)}")

    try:
        payload = json_loads(urlsafe_b64decode(to_bytes(parts[1])))
    except (TypeError, ValueError) as e:
        raise InvalidIdTokenError(f"Token payload is not valid base64 JSON: {e}") from e

    if not isinstance(payload, dict):
        raise InvalidIdTokenError("Token payload is not a JSON object")
    return payload


class IdTokenValidator:
    """
    Validates ID token structure and claims for one authorization flow.

    Attributes:
        client_id (str): The expected audience.
        nonce (str): The nonce sent in the authorization request.
        mode (str): Always "structural": signatures are not verified.
    """

    mode = "structural"

    def __init__(self, client_id: str, nonce: str, pii_salt: SecretStr) -> None:
        self.client_id = client_id
        self.nonce = nonce
        self.pii_salt = pii_salt

    def decode(self, id_token: str) -> IdTokenClaims:
        """
        Decodes the token into a typed claim set without validating it.

        Raises:
            InvalidIdTokenError: If the token is malformed or lacks required claims.
        """
        payload = decode_payload(id_token)
        try:
            return IdTokenClaims.model_validate(payload)
        except ValidationError as e:
            raise InvalidIdTokenError(f"Token payload is missing required claims: {e}") from e

    def validate(self, id_token: str) -> bool:
        """
        Checks structure, then exp, iss, aud and nonce, stopping at the first failure.

        Malformed, expired and mismatched tokens all yield False; the reason is
        logged at debug level only.

        Args:
            id_token: The compact serialized ID token.

        Returns:
            bool: True if every check passes.
        """
        try:
            payload = decode_payload(id_token)
        except InvalidIdTokenError as e:
            logger.debug(f"ID token rejected: {e}")
            return False

        reason = self._check_claims(payload)
        if reason:
            logger.debug(f"ID token rejected: {reason}")
            return False

        subject = payload.get("sub")
        if isinstance(subject, str):
            logger.debug(f"ID token claims valid for user {anonymize(subject, self.pii_salt)}")
        return True

    def _check_claims(self, payload: dict[str, Any]) -> str | None:
        exp = payload.get("exp")
        if isinstance(exp, bool) or not isinstance(exp, (int, float)) or not math.isfinite(exp):
            return "exp claim missing or not numeric"
        if exp <= int(time.time()):
            return "token expired"

        # Only presence is checked; there is no configured expected issuer.
        if not payload.get("iss"):
            return "iss claim missing"

        aud = payload.get("aud")
        if aud != self.client_id and not (isinstance(aud, list) and self.client_id in aud):
            return "audience does not include client_id"

        if "nonce" in payload and payload["nonce"] is not None:
            token_nonce = payload["nonce"]
            if not isinstance(token_nonce, str) or not hmac.compare_digest(
                token_nonce.encode("utf-8"), self.nonce.encode("utf-8")
            ):
                return "nonce mismatch"

        return None
