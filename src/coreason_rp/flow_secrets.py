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
Generation of the flow-scoped state and nonce values.
"""

import random
import secrets
import string

from coreason_rp.exceptions import InsecureRandomnessError
from coreason_rp.models import FlowSecret
from coreason_rp.utils.logger import logger

CHARSET = string.ascii_uppercase + string.ascii_lowercase + string.digits
DEFAULT_SECRET_LENGTH = 32


def secure_randomness_available() -> bool:
    """
    Checks whether the OS exposes a cryptographically secure randomness source.
    """
    try:
        secrets.token_bytes(1)
    except NotImplementedError:
        return False
    return True


def generate_flow_secret(length: int = DEFAULT_SECRET_LENGTH, allow_insecure: bool = False) -> FlowSecret:
    """
    Generates a random alphanumeric secret for use as `state` or `nonce`.

    Args:
        length: Number of characters. Defaults to 32.
        allow_insecure: Fall back to a non-cryptographic generator when no secure
            source exists. The result is then flagged with `secure=False`.

    Returns:
        FlowSecret: The generated value and whether it is cryptographically strong.

    Raises:
        ValueError: If length is not positive.
        InsecureRandomnessError: If no secure source exists and `allow_insecure` is False.
    """
    if length <= 0:
        raise ValueError("Secret length must be positive.")

    try:
        value = "".join(secrets.choice(CHARSET) for _ in range(length))
        return FlowSecret(value=value, secure=True)
    except NotImplementedError as e:
        if not allow_insecure:
            logger.error("No secure randomness source available; refusing to generate flow secrets.")
            raise InsecureRandomnessError(
                "No cryptographically secure randomness source is available. "
                "Set 'allow_insecure_randomness=True' to accept a predictable fallback."
            ) from e

    logger.warning("Generating flow secret with a NON-CRYPTOGRAPHIC random source. Do not use in production.")
    fallback = random.Random()  # noqa: S311
    value = "".join(fallback.choice(CHARSET) for _ in range(length))
    return FlowSecret(value=value, secure=False)
