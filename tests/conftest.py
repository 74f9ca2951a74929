# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_rp

import os
import time
from collections.abc import Callable, Generator
from typing import Any

import httpx
import pytest
from authlib.jose import JsonWebKey, jwt

from coreason_rp.config import RelyingPartyConfig

CLIENT_ID = "test-client-id"
STATE = "test-state"
NONCE = "test-nonce"

BASE_CONFIG: dict[str, Any] = {
    "client_id": CLIENT_ID,
    "client_secret": "test-client-secret",
    "redirect_uri": "https://example.com/callback",
    "authorization_endpoint": "https://auth.example.com/authorize",
    "token_endpoint": "https://auth.example.com/token",
    "userinfo_endpoint": "https://auth.example.com/userinfo",
    "jwks_uri": "https://auth.example.com/jwks",
    "state": STATE,
    "nonce": NONCE,
}

Handler = Callable[[httpx.Request], httpx.Response]


@pytest.fixture(autouse=True)
def isolated_env() -> Generator[None, None, None]:
    """
    Removes COREASON_RP_* variables so the developer's environment cannot leak
    into configuration under test.
    """
    saved = {k: v for k, v in os.environ.items() if k.upper().startswith("COREASON_RP_")}
    for key in saved:
        del os.environ[key]
    yield
    for key in [k for k in os.environ if k.upper().startswith("COREASON_RP_")]:
        del os.environ[key]
    os.environ.update(saved)


@pytest.fixture
def config_data() -> dict[str, Any]:
    return dict(BASE_CONFIG)


@pytest.fixture
def config(config_data: dict[str, Any]) -> RelyingPartyConfig:
    return RelyingPartyConfig(**config_data)


class RecordingTransport(httpx.MockTransport):
    """MockTransport that keeps every request it served."""

    def __init__(self, handler: Handler) -> None:
        self.requests: list[httpx.Request] = []

        def _record(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return handler(request)

        super().__init__(_record)


@pytest.fixture
def make_client() -> Callable[[Handler], tuple[httpx.AsyncClient, RecordingTransport]]:
    def _make(handler: Handler) -> tuple[httpx.AsyncClient, RecordingTransport]:
        transport = RecordingTransport(handler)
        return httpx.AsyncClient(transport=transport), transport

    return _make


@pytest.fixture(scope="session")
def signing_key() -> Any:
    return JsonWebKey.generate_key("RSA", 2048, is_private=True)


@pytest.fixture
def make_id_token(signing_key: Any) -> Callable[..., str]:
    """Mints a signed ID token; valid for CLIENT_ID and NONCE unless overridden."""

    def _make(**overrides: Any) -> str:
        now = int(time.time())
        claims: dict[str, Any] = {
            "iss": "https://auth.example.com",
            "sub": "user-123",
            "aud": CLIENT_ID,
            "exp": now + 3600,
            "iat": now,
            "nonce": NONCE,
        }
        claims.update(overrides)
        claims = {k: v for k, v in claims.items() if v is not None}
        header = {"alg": "RS256", "kid": signing_key.as_dict()["kid"]}
        token = jwt.encode(header, claims, signing_key)
        return token.decode("ascii") if isinstance(token, bytes) else token

    return _make
