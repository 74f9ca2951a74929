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
Configuration for the coreason-rp package.
"""

from typing import Any

from pydantic import Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from coreason_rp.exceptions import ConfigurationError

DEFAULT_RESPONSE_TYPE = "code"
DEFAULT_SCOPE = "openid profile email"

# Checked in this order; the first missing field is reported.
REQUIRED_FIELDS = ("client_id", "redirect_uri", "authorization_endpoint", "token_endpoint")


class RelyingPartyConfig(BaseSettings):
    """
    Configuration settings for an OpenID Connect Relying Party.

    Immutable once constructed. Any field can be supplied through environment
    variables prefixed with ``COREASON_RP_`` (e.g. ``COREASON_RP_CLIENT_ID``).

    Attributes:
        client_id (str): The OAuth 2.0 client identifier issued by the Provider.
        redirect_uri (str): Where the Provider sends the user back after authorization.
        authorization_endpoint (str): The Provider's authorization endpoint.
        token_endpoint (str): The Provider's token endpoint.
        client_secret (SecretStr | None): Client secret for confidential clients.
        userinfo_endpoint (str | None): The Provider's userinfo endpoint.
        jwks_uri (str | None): The Provider's key set URL (informational, signatures are not verified).
        response_type (str): OAuth 2.0 response type. Defaults to "code".
        scope (str): Space-delimited scopes. Defaults to "openid profile email".
        state (str | None): Pre-generated anti-CSRF value, used when rehydrating a flow.
        nonce (str | None): Pre-generated replay-protection value, used when rehydrating a flow.
        http_timeout (float | None): Timeout in seconds for Provider requests. None disables it.
        pii_salt (SecretStr): Salt for anonymizing subject identifiers in logs and traces.
        unsafe_local_dev (bool): Permit plain HTTP and private-network Provider endpoints.
        allow_insecure_randomness (bool): Permit a non-cryptographic fallback for state/nonce.
    """

    model_config = SettingsConfigDict(
        env_prefix="COREASON_RP_",
        case_sensitive=False,
        frozen=True,
    )

    client_id: str
    redirect_uri: str
    authorization_endpoint: str
    token_endpoint: str

    client_secret: SecretStr | None = None
    userinfo_endpoint: str | None = None
    jwks_uri: str | None = None
    response_type: str = DEFAULT_RESPONSE_TYPE
    scope: str = DEFAULT_SCOPE

    state: str | None = None
    nonce: str | None = None

    # Passthrough authorization request parameters
    response_mode: str | None = None
    display: str | None = None
    prompt: str | None = None
    max_age: int | None = Field(default=None, ge=0)
    ui_locales: str | None = None
    id_token_hint: str | None = None
    login_hint: str | None = None
    acr_values: str | None = None

    http_timeout: float | None = Field(
        default=None, description="Timeout in seconds for Provider requests. None means no timeout."
    )
    pii_salt: SecretStr = SecretStr("coreason-unsafe-default-salt")
    unsafe_local_dev: bool = False
    allow_insecure_randomness: bool = False

    @model_validator(mode="before")
    @classmethod
    def require_client_identity(cls, data: Any) -> Any:
        """
        Fails fast with a ConfigurationError naming the first missing required field.

        Raised outside of pydantic's ValidationError so callers can catch a single
        exception type for missing setup.
        """
        if not isinstance(data, dict):
            return data
        for name in REQUIRED_FIELDS:
            value = data.get(name)
            if not isinstance(value, str) or not value.strip():
                raise ConfigurationError(f"{name} is required")
        return data

    @field_validator("response_type", mode="before")
    @classmethod
    def default_response_type(cls, v: Any) -> Any:
        return v or DEFAULT_RESPONSE_TYPE

    @field_validator("scope", mode="before")
    @classmethod
    def default_scope(cls, v: Any) -> Any:
        return v or DEFAULT_SCOPE

    @field_validator("state", "nonce", mode="before")
    @classmethod
    def blank_secret_is_unset(cls, v: Any) -> Any:
        """Treats an empty caller-supplied state/nonce as absent so one gets generated."""
        if isinstance(v, str) and not v:
            return None
        return v

    @model_validator(mode="after")
    def validate_https(self) -> "RelyingPartyConfig":
        """
        Ensures that Provider endpoints use HTTPS, unless strictly opted out for local dev.

        The redirect URI is exempt: native and local applications legitimately
        receive the callback on plain HTTP loopback addresses.
        """
        if self.unsafe_local_dev:
            return self
        endpoints = {
            "authorization_endpoint": self.authorization_endpoint,
            "token_endpoint": self.token_endpoint,
            "userinfo_endpoint": self.userinfo_endpoint,
            "jwks_uri": self.jwks_uri,
        }
        for name, url in endpoints.items():
            if url and url.lower().startswith("http://"):
                raise ConfigurationError(
                    f"HTTPS is required for {name}. Set 'unsafe_local_dev=True' only for local testing."
                )
        return self
