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
Data models for the coreason-rp package.
"""

from enum import StrEnum
from typing import Any

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    ValidationInfo,
    ValidatorFunctionWrapHandler,
    field_validator,
    model_validator,
)

from coreason_rp.exceptions import ProtocolError


class CallbackErrorCode(StrEnum):
    """Error codes produced locally while handling an authorization callback."""

    INVALID_STATE = "invalid_state"
    INVALID_RESPONSE = "invalid_response"
    TOKEN_ERROR = "token_error"


class FlowSecret(BaseModel):
    """
    A flow-scoped secret (state or nonce).

    Attributes:
        value (str): The secret string.
        secure (bool): False when the value came from the non-cryptographic fallback generator.
    """

    model_config = ConfigDict(frozen=True)

    value: str = Field(..., min_length=1)
    secure: bool = True

    def __repr__(self) -> str:
        return f"FlowSecret(value='<REDACTED>', secure={self.secure!r})"

    def __str__(self) -> str:
        return self.__repr__()


class TokenResponse(BaseModel):
    """
    Response from the token endpoint.

    Unknown fields returned by the Provider are preserved.

    Attributes:
        access_token (str): The access token issued by the authorization server.
        token_type (str): The type of the token (e.g. "Bearer").
        refresh_token (str | None): The refresh token, if issued.
        expires_in (int | None): The lifetime in seconds of the access token.
        id_token (str | None): The ID token, if issued.
        scope (str | None): The granted scopes, if they differ from the requested ones.
    """

    model_config = ConfigDict(extra="allow")

    access_token: str
    token_type: str
    refresh_token: str | None = None
    expires_in: int | None = None
    id_token: str | None = None
    scope: str | None = None

    def __repr__(self) -> str:
        # Credentials MUST be redacted in __repr__
        return (
            f"TokenResponse(access_token='<REDACTED>', "
            f"token_type={self.token_type!r}, "
            f"expires_in={self.expires_in!r}, "
            f"scope={self.scope!r}, "
            f"has_refresh_token={self.refresh_token is not None}, "
            f"has_id_token={self.id_token is not None})"
        )

    def __str__(self) -> str:
        return self.__repr__()


class IdTokenClaims(BaseModel):
    """
    Decoded payload of an ID token. Additional claims are preserved in order.
    """

    model_config = ConfigDict(frozen=True, extra="allow")

    iss: str
    sub: str
    aud: str | list[str]
    exp: int | float
    iat: int | float
    auth_time: int | None = None
    nonce: str | None = None
    acr: str | None = None
    amr: list[str] | None = None
    azp: str | None = None
    at_hash: str | None = None
    c_hash: str | None = None

    @property
    def audiences(self) -> list[str]:
        """The `aud` claim as a list, whether it was issued as a string or an array."""
        return [self.aud] if isinstance(self.aud, str) else list(self.aud)


class Address(BaseModel):
    """The OIDC `address` claim."""

    model_config = ConfigDict(extra="allow")

    formatted: str | None = None
    street_address: str | None = None
    locality: str | None = None
    region: str | None = None
    postal_code: str | None = None
    country: str | None = None


class UserInfo(BaseModel):
    """
    Claims returned by the userinfo endpoint.

    The standard OIDC profile claims are typed; custom claims are kept as-is
    and reachable through `claims()` and `get()`. Only `sub` is strict: a
    standard claim in an unexpected shape is kept as the Provider sent it.
    """

    model_config = ConfigDict(extra="allow")

    sub: str
    name: str | None = None
    given_name: str | None = None
    family_name: str | None = None
    middle_name: str | None = None
    nickname: str | None = None
    preferred_username: str | None = None
    profile: str | None = None
    picture: str | None = None
    website: str | None = None
    email: str | None = None
    email_verified: bool | None = None
    gender: str | None = None
    birthdate: str | None = None
    zoneinfo: str | None = None
    locale: str | None = None
    phone_number: str | None = None
    phone_number_verified: bool | None = None
    address: Address | str | None = None
    updated_at: int | str | None = None

    @field_validator("*", mode="wrap")
    @classmethod
    def keep_nonconforming_claims(cls, v: Any, handler: ValidatorFunctionWrapHandler, info: ValidationInfo) -> Any:
        try:
            return handler(v)
        except ValidationError:
            if info.field_name == "sub":
                raise
            return v

    def claims(self) -> dict[str, Any]:
        """All claims the Provider returned, standard and custom, without unset fields."""
        return self.model_dump(exclude_unset=True, warnings=False)

    def get(self, name: str, default: Any = None) -> Any:
        """Looks up a claim by name, including custom claims."""
        return self.claims().get(name, default)

    def __repr__(self) -> str:
        # PII fields MUST be redacted in __repr__
        return f"UserInfo(sub='<REDACTED>', claims={sorted(self.claims())!r})"

    def __str__(self) -> str:
        return self.__repr__()


class CallbackResult(BaseModel):
    """
    Outcome of handling an authorization callback.

    Exactly one of `error` or `token_response` is set.

    Attributes:
        error (str | None): Provider-reported or local error code.
        error_description (str | None): Human-readable detail for the error.
        token_response (TokenResponse | None): Tokens obtained for the authorization code.
    """

    model_config = ConfigDict(frozen=True)

    error: str | None = None
    error_description: str | None = None
    token_response: TokenResponse | None = None

    @model_validator(mode="after")
    def exactly_one_outcome(self) -> "CallbackResult":
        if (self.error is None) == (self.token_response is None):
            raise ValueError("CallbackResult must carry either an error or a token_response")
        if self.error is None and self.error_description is not None:
            raise ValueError("error_description requires an error")
        return self

    @property
    def is_success(self) -> bool:
        return self.token_response is not None

    def raise_for_error(self) -> TokenResponse:
        """
        Returns the token response, or raises ProtocolError for a failed callback.

        Raises:
            ProtocolError: If the result carries an error.
        """
        if self.token_response is None:
            raise ProtocolError(str(self.error), self.error_description)
        return self.token_response
