# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_rp

import base64
import json
import time
from typing import Any, Callable

import pytest
from pydantic import SecretStr

from coreason_rp.config import RelyingPartyConfig
from coreason_rp.exceptions import InvalidIdTokenError
from coreason_rp.id_token import IdTokenValidator, decode_payload
from coreason_rp.relying_party import RelyingPartyAsync

MakeToken = Callable[..., str]


def _b64(data: dict[str, Any] | str) -> str:
    raw = data if isinstance(data, str) else json.dumps(data)
    return base64.urlsafe_b64encode(raw.encode()).decode().rstrip("=")


@pytest.fixture
def rp(config: RelyingPartyConfig) -> RelyingPartyAsync:
    return RelyingPartyAsync(config)


def test_valid_token(rp: RelyingPartyAsync, make_id_token: MakeToken) -> None:
    assert rp.validate_id_token(make_id_token()) is True


def test_valid_token_without_nonce(rp: RelyingPartyAsync, make_id_token: MakeToken) -> None:
    assert rp.validate_id_token(make_id_token(nonce=None)) is True


def test_audience_array_containing_client(rp: RelyingPartyAsync, make_id_token: MakeToken) -> None:
    assert rp.validate_id_token(make_id_token(aud=["other-client", "test-client-id"])) is True


def test_audience_array_without_client(rp: RelyingPartyAsync, make_id_token: MakeToken) -> None:
    assert rp.validate_id_token(make_id_token(aud=["other-client"])) is False


def test_wrong_audience(rp: RelyingPartyAsync, make_id_token: MakeToken) -> None:
    assert rp.validate_id_token(make_id_token(aud="wrong-client-id")) is False


def test_missing_audience(rp: RelyingPartyAsync, make_id_token: MakeToken) -> None:
    assert rp.validate_id_token(make_id_token(aud=None)) is False


def test_expired(rp: RelyingPartyAsync, make_id_token: MakeToken) -> None:
    assert rp.validate_id_token(make_id_token(exp=int(time.time()) - 3600)) is False


def test_expiring_now_is_invalid(rp: RelyingPartyAsync, make_id_token: MakeToken) -> None:
    """exp must be strictly in the future."""
    assert rp.validate_id_token(make_id_token(exp=int(time.time()))) is False


def test_missing_exp(rp: RelyingPartyAsync, make_id_token: MakeToken) -> None:
    assert rp.validate_id_token(make_id_token(exp=None)) is False


def test_non_numeric_exp(rp: RelyingPartyAsync, make_id_token: MakeToken) -> None:
    assert rp.validate_id_token(make_id_token(exp="tomorrow")) is False
    assert rp.validate_id_token(make_id_token(exp=True)) is False


@pytest.mark.parametrize("literal", ["NaN", "Infinity", "-Infinity"])
def test_non_finite_exp(rp: RelyingPartyAsync, literal: str) -> None:
    payload = '{"iss":"https://op","sub":"s","aud":"test-client-id","exp":' + literal + ',"iat":0}'
    header = _b64({"alg": "none"})
    assert rp.validate_id_token(f"{header}.{_b64(payload)}.sig") is False


def test_missing_issuer(rp: RelyingPartyAsync, make_id_token: MakeToken) -> None:
    assert rp.validate_id_token(make_id_token(iss=None)) is False
    assert rp.validate_id_token(make_id_token(iss="")) is False


def test_any_issuer_accepted(rp: RelyingPartyAsync, make_id_token: MakeToken) -> None:
    """Issuer presence is checked, its value is not compared."""
    assert rp.validate_id_token(make_id_token(iss="https://unexpected.example.org")) is True


def test_nonce_mismatch(rp: RelyingPartyAsync, make_id_token: MakeToken) -> None:
    assert rp.validate_id_token(make_id_token(nonce="wrong-nonce")) is False


def test_non_string_nonce(rp: RelyingPartyAsync, make_id_token: MakeToken) -> None:
    assert rp.validate_id_token(make_id_token(nonce=12345)) is False


@pytest.mark.parametrize("token", ["", "invalid-token", "a.b", "a.b.c.d", "header.payload.signature.extra"])
def test_wrong_segment_count(rp: RelyingPartyAsync, token: str) -> None:
    assert rp.validate_id_token(token) is False


def test_undecodable_payload(rp: RelyingPartyAsync) -> None:
    assert rp.validate_id_token("header.@@not-base64@@.signature") is False
    assert rp.validate_id_token(f"header.{_b64('not json')}.signature") is False


def test_payload_not_an_object(rp: RelyingPartyAsync) -> None:
    assert rp.validate_id_token(f"header.{_b64('[1, 2, 3]')}.signature") is False


def test_signature_is_ignored(rp: RelyingPartyAsync, make_id_token: MakeToken) -> None:
    """Structural validation only: a tampered signature is not detected."""
    header, payload, _ = make_id_token().split(".")
    assert rp.validate_id_token(f"{header}.{payload}.forged-signature") is True


def test_padded_and_standard_base64_payload(rp: RelyingPartyAsync) -> None:
    claims = {"iss": "https://op", "sub": "s", "aud": "test-client-id", "exp": int(time.time()) + 60, "iat": 0}
    padded = base64.b64encode(json.dumps(claims).encode()).decode()
    assert rp.validate_id_token(f"e30.{padded}.sig") is True


def test_validation_never_raises(rp: RelyingPartyAsync) -> None:
    json_string = _b64('"string"')
    for token in ["...", "a..b", ".", f"x.{_b64('null')}.y", f"x.{json_string}.y"]:
        assert rp.validate_id_token(token) is False


def test_validator_mode_is_structural() -> None:
    assert IdTokenValidator.mode == "structural"


def test_decode_id_token(rp: RelyingPartyAsync, make_id_token: MakeToken) -> None:
    claims = rp.decode_id_token(make_id_token(aud=["a", "test-client-id"], amr=["pwd"], custom="value"))

    assert claims.sub == "user-123"
    assert claims.nonce == "test-nonce"
    assert claims.audiences == ["a", "test-client-id"]
    assert claims.amr == ["pwd"]
    assert claims.model_extra == {"custom": "value"}


def test_decode_single_audience(rp: RelyingPartyAsync, make_id_token: MakeToken) -> None:
    assert rp.decode_id_token(make_id_token()).audiences == ["test-client-id"]


def test_decode_rejects_malformed(rp: RelyingPartyAsync, make_id_token: MakeToken) -> None:
    with pytest.raises(InvalidIdTokenError, match="3 token segments"):
        rp.decode_id_token("a.b")
    with pytest.raises(InvalidIdTokenError, match="required claims"):
        rp.decode_id_token(make_id_token(sub=None))


def test_decode_payload_helper() -> None:
    assert decode_payload(f"x.{_b64({'a': 1})}.y") == {"a": 1}


def test_validator_uses_own_nonce(make_id_token: MakeToken) -> None:
    validator = IdTokenValidator("test-client-id", "another-nonce", SecretStr("salt"))
    assert validator.validate(make_id_token()) is False
    assert validator.validate(make_id_token(nonce="another-nonce")) is True
