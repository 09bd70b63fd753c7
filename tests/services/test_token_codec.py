"""Tests for token encoding and decoding."""
import base64
import json

import jwt
import pytest

from services.exceptions import (
    EncodingError,
    ExpiredTokenError,
    InvalidSignatureError,
    MalformedTokenError,
    TokenError,
)
from services.token_codec import TokenPayload, decode_token, encode_token


SECRET = "codec-test-secret-with-enough-length-1234"
OTHER_SECRET = "another-secret-with-enough-length-567890"
NOW = 1_700_000_000


def make_payload(**overrides: object) -> TokenPayload:
    values = {
        "subject_id": 42,
        "email": "member@example.com",
        "issued_at": NOW,
        "expires_at": NOW + 604_800,
        "renewed_at": NOW,
        "issuer": "http://localhost:8000",
        "jti": "a" * 32,
    }
    values.update(overrides)
    return TokenPayload(**values)


def _segment(data: dict) -> str:
    raw = json.dumps(data).encode()
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode()


# =============================================================================
# encode_token
# =============================================================================


def test__encode_token__produces_three_segment_compact_token() -> None:
    token = encode_token(make_payload(), SECRET, "HS256")
    assert token.count(".") == 2


def test__encode_token__is_deterministic_for_same_payload() -> None:
    payload = make_payload()
    assert encode_token(payload, SECRET, "HS256") == encode_token(payload, SECRET, "HS256")


def test__encode_token__uses_wire_claim_names() -> None:
    token = encode_token(make_payload(), SECRET, "HS256")
    claims = jwt.decode(token, SECRET, algorithms=["HS256"], options={"verify_exp": False})
    assert claims == {
        "memberId": 42,
        "email": "member@example.com",
        "iss": "http://localhost:8000",
        "iat": NOW,
        "exp": NOW + 604_800,
        "rat": NOW,
        "jti": "a" * 32,
    }


def test__encode_token__empty_secret_raises_encoding_error() -> None:
    with pytest.raises(EncodingError):
        encode_token(make_payload(), "", "HS256")


def test__encode_token__unknown_algorithm_raises_encoding_error() -> None:
    with pytest.raises(EncodingError):
        encode_token(make_payload(), SECRET, "NOPE256")


# =============================================================================
# decode_token
# =============================================================================


def test__decode_token__round_trips_payload() -> None:
    payload = make_payload()
    token = encode_token(payload, SECRET, "HS256")
    assert decode_token(token, SECRET, "HS256", now=NOW) == payload


def test__decode_token__round_trips_payload_without_email() -> None:
    payload = make_payload(email=None)
    token = encode_token(payload, SECRET, "HS256")
    assert decode_token(token, SECRET, "HS256", now=NOW) == payload


def test__decode_token__wrong_secret_raises_invalid_signature() -> None:
    token = encode_token(make_payload(), SECRET, "HS256")
    with pytest.raises(InvalidSignatureError):
        decode_token(token, OTHER_SECRET, "HS256", now=NOW)


def test__decode_token__tampered_payload_raises_invalid_signature() -> None:
    token = encode_token(make_payload(), SECRET, "HS256")
    header, _, signature = token.split(".")
    forged = make_payload(subject_id=1).to_claims()
    tampered = f"{header}.{_segment(forged)}.{signature}"
    with pytest.raises(InvalidSignatureError):
        decode_token(tampered, SECRET, "HS256", now=NOW)


def test__decode_token__empty_secret_raises_invalid_signature() -> None:
    token = encode_token(make_payload(), SECRET, "HS256")
    with pytest.raises(InvalidSignatureError):
        decode_token(token, "", "HS256", now=NOW)


@pytest.mark.parametrize("token", ["", "not-a-token", "a.b", "a.b.c"])
def test__decode_token__garbage_raises_malformed(token: str) -> None:
    with pytest.raises(MalformedTokenError):
        decode_token(token, SECRET, "HS256", now=NOW)


def test__decode_token__missing_required_claim_raises_malformed() -> None:
    claims = make_payload().to_claims()
    del claims["rat"]
    token = jwt.encode(claims, SECRET, algorithm="HS256")
    with pytest.raises(MalformedTokenError):
        decode_token(token, SECRET, "HS256", now=NOW)


def test__decode_token__non_numeric_subject_raises_malformed() -> None:
    claims = make_payload().to_claims()
    claims["memberId"] = "42"
    token = jwt.encode(claims, SECRET, algorithm="HS256")
    with pytest.raises(MalformedTokenError):
        decode_token(token, SECRET, "HS256", now=NOW)


def test__decode_token__boolean_subject_raises_malformed() -> None:
    claims = make_payload().to_claims()
    claims["memberId"] = True
    token = jwt.encode(claims, SECRET, algorithm="HS256")
    with pytest.raises(MalformedTokenError):
        decode_token(token, SECRET, "HS256", now=NOW)


def test__decode_token__rejects_other_algorithm() -> None:
    token = jwt.encode(make_payload().to_claims(), SECRET, algorithm="HS512")
    with pytest.raises(TokenError):
        decode_token(token, SECRET, "HS256", now=NOW)


def test__decode_token__expired_raises_expired_error() -> None:
    token = encode_token(make_payload(), SECRET, "HS256")
    with pytest.raises(ExpiredTokenError):
        decode_token(token, SECRET, "HS256", now=NOW + 604_801)


def test__decode_token__valid_at_exact_expiry() -> None:
    token = encode_token(make_payload(), SECRET, "HS256")
    assert decode_token(token, SECRET, "HS256", now=NOW + 604_800).subject_id == 42


def test__decode_token__errors_share_token_error_base() -> None:
    for error in (EncodingError, MalformedTokenError, InvalidSignatureError, ExpiredTokenError):
        assert issubclass(error, TokenError)
