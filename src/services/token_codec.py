"""
Signed token encoding and decoding.

Tokens are compact JWS strings (header.payload.signature) produced by PyJWT.
The claim names are part of the wire contract with existing clients:

    memberId  subject (member) identifier
    email     member email at issuance
    iss       issuer
    iat       issued at (epoch seconds)
    exp       expires at (epoch seconds)
    rat       last renewed at (epoch seconds)
    jti       unique token identifier

Both functions are pure: no I/O, no shared state.
"""
import time
from dataclasses import dataclass
from typing import Any

import jwt

from services.exceptions import (
    EncodingError,
    ExpiredTokenError,
    InvalidSignatureError,
    MalformedTokenError,
)


REQUIRED_CLAIMS = ["memberId", "iat", "exp", "rat", "jti"]


@dataclass(frozen=True)
class TokenPayload:
    """Claims carried by an access token."""

    subject_id: int
    email: str | None
    issued_at: int
    expires_at: int
    renewed_at: int
    issuer: str
    jti: str

    def to_claims(self) -> dict[str, Any]:
        """Map to wire claim names."""
        return {
            "memberId": self.subject_id,
            "email": self.email,
            "iss": self.issuer,
            "iat": self.issued_at,
            "exp": self.expires_at,
            "rat": self.renewed_at,
            "jti": self.jti,
        }

    @classmethod
    def from_claims(cls, claims: dict[str, Any]) -> "TokenPayload":
        """
        Build a payload from decoded claims.

        Raises:
            MalformedTokenError: If a claim is missing or has the wrong type.
        """
        try:
            subject_id = _int_claim(claims, "memberId")
            issued_at = _int_claim(claims, "iat")
            expires_at = _int_claim(claims, "exp")
            renewed_at = _int_claim(claims, "rat")
        except (KeyError, TypeError, ValueError) as e:
            raise MalformedTokenError(f"Invalid token claims: {e}") from e

        email = claims.get("email")
        if email is not None and not isinstance(email, str):
            raise MalformedTokenError("Invalid token claims: email must be a string")
        jti = claims.get("jti")
        if not isinstance(jti, str) or not jti:
            raise MalformedTokenError("Invalid token claims: jti must be a non-empty string")
        issuer = claims.get("iss") or ""
        if not isinstance(issuer, str):
            raise MalformedTokenError("Invalid token claims: iss must be a string")

        return cls(
            subject_id=subject_id,
            email=email,
            issued_at=issued_at,
            expires_at=expires_at,
            renewed_at=renewed_at,
            issuer=issuer,
            jti=jti,
        )


def _int_claim(claims: dict[str, Any], name: str) -> int:
    value = claims[name]
    # bool is an int subclass but never a valid numeric claim
    if isinstance(value, bool) or not isinstance(value, int | float):
        raise TypeError(f"{name} must be a number")
    if int(value) != value:
        raise ValueError(f"{name} must be a whole number")
    return int(value)


def encode_token(payload: TokenPayload, secret: str, algorithm: str) -> str:
    """
    Sign a payload into a compact token string.

    Raises:
        EncodingError: If the secret is empty or signing fails.
    """
    if not secret:
        raise EncodingError("Cannot sign a token with an empty secret")
    try:
        return jwt.encode(payload.to_claims(), secret, algorithm=algorithm)
    except (jwt.PyJWTError, NotImplementedError, TypeError, ValueError) as e:
        raise EncodingError(f"Failed to sign token: {e}") from e


def decode_token(
    token: str,
    secret: str,
    algorithm: str,
    now: float | None = None,
) -> TokenPayload:
    """
    Verify a token's signature and expiry and return its payload.

    Args:
        token: Compact token string.
        secret: Signing secret.
        algorithm: The only algorithm accepted for verification.
        now: Current epoch seconds. Defaults to time.time().

    Raises:
        InvalidSignatureError: If the signature does not verify.
        MalformedTokenError: If the token is structurally invalid or claims are missing.
        ExpiredTokenError: If now is past the token's expiry.
    """
    if not isinstance(token, str) or not token:
        raise MalformedTokenError("Token is empty")
    if not secret:
        raise InvalidSignatureError("Cannot verify a token without a secret")

    try:
        claims = jwt.decode(
            token,
            secret,
            algorithms=[algorithm],
            # Expiry is checked below against the caller's clock.
            options={"require": REQUIRED_CLAIMS, "verify_exp": False, "verify_iat": False},
        )
    except jwt.InvalidSignatureError as e:
        raise InvalidSignatureError("Token signature does not verify") from e
    except jwt.PyJWTError as e:
        raise MalformedTokenError(f"Malformed token: {e}") from e

    payload = TokenPayload.from_claims(claims)

    if now is None:
        now = time.time()
    if now > payload.expires_at:
        raise ExpiredTokenError("Token has expired")

    return payload
