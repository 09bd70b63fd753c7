"""Service layer for access token issuance, validation, and sliding renewal."""
import secrets
import time
from collections.abc import Callable
from dataclasses import dataclass, replace

from core.config import Settings
from services.exceptions import ConfigurationError, RenewalError, TokenError
from services.token_codec import TokenPayload, decode_token, encode_token


@dataclass(frozen=True)
class TokenConfig:
    """Immutable token settings snapshot, built once at startup."""

    secret: str
    algorithm: str = "HS256"
    lifetime: int = 604_800  # 7 days
    renewal_threshold: int = 3600  # 1 hour
    issuer: str = ""

    @classmethod
    def from_settings(cls, settings: Settings) -> "TokenConfig":
        """
        Build the snapshot from application settings.

        Raises:
            ConfigurationError: If JWT_SECRET is not configured.
        """
        if not settings.jwt_secret:
            raise ConfigurationError(
                "JWT secret not configured. Set the JWT_SECRET environment variable.",
            )
        return cls(
            secret=settings.jwt_secret,
            algorithm=settings.jwt_algorithm,
            lifetime=settings.jwt_lifetime,
            renewal_threshold=settings.jwt_renewal_threshold,
            issuer=settings.jwt_issuer,
        )


@dataclass(frozen=True)
class RenewalResult:
    """
    Outcome of a best-effort renewal.

    ``token`` is set only when a replacement token was issued. ``error`` is set
    when the presented token could not be renewed. Callers may ignore both.
    """

    token: str | None = None
    error: RenewalError | None = None

    @property
    def renewed(self) -> bool:
        """True when a replacement token was issued."""
        return self.token is not None


def generate_jti() -> str:
    """Generate a unique token identifier (32 hex chars)."""
    return secrets.token_hex(16)


class TokenService:
    """
    Issues and validates stateless access tokens.

    No server-side state is kept: every decision is a function of the token
    string, the immutable config, and the clock.
    """

    def __init__(self, config: TokenConfig, clock: Callable[[], float] = time.time) -> None:
        if not config.secret:
            raise ConfigurationError("JWT secret not configured")
        self.config = config
        self._clock = clock

    def _now(self) -> int:
        return int(self._clock())

    def _encode(self, payload: TokenPayload) -> str:
        return encode_token(payload, self.config.secret, self.config.algorithm)

    def decode(self, token: str) -> TokenPayload:
        """
        Decode and verify a token.

        Raises:
            TokenError: If the token is malformed, badly signed, or expired.
        """
        return decode_token(
            token,
            self.config.secret,
            self.config.algorithm,
            now=self._clock(),
        )

    def issue(self, principal_id: int, principal_email: str | None = None) -> str:
        """Issue a new token for a principal."""
        now = self._now()
        payload = TokenPayload(
            subject_id=principal_id,
            email=principal_email,
            issued_at=now,
            expires_at=now + self.config.lifetime,
            renewed_at=now,
            issuer=self.config.issuer,
            jti=generate_jti(),
        )
        return self._encode(payload)

    def validate(self, token: str) -> bool:
        """Return True iff the token decodes (valid signature, well-formed, not expired)."""
        try:
            self.decode(token)
        except TokenError:
            return False
        return True

    def resolve_principal_id(self, token: str) -> int | None:
        """Return the token's subject id, or None if the token does not decode."""
        try:
            return self.decode(token).subject_id
        except TokenError:
            return None

    def expires_at(self, token: str) -> int | None:
        """Return the token's expiry (epoch seconds), or None if it does not decode."""
        try:
            return self.decode(token).expires_at
        except TokenError:
            return None

    def renew(self, token: str) -> str:
        """
        Re-sign a token with a fresh renewal time and expiry.

        Subject, email, issuer, issued-at and jti are carried over.

        Raises:
            RenewalError: If the token does not decode.
        """
        try:
            payload = self.decode(token)
        except TokenError as e:
            raise RenewalError(f"Invalid token for renewal: {e}") from e

        now = self._now()
        renewed = replace(
            payload,
            renewed_at=now,
            expires_at=now + self.config.lifetime,
        )
        return self._encode(renewed)

    def renew_if_stale(self, token: str) -> str:
        """
        Renew a token only if it was last renewed at least ``renewal_threshold`` ago.

        Returns the input unchanged when it is still fresh.

        Raises:
            RenewalError: If the token does not decode.
        """
        try:
            payload = self.decode(token)
        except TokenError as e:
            raise RenewalError(f"Invalid token for renewal: {e}") from e

        if self._now() - payload.renewed_at < self.config.renewal_threshold:
            return token
        return self.renew(token)

    def try_renew(self, token: str) -> RenewalResult:
        """Best-effort ``renew_if_stale`` that reports failure instead of raising."""
        try:
            renewed = self.renew_if_stale(token)
        except RenewalError as e:
            return RenewalResult(error=e)
        if renewed == token:
            return RenewalResult()
        return RenewalResult(token=renewed)
