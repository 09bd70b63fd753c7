"""Shared exceptions for service layer operations."""


class ConfigurationError(Exception):
    """
    Raised when required configuration is missing (e.g. JWT secret).

    Not recoverable: token operations must stop rather than fall back to a default.
    """

    def __init__(self, message: str) -> None:
        super().__init__(message)


# --- Token errors ---


class TokenError(Exception):
    """Base class for token encode/decode failures."""

    def __init__(self, message: str) -> None:
        super().__init__(message)


class EncodingError(TokenError):
    """Raised when a token cannot be signed (e.g. empty secret)."""


class MalformedTokenError(TokenError):
    """Raised when a token is not a structurally valid signed token or lacks required claims."""


class InvalidSignatureError(TokenError):
    """Raised when a token's signature does not verify against the configured secret."""


class ExpiredTokenError(TokenError):
    """Raised when a token's expiry time has passed."""


class RenewalError(Exception):
    """Raised when a token presented for renewal does not decode."""

    def __init__(self, message: str) -> None:
        super().__init__(message)


# --- API errors (rendered as {"errors": [...]} by api.main) ---


class ApiError(Exception):
    """
    Base exception for user-visible API failures.

    Carries the HTTP status and the list of messages for the failure envelope.
    """

    status_code: int = 500

    def __init__(self, *messages: str) -> None:
        self.messages = list(messages)
        super().__init__("; ".join(self.messages))


class AuthenticationRequiredError(ApiError):
    """No valid principal was supplied for an operation that needs one."""

    status_code = 401

    def __init__(self, message: str = "Authentication required") -> None:
        super().__init__(message)


class AuthorizationDeniedError(ApiError):
    """A principal was resolved but the capability check failed."""

    status_code = 403


class NotFoundError(ApiError):
    """The entity type or record could not be resolved."""

    status_code = 404


class ApiValidationError(ApiError):
    """Input failed validation. Messages are field-level and safe to return."""

    status_code = 400

    def __init__(self, errors: list[str]) -> None:
        super().__init__(*errors)


class ConflictError(ApiError):
    """The request conflicts with existing state (e.g. duplicate email)."""

    status_code = 409


class PersistenceError(ApiError):
    """The record store rejected a write or delete. The cause is logged, not returned."""

    status_code = 500


# --- Member errors ---


class MemberExistsError(Exception):
    """Raised when registering an email that already belongs to a member."""

    def __init__(self, email: str) -> None:
        self.email = email
        super().__init__(f"Member already exists: {email}")
