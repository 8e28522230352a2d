"""Error taxonomy for identity-assertion verification.

Every failure raised by the verification engine is an ``AuthError`` subclass
with a fixed ``kind`` so callers can branch on the kind rather than on message
text. Structured details (field names, expected and actual values) live in
``context``.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any, ClassVar


class ErrorKind(StrEnum):
    """Closed set of verification failure kinds."""

    CONFIG = "config"
    UNSIGNED_FIELD = "unsigned_field"
    VERIFICATION_REQUEST = "verification_request"
    ASSERTION_REJECTED = "assertion_rejected"
    RETURN_URL_MISMATCH = "return_url_mismatch"
    NONCE = "nonce"
    NONCE_MISMATCH = "nonce_mismatch"
    TOKEN_VERIFICATION = "token_verification"
    CLAIMS = "claims"
    UNVERIFIED_EMAIL = "unverified_email"
    NO_SESSION = "no_session"
    INVALID_SESSION = "invalid_session"


class AuthError(Exception):
    """Base class for all verification failures."""

    kind: ClassVar[ErrorKind]
    status_code: ClassVar[int] = 400

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context: dict[str, Any] = context

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        return {
            "kind": self.kind.value,
            "message": self.message,
            "context": {k: str(v) for k, v in self.context.items()},
        }


class ConfigError(AuthError):
    """Invalid configuration or malformed setup URL."""

    kind = ErrorKind.CONFIG
    status_code = 500


class UnsignedFieldError(AuthError):
    """A field that must be covered by the provider signature is not."""

    kind = ErrorKind.UNSIGNED_FIELD

    def __init__(self, field: str) -> None:
        super().__init__(f"{field} must be signed but isn't", field=field)
        self.field = field


class VerificationRequestError(AuthError):
    """The out-of-band re-verification request could not be completed."""

    kind = ErrorKind.VERIFICATION_REQUEST
    status_code = 502


class AssertionRejectedError(AuthError):
    """The provider explicitly declined to confirm the assertion."""

    kind = ErrorKind.ASSERTION_REJECTED


class ReturnURLMismatchError(AuthError):
    """The URL the browser hit does not match the asserted return_to."""

    kind = ErrorKind.RETURN_URL_MISMATCH

    def __init__(self, component: str, expected: str | None, actual: str | None) -> None:
        super().__init__(
            f"{component} doesn't match return_to URL: got {actual!r}, want {expected!r}",
            component=component,
            expected=expected,
            actual=actual,
        )
        self.component = component
        self.expected = expected
        self.actual = actual


class NonceError(AuthError):
    """The response nonce is malformed or stale."""

    kind = ErrorKind.NONCE


class NonceMismatchError(AuthError):
    """The nonce echoed by the provider does not match the anti-CSRF nonce cookie."""

    kind = ErrorKind.NONCE_MISMATCH


class TokenVerificationError(AuthError):
    """The identity token failed signature, issuer, audience or expiry checks."""

    kind = ErrorKind.TOKEN_VERIFICATION


class ClaimsError(AuthError):
    """The identity token claims could not be decoded."""

    kind = ErrorKind.CLAIMS


class UnverifiedEmailError(AuthError):
    """The provider has not verified the user's email address."""

    kind = ErrorKind.UNVERIFIED_EMAIL

    def __init__(self, email: str) -> None:
        super().__init__(f"email not verified: {email}", email=email)
        self.email = email


class NoSessionError(AuthError):
    """No session cookie was presented."""

    kind = ErrorKind.NO_SESSION
    status_code = 401


class InvalidSessionError(AuthError):
    """The session cookie is present but does not verify."""

    kind = ErrorKind.INVALID_SESSION
    status_code = 401

    def __init__(self, cause: AuthError) -> None:
        super().__init__(f"invalid ID token: {cause.message}", cause=cause.kind.value)
        self.cause = cause
