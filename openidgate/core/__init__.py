"""Identity-assertion verification engine."""

from openidgate.core.errors import (
    AssertionRejectedError,
    AuthError,
    ClaimsError,
    ConfigError,
    ErrorKind,
    InvalidSessionError,
    NoSessionError,
    NonceError,
    NonceMismatchError,
    ReturnURLMismatchError,
    TokenVerificationError,
    UnsignedFieldError,
    UnverifiedEmailError,
    VerificationRequestError,
)
from openidgate.core.logging import (
    HTTPExchange,
    LoggingClient,
    LogLevel,
    ProtocolLogger,
    configure_logging,
    get_protocol_logger,
    redact_sensitive,
    set_protocol_logger,
)
from openidgate.core.models import AuthRequest, VerifiedIdentity

__all__ = [
    # Errors
    "AssertionRejectedError",
    "AuthError",
    "ClaimsError",
    "ConfigError",
    "ErrorKind",
    "InvalidSessionError",
    "NoSessionError",
    "NonceError",
    "NonceMismatchError",
    "ReturnURLMismatchError",
    "TokenVerificationError",
    "UnsignedFieldError",
    "UnverifiedEmailError",
    "VerificationRequestError",
    # Logging
    "HTTPExchange",
    "LoggingClient",
    "LogLevel",
    "ProtocolLogger",
    "configure_logging",
    "get_protocol_logger",
    "redact_sensitive",
    "set_protocol_logger",
    # Models
    "AuthRequest",
    "VerifiedIdentity",
]
