"""Values passed between the request builder, validators and session codec."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any


@dataclass(frozen=True)
class AuthRequest:
    """An outbound authentication request for one login attempt."""

    endpoint: str
    return_to: str
    realm: str
    redirect_url: str
    nonce: str | None = None


@dataclass(frozen=True)
class VerifiedIdentity:
    """Identity produced by a fully successful verification.

    ``subject`` is the OpenID 2.0 claimed identifier or the verified email
    of the token flow. ``expires_at`` and ``nonce`` are only set by the token
    flow.
    """

    subject: str
    verified_at: datetime
    expires_at: datetime | None = None
    nonce: str | None = None

    @property
    def is_expired(self) -> bool:
        """Check if the underlying token has expired."""
        return self.expires_at is not None and datetime.now(UTC) > self.expires_at

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON responses."""
        return {
            "subject": self.subject,
            "verified_at": self.verified_at.isoformat(),
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
        }
