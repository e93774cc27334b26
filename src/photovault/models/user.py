"""
Identity models for photovault application.

``User`` is the identity record owned by the identity subsystem.
``Session`` is the explicit session context the client passes into every
data and storage call.
"""

from dataclasses import dataclass
from datetime import UTC, datetime


@dataclass(frozen=True)
class User:
    """An authenticated identity."""

    id: str
    email: str
    created_at: datetime | None = None


@dataclass(frozen=True)
class Session:
    """
    Session context returned by sign-in.

    Services only trust ``access_token``; ``user`` is a convenience copy for
    display and path generation.
    """

    access_token: str
    user: User
    expires_at: datetime

    @property
    def user_id(self) -> str:
        return self.user.id

    def is_expired(self, now: datetime | None = None) -> bool:
        """Check whether the session has passed its expiry time."""
        return (now or datetime.now(UTC)) >= self.expires_at
