"""Profile model: one row per user, created by the sign-up provisioning step."""

import uuid
from dataclasses import dataclass
from datetime import UTC, datetime


@dataclass
class Profile:
    """Represents a user profile row."""

    id: str
    user_id: str
    email: str | None
    created_at: datetime

    @classmethod
    def create_new(cls, user_id: str, email: str | None) -> "Profile":
        """Create a new Profile with a generated ID and current timestamp."""
        return cls(id=str(uuid.uuid4()), user_id=user_id, email=email, created_at=datetime.now(UTC))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "email": self.email,
            "created_at": self.created_at.isoformat(),
        }
