"""
Photo metadata model for photovault application.

This module contains the PhotoRecord dataclass that represents one row of
the photos table. A record points at a stored file object only through
``file_path``; nothing ties the two together beyond that string.
"""

import uuid
from dataclasses import dataclass
from datetime import UTC, datetime

from ..access.policies import storage_folder


@dataclass
class PhotoRecord:
    """
    Represents metadata for one uploaded photo.

    ``file_path`` follows the ``{user_id}/{file}`` storage key convention.
    """

    id: str
    user_id: str
    file_name: str
    file_path: str
    file_size: int | None
    created_at: datetime

    @classmethod
    def create_new(
        cls,
        user_id: str,
        file_name: str,
        file_path: str,
        file_size: int | None = None,
        created_at: datetime | None = None,
    ) -> "PhotoRecord":
        """
        Create a new PhotoRecord with a generated ID.

        Args:
            user_id: ID of the owning user
            file_name: Original file name as chosen by the user
            file_path: Storage key of the uploaded object
            file_size: Size of the file in bytes, if known
            created_at: Creation time (defaults to now)

        Returns:
            New PhotoRecord instance
        """
        return cls(
            id=str(uuid.uuid4()),
            user_id=user_id,
            file_name=file_name,
            file_path=file_path,
            file_size=file_size,
            created_at=created_at or datetime.now(UTC),
        )

    def to_dict(self) -> dict:
        """Convert PhotoRecord to a dictionary."""
        return {
            "id": self.id,
            "user_id": self.user_id,
            "file_name": self.file_name,
            "file_path": self.file_path,
            "file_size": self.file_size,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "PhotoRecord":
        """Create PhotoRecord from a dictionary (e.g., from session state)."""
        created_at = data["created_at"]
        if isinstance(created_at, str):
            created_at = datetime.fromisoformat(created_at)

        return cls(
            id=data["id"],
            user_id=data["user_id"],
            file_name=data["file_name"],
            file_path=data["file_path"],
            file_size=data.get("file_size"),
            created_at=created_at,
        )

    @property
    def folder(self) -> str | None:
        """First segment of the storage path, or None when the path has no folder."""
        return storage_folder(self.file_path)

    def validate(self) -> bool:
        """
        Validate the PhotoRecord instance.

        Returns:
            True if valid, False otherwise
        """
        if not self.id or not self.user_id or not self.file_name or not self.file_path:
            return False

        if self.file_size is not None and self.file_size < 0:
            return False

        return True
