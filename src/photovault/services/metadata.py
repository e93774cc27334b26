"""
Metadata service: the data API over the profiles and photos tables.

Every request runs as the caller resolved from the session token and is
evaluated against the access control layer before DuckDB executes it:

- reads and deletes only ever see rows the caller owns; a missing row and a
  row owned by someone else look the same (empty result / ``False``)
- inserts and updates whose new row fails the policy raise AuthorizationError
- photo metadata has no update operation
"""

from typing import Any

import duckdb

from ..access.policies import AccessControl, Operation, Resource, get_access_control
from ..config import get_enforce_photo_path_prefix
from ..error_handling import AuthorizationError, DatabaseError, ValidationError
from ..logging_config import get_logger, log_error, log_security_event, log_user_action
from ..models.database import DatabaseManager, from_db_timestamp, get_database_manager, to_db_timestamp
from ..models.photo import PhotoRecord
from ..models.profile import Profile
from ..models.user import Session
from .auth import IdentityService, get_identity_service

logger = get_logger(__name__)

PHOTO_COLUMNS = "id, user_id, file_name, file_path, file_size, created_at"
PROFILE_COLUMNS = "id, user_id, email, created_at"


def _photo_from_row(row: dict[str, Any]) -> PhotoRecord:
    return PhotoRecord(
        id=row["id"],
        user_id=row["user_id"],
        file_name=row["file_name"],
        file_path=row["file_path"],
        file_size=row["file_size"],
        created_at=from_db_timestamp(row["created_at"]),
    )


def _profile_from_row(row: dict[str, Any]) -> Profile:
    return Profile(
        id=row["id"],
        user_id=row["user_id"],
        email=row["email"],
        created_at=from_db_timestamp(row["created_at"]),
    )


class MetadataService:
    """Policy-checked CRUD for profile and photo metadata rows."""

    def __init__(
        self,
        db: DatabaseManager,
        identity: IdentityService,
        access_control: AccessControl | None = None,
        enforce_path_prefix: bool = False,
    ) -> None:
        """
        Initialize the metadata service.

        Args:
            db: Database holding the profiles and photos tables
            identity: Identity service used to resolve the caller of each request
            access_control: Policy evaluator (defaults to the global instance)
            enforce_path_prefix: Reject photo rows whose file_path is outside the caller's folder
        """
        self.db = db
        self.identity = identity
        self.access = access_control or get_access_control()
        self.enforce_path_prefix = enforce_path_prefix

    # Photos

    def list_photos(self, session: Session | None) -> list[PhotoRecord]:
        """
        List the caller's photos, most recent first.

        Args:
            session: Caller session, or None for anonymous (always empty)

        Returns:
            PhotoRecord list ordered by created_at descending

        Raises:
            AuthenticationError: If the session token is invalid
            DatabaseError: If the query fails
        """
        caller = self.identity.resolve_caller(session)
        if caller is None:
            return []

        try:
            rows = self.db.fetch_dicts(
                f"SELECT {PHOTO_COLUMNS} FROM photos WHERE user_id = ? ORDER BY created_at DESC, id DESC",
                (caller,),
            )
        except duckdb.Error as e:
            log_error(e, {"operation": "list_photos", "user_id": caller})
            raise DatabaseError(f"Failed to list photos: {e}", code="photo_list_failed", original_exception=e) from e

        visible = self.access.filter_visible(caller, Resource.PHOTOS, Operation.SELECT, rows)
        photos = [_photo_from_row(row) for row in visible]

        logger.info("photos_listed", user_id=caller, photos_count=len(photos))
        return photos

    def get_photo(self, session: Session | None, photo_id: str) -> PhotoRecord | None:
        """
        Get one photo row by id.

        Returns:
            The PhotoRecord, or None when it does not exist or is not the caller's
        """
        caller = self.identity.resolve_caller(session)

        try:
            rows = self.db.fetch_dicts(f"SELECT {PHOTO_COLUMNS} FROM photos WHERE id = ?", (photo_id,))
        except duckdb.Error as e:
            log_error(e, {"operation": "get_photo", "photo_id": photo_id})
            raise DatabaseError(f"Failed to get photo: {e}", code="photo_get_failed", original_exception=e) from e

        visible = self.access.filter_visible(caller, Resource.PHOTOS, Operation.SELECT, rows)
        return _photo_from_row(visible[0]) if visible else None

    def insert_photo_metadata(self, session: Session | None, record: PhotoRecord) -> PhotoRecord:
        """
        Insert a photo metadata row.

        Args:
            session: Caller session
            record: Row to insert; ``record.user_id`` must be the caller

        Returns:
            The inserted PhotoRecord

        Raises:
            ValidationError: If the record is malformed
            AuthorizationError: If the row is not owned by the caller
            DatabaseError: If the insert fails
        """
        caller = self.identity.resolve_caller(session)

        if not record.validate():
            raise ValidationError(
                "Invalid photo metadata",
                code="invalid_photo_metadata",
                user_message="Dados da foto inválidos.",
                details={"photo_id": record.id},
            )

        self.access.check(caller, Resource.PHOTOS, Operation.INSERT, record.to_dict())

        if record.folder != caller:
            log_security_event(
                "photo_path_owner_mismatch",
                user_id=caller,
                file_path=record.file_path,
                enforced=self.enforce_path_prefix,
            )
            if self.enforce_path_prefix:
                raise AuthorizationError(
                    details={"resource": Resource.PHOTOS.value, "operation": Operation.INSERT.value},
                )

        try:
            self.db.execute_query(
                f"INSERT INTO photos ({PHOTO_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?)",
                (
                    record.id,
                    record.user_id,
                    record.file_name,
                    record.file_path,
                    record.file_size,
                    to_db_timestamp(record.created_at),
                ),
            )
        except duckdb.Error as e:
            log_error(e, {"operation": "insert_photo_metadata", "user_id": caller, "photo_id": record.id})
            raise DatabaseError(
                f"Failed to insert photo metadata: {e}",
                code="photo_insert_failed",
                details={"photo_id": record.id},
                original_exception=e,
            ) from e

        log_user_action(
            record.user_id,
            "photo_metadata_saved",
            photo_id=record.id,
            file_path=record.file_path,
            file_size=record.file_size,
        )
        return record

    def delete_photo_metadata(self, session: Session | None, photo_id: str) -> bool:
        """
        Delete a photo metadata row. The stored file is not touched.

        Returns:
            True if a row was deleted, False when it does not exist or is not the caller's

        Raises:
            DatabaseError: If the delete fails
        """
        caller = self.identity.resolve_caller(session)

        try:
            with self.db.transaction() as conn:
                cursor = conn.execute(f"SELECT {PHOTO_COLUMNS} FROM photos WHERE id = ?", (photo_id,))
                columns = [column[0] for column in cursor.description]
                rows = [dict(zip(columns, row, strict=True)) for row in cursor.fetchall()]

                visible = self.access.filter_visible(caller, Resource.PHOTOS, Operation.DELETE, rows)
                if not visible:
                    logger.info("photo_delete_matched_nothing", user_id=caller, photo_id=photo_id)
                    return False

                conn.execute("DELETE FROM photos WHERE id = ?", (photo_id,))

        except duckdb.Error as e:
            log_error(e, {"operation": "delete_photo_metadata", "user_id": caller, "photo_id": photo_id})
            raise DatabaseError(
                f"Failed to delete photo metadata: {e}",
                code="photo_delete_failed",
                details={"photo_id": photo_id},
                original_exception=e,
            ) from e

        log_user_action(caller or "anonymous", "photo_metadata_deleted", photo_id=photo_id)
        return True

    # Profiles

    def get_profile(self, session: Session | None) -> Profile | None:
        """Get the caller's profile, or None for anonymous callers."""
        caller = self.identity.resolve_caller(session)
        if caller is None:
            return None

        rows = self.db.fetch_dicts(f"SELECT {PROFILE_COLUMNS} FROM profiles WHERE user_id = ?", (caller,))
        visible = self.access.filter_visible(caller, Resource.PROFILES, Operation.SELECT, rows)
        return _profile_from_row(visible[0]) if visible else None

    def get_profile_by_id(self, session: Session | None, profile_id: str) -> Profile | None:
        """Get a profile by id; other users' profiles are indistinguishable from missing ones."""
        caller = self.identity.resolve_caller(session)

        rows = self.db.fetch_dicts(f"SELECT {PROFILE_COLUMNS} FROM profiles WHERE id = ?", (profile_id,))
        visible = self.access.filter_visible(caller, Resource.PROFILES, Operation.SELECT, rows)
        return _profile_from_row(visible[0]) if visible else None

    def insert_profile(self, session: Session | None, profile: Profile) -> Profile:
        """
        Insert a profile row through the ordinary policy-checked path.

        Sign-up already provisions one profile per user, so in practice this only
        succeeds for users whose profile was removed.

        Raises:
            AuthorizationError: If the row is not owned by the caller
            DatabaseError: If the user already has a profile or the insert fails
        """
        caller = self.identity.resolve_caller(session)
        self.access.check(caller, Resource.PROFILES, Operation.INSERT, profile.to_dict())

        try:
            self.db.execute_query(
                f"INSERT INTO profiles ({PROFILE_COLUMNS}) VALUES (?, ?, ?, ?)",
                (profile.id, profile.user_id, profile.email, to_db_timestamp(profile.created_at)),
            )
        except duckdb.ConstraintException as e:
            raise DatabaseError(
                "Profile already exists for this user",
                code="duplicate_profile",
                user_message="Perfil já existe.",
                details={"user_id": profile.user_id},
                original_exception=e,
            ) from e
        except duckdb.Error as e:
            raise DatabaseError(
                f"Failed to insert profile: {e}", code="profile_insert_failed", original_exception=e
            ) from e

        log_user_action(profile.user_id, "profile_inserted", profile_id=profile.id)
        return profile

    def update_profile_email(self, session: Session | None, email: str) -> Profile | None:
        """
        Update the email stored on the caller's profile.

        Returns:
            The updated Profile, or None if the caller has no visible profile
        """
        caller = self.identity.resolve_caller(session)

        try:
            with self.db.transaction() as conn:
                cursor = conn.execute(f"SELECT {PROFILE_COLUMNS} FROM profiles WHERE user_id = ?", (caller,))
                columns = [column[0] for column in cursor.description]
                rows = [dict(zip(columns, row, strict=True)) for row in cursor.fetchall()]

                visible = self.access.filter_visible(caller, Resource.PROFILES, Operation.UPDATE, rows)
                if not visible:
                    return None

                updated = {**visible[0], "email": email}
                self.access.check(caller, Resource.PROFILES, Operation.UPDATE, updated)
                conn.execute("UPDATE profiles SET email = ? WHERE id = ?", (email, updated["id"]))

        except duckdb.Error as e:
            raise DatabaseError(
                f"Failed to update profile: {e}", code="profile_update_failed", original_exception=e
            ) from e

        log_user_action(caller or "anonymous", "profile_updated")
        return _profile_from_row(updated)

    # System reads, not reachable through the client handlers

    def count_photos_for_user(self, user_id: str) -> int:
        """Count photo rows owned by a user, bypassing policies."""
        rows = self.db.execute_query("SELECT COUNT(*) FROM photos WHERE user_id = ?", (user_id,))
        return int(rows[0][0]) if rows else 0

    def count_profiles_for_user(self, user_id: str) -> int:
        """Count profile rows owned by a user, bypassing policies."""
        rows = self.db.execute_query("SELECT COUNT(*) FROM profiles WHERE user_id = ?", (user_id,))
        return int(rows[0][0]) if rows else 0


_metadata_service: MetadataService | None = None


def get_metadata_service() -> MetadataService:
    """Get the global metadata service instance."""
    global _metadata_service
    if _metadata_service is None:
        _metadata_service = MetadataService(
            db=get_database_manager(),
            identity=get_identity_service(),
            enforce_path_prefix=get_enforce_photo_path_prefix(),
        )
    return _metadata_service
