"""Storage service for the photos bucket on Google Cloud Storage."""

from google.api_core.exceptions import GoogleAPICallError, NotFound, PreconditionFailed
from google.cloud import storage  # type: ignore[attr-defined]

from ..access.policies import PHOTOS_BUCKET_ID, AccessControl, Operation, Resource, get_access_control
from ..config import get_photos_bucket, get_required_env
from ..error_handling import StorageError
from ..logging_config import get_logger, log_user_action
from ..models.user import Session
from .auth import IdentityService, get_identity_service

logger = get_logger(__name__)


class StorageService:
    """
    Policy-checked operations on stored file objects.

    Writes and deletes require the caller's id as the first folder of the
    object key. Reads are public.
    """

    def __init__(
        self,
        identity: IdentityService,
        bucket_name: str | None = None,
        project_id: str | None = None,
        access_control: AccessControl | None = None,
    ) -> None:
        """
        Initialize the storage service.

        Args:
            identity: Identity service used to resolve the caller of each request
            bucket_name: GCS bucket name (defaults to GCS_PHOTOS_BUCKET from the environment or Streamlit secrets)
            project_id: GCP project ID (defaults to GOOGLE_CLOUD_PROJECT from the environment or Streamlit secrets)
            access_control: Policy evaluator (defaults to the global instance)

        Raises:
            StorageError: If configuration is missing or the client cannot be created
        """
        self.identity = identity
        self.access = access_control or get_access_control()
        try:
            self.bucket_name = bucket_name or get_photos_bucket()
            self.project_id = project_id or str(get_required_env("GOOGLE_CLOUD_PROJECT"))
        except ValueError as e:
            raise StorageError(str(e), code="storage_not_configured", original_exception=e) from e

        try:
            self.client = storage.Client(project=self.project_id)
            self.bucket = self.client.bucket(self.bucket_name)
            logger.info("storage_service_initialized", bucket=self.bucket_name, project_id=self.project_id)
        except Exception as e:
            raise StorageError(f"Failed to initialize GCS client: {e}", original_exception=e) from e

    def _object(self, path: str) -> dict[str, str]:
        return {"bucket_id": PHOTOS_BUCKET_ID, "name": path}

    def upload_file(self, session: Session | None, path: str, data: bytes, content_type: str | None = None) -> dict:
        """
        Upload a new object. Existing objects are never overwritten.

        Args:
            session: Caller session
            path: Object key, ``{user_id}/{file}``
            data: File content
            content_type: Declared MIME type

        Returns:
            dict: Upload result with path, size and content type

        Raises:
            AuthorizationError: If the key is outside the caller's folder
            StorageError: If the object already exists or the upload fails
        """
        caller = self.identity.resolve_caller(session)
        self.access.check(caller, Resource.STORAGE_OBJECTS, Operation.INSERT, self._object(path))

        blob = self.bucket.blob(path)
        blob.metadata = {"owner": str(caller), "file_size": str(len(data))}

        try:
            blob.upload_from_string(data, content_type=content_type, if_generation_match=0)
        except PreconditionFailed as e:
            raise StorageError(
                "The resource already exists",
                code="object_exists",
                user_message="Já existe um arquivo com este nome.",
                details={"path": path},
                original_exception=e,
            ) from e
        except GoogleAPICallError as e:
            raise StorageError(
                f"Failed to upload '{path}': {e}", details={"path": path}, original_exception=e
            ) from e

        log_user_action(str(caller), "file_uploaded", path=path, file_size=len(data), content_type=content_type)
        return {"path": path, "file_size": len(data), "content_type": content_type}

    def remove_files(self, session: Session | None, paths: list[str]) -> list[str]:
        """
        Remove objects the caller owns.

        Keys outside the caller's folder and keys that do not exist are skipped
        without error, so the two cases cannot be told apart.

        Returns:
            The keys that were actually removed

        Raises:
            StorageError: If a permitted delete fails
        """
        caller = self.identity.resolve_caller(session)
        removed = []

        for path in paths:
            if not self.access.is_allowed(caller, Resource.STORAGE_OBJECTS, Operation.DELETE, self._object(path)):
                logger.info("file_remove_skipped", user_id=caller, path=path)
                continue

            try:
                self.bucket.blob(path).delete()
            except NotFound:
                logger.info("file_remove_skipped", user_id=caller, path=path)
                continue
            except GoogleAPICallError as e:
                raise StorageError(
                    f"Failed to delete '{path}': {e}", details={"path": path}, original_exception=e
                ) from e

            removed.append(path)

        if removed:
            log_user_action(str(caller), "files_removed", paths=removed)
        return removed

    def download_file(self, path: str) -> bytes:
        """
        Download an object. Reads are public.

        Raises:
            StorageError: If the object does not exist or the download fails
        """
        if not self.access.is_allowed(None, Resource.STORAGE_OBJECTS, Operation.SELECT, self._object(path)):
            raise StorageError(f"File not found: {path}", code="object_not_found", details={"path": path})

        try:
            return self.bucket.blob(path).download_as_bytes()
        except NotFound as e:
            raise StorageError(
                f"File not found: {path}", code="object_not_found", details={"path": path}, original_exception=e
            ) from e
        except GoogleAPICallError as e:
            raise StorageError(
                f"Failed to download '{path}': {e}", details={"path": path}, original_exception=e
            ) from e

    def file_exists(self, path: str) -> bool:
        """Check whether an object exists."""
        try:
            return bool(self.bucket.blob(path).exists())
        except GoogleAPICallError as e:
            raise StorageError(f"Failed to check file existence: {e}", original_exception=e) from e

    def get_public_url(self, path: str) -> str:
        """Get the public URL of an object. No existence check is made."""
        return str(self.bucket.blob(path).public_url)

    def check_bucket_exists(self) -> bool:
        """Check if the configured bucket is reachable."""
        try:
            return bool(self.bucket.exists())
        except GoogleAPICallError as e:
            logger.error("bucket_check_failed", bucket=self.bucket_name, error=str(e))
            return False


_storage_service: StorageService | None = None


def get_storage_service() -> StorageService:
    """Get the global storage service instance."""
    global _storage_service
    if _storage_service is None:
        _storage_service = StorageService(identity=get_identity_service())
    return _storage_service
