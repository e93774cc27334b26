"""
Pytest configuration and fixtures for photovault tests.

Google Cloud Storage is replaced by an in-memory bucket; DuckDB runs on a
temporary file.
"""

import threading
from collections.abc import Callable, Generator
from unittest.mock import MagicMock, patch

import pytest
from google.api_core.exceptions import NotFound, PreconditionFailed

from photovault.config import get_config
from photovault.models.database import DatabaseManager, create_database
from photovault.models.user import Session
from photovault.services.auth import IdentityService
from photovault.services.metadata import MetadataService
from photovault.services.storage import StorageService

TEST_JWT_SECRET = "test-jwt-secret"
TEST_BUCKET = "test-photos-bucket"

# 1x1 PNG
SAMPLE_PNG = bytes.fromhex(
    "89504e470d0a1a0a0000000d4948445200000001000000010802000000907753de"
    "0000000c4944415408d763f80000000001000100000000000049454e44ae426082"
)


class FakeBlob:
    """Blob stand-in backed by its FakeBucket's object dict."""

    def __init__(self, bucket: "FakeBucket", name: str):
        self.bucket = bucket
        self.name = name
        self.metadata: dict | None = None

    @property
    def public_url(self) -> str:
        return f"https://storage.googleapis.com/{self.bucket.name}/{self.name}"

    def upload_from_string(self, data, content_type=None, if_generation_match=None):
        with self.bucket.lock:
            if if_generation_match == 0 and self.name in self.bucket.objects:
                raise PreconditionFailed(f"Object already exists: {self.name}")
            self.bucket.objects[self.name] = {
                "data": bytes(data),
                "content_type": content_type,
                "metadata": dict(self.metadata or {}),
            }

    def delete(self):
        with self.bucket.lock:
            if self.name not in self.bucket.objects:
                raise NotFound(f"No such object: {self.name}")
            del self.bucket.objects[self.name]

    def exists(self) -> bool:
        return self.name in self.bucket.objects

    def download_as_bytes(self) -> bytes:
        if self.name not in self.bucket.objects:
            raise NotFound(f"No such object: {self.name}")
        return self.bucket.objects[self.name]["data"]


class FakeBucket:
    """In-memory GCS bucket."""

    def __init__(self, name: str = TEST_BUCKET):
        self.name = name
        self.objects: dict[str, dict] = {}
        self.lock = threading.Lock()

    def blob(self, name: str) -> FakeBlob:
        return FakeBlob(self, name)

    def exists(self) -> bool:
        return True


@pytest.fixture(autouse=True)
def setup_test_env(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    """Set up test environment variables."""
    monkeypatch.setenv("ENVIRONMENT", "test")
    monkeypatch.setenv("GCS_PHOTOS_BUCKET", TEST_BUCKET)
    monkeypatch.setenv("GOOGLE_CLOUD_PROJECT", "test-project")
    monkeypatch.setenv("AUTH_JWT_SECRET", TEST_JWT_SECRET)
    monkeypatch.delenv("MAX_UPLOAD_SIZE_MB", raising=False)
    monkeypatch.delenv("ENFORCE_PHOTO_PATH_PREFIX", raising=False)
    get_config().clear_cache()
    yield
    get_config().clear_cache()


@pytest.fixture
def sample_image_data() -> bytes:
    """Provide sample image data for testing."""
    return SAMPLE_PNG


@pytest.fixture
def db(tmp_path) -> Generator[DatabaseManager, None, None]:
    """Initialized database on a temporary file."""
    manager = create_database(str(tmp_path / "photovault.duckdb"))
    yield manager
    manager.close()


@pytest.fixture
def identity(db: DatabaseManager, monkeypatch: pytest.MonkeyPatch) -> IdentityService:
    """Identity service with cheap password hashing."""
    monkeypatch.setattr(IdentityService, "PASSWORD_HASH_ITERATIONS", 1000)
    return IdentityService(db=db, jwt_secret=TEST_JWT_SECRET, session_ttl=3600)


@pytest.fixture
def metadata_service(db: DatabaseManager, identity: IdentityService) -> MetadataService:
    return MetadataService(db=db, identity=identity)


@pytest.fixture
def fake_bucket() -> FakeBucket:
    return FakeBucket()


@pytest.fixture
def storage_service(identity: IdentityService, fake_bucket: FakeBucket) -> Generator[StorageService, None, None]:
    """StorageService whose GCS client hands out the in-memory bucket."""
    with patch("photovault.services.storage.storage.Client") as mock_client_class:
        mock_client = MagicMock()
        mock_client.bucket.return_value = fake_bucket
        mock_client_class.return_value = mock_client
        yield StorageService(identity=identity)


@pytest.fixture
def make_session(identity: IdentityService) -> Callable[[str], Session]:
    """Sign up and sign in a user, returning their session."""

    def _make_session(email: str, password: str = "secret123") -> Session:
        identity.sign_up(email, password)
        return identity.sign_in(email, password)

    return _make_session


@pytest.fixture
def wired_handlers(
    identity: IdentityService,
    metadata_service: MetadataService,
    storage_service: StorageService,
) -> Generator[None, None, None]:
    """Point the client handlers at the test services."""
    with (
        patch("photovault.ui.handlers.auth.get_identity_service", return_value=identity),
        patch("photovault.ui.handlers.upload.get_metadata_service", return_value=metadata_service),
        patch("photovault.ui.handlers.upload.get_storage_service", return_value=storage_service),
        patch("photovault.ui.handlers.gallery.get_metadata_service", return_value=metadata_service),
        patch("photovault.ui.handlers.gallery.get_storage_service", return_value=storage_service),
    ):
        yield
