"""
Unit tests for the batch upload task.
"""

from unittest.mock import MagicMock, patch

import pytest
from invoke import Context

from photovault.cli.batch_upload import batch_upload, find_image_files


@pytest.fixture
def image_dir(tmp_path):
    (tmp_path / "a.jpg").write_bytes(b"a")
    (tmp_path / "b.png").write_bytes(b"b")
    (tmp_path / "notes.txt").write_text("not an image")
    (tmp_path / "sub").mkdir()
    (tmp_path / "sub" / "c.jpeg").write_bytes(b"c")
    return tmp_path


class TestFindImageFiles:
    def test_top_level_only(self, image_dir):
        names = [path.rsplit("/", 1)[-1] for path in find_image_files(str(image_dir))]
        assert names == ["a.jpg", "b.png"]

    def test_recursive(self, image_dir):
        names = [path.rsplit("/", 1)[-1] for path in find_image_files(str(image_dir), recursive=True)]
        assert sorted(names) == ["a.jpg", "b.png", "c.jpeg"]


@patch("photovault.cli.batch_upload.configure_structured_logging")
class TestBatchUpload:
    """Test cases for the batch_upload task."""

    @patch("photovault.cli.batch_upload.sign_out")
    @patch("photovault.cli.batch_upload.upload_photos")
    @patch("photovault.cli.batch_upload.sign_in")
    def test_uploads_directory(self, mock_sign_in, mock_upload, mock_sign_out, mock_logging, image_dir, tmp_path):
        session = MagicMock()
        mock_sign_in.return_value = {"success": True, "session": session}
        mock_upload.return_value = [
            {"success": True, "file_name": "a.jpg"},
            {"success": False, "file_name": "b.png", "code": "metadata_insert_failed"},
        ]

        batch_upload(
            Context(),
            directory=str(image_dir),
            email="alice@example.com",
            password="secret123",
            env_file=str(tmp_path / "missing.env"),
        )

        mock_sign_in.assert_called_once_with("alice@example.com", "secret123")
        files = mock_upload.call_args[0][1]
        assert [item["file_name"] for item in files] == ["a.jpg", "b.png"]
        assert files[0]["content_type"] == "image/jpeg"
        assert files[0]["data"] == b"a"
        mock_sign_out.assert_called_once_with(session)

    @patch("photovault.cli.batch_upload.upload_photos")
    @patch("photovault.cli.batch_upload.sign_in")
    def test_dry_run(self, mock_sign_in, mock_upload, mock_logging, image_dir, tmp_path):
        batch_upload(
            Context(),
            directory=str(image_dir),
            email="alice@example.com",
            password="secret123",
            env_file=str(tmp_path / "missing.env"),
            dry_run=True,
        )

        mock_sign_in.assert_not_called()
        mock_upload.assert_not_called()

    @patch("photovault.cli.batch_upload.upload_photos")
    @patch("photovault.cli.batch_upload.sign_in")
    def test_sign_in_failure_stops(self, mock_sign_in, mock_upload, mock_logging, image_dir, tmp_path):
        mock_sign_in.return_value = {"success": False, "code": "invalid_credentials"}

        batch_upload(
            Context(),
            directory=str(image_dir),
            email="alice@example.com",
            password="wrong",
            env_file=str(tmp_path / "missing.env"),
        )

        mock_upload.assert_not_called()

    @patch("photovault.cli.batch_upload.sign_in")
    def test_missing_directory(self, mock_sign_in, mock_logging, tmp_path):
        batch_upload(
            Context(),
            directory=str(tmp_path / "missing"),
            email="alice@example.com",
            password="secret123",
            env_file=str(tmp_path / "missing.env"),
        )

        mock_sign_in.assert_not_called()
