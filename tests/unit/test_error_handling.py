"""
Unit tests for error handling.
"""

from unittest.mock import patch

import duckdb
import jwt
import pytest
from google.api_core.exceptions import NotFound

from photovault.error_handling import (
    AuthenticationError,
    AuthorizationError,
    DatabaseError,
    ErrorCategory,
    ErrorHandler,
    PhotoVaultError,
    StorageError,
    UploadError,
    ValidationError,
)


class TestErrorClasses:
    """Test cases for the exception hierarchy."""

    def test_authorization_error_is_generic(self):
        error = AuthorizationError(details={"resource": "photos", "operation": "insert"})

        assert str(error) == "new row violates row-level security policy"
        assert error.code == "rls_violation"
        assert error.user_message == "Operação não permitida."
        assert error.recoverable is False

    def test_default_codes(self):
        assert AuthenticationError("x").code == "auth_failed"
        assert UploadError("x").code == "upload_failed"
        assert DatabaseError("x").code == "database_error"
        assert StorageError("x").code == "storage_error"
        assert ValidationError("x").code == "validation_failed"

    def test_validation_user_message_defaults_to_message(self):
        assert ValidationError("Apenas imagens são permitidas").user_message == "Apenas imagens são permitidas"

    def test_error_info(self):
        error = UploadError("partial", code="metadata_insert_failed", details={"file_path": "u1/1.png"})
        info = error.get_error_info()

        assert info.category is ErrorCategory.UPLOAD
        assert info.code == "metadata_insert_failed"
        assert info.to_dict()["details"] == {"file_path": "u1/1.png"}

    def test_errors_are_logged_on_creation(self):
        with patch("photovault.error_handling.log_error") as mock_log_error:
            error = DatabaseError("query failed", code="photo_list_failed")

        mock_log_error.assert_called_once()
        assert mock_log_error.call_args[0][0] is error

    def test_security_errors_emit_security_event(self):
        with patch("photovault.error_handling.log_security_event") as mock_security_event:
            AuthorizationError()

        assert mock_security_event.call_args[0][0] == "authorization"


class TestErrorHandler:
    """Test cases for ErrorHandler."""

    def setup_method(self):
        self.handler = ErrorHandler()

    def test_known_error_passes_through(self):
        info = self.handler.handle_error(StorageError("upload failed", code="object_exists"))
        assert info.code == "object_exists"

    @pytest.mark.parametrize(
        "message,category",
        [
            ("Invalid login credentials", ErrorCategory.AUTHENTICATION),
            ("permission denied", ErrorCategory.AUTHORIZATION),
            ("Constraint Error: duplicate key", ErrorCategory.DATABASE),
            ("bucket unavailable", ErrorCategory.STORAGE),
            ("upload interrupted", ErrorCategory.UPLOAD),
            ("something odd", ErrorCategory.UNKNOWN),
        ],
    )
    def test_classifies_foreign_errors(self, message, category):
        info = self.handler.handle_error(RuntimeError(message), {"operation": "test"})

        assert info.category is category
        assert info.details["original_type"] == "RuntimeError"
        assert info.details["operation"] == "test"

    @pytest.mark.parametrize(
        "error,category",
        [
            (jwt.ExpiredSignatureError("expired"), ErrorCategory.AUTHENTICATION),
            (duckdb.ConstraintException("duplicate key"), ErrorCategory.DATABASE),
            (NotFound("photos/u1/1.png"), ErrorCategory.STORAGE),
        ],
    )
    def test_classifies_library_errors_by_type(self, error, category):
        assert self.handler.handle_error(error).category is category

    def test_library_text_is_not_shown_to_users(self):
        info = self.handler.handle_error(jwt.InvalidSignatureError("Signature verification failed"))

        assert info.category is ErrorCategory.AUTHENTICATION
        assert info.message == "Signature verification failed"
        assert info.user_message == "Falha na autenticação. Entre novamente."

    def test_type_wins_over_message(self):
        info = self.handler.handle_error(duckdb.Error("session table missing"))
        assert info.category is ErrorCategory.DATABASE

    def test_statistics(self):
        self.handler.handle_error(StorageError("x", code="object_exists"))
        self.handler.handle_error(StorageError("x", code="object_exists"))

        assert self.handler.get_error_statistics() == {"object_exists": 2}

        self.handler.reset_statistics()
        assert self.handler.get_error_statistics() == {}

    def test_base_error_default_user_message(self):
        assert PhotoVaultError("x").user_message == "Ocorreu um erro inesperado."
