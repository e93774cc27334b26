"""
Services module for photovault application.

This module contains all service classes that handle business logic:
- IdentityService: sign-up, sign-in, sessions and auth events
- MetadataService: policy-checked profile and photo metadata rows
- StorageService: policy-checked stored file objects on Google Cloud Storage
"""

from .auth import AuthEvent, AuthEventChannel, AuthEventType, IdentityService, get_identity_service
from .metadata import MetadataService, get_metadata_service
from .provisioning import ProfileProvisioner
from .storage import StorageService, get_storage_service

__all__ = [
    "AuthEvent",
    "AuthEventChannel",
    "AuthEventType",
    "IdentityService",
    "get_identity_service",
    "MetadataService",
    "get_metadata_service",
    "ProfileProvisioner",
    "StorageService",
    "get_storage_service",
]
