"""
Access control layer for photovault application.

Row-level policies for the profiles and photos tables and the photos
storage bucket.
"""

from .policies import (
    DEFAULT_POLICIES,
    PHOTOS_BUCKET_ID,
    AccessControl,
    Operation,
    Policy,
    Resource,
    get_access_control,
    storage_folder,
)

__all__ = [
    "AccessControl",
    "DEFAULT_POLICIES",
    "Operation",
    "PHOTOS_BUCKET_ID",
    "Policy",
    "Resource",
    "get_access_control",
    "storage_folder",
]
