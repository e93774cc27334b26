"""
Models module for photovault application.

This module contains data models and schemas:
- User, Session: identity and explicit session context
- Profile: one row per user, provisioned at sign-up
- PhotoRecord: photo metadata row
- DatabaseManager: DuckDB connection and schema management
"""

from .database import DatabaseManager, create_database, get_database_manager
from .photo import PhotoRecord
from .profile import Profile
from .schema import get_schema_statements
from .user import Session, User

__all__ = [
    "PhotoRecord",
    "Profile",
    "Session",
    "User",
    "DatabaseManager",
    "create_database",
    "get_database_manager",
    "get_schema_statements",
]
