"""
Privileged profile provisioning.

Runs inside the sign-up transaction with system privilege: it writes the
profile row directly, without going through the access control layer, since
the acting principal at that point is the identity subsystem rather than an
authenticated user. Only IdentityService calls it.
"""

import duckdb

from ..logging_config import get_logger, log_user_action
from ..models.database import to_db_timestamp
from ..models.profile import Profile
from ..models.user import User

logger = get_logger(__name__)


class ProfileProvisioner:
    """Creates the single profile row that belongs to a new user."""

    def provision(self, conn: duckdb.DuckDBPyConnection, user: User) -> Profile:
        """
        Insert the profile for a freshly created user.

        Args:
            conn: Connection with the caller's open transaction
            user: The user row just inserted in the same transaction

        Returns:
            The created Profile

        Raises:
            duckdb.Error: If the insert fails; the caller's transaction must roll back
        """
        profile = Profile.create_new(user_id=user.id, email=user.email)
        conn.execute(
            "INSERT INTO profiles (id, user_id, email, created_at) VALUES (?, ?, ?, ?)",
            (profile.id, profile.user_id, profile.email, to_db_timestamp(profile.created_at)),
        )
        log_user_action(user.id, "profile_provisioned", profile_id=profile.id)
        return profile
