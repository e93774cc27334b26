"""
Row-level access policies for profiles, photo metadata and stored files.

Each policy is a predicate over the caller identity and the target row (or
storage object). Policies are permissive: an operation on a resource is
allowed when at least one policy registered for that (resource, operation)
pair accepts it, and denied when none does or none exists.

The caller identity is the authenticated user id, or None for anonymous
requests. An anonymous caller never matches an ownership predicate.
"""

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

from ..error_handling import AuthorizationError
from ..logging_config import get_logger, log_security_event

logger = get_logger(__name__)

PHOTOS_BUCKET_ID = "photos"


class Resource(Enum):
    """Resources guarded by the access control layer."""

    PROFILES = "profiles"
    PHOTOS = "photos"
    STORAGE_OBJECTS = "storage.objects"


class Operation(Enum):
    """Operations a policy can be attached to."""

    SELECT = "select"
    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"


Predicate = Callable[[str | None, Mapping[str, Any]], bool]


@dataclass(frozen=True)
class Policy:
    """A named predicate attached to one operation on one resource."""

    name: str
    resource: Resource
    operation: Operation
    predicate: Predicate

    def applies_to(self, resource: Resource, operation: Operation) -> bool:
        return self.resource is resource and self.operation is operation

    def allows(self, caller: str | None, target: Mapping[str, Any]) -> bool:
        return self.predicate(caller, target)


def storage_folder(key: str) -> str | None:
    """
    Return the first folder segment of an object key.

    ``"u1/123.png"`` gives ``"u1"``; a key without a folder gives None.
    """
    head, sep, _ = key.partition("/")
    if not sep or not head:
        return None
    return head


def is_row_owner(caller: str | None, row: Mapping[str, Any]) -> bool:
    """Caller identity equals the row's owning-user reference."""
    return caller is not None and caller == row.get("user_id")


def is_object_owner(caller: str | None, obj: Mapping[str, Any]) -> bool:
    """Object lives in the photos bucket under a folder named after the caller."""
    if caller is None or obj.get("bucket_id") != PHOTOS_BUCKET_ID:
        return False
    return str(caller) == storage_folder(str(obj.get("name", "")))


def is_public_object(caller: str | None, obj: Mapping[str, Any]) -> bool:
    """Any object in the photos bucket is readable by anyone."""
    return obj.get("bucket_id") == PHOTOS_BUCKET_ID


DEFAULT_POLICIES: tuple[Policy, ...] = (
    Policy("Users can view own profile", Resource.PROFILES, Operation.SELECT, is_row_owner),
    Policy("Users can insert own profile", Resource.PROFILES, Operation.INSERT, is_row_owner),
    Policy("Users can update own profile", Resource.PROFILES, Operation.UPDATE, is_row_owner),
    Policy("Users can view own photos", Resource.PHOTOS, Operation.SELECT, is_row_owner),
    Policy("Users can insert own photos", Resource.PHOTOS, Operation.INSERT, is_row_owner),
    Policy("Users can delete own photos", Resource.PHOTOS, Operation.DELETE, is_row_owner),
    Policy("Users can upload own photos", Resource.STORAGE_OBJECTS, Operation.INSERT, is_object_owner),
    Policy("Users can view own photos", Resource.STORAGE_OBJECTS, Operation.SELECT, is_object_owner),
    Policy("Users can delete own photos", Resource.STORAGE_OBJECTS, Operation.DELETE, is_object_owner),
    Policy("Public can view photos", Resource.STORAGE_OBJECTS, Operation.SELECT, is_public_object),
)


class AccessControl:
    """Evaluates policies for a request."""

    def __init__(self, policies: Iterable[Policy] = DEFAULT_POLICIES) -> None:
        self.policies = tuple(policies)

    def policies_for(self, resource: Resource, operation: Operation) -> list[Policy]:
        """Get the policies registered for an operation on a resource."""
        return [policy for policy in self.policies if policy.applies_to(resource, operation)]

    def is_allowed(
        self,
        caller: str | None,
        resource: Resource,
        operation: Operation,
        target: Mapping[str, Any],
    ) -> bool:
        """
        Decide whether the caller may perform the operation on the target.

        Args:
            caller: Authenticated user id, or None for anonymous
            resource: Guarded resource
            operation: Requested operation
            target: Row (or storage object with ``bucket_id`` and ``name``) being touched

        Returns:
            True if any matching policy accepts, False otherwise
        """
        for policy in self.policies_for(resource, operation):
            if policy.allows(caller, target):
                logger.debug(
                    "access_granted",
                    caller=caller,
                    resource=resource.value,
                    operation=operation.value,
                    policy=policy.name,
                )
                return True
        return False

    def check(
        self,
        caller: str | None,
        resource: Resource,
        operation: Operation,
        target: Mapping[str, Any],
    ) -> None:
        """
        Require permission for a write, as WITH CHECK does for inserts.

        Raises:
            AuthorizationError: If no policy accepts the operation
        """
        if not self.is_allowed(caller, resource, operation, target):
            log_security_event(
                "access_denied",
                user_id=caller,
                resource=resource.value,
                operation=operation.value,
            )
            raise AuthorizationError(
                details={"resource": resource.value, "operation": operation.value},
            )

    def filter_visible(
        self,
        caller: str | None,
        resource: Resource,
        operation: Operation,
        rows: Iterable[Mapping[str, Any]],
    ) -> list[Mapping[str, Any]]:
        """
        Keep only the rows the caller may touch, as USING does for reads and deletes.

        Rows that are filtered out are indistinguishable from rows that do not exist.
        """
        candidates = list(rows)
        visible = [row for row in candidates if self.is_allowed(caller, resource, operation, row)]
        hidden = len(candidates) - len(visible)
        if hidden:
            logger.debug(
                "rows_filtered_by_policy",
                caller=caller,
                resource=resource.value,
                operation=operation.value,
                hidden=hidden,
            )
        return visible


_access_control: AccessControl | None = None


def get_access_control() -> AccessControl:
    """Get the global access control instance."""
    global _access_control
    if _access_control is None:
        _access_control = AccessControl()
    return _access_control
