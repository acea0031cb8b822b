"""
Error taxonomy for the reconciliation core.

- SchoolHubError: base class, carries a message and optional details
- ValidationError: local input rejection, nothing was sent anywhere
- NotAuthenticated / ProfileNotFound / Forbidden: authorization failures
- StoreReadError: a read against the store failed
- StoreWriteError: a single write against the store or auth subsystem failed
- AuthIdentityCreationFailed: the identity step of provisioning failed
- PartialProvisioningFailure: identity exists but its profile row does not
- RecordNotFound: an addressed row is outside the caller's scope or missing
- ConfigurationError: the store client could not be built
"""
from typing import Any, Dict, Optional


class SchoolHubError(Exception):
    """Base exception for all schoolhub errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        return self.message


class ValidationError(SchoolHubError):
    """A request field broke a local rule. No external call was made."""

    def __init__(self, field: str, message: str):
        self.field = field
        super().__init__(message, {"field": field})


class NotAuthenticated(SchoolHubError):
    """The caller presented no credential, or the auth subsystem rejected it."""


class ProfileNotFound(SchoolHubError):
    """The credential is valid but no profile row is linked to the identity."""


class Forbidden(SchoolHubError):
    """The caller's profile does not carry the required role."""


class StoreReadError(SchoolHubError):
    """A select against the store failed."""

    def __init__(self, message: str, table: Optional[str] = None):
        self.table = table
        super().__init__(message, {"table": table} if table else None)


class StoreWriteError(SchoolHubError):
    """
    One external write failed.

    Attributes:
        step: Name of the flow step whose call failed (e.g. "delete_answers")
        table: Store table the write targeted, if any
    """

    def __init__(self, message: str, step: Optional[str] = None,
                 table: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        self.step = step
        self.table = table
        merged = {"step": step, "table": table}
        merged.update(details or {})
        super().__init__(message, {k: v for k, v in merged.items() if v is not None})


class AuthIdentityCreationFailed(StoreWriteError):
    """The auth subsystem refused to create the identity. Nothing was changed."""

    def __init__(self, message: str, email: Optional[str] = None):
        self.email = email
        super().__init__(message, step="create_identity", details={"email": email})


class PartialProvisioningFailure(StoreWriteError):
    """
    The identity was created but the profile upsert failed.

    The identity is left in place; auth_user_id and email identify it so the
    profile alone can be re-synced later.
    """

    def __init__(self, message: str, auth_user_id: str, email: str):
        self.auth_user_id = auth_user_id
        self.email = email
        super().__init__(
            message,
            step="sync_profile",
            table="users",
            details={"auth_user_id": auth_user_id, "email": email},
        )


class RecordNotFound(SchoolHubError):
    """A row addressed by id does not exist in the caller's scope."""


class ConfigurationError(SchoolHubError):
    """Required settings for the store client are missing."""
