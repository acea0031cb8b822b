"""
Authorization Guard
Resolves the caller's profile from the authoritative store before privileged writes.
"""
import logging
from typing import Iterable, Optional

from schoolhub.db.store_interface import AuthGateway, RemoteStore
from schoolhub.exceptions import Forbidden, NotAuthenticated, ProfileNotFound
from schoolhub.models.schemas import UserProfile
from schoolhub.repositories import profile_repository

logger = logging.getLogger(__name__)


def extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
    """Return the token of an Authorization header value ("Bearer <jwt>" or a bare token)."""
    if not authorization or not authorization.strip():
        return None
    scheme, _, token = authorization.strip().partition(" ")
    if scheme.lower() == "bearer":
        return token.strip() or None
    return authorization.strip()


class AuthorizationGuard:
    """
    Checks a caller's role against their profile row.

    The role is always read from the `users` table with the service client; role
    claims carried in the caller's token metadata are ignored.
    """

    def __init__(self, store: RemoteStore, auth: AuthGateway):
        self.store = store
        self.auth = auth

    def resolve_profile(self, authorization: Optional[str]) -> UserProfile:
        """
        Resolve the caller's own profile.

        Raises:
            NotAuthenticated: No credential, or the auth subsystem rejected it
            ProfileNotFound: Valid credential without a linked profile row
            StoreReadError: The profile lookup itself failed
        """
        token = extract_bearer_token(authorization)
        if token is None:
            raise NotAuthenticated("Missing Authorization header")

        identity = self.auth.get_caller_identity(token)
        profile = profile_repository.get_profile(self.store, identity.id)
        if profile is None:
            logger.warning(f"Authenticated identity {identity.id} has no profile row")
            raise ProfileNotFound("Requester profile not found", {"user_id": identity.id})
        return profile

    def require_role(self, authorization: Optional[str], roles: Iterable[str]) -> UserProfile:
        allowed = set(roles)
        profile = self.resolve_profile(authorization)
        if profile.role not in allowed:
            logger.info(f"User {profile.id} with role {profile.role} denied; requires {sorted(allowed)}")
            raise Forbidden(f"Requires role: {', '.join(sorted(allowed))}", {"role": profile.role})
        return profile

    def require_school_admin(self, authorization: Optional[str]) -> UserProfile:
        """Return the caller's profile if they are a school admin, otherwise raise."""
        try:
            return self.require_role(authorization, ["school_admin"])
        except Forbidden as e:
            raise Forbidden("Only school admins can manage teacher accounts", e.details) from e
