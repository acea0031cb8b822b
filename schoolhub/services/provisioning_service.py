"""
Teacher Provisioning Service
Creates a teacher's auth identity and its linked profile row.

The two writes go to different subsystems and cannot share a transaction. The
flow moves strictly forward:

    VALIDATED -> AUTH_IDENTITY_CREATED -> PROFILE_SYNCED
                                       -> PROFILE_SYNC_FAILED

A failed profile sync leaves the identity in place and raises
PartialProvisioningFailure with its id and email. resync_teacher_profile repeats
only the profile upsert and is the recovery path for that state.
"""
import logging
from enum import Enum
from typing import Any, Dict, List, Optional

from schoolhub.config import PROVISIONING_SOURCE
from schoolhub.db.store_interface import AuthGateway, RemoteStore
from schoolhub.exceptions import (
    Forbidden,
    PartialProvisioningFailure,
    RecordNotFound,
    StoreWriteError,
    ValidationError,
)
from schoolhub.models.schemas import ProvisioningResult, TeacherProvisioningRequest, UserProfile
from schoolhub.repositories import profile_repository
from schoolhub.services.authorization_service import AuthorizationGuard
from schoolhub.validators.provisioning_validators import (
    normalize_phone,
    validate_full_name,
    validate_provisioning_request,
)

logger = logging.getLogger(__name__)


class ProvisioningState(str, Enum):
    VALIDATED = "validated"
    AUTH_IDENTITY_CREATED = "auth_identity_created"
    PROFILE_SYNCED = "profile_synced"
    PROFILE_SYNC_FAILED = "profile_sync_failed"


class TeacherProvisioningService:
    """Service for creating teacher accounts on behalf of a school admin."""

    def __init__(self, store: RemoteStore, auth: AuthGateway):
        self.store = store
        self.auth = auth
        self.guard = AuthorizationGuard(store, auth)

    def provision_teacher(self, authorization: Optional[str], payload: Dict[str, Any]) -> ProvisioningResult:
        """
        Create a teacher account in the calling admin's school.

        Args:
            authorization: The caller's Authorization header value
            payload: Request body with email, password, full_name and optional phone

        Returns:
            ProvisioningResult with the new identity's id and email and the synced profile

        Raises:
            ValidationError: Bad input; nothing was called
            NotAuthenticated, ProfileNotFound, Forbidden: Caller may not provision; nothing was written
            StoreReadError: The caller's profile could not be read
            AuthIdentityCreationFailed: Identity creation refused; nothing was written
            PartialProvisioningFailure: Identity created, profile upsert failed
        """
        request = validate_provisioning_request(payload)
        state = ProvisioningState.VALIDATED
        logger.debug(f"Provisioning request for {request.email}: {state.value}")

        admin = self.guard.require_school_admin(authorization)

        identity = self.auth.create_identity(
            request.email,
            request.password,
            user_metadata={
                "role": "teacher",
                "school_id": admin.school_id,
                "full_name": request.full_name,
                "phone": request.phone,
            },
            app_metadata={"provisioning_source": PROVISIONING_SOURCE},
        )
        state = ProvisioningState.AUTH_IDENTITY_CREATED
        email = identity.email or request.email
        logger.info(f"Auth identity {identity.id} created for {email} by admin {admin.id}: {state.value}")

        profile = self._sync_profile(identity.id, email, admin.school_id, request)
        state = ProvisioningState.PROFILE_SYNCED
        logger.info(f"Teacher {identity.id} provisioned in school {admin.school_id}: {state.value}")

        return ProvisioningResult(ok=True, auth_user_id=identity.id, email=email, profile=profile)

    def _sync_profile(self, auth_user_id: str, email: str, school_id: str,
                      request: TeacherProvisioningRequest) -> UserProfile:
        try:
            return profile_repository.upsert_profile(
                self.store, auth_user_id, school_id, "teacher", request.full_name, request.phone
            )
        except StoreWriteError as e:
            # The identity cannot be safely removed from here; report it for repair
            logger.error(
                f"Orphaned auth identity {auth_user_id} ({email}): profile sync failed "
                f"({ProvisioningState.PROFILE_SYNC_FAILED.value}): {e.message}"
            )
            raise PartialProvisioningFailure(e.message, auth_user_id=auth_user_id, email=email) from e

    def resync_teacher_profile(self, authorization: Optional[str], auth_user_id: str,
                               payload: Dict[str, Any]) -> UserProfile:
        """
        Upsert the profile row of an existing identity into the admin's school.

        Repairs the PROFILE_SYNC_FAILED state; repeating it is harmless. The identity
        must exist and carry the admin's school_id in its user metadata, as
        provision_teacher sets it. A profile that already exists in another school,
        or as an admin, is not taken over.

        Raises:
            ValidationError: Bad full_name
            NotAuthenticated, ProfileNotFound, Forbidden: Caller may not provision
            RecordNotFound: No identity has that id
            Forbidden: The identity or its profile belongs elsewhere
            StoreWriteError: The upsert failed again
        """
        if not isinstance(payload, dict):
            raise ValidationError("body", "Invalid JSON body")
        full_name = validate_full_name(payload.get("full_name"))
        phone = normalize_phone(payload.get("phone"))

        admin = self.guard.require_school_admin(authorization)

        identity = self.auth.get_identity(auth_user_id)
        if identity is None:
            raise RecordNotFound("Auth identity not found", {"auth_user_id": auth_user_id})
        if identity.user_metadata.get("school_id") != admin.school_id:
            raise Forbidden("Identity was provisioned for another school", {"auth_user_id": auth_user_id})

        existing = profile_repository.get_profile(self.store, auth_user_id)
        if existing is not None and (existing.school_id != admin.school_id or existing.role != "teacher"):
            raise Forbidden("Profile belongs to another school or role", {"auth_user_id": auth_user_id})

        profile = profile_repository.upsert_profile(
            self.store, auth_user_id, admin.school_id, "teacher", full_name, phone
        )
        logger.info(f"Profile for auth identity {auth_user_id} re-synced by admin {admin.id}")
        return profile

    def update_teacher(self, authorization: Optional[str], teacher_id: str,
                       payload: Dict[str, Any]) -> UserProfile:
        """Rename or re-phone a teacher of the admin's own school."""
        if not isinstance(payload, dict):
            raise ValidationError("body", "Invalid JSON body")
        full_name = validate_full_name(payload.get("full_name"))
        phone = normalize_phone(payload.get("phone"))

        admin = self.guard.require_school_admin(authorization)
        profile = profile_repository.update_teacher_profile(self.store, admin.school_id, teacher_id, full_name, phone)
        if profile is None:
            raise RecordNotFound("Teacher not found", {"teacher_id": teacher_id})
        return profile

    def list_teachers(self, authorization: Optional[str]) -> List[UserProfile]:
        admin = self.guard.require_school_admin(authorization)
        return profile_repository.list_teachers(self.store, admin.school_id)
