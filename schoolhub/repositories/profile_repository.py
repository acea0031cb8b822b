import logging
from typing import List, Optional
from schoolhub.db.store_interface import RemoteStore
from schoolhub.exceptions import StoreWriteError
from schoolhub.models.schemas import UserProfile
from schoolhub.repositories.upsert import upsert_by_conflict_key

logger = logging.getLogger(__name__)

USERS_TABLE = "users"
PROFILE_KEY = ("id",)


def get_profile(store: RemoteStore, user_id: str) -> Optional[UserProfile]:
    """Return the profile row linked to an auth identity, or None. Raises StoreReadError."""
    rows = store.select(USERS_TABLE, {"id": user_id})
    if not rows:
        return None
    return UserProfile(**rows[0])


def upsert_profile(store: RemoteStore, user_id: str, school_id: str, role: str,
                   full_name: str, phone: Optional[str] = None) -> UserProfile:
    """
    Create or replace the profile row for an auth identity, keyed on its id.

    Safe to repeat for the same identity.
    """
    row = {
        "id": user_id,
        "school_id": school_id,
        "role": role,
        "full_name": full_name,
        "phone": phone,
    }
    written = upsert_by_conflict_key(store, USERS_TABLE, [row], PROFILE_KEY)
    if not written:
        raise StoreWriteError("Profile upsert returned no row", step="upsert", table=USERS_TABLE)
    logger.debug(f"Profile {user_id} synced as {role} in school {school_id}")
    return UserProfile(**written[0])


def list_teachers(store: RemoteStore, school_id: str) -> List[UserProfile]:
    rows = store.select(USERS_TABLE, {"school_id": school_id, "role": "teacher"}, order_by="full_name")
    return [UserProfile(**row) for row in rows]


def update_teacher_profile(store: RemoteStore, school_id: str, user_id: str,
                           full_name: str, phone: Optional[str] = None) -> Optional[UserProfile]:
    """
    Update name and phone of a teacher in the given school.

    Returns None when no teacher with that id belongs to the school; admins and
    other schools' rows are never touched.
    """
    current = store.select(USERS_TABLE, {"id": user_id, "school_id": school_id, "role": "teacher"})
    if not current:
        return None
    return upsert_profile(store, user_id, school_id, "teacher", full_name, phone)
