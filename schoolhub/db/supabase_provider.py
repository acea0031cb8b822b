import logging
from typing import Any, Dict, List, Optional, Sequence
from supabase import Client
from schoolhub.db.store_interface import AuthGateway, RemoteStore
from schoolhub.exceptions import (
    AuthIdentityCreationFailed,
    NotAuthenticated,
    StoreReadError,
    StoreWriteError,
)
from schoolhub.models.schemas import AuthIdentity

logger = logging.getLogger(__name__)


def _error_message(error: Exception) -> str:
    """postgrest and auth errors carry a `message`; fall back to str() for anything else."""
    message = getattr(error, "message", None)
    return message if isinstance(message, str) and message else str(error)


def _to_identity(user: Any) -> AuthIdentity:
    return AuthIdentity(
        id=str(user.id),
        email=getattr(user, "email", None),
        user_metadata=getattr(user, "user_metadata", None) or {},
        app_metadata=getattr(user, "app_metadata", None) or {},
    )


class SupabaseStore(RemoteStore):
    """Supabase (PostgREST) implementation of the remote store."""

    def __init__(self, client: Client):
        self.client = client

    def select(self, table: str, filters: Optional[Dict[str, Any]] = None,
               order_by: Optional[str] = None, desc: bool = False) -> List[Dict[str, Any]]:
        try:
            query = self.client.table(table).select("*")
            for column, value in (filters or {}).items():
                if isinstance(value, (list, tuple, set)):
                    query = query.in_(column, list(value))
                else:
                    query = query.eq(column, value)
            if order_by:
                query = query.order(order_by, desc=desc)
            response = query.execute()
        except Exception as e:
            logger.error(f"Error selecting from Supabase table '{table}': {e}")
            raise StoreReadError(_error_message(e), table=table) from e

        rows = response.data or []
        logger.debug(f"Selected {len(rows)} rows from '{table}' with filters {filters}")
        return rows

    def delete(self, table: str, filters: Dict[str, Any]) -> None:
        if not filters:
            raise ValueError(f"Refusing unfiltered delete on '{table}'")
        try:
            query = self.client.table(table).delete()
            for column, value in filters.items():
                if isinstance(value, (list, tuple, set)):
                    query = query.in_(column, list(value))
                else:
                    query = query.eq(column, value)
            query.execute()
        except Exception as e:
            logger.error(f"Error deleting from Supabase table '{table}': {e}")
            raise StoreWriteError(_error_message(e), step="delete", table=table) from e

        logger.debug(f"Deleted rows from '{table}' with filters {filters}")

    def upsert(self, table: str, rows: List[Dict[str, Any]],
               conflict_key: Sequence[str]) -> List[Dict[str, Any]]:
        try:
            response = self.client.table(table) \
                .upsert(rows, on_conflict=",".join(conflict_key)) \
                .execute()
        except Exception as e:
            logger.error(f"Error upserting into Supabase table '{table}': {e}")
            raise StoreWriteError(_error_message(e), step="upsert", table=table) from e

        written = response.data or []
        logger.debug(f"Upserted {len(written)} rows into '{table}' on ({', '.join(conflict_key)})")
        return written


class SupabaseAuthGateway(AuthGateway):
    """
    Supabase Auth implementation of the authentication subsystem.

    The client must be built with the service role key: create_identity uses the
    admin API, and caller tokens are resolved server side with get_user(jwt).
    """

    def __init__(self, client: Client):
        self.client = client

    def get_caller_identity(self, credential: str) -> AuthIdentity:
        try:
            response = self.client.auth.get_user(credential)
        except Exception as e:
            logger.warning(f"Rejected caller credential: {e}")
            raise NotAuthenticated("Invalid JWT") from e

        user = getattr(response, "user", None)
        if user is None:
            raise NotAuthenticated("Invalid JWT")
        return _to_identity(user)

    def get_identity(self, identity_id: str) -> Optional[AuthIdentity]:
        try:
            response = self.client.auth.admin.get_user_by_id(identity_id)
        except Exception as e:
            if getattr(e, "status", None) == 404:
                return None
            logger.error(f"Error fetching Supabase auth user {identity_id}: {e}")
            raise StoreReadError(_error_message(e), table="auth.users") from e

        user = getattr(response, "user", None)
        return _to_identity(user) if user is not None else None

    def create_identity(self, email: str, password: str,
                        user_metadata: Dict[str, Any],
                        app_metadata: Optional[Dict[str, Any]] = None) -> AuthIdentity:
        try:
            response = self.client.auth.admin.create_user({
                "email": email,
                "password": password,
                "email_confirm": True,
                "user_metadata": user_metadata,
                "app_metadata": app_metadata or {},
            })
        except Exception as e:
            logger.error(f"Error creating Supabase auth user for {email}: {e}")
            raise AuthIdentityCreationFailed(_error_message(e), email=email) from e

        user = getattr(response, "user", None)
        if user is None:
            raise AuthIdentityCreationFailed("Failed to create auth user", email=email)
        return _to_identity(user)
