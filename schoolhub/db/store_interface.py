from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence
from schoolhub.models.schemas import AuthIdentity


class RemoteStore(ABC):
    """
    Abstract base class for the relational store.

    Every method is one network round trip with a single success/failure
    outcome. Filters map a column to a value (equality) or to a list, tuple or set of
    values (membership); all of them must hold.
    """

    @abstractmethod
    def select(self, table: str, filters: Optional[Dict[str, Any]] = None,
               order_by: Optional[str] = None, desc: bool = False) -> List[Dict[str, Any]]:
        """Return the rows of `table` matching `filters`. Raises StoreReadError."""
        pass

    @abstractmethod
    def delete(self, table: str, filters: Dict[str, Any]) -> None:
        """Delete the rows of `table` matching `filters`. Raises StoreWriteError."""
        pass

    @abstractmethod
    def upsert(self, table: str, rows: List[Dict[str, Any]],
               conflict_key: Sequence[str]) -> List[Dict[str, Any]]:
        """
        Insert `rows`, replacing existing rows that share the `conflict_key` values.
        Returns the written rows. Raises StoreWriteError.
        """
        pass


class AuthGateway(ABC):
    """Abstract base class for the authentication subsystem."""

    @abstractmethod
    def get_caller_identity(self, credential: str) -> AuthIdentity:
        """Resolve the identity behind a caller's access token. Raises NotAuthenticated."""
        pass

    @abstractmethod
    def get_identity(self, identity_id: str) -> Optional[AuthIdentity]:
        """Look up an identity by id with admin privilege; None if it does not exist."""
        pass

    @abstractmethod
    def create_identity(self, email: str, password: str,
                        user_metadata: Dict[str, Any],
                        app_metadata: Optional[Dict[str, Any]] = None) -> AuthIdentity:
        """Create a confirmed identity. Raises AuthIdentityCreationFailed."""
        pass
