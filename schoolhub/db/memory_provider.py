import copy
import logging
import threading
import uuid
from collections import Counter
from datetime import datetime, UTC
from typing import Any, Dict, List, Optional, Sequence, Tuple

from schoolhub.db.store_interface import AuthGateway, RemoteStore
from schoolhub.exceptions import (
    AuthIdentityCreationFailed,
    NotAuthenticated,
    StoreReadError,
    StoreWriteError,
)
from schoolhub.models.schemas import AuthIdentity

logger = logging.getLogger(__name__)

# Unique constraints declared by the schema, used to accept or reject ON CONFLICT targets
UNIQUE_KEYS: Dict[str, List[Tuple[str, ...]]] = {
    "users": [("id",)],
    "attempts": [("id",), ("test_id", "student_id")],
    "attempt_answers": [("id",), ("attempt_id", "question_id")],
    "test_questions": [("id",), ("test_id", "question_id")],
}

# Columns stamped by the database when a row is first inserted
_CREATED_AT_TABLES = {"users"}


class InMemoryStore(RemoteStore):
    """
    In-process implementation of the remote store for local development and tests.

    Each call is atomic under a lock, like one round trip to a real store.
    `calls` counts invocations per method; `fail_next` makes the next matching
    call raise instead of touching any row.
    """

    def __init__(self, unique_keys: Optional[Dict[str, List[Tuple[str, ...]]]] = None):
        self.tables: Dict[str, List[Dict[str, Any]]] = {}
        self.unique_keys = unique_keys if unique_keys is not None else UNIQUE_KEYS
        self.calls: Counter = Counter()
        self._failures: Dict[Tuple[str, str], str] = {}
        self._lock = threading.Lock()
        logger.info("Initializing in-memory store")

    def fail_next(self, method: str, table: str, message: str = "simulated store failure") -> None:
        """Make the next `method` call against `table` fail with `message`."""
        self._failures[(method, table)] = message

    def seed(self, table: str, rows: List[Dict[str, Any]]) -> None:
        """Insert rows directly, bypassing counters and failure injection."""
        with self._lock:
            for row in rows:
                stored = dict(row)
                stored.setdefault("id", str(uuid.uuid4()))
                self.tables.setdefault(table, []).append(stored)

    def rows(self, table: str) -> List[Dict[str, Any]]:
        return copy.deepcopy(self.tables.get(table, []))

    def _take_failure(self, method: str, table: str) -> Optional[str]:
        return self._failures.pop((method, table), None)

    @staticmethod
    def _matches(row: Dict[str, Any], filters: Dict[str, Any]) -> bool:
        for column, value in filters.items():
            if isinstance(value, (list, tuple, set)):
                if row.get(column) not in value:
                    return False
            elif row.get(column) != value:
                return False
        return True

    def select(self, table: str, filters: Optional[Dict[str, Any]] = None,
               order_by: Optional[str] = None, desc: bool = False) -> List[Dict[str, Any]]:
        self.calls["select"] += 1
        message = self._take_failure("select", table)
        if message:
            raise StoreReadError(message, table=table)

        with self._lock:
            found = [copy.deepcopy(row) for row in self.tables.get(table, [])
                     if self._matches(row, filters or {})]

        if order_by:
            # None sorts last, as in PostgreSQL's default ascending order
            found.sort(key=lambda row: (row.get(order_by) is None, row.get(order_by)), reverse=desc)
        return found

    def delete(self, table: str, filters: Dict[str, Any]) -> None:
        if not filters:
            raise ValueError(f"Refusing unfiltered delete on '{table}'")
        self.calls["delete"] += 1
        message = self._take_failure("delete", table)
        if message:
            raise StoreWriteError(message, step="delete", table=table)

        with self._lock:
            kept = [row for row in self.tables.get(table, []) if not self._matches(row, filters)]
            removed = len(self.tables.get(table, [])) - len(kept)
            self.tables[table] = kept
        logger.debug(f"Deleted {removed} rows from '{table}'")

    def upsert(self, table: str, rows: List[Dict[str, Any]],
               conflict_key: Sequence[str]) -> List[Dict[str, Any]]:
        self.calls["upsert"] += 1
        message = self._take_failure("upsert", table)
        if message:
            raise StoreWriteError(message, step="upsert", table=table)

        key = tuple(conflict_key)
        declared = self.unique_keys.get(table)
        if declared is not None and key not in declared:
            raise StoreWriteError(
                "there is no unique or exclusion constraint matching the ON CONFLICT specification",
                step="upsert",
                table=table,
            )

        keys = [tuple(row.get(column) for column in key) for row in rows]
        if len(set(keys)) != len(keys):
            raise StoreWriteError(
                "ON CONFLICT DO UPDATE command cannot affect row a second time",
                step="upsert",
                table=table,
            )

        written = []
        with self._lock:
            existing = self.tables.setdefault(table, [])
            for row in rows:
                match = next(
                    (stored for stored in existing
                     if all(stored.get(column) == row.get(column) for column in key)),
                    None,
                )
                if match is not None:
                    match.update(copy.deepcopy(row))
                    written.append(copy.deepcopy(match))
                    continue
                stored = copy.deepcopy(row)
                stored.setdefault("id", str(uuid.uuid4()))
                if table in _CREATED_AT_TABLES:
                    stored.setdefault("created_at", datetime.now(UTC).isoformat())
                existing.append(stored)
                written.append(copy.deepcopy(stored))
        return written


class InMemoryAuthGateway(AuthGateway):
    """In-process authentication subsystem. Access tokens are opaque strings mapped to identity ids."""

    def __init__(self):
        self.identities: Dict[str, AuthIdentity] = {}
        self.tokens: Dict[str, str] = {}
        self.calls: Counter = Counter()
        self._failures: Dict[str, str] = {}
        self._lock = threading.Lock()

    def fail_next(self, method: str, message: str = "simulated auth failure") -> None:
        self._failures[method] = message

    def register(self, email: str, identity_id: Optional[str] = None,
                 user_metadata: Optional[Dict[str, Any]] = None) -> Tuple[AuthIdentity, str]:
        """Add an identity directly and return it with a fresh access token."""
        identity = AuthIdentity(
            id=identity_id or str(uuid.uuid4()),
            email=email.lower(),
            user_metadata=user_metadata or {},
        )
        token = f"token-{uuid.uuid4().hex}"
        with self._lock:
            self.identities[identity.id] = identity
            self.tokens[token] = identity.id
        return identity, token

    def get_caller_identity(self, credential: str) -> AuthIdentity:
        self.calls["get_caller_identity"] += 1
        identity_id = self.tokens.get(credential)
        if identity_id is None or identity_id not in self.identities:
            raise NotAuthenticated("Invalid JWT")
        return self.identities[identity_id]

    def get_identity(self, identity_id: str) -> Optional[AuthIdentity]:
        self.calls["get_identity"] += 1
        return self.identities.get(identity_id)

    def create_identity(self, email: str, password: str,
                        user_metadata: Dict[str, Any],
                        app_metadata: Optional[Dict[str, Any]] = None) -> AuthIdentity:
        self.calls["create_identity"] += 1
        message = self._failures.pop("create_identity", None)
        if message:
            raise AuthIdentityCreationFailed(message, email=email)

        with self._lock:
            if any(identity.email == email.lower() for identity in self.identities.values()):
                raise AuthIdentityCreationFailed(
                    "A user with this email address has already been registered", email=email
                )
            identity = AuthIdentity(
                id=str(uuid.uuid4()),
                email=email.lower(),
                user_metadata=dict(user_metadata),
                app_metadata=dict(app_metadata or {}),
            )
            self.identities[identity.id] = identity
        return identity
