import logging
from schoolhub import config
from schoolhub.db.store_interface import AuthGateway, RemoteStore
from schoolhub.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

class StoreFactory:
    """Factory for the remote store and auth gateway shared by the whole process."""

    _store = None
    _auth = None

    @staticmethod
    def _build() -> None:
        if config.STORE_BACKEND == "memory":
            from schoolhub.db.memory_provider import InMemoryAuthGateway, InMemoryStore

            logger.warning("Using in-memory store; data is lost on restart")
            StoreFactory._store = InMemoryStore()
            StoreFactory._auth = InMemoryAuthGateway()
            return

        from supabase import create_client
        from schoolhub.db.supabase_provider import SupabaseAuthGateway, SupabaseStore

        # Validate required environment variables
        missing_vars = [var for var, val in {
            "SUPABASE_URL": config.SUPABASE_URL,
            "SUPABASE_SERVICE_ROLE_KEY": config.SUPABASE_SERVICE_ROLE_KEY,
        }.items() if not val]
        if missing_vars:
            logger.error(f"Missing Supabase environment secrets: {', '.join(missing_vars)}")
            raise ConfigurationError("Missing Supabase environment secrets", {"missing": missing_vars})

        # One service-role client: profile reads must bypass row level security
        logger.info("Using Supabase store at %s", config.SUPABASE_URL)
        client = create_client(config.SUPABASE_URL, config.SUPABASE_SERVICE_ROLE_KEY)
        StoreFactory._store = SupabaseStore(client)
        StoreFactory._auth = SupabaseAuthGateway(client)

    @staticmethod
    def get_store() -> RemoteStore:
        if StoreFactory._store is None:
            StoreFactory._build()
        return StoreFactory._store

    @staticmethod
    def get_auth() -> AuthGateway:
        if StoreFactory._auth is None:
            StoreFactory._build()
        return StoreFactory._auth

    @staticmethod
    def reset() -> None:
        StoreFactory._store = None
        StoreFactory._auth = None
