"""
Unit tests for store provider selection.
"""
import pytest
from unittest.mock import patch, MagicMock
from schoolhub.db.db_factory import StoreFactory
from schoolhub.db.memory_provider import InMemoryAuthGateway, InMemoryStore
from schoolhub.db.supabase_provider import SupabaseAuthGateway, SupabaseStore
from schoolhub.exceptions import ConfigurationError


@pytest.fixture(autouse=True)
def fresh_factory():
    StoreFactory.reset()
    yield
    StoreFactory.reset()


class TestStoreFactory:

    def test_memory_backend(self):
        with patch("schoolhub.db.db_factory.config.STORE_BACKEND", "memory"):
            store = StoreFactory.get_store()
            auth = StoreFactory.get_auth()

        assert isinstance(store, InMemoryStore)
        assert isinstance(auth, InMemoryAuthGateway)
        assert StoreFactory.get_store() is store

    def test_missing_supabase_secrets(self):
        with patch("schoolhub.db.db_factory.config.STORE_BACKEND", "supabase"), \
             patch("schoolhub.db.db_factory.config.SUPABASE_URL", ""), \
             patch("schoolhub.db.db_factory.config.SUPABASE_SERVICE_ROLE_KEY", ""):
            with pytest.raises(ConfigurationError) as exc_info:
                StoreFactory.get_store()

        assert exc_info.value.message == "Missing Supabase environment secrets"
        assert exc_info.value.details["missing"] == ["SUPABASE_URL", "SUPABASE_SERVICE_ROLE_KEY"]

    def test_supabase_backend_shares_one_service_client(self):
        fake_client = MagicMock()
        with patch("schoolhub.db.db_factory.config.STORE_BACKEND", "supabase"), \
             patch("schoolhub.db.db_factory.config.SUPABASE_URL", "https://project.supabase.co"), \
             patch("schoolhub.db.db_factory.config.SUPABASE_SERVICE_ROLE_KEY", "service-role-key"), \
             patch("supabase.create_client", return_value=fake_client) as mock_create_client:
            store = StoreFactory.get_store()
            auth = StoreFactory.get_auth()

        mock_create_client.assert_called_once_with("https://project.supabase.co", "service-role-key")
        assert isinstance(store, SupabaseStore)
        assert isinstance(auth, SupabaseAuthGateway)
        assert store.client is auth.client is fake_client
