"""
Tests unitaires pour interfaces/data_access.py
"""

import sys
from datetime import datetime, timedelta
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
import pytz

# Ajouter la racine du projet au path
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from mcd_rcd_engine.interfaces import data_access
from mcd_rcd_engine.interfaces.data_access import (
    InMemoryRepository,
    SupabaseRepository,
    create_repository,
    get_supabase_client,
)
from mcd_rcd_engine.models.records import (
    Customer,
    CustomerSegment,
    LoyaltyTier,
    MarketingSpendRecord,
    Transaction,
)
from mcd_rcd_engine.settings import Settings


NOW = datetime(2024, 3, 15, 12, 0, tzinfo=pytz.utc)


def _transaction(amount, days_ago=0, email_hash="h1", business_id="shop", source=None):
    return Transaction(
        business_id=business_id,
        customer_email_hash=email_hash,
        amount=amount,
        timestamp=NOW - timedelta(days=days_ago),
        referral_source=source,
    )


class TestInMemoryAggregates:
    """Agrégats calculés à partir des listes."""

    @pytest.fixture
    def repository(self):
        repo = InMemoryRepository()
        repo.insert_transaction(_transaction(100.0, days_ago=2))
        repo.insert_transaction(_transaction(50.0, days_ago=1, source="google"))
        repo.insert_transaction(_transaction(30.0, days_ago=400))
        repo.insert_transaction(_transaction(70.0, email_hash="h2"))
        repo.insert_transaction(_transaction(999.0, business_id="other-shop"))
        repo.insert_marketing_spend(MarketingSpendRecord("shop", "google", 100.0, NOW, platform_weight=1.2))
        repo.insert_marketing_spend(MarketingSpendRecord("shop", "email", 50.0, NOW, platform_weight=0.8))
        repo.insert_marketing_spend(MarketingSpendRecord("shop", "google", 25.0, NOW - timedelta(days=3)))
        return repo

    def test_transaction_stats_per_customer(self, repository):
        stats = repository.get_transaction_stats("shop", start=NOW - timedelta(days=365), email_hash="h1")
        assert stats.total_spend == 150.0
        assert stats.count == 2
        assert stats.average == 75.0
        assert stats.first_purchase == NOW - timedelta(days=2)
        assert stats.last_purchase == NOW - timedelta(days=1)

    def test_transaction_stats_empty(self, repository):
        stats = repository.get_transaction_stats("shop", email_hash="unknown")
        assert stats.count == 0
        assert stats.total_spend == 0.0
        assert stats.last_purchase is None

    def test_revenue_is_scoped_by_business(self, repository):
        assert repository.get_revenue("shop") == 250.0
        assert repository.get_revenue("other-shop") == 999.0

    def test_revenue_by_referral_source(self, repository):
        assert repository.get_revenue("shop", referral_source="google") == 50.0

    def test_window_bounds_are_inclusive(self, repository):
        start = NOW - timedelta(days=2)
        assert repository.get_revenue("shop", start=start, end=NOW) == 220.0

    def test_spend_stats_are_weighted(self, repository):
        stats = repository.get_spend_stats("shop", start=NOW - timedelta(days=1), end=NOW)
        assert stats.raw_total == 150.0
        assert stats.weighted_total == pytest.approx(160.0)
        assert stats.count == 2

    def test_spend_by_platform(self, repository):
        assert repository.get_spend_by_platform("shop") == {"google": 125.0, "email": 50.0}

    def test_customer_upsert(self):
        repo = InMemoryRepository()
        customer = Customer("shop", "h1", "a@b.com", "ABCD1234", NOW)
        repo.save_customer(customer)
        customer.total_spend_365 = 10.0
        repo.save_customer(customer)

        assert len(repo.list_customers("shop")) == 1
        assert repo.find_customer_by_referral_code("shop", "ABCD1234") is customer
        assert repo.find_customer_by_referral_code("other-shop", "ABCD1234") is None


class TestSupabaseRepository:
    """Requêtes Supabase (client mocké)."""

    @pytest.fixture
    def query(self):
        """Requête chaînable : chaque méthode du builder renvoie la même requête."""
        query = MagicMock()
        for method in ("select", "eq", "gte", "lte", "order", "limit", "insert", "upsert"):
            getattr(query, method).return_value = query
        query.execute.return_value = MagicMock(data=[])
        return query

    @pytest.fixture
    def client(self, query):
        client = MagicMock()
        client.table.return_value = query
        return client

    def test_list_transactions_filters(self, client, query):
        query.execute.return_value = MagicMock(data=[{
            "business_id": "shop",
            "customer_email_hash": "h1",
            "amount": "120.5",
            "timestamp": "2024-03-14T10:00:00+00:00",
            "referral_source": "google",
        }])
        repo = SupabaseRepository(client=client)
        start = NOW - timedelta(days=30)

        transactions = repo.list_transactions("shop", start=start, end=NOW, email_hash="h1")

        client.table.assert_called_with("transactions")
        query.eq.assert_any_call("business_id", "shop")
        query.eq.assert_any_call("customer_email_hash", "h1")
        query.gte.assert_called_once_with("timestamp", start.isoformat())
        query.lte.assert_called_once_with("timestamp", NOW.isoformat())
        query.order.assert_called_once_with("timestamp", desc=False)

        assert len(transactions) == 1
        assert transactions[0].amount == 120.5
        assert transactions[0].timestamp == datetime(2024, 3, 14, 10, 0, tzinfo=pytz.utc)

    def test_insert_marketing_spend(self, client, query):
        repo = SupabaseRepository(client=client)
        repo.insert_marketing_spend(MarketingSpendRecord("shop", "google", 100.0, NOW, platform_weight=1.2))

        client.table.assert_called_with("marketing_spend")
        row = query.insert.call_args[0][0]
        assert row["platform"] == "google"
        assert row["platform_weight"] == 1.2
        assert row["timestamp"] == NOW.isoformat()

    def test_save_customer_upserts(self, client, query):
        repo = SupabaseRepository(client=client)
        customer = Customer("shop", "h1", "a@b.com", "ABCD1234", NOW, loyalty_tier=LoyaltyTier.GOLD)
        repo.save_customer(customer)

        row = query.upsert.call_args[0][0]
        assert query.upsert.call_args[1] == {"on_conflict": "business_id,email_hash"}
        assert row["loyalty_tier"] == "gold"
        assert row["customer_segment"] == "new"

    def test_find_customer(self, client, query):
        query.execute.return_value = MagicMock(data=[{
            "business_id": "shop",
            "email_hash": "h1",
            "email": "a@b.com",
            "referral_code": "ABCD1234",
            "created_at": "2024-01-01T00:00:00+00:00",
            "total_spend_365": 640,
            "purchase_count_365": 4,
            "customer_segment": "loyal",
            "loyalty_tier": "silver",
        }])
        repo = SupabaseRepository(client=client)

        customer = repo.find_customer("shop", "h1")

        query.limit.assert_called_once_with(1)
        assert customer.total_spend_365 == 640.0
        assert customer.customer_segment is CustomerSegment.LOYAL
        assert customer.loyalty_tier is LoyaltyTier.SILVER
        assert customer.last_calculated is None

    def test_find_customer_not_found(self, client):
        assert SupabaseRepository(client=client).find_customer("shop", "missing") is None

    def test_response_without_data(self, client, query):
        query.execute.return_value = object()
        with pytest.raises(RuntimeError, match="data"):
            SupabaseRepository(client=client).list_customers("shop")

    def test_errors_propagate(self, client, query):
        query.execute.side_effect = ConnectionError("timeout")
        with pytest.raises(ConnectionError):
            SupabaseRepository(client=client).get_revenue("shop")


class TestRepositoryFactory:
    """Choix du stockage selon la configuration."""

    def test_without_credentials_uses_memory(self):
        assert isinstance(create_repository(Settings()), InMemoryRepository)

    def test_with_credentials_uses_supabase(self):
        settings = Settings(supabase_url="https://x.supabase.co", supabase_key="key")
        assert isinstance(create_repository(settings), SupabaseRepository)

    def test_client_requires_credentials(self):
        with patch.object(data_access, "_supabase_client", None):
            with pytest.raises(RuntimeError, match="SUPABASE_URL"):
                get_supabase_client(Settings())

    def test_client_is_created_once(self):
        settings = Settings(supabase_url="https://x.supabase.co", supabase_key="key")
        with patch.object(data_access, "_supabase_client", None), \
                patch.object(data_access, "create_client") as mock_create:
            first = get_supabase_client(settings)
            second = get_supabase_client(settings)

        mock_create.assert_called_once_with("https://x.supabase.co", "key")
        assert first is second


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
