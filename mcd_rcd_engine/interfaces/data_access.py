"""
Accès aux données du moteur MCD / RCD.

Ce module fournit une couche d'abstraction entre le moteur et la base :
- `PricingRepository` définit les primitives (insertions, lectures filtrées
  par business / fenêtre de temps / client) et en dérive les agrégats
  (somme, moyenne, nombre) dont le moteur a besoin,
- `InMemoryRepository` garde tout en mémoire (tests, démos, mode sans base),
- `SupabaseRepository` s'appuie sur Supabase/PostgreSQL.

Les agrégats sont calculés côté Python à partir des lignes lues, comme
pour les autres accès Supabase du projet.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Optional

from supabase import Client, create_client  # type: ignore

from ..models.records import (
    Customer,
    MarketingSpendRecord,
    PriceAdjustmentRecord,
    ReferralActivity,
    SpendStats,
    Transaction,
    TransactionStats,
)
from ..settings import Settings

logger = logging.getLogger(__name__)


MARKETING_SPEND_TABLE = "marketing_spend"
TRANSACTIONS_TABLE = "transactions"
CUSTOMERS_TABLE = "customers"
PRICE_ADJUSTMENTS_TABLE = "price_adjustments"
REFERRAL_ACTIVITIES_TABLE = "referral_activities"


def _in_window(ts: datetime, start: Optional[datetime], end: Optional[datetime]) -> bool:
    if start is not None and ts < start:
        return False
    if end is not None and ts > end:
        return False
    return True


class PricingRepository(ABC):
    """
    Interface de persistance utilisée par `PricingEngine`.

    Les sous-classes implémentent les primitives ; les agrégats sont
    communs à toutes les implémentations.
    """

    @abstractmethod
    def insert_marketing_spend(self, record: MarketingSpendRecord) -> None:
        ...

    @abstractmethod
    def list_marketing_spend(
        self,
        business_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> List[MarketingSpendRecord]:
        ...

    @abstractmethod
    def insert_transaction(self, transaction: Transaction) -> None:
        ...

    @abstractmethod
    def list_transactions(
        self,
        business_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        email_hash: Optional[str] = None,
        referral_source: Optional[str] = None,
    ) -> List[Transaction]:
        ...

    @abstractmethod
    def find_customer(self, business_id: str, email_hash: str) -> Optional[Customer]:
        ...

    @abstractmethod
    def find_customer_by_referral_code(self, business_id: str, referral_code: str) -> Optional[Customer]:
        ...

    @abstractmethod
    def save_customer(self, customer: Customer) -> None:
        """Insère ou met à jour un client (clé : business_id + email_hash)."""

    @abstractmethod
    def list_customers(self, business_id: str) -> List[Customer]:
        ...

    @abstractmethod
    def insert_price_adjustment(self, record: PriceAdjustmentRecord) -> None:
        ...

    @abstractmethod
    def insert_referral_activity(self, activity: ReferralActivity) -> None:
        ...

    # ------------------------------------------------------------------
    # Agrégats
    # ------------------------------------------------------------------

    def get_spend_stats(
        self,
        business_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> SpendStats:
        """Dépense brute et pondérée (poids plateforme stocké, 1.0 par défaut)."""
        records = self.list_marketing_spend(business_id, start=start, end=end)
        return SpendStats(
            weighted_total=sum(r.weighted_amount for r in records),
            raw_total=sum(r.amount for r in records),
            count=len(records),
        )

    def get_spend_by_platform(
        self,
        business_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> Dict[str, float]:
        totals: Dict[str, float] = {}
        for record in self.list_marketing_spend(business_id, start=start, end=end):
            totals[record.platform] = totals.get(record.platform, 0.0) + record.amount
        return totals

    def get_transaction_stats(
        self,
        business_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        email_hash: Optional[str] = None,
    ) -> TransactionStats:
        transactions = self.list_transactions(business_id, start=start, end=end, email_hash=email_hash)
        if not transactions:
            return TransactionStats()

        total = sum(t.amount for t in transactions)
        timestamps = [t.timestamp for t in transactions]
        return TransactionStats(
            total_spend=total,
            count=len(transactions),
            average=total / len(transactions),
            first_purchase=min(timestamps),
            last_purchase=max(timestamps),
        )

    def get_revenue(
        self,
        business_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        referral_source: Optional[str] = None,
    ) -> float:
        transactions = self.list_transactions(
            business_id, start=start, end=end, referral_source=referral_source
        )
        return sum(t.amount for t in transactions)


class InMemoryRepository(PricingRepository):
    """
    Stockage en mémoire du processus.

    Utilisé pour les tests, les scripts de démo et comme repli lorsque
    Supabase n'est pas configuré.
    """

    def __init__(self) -> None:
        self.marketing_spend: List[MarketingSpendRecord] = []
        self.transactions: List[Transaction] = []
        self.customers: Dict[tuple, Customer] = {}
        self.price_adjustments: List[PriceAdjustmentRecord] = []
        self.referral_activities: List[ReferralActivity] = []

    def insert_marketing_spend(self, record: MarketingSpendRecord) -> None:
        self.marketing_spend.append(record)

    def list_marketing_spend(self, business_id, start=None, end=None):
        return [
            r for r in self.marketing_spend
            if r.business_id == business_id and _in_window(r.timestamp, start, end)
        ]

    def insert_transaction(self, transaction: Transaction) -> None:
        self.transactions.append(transaction)

    def list_transactions(self, business_id, start=None, end=None, email_hash=None, referral_source=None):
        return [
            t for t in self.transactions
            if t.business_id == business_id
            and _in_window(t.timestamp, start, end)
            and (email_hash is None or t.customer_email_hash == email_hash)
            and (referral_source is None or t.referral_source == referral_source)
        ]

    def find_customer(self, business_id, email_hash):
        return self.customers.get((business_id, email_hash))

    def find_customer_by_referral_code(self, business_id, referral_code):
        for customer in self.customers.values():
            if customer.business_id == business_id and customer.referral_code == referral_code:
                return customer
        return None

    def save_customer(self, customer: Customer) -> None:
        self.customers[(customer.business_id, customer.email_hash)] = customer

    def list_customers(self, business_id):
        return [c for c in self.customers.values() if c.business_id == business_id]

    def insert_price_adjustment(self, record: PriceAdjustmentRecord) -> None:
        self.price_adjustments.append(record)

    def insert_referral_activity(self, activity: ReferralActivity) -> None:
        self.referral_activities.append(activity)


_supabase_client: Optional[Client] = None


def get_supabase_client(settings: Optional[Settings] = None) -> Client:
    """
    Retourne un client Supabase initialisé (partagé par le processus).

    Utilise `SUPABASE_URL` et `SUPABASE_SERVICE_ROLE_KEY`/`SUPABASE_KEY`.
    """
    global _supabase_client

    if _supabase_client is not None:
        return _supabase_client

    settings = settings or Settings.from_env()
    if not settings.has_database:
        raise RuntimeError(
            "Les variables d'environnement SUPABASE_URL et SUPABASE_SERVICE_ROLE_KEY/SUPABASE_KEY "
            "doivent être configurées pour utiliser le stockage Supabase."
        )

    _supabase_client = create_client(settings.supabase_url, settings.supabase_key)
    return _supabase_client


def _response_data(response: Any) -> List[Dict[str, Any]]:
    # Vérifier si response.data existe (compatible avec différentes versions de Supabase)
    if not hasattr(response, "data"):
        raise RuntimeError("Réponse Supabase invalide: pas d'attribut 'data'")
    return response.data or []


class SupabaseRepository(PricingRepository):
    """
    Stockage Supabase/PostgreSQL.

    Tables : `marketing_spend`, `transactions`, `customers`,
    `price_adjustments`, `referral_activities`.
    Les erreurs Supabase ne sont pas interceptées : elles remontent
    jusqu'à la couche d'appel.
    """

    def __init__(self, client: Optional[Client] = None, settings: Optional[Settings] = None) -> None:
        self._client = client
        self._settings = settings

    @property
    def client(self) -> Client:
        if self._client is None:
            self._client = get_supabase_client(self._settings)
        return self._client

    def _insert(self, table: str, row: Dict[str, Any]) -> None:
        _response_data(self.client.table(table).insert(row).execute())

    def _select_window(
        self,
        table: str,
        business_id: str,
        time_column: str,
        start: Optional[datetime],
        end: Optional[datetime],
    ):
        query = self.client.table(table).select("*").eq("business_id", business_id)
        if start is not None:
            query = query.gte(time_column, start.isoformat())
        if end is not None:
            query = query.lte(time_column, end.isoformat())
        return query

    def insert_marketing_spend(self, record: MarketingSpendRecord) -> None:
        self._insert(MARKETING_SPEND_TABLE, record.to_row())

    def list_marketing_spend(self, business_id, start=None, end=None):
        query = self._select_window(MARKETING_SPEND_TABLE, business_id, "timestamp", start, end)
        rows = _response_data(query.order("timestamp", desc=False).execute())
        return [MarketingSpendRecord.from_row(row) for row in rows]

    def insert_transaction(self, transaction: Transaction) -> None:
        self._insert(TRANSACTIONS_TABLE, transaction.to_row())

    def list_transactions(self, business_id, start=None, end=None, email_hash=None, referral_source=None):
        query = self._select_window(TRANSACTIONS_TABLE, business_id, "timestamp", start, end)
        if email_hash is not None:
            query = query.eq("customer_email_hash", email_hash)
        if referral_source is not None:
            query = query.eq("referral_source", referral_source)
        rows = _response_data(query.order("timestamp", desc=False).execute())
        return [Transaction.from_row(row) for row in rows]

    def _find_one_customer(self, business_id: str, column: str, value: str) -> Optional[Customer]:
        response = (
            self.client.table(CUSTOMERS_TABLE)
            .select("*")
            .eq("business_id", business_id)
            .eq(column, value)
            .limit(1)
            .execute()
        )
        rows = _response_data(response)
        return Customer.from_row(rows[0]) if rows else None

    def find_customer(self, business_id, email_hash):
        return self._find_one_customer(business_id, "email_hash", email_hash)

    def find_customer_by_referral_code(self, business_id, referral_code):
        return self._find_one_customer(business_id, "referral_code", referral_code)

    def save_customer(self, customer: Customer) -> None:
        response = (
            self.client.table(CUSTOMERS_TABLE)
            .upsert(customer.to_row(), on_conflict="business_id,email_hash")
            .execute()
        )
        _response_data(response)

    def list_customers(self, business_id):
        response = self.client.table(CUSTOMERS_TABLE).select("*").eq("business_id", business_id).execute()
        return [Customer.from_row(row) for row in _response_data(response)]

    def insert_price_adjustment(self, record: PriceAdjustmentRecord) -> None:
        self._insert(PRICE_ADJUSTMENTS_TABLE, record.to_row())

    def insert_referral_activity(self, activity: ReferralActivity) -> None:
        self._insert(REFERRAL_ACTIVITIES_TABLE, activity.to_row())


def create_repository(settings: Optional[Settings] = None) -> PricingRepository:
    """
    Supabase si les identifiants sont configurés, mémoire sinon.
    """
    settings = settings or Settings.from_env()
    if settings.has_database:
        return SupabaseRepository(settings=settings)

    logger.warning("Supabase credentials not configured, using in-memory storage")
    return InMemoryRepository()
