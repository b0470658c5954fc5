"""
Enregistrements manipulés par le moteur MCD / RCD.

Ces dataclasses sont volontairement proches des tables :
- `marketing_spend`, `transactions`, `price_adjustments`, `referral_activities`
  sont en ajout seul (append-only),
- `customers` est mis à jour à chaque transaction.

`to_row()` / `from_row()` assurent la conversion vers / depuis un dict
sérialisable en JSON (dates ISO 8601, enums en chaînes).
"""

from __future__ import annotations

import hashlib
from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from dateutil import parser as date_parser


class CustomerSegment(Enum):
    """Segments clients, du plus récent au plus engagé."""
    NEW = "new"
    OCCASIONAL = "occasional"
    FREQUENT = "frequent"
    LOYAL = "loyal"
    VIP = "vip"


class LoyaltyTier(Enum):
    """Paliers de fidélité basés uniquement sur la dépense."""
    BRONZE = "bronze"
    SILVER = "silver"
    GOLD = "gold"


def normalize_email(email: str) -> str:
    """Minuscules + suppression des espaces de bord."""
    return email.strip().lower()


def hash_email(email: str) -> str:
    """
    Identifiant client : SHA-256 hexadécimal de l'email normalisé.

    " Foo@Bar.com " et "foo@bar.com" donnent le même hash.
    """
    return hashlib.sha256(normalize_email(email).encode("utf-8")).hexdigest()


def generate_referral_code(email_hash: str, business_id: str, now: datetime) -> str:
    """Code de parrainage : 8 caractères hexadécimaux en majuscules."""
    seed = f"{email_hash}{business_id}{int(now.timestamp() * 1000)}"
    return hashlib.sha256(seed.encode("utf-8")).hexdigest()[:8].upper()


def _parse_datetime(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    return date_parser.isoparse(str(value))


def _serialize(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {k: _serialize(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_serialize(v) for v in value]
    return value


def _to_row(record: Any) -> Dict[str, Any]:
    return {key: _serialize(value) for key, value in asdict(record).items()}


@dataclass
class MarketingSpendRecord:
    """Dépense marketing sur une plateforme (pondérée au moment de l'insertion)."""

    business_id: str
    platform: str
    amount: float
    timestamp: datetime
    platform_weight: float = 1.0
    campaign_data: Dict[str, Any] = field(default_factory=dict)

    @property
    def weighted_amount(self) -> float:
        return self.amount * (self.platform_weight if self.platform_weight is not None else 1.0)

    def to_row(self) -> Dict[str, Any]:
        return _to_row(self)

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "MarketingSpendRecord":
        return cls(
            business_id=row["business_id"],
            platform=row["platform"],
            amount=float(row["amount"]),
            timestamp=_parse_datetime(row["timestamp"]),
            platform_weight=float(row.get("platform_weight") or 1.0),
            campaign_data=row.get("campaign_data") or {},
        )


@dataclass
class Customer:
    """Client identifié par le hash de son email."""

    business_id: str
    email_hash: str
    email: str
    referral_code: str
    created_at: datetime
    total_spend_365: float = 0.0
    purchase_count_365: int = 0
    average_purchase: float = 0.0
    first_purchase_date: Optional[datetime] = None
    last_purchase_date: Optional[datetime] = None
    current_discount_percentage: float = 0.0
    referral_count: int = 0
    loyalty_tier: LoyaltyTier = LoyaltyTier.BRONZE
    customer_segment: CustomerSegment = CustomerSegment.NEW
    last_calculated: Optional[datetime] = None
    last_referral_date: Optional[datetime] = None

    def to_row(self) -> Dict[str, Any]:
        return _to_row(self)

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Customer":
        return cls(
            business_id=row["business_id"],
            email_hash=row["email_hash"],
            email=row.get("email", ""),
            referral_code=row["referral_code"],
            created_at=_parse_datetime(row["created_at"]),
            total_spend_365=float(row.get("total_spend_365") or 0.0),
            purchase_count_365=int(row.get("purchase_count_365") or 0),
            average_purchase=float(row.get("average_purchase") or 0.0),
            first_purchase_date=_parse_datetime(row.get("first_purchase_date")),
            last_purchase_date=_parse_datetime(row.get("last_purchase_date")),
            current_discount_percentage=float(row.get("current_discount_percentage") or 0.0),
            referral_count=int(row.get("referral_count") or 0),
            loyalty_tier=LoyaltyTier(row.get("loyalty_tier") or LoyaltyTier.BRONZE.value),
            customer_segment=CustomerSegment(row.get("customer_segment") or CustomerSegment.NEW.value),
            last_calculated=_parse_datetime(row.get("last_calculated")),
            last_referral_date=_parse_datetime(row.get("last_referral_date")),
        )


@dataclass
class Transaction:
    """Achat d'un client, avec la remise appliquée au moment de l'achat."""

    business_id: str
    customer_email_hash: str
    amount: float
    timestamp: datetime
    discount_applied: float = 0.0
    referral_code_used: Optional[str] = None
    # Plateforme marketing à l'origine de la vente (attribution simplifiée)
    referral_source: Optional[str] = None
    product_ids: List[str] = field(default_factory=list)
    product_categories: List[str] = field(default_factory=list)
    seasonal_multiplier: float = 1.0
    is_new_customer: bool = False

    def to_row(self) -> Dict[str, Any]:
        return _to_row(self)

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Transaction":
        return cls(
            business_id=row["business_id"],
            customer_email_hash=row["customer_email_hash"],
            amount=float(row["amount"]),
            timestamp=_parse_datetime(row["timestamp"]),
            discount_applied=float(row.get("discount_applied") or 0.0),
            referral_code_used=row.get("referral_code_used"),
            referral_source=row.get("referral_source"),
            product_ids=list(row.get("product_ids") or []),
            product_categories=list(row.get("product_categories") or []),
            seasonal_multiplier=float(row.get("seasonal_multiplier") or 1.0),
            is_new_customer=bool(row.get("is_new_customer", False)),
        )


@dataclass
class PriceAdjustmentRecord:
    """Trace d'audit d'un recalcul du multiplicateur MCD (informatif uniquement)."""

    business_id: str
    mcd_multiplier: float
    effective_from: datetime
    marketing_spend_used: float
    revenue_in_period: float
    roi: float
    raw_multiplier: float
    previous_multiplier: float
    smoothed_multiplier: float
    status: str = "active"

    def to_row(self) -> Dict[str, Any]:
        return _to_row(self)


@dataclass
class ReferralActivity:
    """Parrainage appliqué : le parrain reçoit `bonus_applied` points de remise."""

    business_id: str
    referrer_email_hash: str
    referred_email_hash: str
    purchase_amount: float
    bonus_applied: float
    timestamp: datetime

    def to_row(self) -> Dict[str, Any]:
        return _to_row(self)


@dataclass
class SpendStats:
    """Agrégat des dépenses marketing sur une fenêtre."""

    weighted_total: float = 0.0
    raw_total: float = 0.0
    count: int = 0


@dataclass
class TransactionStats:
    """Agrégat des transactions sur une fenêtre (somme, nombre, moyenne, bornes)."""

    total_spend: float = 0.0
    count: int = 0
    average: float = 0.0
    first_purchase: Optional[datetime] = None
    last_purchase: Optional[datetime] = None
