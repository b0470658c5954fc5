"""
Calcul de la remise RCD (Returning Customer Discount) et segmentation client.

La remise combine trois composantes normalisées :
- dépense (total / 1000),
- fréquence (visites / 10),
- récence (décroissance linéaire sur 30 jours),
pondérées par la configuration, puis multipliées par le coefficient
saisonnier et bornées à [0, max_discount].
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Optional

import pytz

from ..config import RCDConfig, RCDThresholds
from .records import CustomerSegment, LoyaltyTier, TransactionStats


RECENCY_WINDOW_DAYS = 30
SPEND_NORMALIZER = 1000.0
VISITS_NORMALIZER = 10.0
FREQUENT_VISITS = 5


def get_season(day: date) -> str:
    """
    Saison commerciale d'une date.

    - 21 → 31 décembre : christmas
    - 21 → 30 novembre : black-friday
    - juin → septembre : summer
    """
    if day.month == 12 and day.day > 20:
        return "christmas"
    if day.month == 11 and day.day > 20:
        return "black-friday"
    if 6 <= day.month <= 9:
        return "summer"
    return "default"


def get_seasonal_multiplier(config: RCDConfig, now: datetime, timezone: str = "UTC") -> float:
    """Multiplicateur saisonnier évalué dans le fuseau horaire du business."""
    local_now = now.astimezone(pytz.timezone(timezone)) if now.tzinfo else now
    multipliers = config.seasonal_multipliers
    season = get_season(local_now.date())
    return float(multipliers.get(season, multipliers.get("default", 1.0)))


def compute_recency_score(last_purchase: Optional[datetime], now: datetime) -> float:
    """1.0 pour un achat à l'instant, 0.0 au-delà de 30 jours."""
    if last_purchase is None:
        return 0.0
    days_since = (now - last_purchase).total_seconds() / 86400
    return max(0.0, 1.0 - days_since / RECENCY_WINDOW_DAYS)


def is_eligible(stats: TransactionStats, thresholds: RCDThresholds) -> bool:
    return stats.total_spend >= thresholds.minimum_spend and stats.count >= thresholds.minimum_visits


def clamp_discount(value: float, max_discount: float) -> float:
    return max(0.0, min(max_discount, value))


def calculate_rcd_discount(
    stats: TransactionStats,
    config: RCDConfig,
    seasonal_multiplier: float,
    now: datetime,
) -> float:
    """
    Remise en pourcentage (2 décimales) pour un agrégat client sur 365 jours.

    Retourne 0 si le RCD est désactivé ou si le client est sous les seuils.
    """
    if not config.enabled or not is_eligible(stats, config.thresholds):
        return 0.0

    spend_component = (stats.total_spend / SPEND_NORMALIZER) * config.spend_weight
    frequency_component = (stats.count / VISITS_NORMALIZER) * config.frequency_weight
    recency_component = compute_recency_score(stats.last_purchase, now) * config.recency_weight

    weight_sum = config.spend_weight + config.frequency_weight + config.recency_weight
    base_discount = (spend_component + frequency_component + recency_component) / weight_sum

    adjusted_discount = base_discount * seasonal_multiplier * 100
    return clamp_discount(round(adjusted_discount, 2), config.max_discount)


def determine_customer_segment(
    total_spend: Optional[float],
    purchase_count: Optional[int],
    thresholds: RCDThresholds,
    is_new: bool = False,
) -> CustomerSegment:
    if is_new or not purchase_count:
        return CustomerSegment.NEW

    total_spend = total_spend or 0.0
    if total_spend > thresholds.loyalty_tier2:
        return CustomerSegment.VIP
    if total_spend > thresholds.loyalty_tier1:
        return CustomerSegment.LOYAL
    if purchase_count > FREQUENT_VISITS:
        return CustomerSegment.FREQUENT
    return CustomerSegment.OCCASIONAL


def get_loyalty_tier(total_spend: float, thresholds: RCDThresholds) -> LoyaltyTier:
    if total_spend > thresholds.loyalty_tier2:
        return LoyaltyTier.GOLD
    if total_spend > thresholds.loyalty_tier1:
        return LoyaltyTier.SILVER
    return LoyaltyTier.BRONZE
