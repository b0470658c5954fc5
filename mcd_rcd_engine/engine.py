"""
Moteur de pricing MCD / RCD.

Ce module est responsable de :
- enregistrer les dépenses marketing et les transactions clients,
- maintenir le multiplicateur MCD courant (recalcul à la demande, avec anti-rebond),
- ajuster les poids des plateformes marketing selon leur ROI,
- calculer et mettre en cache la remise RCD de chaque client,
- appliquer les parrainages,
- composer le prix final (MCD puis RCD, avec plancher de marge).

L'état partagé (multiplicateur courant, poids plateformes, performance
plateformes) est porté par l'instance et remplacé en bloc à chaque mise à
jour : un lecteur voit toujours un instantané cohérent, la dernière
écriture gagne.
"""

from __future__ import annotations

import logging
import math
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

import pytz

from .config import EngineConfig, get_default_engine_config
from .exceptions import PricingValidationError
from .interfaces.data_access import InMemoryRepository, PricingRepository
from .models.mcd_model import (
    PlatformPerformance,
    calculate_mcd_multiplier,
    compute_platform_roi,
    get_period_window,
    optimize_platform_weights,
    should_recalculate,
)
from .models.rcd_model import (
    calculate_rcd_discount,
    clamp_discount,
    determine_customer_segment,
    get_loyalty_tier,
    get_seasonal_multiplier,
    is_eligible,
)
from .models.records import (
    Customer,
    CustomerSegment,
    LoyaltyTier,
    MarketingSpendRecord,
    PriceAdjustmentRecord,
    ReferralActivity,
    Transaction,
    generate_referral_code,
    hash_email,
    normalize_email,
)

logger = logging.getLogger(__name__)


# Le prix final ne descend jamais sous 70 % du prix de base (30 % de marge minimum)
MIN_PRICE_RATIO = 0.7

CUSTOMER_HISTORY_DAYS = 365
PLATFORM_ATTRIBUTION_DAYS = 30
MARKETING_ROI_DAYS = 30
DISCOUNT_VALIDITY_DAYS = 30


def _utc_now() -> datetime:
    return datetime.now(pytz.utc)


def _to_float(value: Any, message: str) -> float:
    if isinstance(value, bool):
        raise PricingValidationError(message)
    try:
        result = float(value)
    except (TypeError, ValueError):
        raise PricingValidationError(message)
    # NaN et infini passeraient les comparaisons de bornes
    if not math.isfinite(result):
        raise PricingValidationError(message)
    return result


def _is_text(value: Any) -> bool:
    return isinstance(value, str) and bool(value.strip())


@dataclass(frozen=True)
class MCDState:
    """Instantané du multiplicateur courant."""

    multiplier: float = 1.0
    last_update: Optional[datetime] = None


@dataclass
class TransactionResult:
    """Résultat de `PricingEngine.record_transaction`."""

    discount: float
    referral_code: str
    transaction: Transaction
    customer_segment: CustomerSegment
    loyalty_tier: LoyaltyTier
    referral: Optional[ReferralActivity] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "discount": self.discount,
            "referral_code": self.referral_code,
            "transaction": self.transaction.to_row(),
            "customer_segment": self.customer_segment.value,
            "loyalty_tier": self.loyalty_tier.value,
            "referral_applied": self.referral is not None,
        }


@dataclass
class PriceQuote:
    """Décomposition du prix final (montants à 2 décimales, multiplicateur à 3)."""

    base_price: float
    mcd_multiplier: float
    price_after_mcd: float
    rcd_discount: float
    discount_amount: float
    final_price: float
    savings: float
    customer_segment: str
    product_category: str
    calculated_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["calculated_at"] = self.calculated_at.isoformat()
        return data


class PricingEngine:
    """
    Point d'entrée du calcul MCD / RCD.

    Utilisation typique :
        engine = PricingEngine(config, repository)
        engine.record_marketing_spend("google", 1500)
        engine.record_transaction("client@example.com", 120.0)
        quote = engine.calculate_final_price(100.0, "client@example.com", "premium")

    `clock` permet d'injecter l'heure courante (tests).
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        repository: Optional[PricingRepository] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.config = config or get_default_engine_config()
        self.repository = repository if repository is not None else InMemoryRepository()
        self._clock = clock or _utc_now
        self._mcd_state = MCDState()
        self._platform_weights: Dict[str, float] = dict(self.config.mcd.platform_weights)
        self._platform_performance: Dict[str, PlatformPerformance] = {}

        logger.info(f"Initialized PricingEngine for business {self.config.business_id}")

    @property
    def business_id(self) -> str:
        return self.config.business_id

    @property
    def current_mcd_multiplier(self) -> float:
        return self._mcd_state.multiplier

    @property
    def last_mcd_update(self) -> Optional[datetime]:
        return self._mcd_state.last_update

    @property
    def platform_weights(self) -> Dict[str, float]:
        return dict(self._platform_weights)

    @property
    def platform_performance(self) -> Dict[str, PlatformPerformance]:
        return dict(self._platform_performance)

    def now(self) -> datetime:
        return self._clock()

    # ------------------------------------------------------------------
    # MCD
    # ------------------------------------------------------------------

    def record_marketing_spend(
        self,
        platform: str,
        amount: Any,
        campaign_data: Optional[Dict[str, Any]] = None,
    ) -> MarketingSpendRecord:
        """
        Enregistre une dépense marketing, met à jour la performance de la
        plateforme puis recalcule le multiplicateur si le délai est écoulé.
        """
        if not _is_text(platform) or amount is None:
            raise PricingValidationError("La plateforme et le montant sont requis")

        amount = _to_float(amount, "Le montant doit être un nombre")
        if amount <= 0:
            raise PricingValidationError("Le montant doit être positif")

        platform_key = platform.strip().lower()
        record = MarketingSpendRecord(
            business_id=self.business_id,
            platform=platform_key,
            amount=amount,
            timestamp=self.now(),
            platform_weight=self._platform_weights.get(platform_key, 1.0),
            campaign_data=dict(campaign_data or {}),
        )
        self.repository.insert_marketing_spend(record)
        logger.info(f"Recorded marketing spend: {platform_key} {amount:.2f} (weight {record.platform_weight:.3f})")

        self.update_platform_performance(platform_key, amount)

        if self.should_recalculate_mcd():
            self.calculate_mcd_multiplier()

        return record

    def calculate_platform_revenue(self, platform: str) -> float:
        """Revenu attribué à la plateforme sur les 30 derniers jours (attribution simplifiée)."""
        now = self.now()
        return self.repository.get_revenue(
            self.business_id,
            start=now - timedelta(days=PLATFORM_ATTRIBUTION_DAYS),
            end=now,
            referral_source=platform,
        )

    def update_platform_performance(self, platform: str, amount: float) -> PlatformPerformance:
        revenue = self.calculate_platform_revenue(platform)
        previous = self._platform_performance.get(platform)

        performance = PlatformPerformance(
            total_spend=(previous.total_spend if previous else 0.0) + amount,
            total_revenue=revenue,
            roi=compute_platform_roi(revenue, amount),
            last_updated=self.now(),
        )
        self._platform_performance = {**self._platform_performance, platform: performance}

        self.optimize_platform_weights()
        return performance

    def optimize_platform_weights(self) -> Dict[str, float]:
        self._platform_weights = optimize_platform_weights(
            self._platform_weights,
            self._platform_performance,
            self.config.optimization,
        )
        return self.platform_weights

    def should_recalculate_mcd(self) -> bool:
        return should_recalculate(self.config.mcd, self._mcd_state.last_update, self.now())

    def _refresh_mcd_if_due(self) -> None:
        if self.should_recalculate_mcd():
            logger.debug("MCD multiplier is stale, recalculating")
            self.calculate_mcd_multiplier()

    def calculate_mcd_multiplier(self) -> float:
        """
        Recalcule le multiplicateur MCD sur la période courante.

        Sous le seuil de dépense (ou MCD désactivé) le multiplicateur revient
        à 1.0 sans trace d'audit ni horodatage.
        """
        mcd_config = self.config.mcd
        if not mcd_config.enabled:
            self._mcd_state = MCDState(1.0, self._mcd_state.last_update)
            return 1.0

        now = self.now()
        start, end = get_period_window(mcd_config.update_frequency, now)
        spend = self.repository.get_spend_stats(self.business_id, start=start, end=end)
        # Pas de revenu sur la période : 1 pour éviter un ROI nul
        revenue = self.repository.get_revenue(self.business_id, start=start, end=end) or 1.0

        calculation = calculate_mcd_multiplier(
            weighted_spend=spend.weighted_total,
            revenue=revenue,
            previous_multiplier=self._mcd_state.multiplier,
            config=mcd_config,
            target_roi=self.config.optimization.target_roi,
        )

        if not calculation.applied:
            logger.debug(
                f"Weighted spend {spend.weighted_total:.2f} below threshold "
                f"{mcd_config.minimum_spend_threshold:.2f}, multiplier reset to 1.0"
            )
            self._mcd_state = MCDState(1.0, self._mcd_state.last_update)
            return 1.0

        self._mcd_state = MCDState(calculation.multiplier, now)

        self.repository.insert_price_adjustment(
            PriceAdjustmentRecord(
                business_id=self.business_id,
                mcd_multiplier=calculation.multiplier,
                effective_from=now,
                marketing_spend_used=calculation.weighted_spend,
                revenue_in_period=calculation.revenue,
                roi=calculation.roi,
                raw_multiplier=calculation.raw_multiplier,
                previous_multiplier=calculation.previous_multiplier,
                smoothed_multiplier=calculation.smoothed_multiplier,
            )
        )
        logger.info(
            f"MCD multiplier updated: {calculation.previous_multiplier:.3f} -> {calculation.multiplier:.3f} "
            f"(roi={calculation.roi:.3f}, raw={calculation.raw_multiplier:.3f})"
        )
        return calculation.multiplier

    def get_current_mcd(self) -> Dict[str, Any]:
        """Multiplicateur courant (recalculé si nécessaire) et configuration MCD."""
        self._refresh_mcd_if_due()
        mcd_config = asdict(self.config.mcd)
        mcd_config["platform_weights"] = self.platform_weights
        return {
            "multiplier": self.current_mcd_multiplier,
            "last_updated": self.last_mcd_update.isoformat() if self.last_mcd_update else None,
            "config": mcd_config,
        }

    def recalculate_mcd(self) -> Dict[str, Any]:
        """Recalcul forcé, sans tenir compte du délai de mise à jour."""
        previous = self.current_mcd_multiplier
        new_multiplier = self.calculate_mcd_multiplier()
        return {
            "previous_multiplier": previous,
            "new_multiplier": new_multiplier,
            "last_updated": self.now().isoformat(),
        }

    # ------------------------------------------------------------------
    # RCD
    # ------------------------------------------------------------------

    def get_seasonal_multiplier(self, now: Optional[datetime] = None) -> float:
        return get_seasonal_multiplier(self.config.rcd, now or self.now(), self.config.timezone)

    def record_transaction(
        self,
        email: str,
        amount: Any,
        referral_code: Optional[str] = None,
        product_ids: Optional[List[str]] = None,
        product_categories: Optional[List[str]] = None,
        referral_source: Optional[str] = None,
    ) -> TransactionResult:
        """
        Enregistre un achat, crée le client si besoin, applique un éventuel
        parrainage puis recalcule la remise du client.
        """
        if not _is_text(email) or amount is None:
            raise PricingValidationError("L'email et le montant sont requis")
        if referral_code is not None and not isinstance(referral_code, str):
            raise PricingValidationError("Le code de parrainage doit être une chaîne")
        if referral_source is not None and not isinstance(referral_source, str):
            raise PricingValidationError("La source doit être une chaîne")

        amount = _to_float(amount, "Le montant doit être un nombre")
        if amount <= 0:
            raise PricingValidationError("Le montant doit être positif")

        now = self.now()
        email_hash = hash_email(email)
        customer = self.repository.find_customer(self.business_id, email_hash)
        is_new_customer = customer is None

        if customer is None:
            customer = Customer(
                business_id=self.business_id,
                email_hash=email_hash,
                email=normalize_email(email),
                referral_code=generate_referral_code(email_hash, self.business_id, now),
                created_at=now,
                first_purchase_date=now,
                last_purchase_date=now,
            )
            self.repository.save_customer(customer)
            logger.info(f"Created customer {email_hash[:12]} (referral code {customer.referral_code})")

        transaction = Transaction(
            business_id=self.business_id,
            customer_email_hash=email_hash,
            amount=amount,
            timestamp=now,
            discount_applied=customer.current_discount_percentage,
            referral_code_used=referral_code,
            referral_source=referral_source.strip().lower() if referral_source else None,
            product_ids=list(product_ids or []),
            product_categories=list(product_categories or []),
            seasonal_multiplier=self.get_seasonal_multiplier(now),
            is_new_customer=is_new_customer,
        )
        self.repository.insert_transaction(transaction)
        logger.info(f"Recorded transaction {amount:.2f} for customer {email_hash[:12]}")

        referral = None
        if referral_code:
            referral = self.process_referral(referral_code, email_hash, amount)

        discount = self.update_customer_vector(customer, transaction)

        return TransactionResult(
            discount=discount,
            referral_code=customer.referral_code,
            transaction=transaction,
            customer_segment=customer.customer_segment,
            loyalty_tier=customer.loyalty_tier,
            referral=referral,
        )

    def process_referral(
        self,
        referral_code: str,
        referred_email_hash: str,
        purchase_amount: float,
    ) -> Optional[ReferralActivity]:
        """
        Crédite le parrain du bonus de parrainage.

        Sans effet si le code est inconnu ou appartient à l'acheteur.
        """
        code = referral_code.strip().upper()
        if not code:
            return None

        referrer = self.repository.find_customer_by_referral_code(self.business_id, code)
        if referrer is None:
            logger.debug(f"Unknown referral code {code}")
            return None
        if referrer.email_hash == referred_email_hash:
            logger.debug(f"Self-referral ignored for code {code}")
            return None

        now = self.now()
        bonus = self.config.rcd.referral_bonus
        referrer.current_discount_percentage = clamp_discount(
            (referrer.current_discount_percentage or 0.0) + bonus,
            self.config.rcd.max_discount,
        )
        referrer.referral_count += 1
        referrer.last_referral_date = now
        self.repository.save_customer(referrer)

        activity = ReferralActivity(
            business_id=self.business_id,
            referrer_email_hash=referrer.email_hash,
            referred_email_hash=referred_email_hash,
            purchase_amount=purchase_amount,
            bonus_applied=bonus,
            timestamp=now,
        )
        self.repository.insert_referral_activity(activity)
        logger.info(
            f"Referral {code} applied: referrer {referrer.email_hash[:12]} "
            f"now at {referrer.current_discount_percentage:.2f}%"
        )
        return activity

    def update_customer_vector(self, customer: Customer, transaction: Optional[Transaction] = None) -> float:
        """
        Recalcule la remise d'un client à partir de ses 365 derniers jours
        et persiste totaux, remise, segment et palier.
        """
        rcd_config = self.config.rcd
        if not rcd_config.enabled:
            return 0.0

        now = self.now()
        stats = self.repository.get_transaction_stats(
            self.business_id,
            start=now - timedelta(days=CUSTOMER_HISTORY_DAYS),
            email_hash=customer.email_hash,
        )

        customer.total_spend_365 = stats.total_spend
        customer.purchase_count_365 = stats.count
        customer.last_calculated = now

        if not is_eligible(stats, rcd_config.thresholds):
            customer.current_discount_percentage = 0.0
            self.repository.save_customer(customer)
            return 0.0

        seasonal_multiplier = (
            transaction.seasonal_multiplier if transaction is not None
            else self.get_seasonal_multiplier(now)
        )
        discount = calculate_rcd_discount(stats, rcd_config, seasonal_multiplier, now)

        customer.average_purchase = stats.average
        customer.current_discount_percentage = discount
        customer.last_purchase_date = stats.last_purchase or now
        customer.customer_segment = determine_customer_segment(
            stats.total_spend, stats.count, rcd_config.thresholds
        )
        customer.loyalty_tier = get_loyalty_tier(stats.total_spend, rcd_config.thresholds)
        self.repository.save_customer(customer)

        logger.debug(
            f"Customer {customer.email_hash[:12]}: discount {discount:.2f}%, "
            f"segment {customer.customer_segment.value}, tier {customer.loyalty_tier.value}"
        )
        return discount

    def get_customer_info(self, email: str) -> Optional[Customer]:
        if not _is_text(email):
            raise PricingValidationError("L'email est requis")
        return self.repository.find_customer(self.business_id, hash_email(email))

    def get_customer_discount(self, email: str) -> float:
        """
        Remise courante du client ; recalculée si la valeur en cache a plus
        de `discount_cache_hours` heures.
        """
        rcd_config = self.config.rcd
        if not rcd_config.enabled:
            return 0.0

        customer = self.get_customer_info(email)
        if customer is None:
            return 0.0

        if customer.last_calculated is not None:
            hours_since = (self.now() - customer.last_calculated).total_seconds() / 3600
            if hours_since > rcd_config.discount_cache_hours:
                return self.update_customer_vector(customer)

        return clamp_discount(customer.current_discount_percentage or 0.0, rcd_config.max_discount)

    # ------------------------------------------------------------------
    # Prix final
    # ------------------------------------------------------------------

    def _validate_base_price(self, base_price: Any) -> float:
        if base_price is None or base_price == "":
            raise PricingValidationError("Le prix de base est requis")
        value = _to_float(base_price, "Le prix de base doit être un nombre")
        if value <= 0:
            raise PricingValidationError("Le prix de base doit être positif")
        return value

    def calculate_final_price(
        self,
        base_price: Any,
        customer_email: Optional[str] = None,
        product_category: Optional[str] = "standard",
    ) -> PriceQuote:
        """
        Prix final = prix de base × MCD, moins la remise RCD pondérée par
        catégorie, jamais sous 70 % du prix de base.
        """
        base = self._validate_base_price(base_price)
        product_category = product_category or "standard"

        self._refresh_mcd_if_due()
        multiplier = self.current_mcd_multiplier
        price_after_mcd = base * multiplier

        rcd_discount = 0.0
        customer_segment = "guest"
        if customer_email:
            category_weight = self.config.rcd.product_category_weights.get(product_category, 1.0)
            rcd_discount = clamp_discount(
                self.get_customer_discount(customer_email) * category_weight,
                self.config.rcd.max_discount,
            )
            customer = self.get_customer_info(customer_email)
            if customer is not None:
                customer_segment = customer.customer_segment.value

        discount_amount = price_after_mcd * (rcd_discount / 100)
        final_price = max(base * MIN_PRICE_RATIO, price_after_mcd - discount_amount)

        return PriceQuote(
            base_price=base,
            mcd_multiplier=round(multiplier, 3),
            price_after_mcd=round(price_after_mcd, 2),
            rcd_discount=round(rcd_discount, 2),
            discount_amount=round(discount_amount, 2),
            final_price=round(final_price, 2),
            savings=round(discount_amount, 2),
            customer_segment=customer_segment,
            product_category=product_category,
            calculated_at=self.now(),
        )

    def simulate_price_scenarios(
        self,
        base_price: Any,
        email: Optional[str] = None,
        product_category: Optional[str] = "standard",
    ) -> Dict[str, Any]:
        """
        Compare plusieurs scénarios (prix de base, MCD seul, RCD seul, combiné,
        MCD maximal, remise maximale) et recommande le moins cher.
        """
        base = self._validate_base_price(base_price)
        self._refresh_mcd_if_due()
        multiplier = self.current_mcd_multiplier
        mcd_config = self.config.mcd
        max_discount = self.config.rcd.max_discount

        scenarios: List[Dict[str, Any]] = [
            {
                "scenario": "Base Price",
                "mcd_multiplier": 1.0,
                "discount": 0.0,
                "final_price": round(base, 2),
                "description": "No adjustments applied",
            },
            {
                "scenario": "With Current MCD Adjustment",
                "mcd_multiplier": multiplier,
                "discount": 0.0,
                "final_price": round(base * multiplier, 2),
                "description": f"Current marketing conditions ({(multiplier - 1) * 100:.1f}% adjustment)",
            },
        ]

        if email:
            discount = self.get_customer_discount(email)
            quote = self.calculate_final_price(base, email, product_category)
            scenarios.append({
                "scenario": "With RCD Discount Only",
                "mcd_multiplier": 1.0,
                "discount": discount,
                "final_price": round(base * (1 - discount / 100), 2),
                "description": f"Customer loyalty discount ({discount}%)",
            })
            scenarios.append({
                "scenario": "Combined MCD + RCD (Current)",
                "mcd_multiplier": multiplier,
                "discount": quote.rcd_discount,
                "final_price": quote.final_price,
                "description": (
                    f"Current marketing + customer loyalty "
                    f"({(multiplier - 1) * 100:.1f}% + {quote.rcd_discount}%)"
                ),
            })

        scenarios.append({
            "scenario": "High Marketing Spend Scenario",
            "mcd_multiplier": mcd_config.max_multiplier,
            "discount": 0.0,
            "final_price": round(base * mcd_config.max_multiplier, 2),
            "description": f"Maximum marketing adjustment ({(mcd_config.max_multiplier - 1) * 100:.1f}%)",
        })

        if email:
            scenarios.append({
                "scenario": "VIP Customer Scenario",
                "mcd_multiplier": 1.0,
                "discount": max_discount,
                "final_price": round(base * (1 - max_discount / 100), 2),
                "description": f"Maximum customer discount ({max_discount}%)",
            })

        return {
            "base_price": base,
            "scenarios": scenarios,
            "current_mcd_multiplier": multiplier,
            "recommendation": min(scenarios, key=lambda s: s["final_price"]),
        }

    # ------------------------------------------------------------------
    # Analytics client / marketing
    # ------------------------------------------------------------------

    def get_customer_lifetime_value(self, email: str) -> Optional[Dict[str, float]]:
        """Valeur vie client sur tout l'historique (None sans achat)."""
        if not _is_text(email):
            raise PricingValidationError("L'email est requis")

        stats = self.repository.get_transaction_stats(self.business_id, email_hash=hash_email(email))
        if stats.count == 0:
            return None

        # Durée de vie en mois de 30 jours
        lifetime = (stats.last_purchase - stats.first_purchase).total_seconds() / (86400 * 30)
        return {
            "total_value": stats.total_spend,
            "average_order_value": stats.total_spend / stats.count,
            "purchase_frequency": stats.count / max(1.0, lifetime),
            "customer_lifetime": lifetime,
        }

    def get_marketing_roi(self) -> Dict[str, Any]:
        """ROI marketing des 30 derniers jours : (revenu - dépense) / dépense."""
        now = self.now()
        start = now - timedelta(days=MARKETING_ROI_DAYS)

        by_platform = self.repository.get_spend_by_platform(self.business_id, start=start, end=now)
        total_spend = sum(by_platform.values())
        total_revenue = self.repository.get_revenue(self.business_id, start=start, end=now)

        return {
            "total_spend": total_spend,
            "total_revenue": total_revenue,
            "roi": (total_revenue - total_spend) / total_spend if total_spend > 0 else 0.0,
            "by_platform": [
                {"platform": platform, "total_spend": spend}
                for platform, spend in sorted(by_platform.items())
            ],
        }

    def get_discount_details(self, email: str) -> Dict[str, Any]:
        """
        Détail de la remise d'un client : éligibilité, palier, progression
        vers le palier suivant, métriques et message personnalisé.
        """
        customer = self.get_customer_info(email)
        if customer is None:
            return {
                "email": email,
                "eligible": False,
                "discount_percentage": 0.0,
                "message": "New customer - no discount history",
                "suggestions": [
                    "Complete first purchase to become eligible for discounts",
                    "Join loyalty program for immediate benefits",
                ],
            }

        thresholds = self.config.rcd.thresholds
        now = self.now()
        total_spend = customer.total_spend_365
        discount = customer.current_discount_percentage
        tier = customer.loyalty_tier
        segment = customer.customer_segment

        progress = None
        if tier is LoyaltyTier.BRONZE:
            target = thresholds.loyalty_tier1
            next_tier = LoyaltyTier.SILVER
        elif tier is LoyaltyTier.SILVER:
            target = thresholds.loyalty_tier2
            next_tier = LoyaltyTier.GOLD
        else:
            target = None
            next_tier = None
        if target:
            progress = {
                "next_tier": next_tier.value,
                "progress_percentage": round(min(total_spend / target * 100, 100)),
                "required_spend": max(0.0, target - total_spend),
                "current_spend": total_spend,
            }

        days_since_last_purchase = (
            int((now - customer.last_purchase_date).total_seconds() // 86400)
            if customer.last_purchase_date else 999
        )
        count = customer.purchase_count_365

        return {
            "email": email,
            "eligible": discount > 0,
            "discount_percentage": discount,
            "loyalty_tier": tier.value,
            "customer_segment": segment.value,
            "customer_metrics": {
                "total_spend": total_spend,
                "visit_count": count,
                "days_since_last_purchase": days_since_last_purchase,
                "average_order_value": total_spend / count if count > 0 else 0.0,
                "referral_count": customer.referral_count,
            },
            "progress": progress,
            "personalized_message": (
                f"As a {tier.value} {segment.value} customer, you qualify for "
                f"{discount}% off your next purchase!"
            ),
            "valid_until": (now + timedelta(days=DISCOUNT_VALIDITY_DAYS)).date().isoformat(),
        }
