"""
Calcul du multiplicateur MCD (Marketing Cost Displacement).

Ce module est purement arithmétique : il ne lit ni n'écrit en base.
Le moteur (`engine.PricingEngine`) lui fournit les agrégats
(dépense pondérée, revenu) et conserve l'état courant.

Étapes du calcul :
1. ROI = revenu / dépense pondérée, comparé au ROI cible.
2. Multiplicateur brut : < 1 si le ROI dépasse la cible, > 1 sinon.
3. Décroissance de l'ancien multiplicateur vers 1.0, puis lissage
   exponentiel entre valeur brute et ancienne valeur décroissante.
4. Bornage à [min_multiplier, max_multiplier].
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, Optional, Tuple

from dateutil.relativedelta import relativedelta

from ..config import UPDATE_FREQUENCY_HOURS, MCDConfig, OptimizationConfig


# Bornes des poids plateformes après optimisation
MIN_PLATFORM_WEIGHT = 0.5
MAX_PLATFORM_WEIGHT = 2.0

# Amplitude de la baisse de prix quand le ROI dépasse la cible
PRICE_RELIEF_FACTOR = 0.1


@dataclass(frozen=True)
class MCDCalculation:
    """Résultat détaillé d'un calcul de multiplicateur."""

    multiplier: float
    applied: bool
    weighted_spend: float
    revenue: float
    roi: Optional[float] = None
    raw_multiplier: Optional[float] = None
    previous_multiplier: Optional[float] = None
    smoothed_multiplier: Optional[float] = None


@dataclass(frozen=True)
class PlatformPerformance:
    """Performance cumulée d'une plateforme marketing."""

    total_spend: float
    total_revenue: float
    roi: float
    last_updated: datetime


def get_period_window(frequency: str, now: datetime) -> Tuple[datetime, datetime]:
    """
    Fenêtre glissante [start, now] associée à une fréquence de mise à jour.

    `monthly` recule d'un mois calendaire (pas de 30 jours fixes).
    """
    if frequency == "hourly":
        start = now - timedelta(hours=1)
    elif frequency == "daily":
        start = now - timedelta(days=1)
    elif frequency == "weekly":
        start = now - timedelta(days=7)
    elif frequency == "monthly":
        start = now - relativedelta(months=1)
    else:
        raise ValueError(f"Fréquence inconnue: {frequency!r}")
    return start, now


def should_recalculate(config: MCDConfig, last_update: Optional[datetime], now: datetime) -> bool:
    """
    Politique anti-rebond : recalcul seulement si le délai de la fréquence
    configurée est écoulé depuis la dernière mise à jour.
    """
    if not config.enabled:
        return False
    if last_update is None:
        return True

    hours_since_update = (now - last_update).total_seconds() / 3600
    threshold = UPDATE_FREQUENCY_HOURS.get(config.update_frequency)
    if threshold is None:
        return False
    return hours_since_update >= threshold


def compute_raw_multiplier(roi: float, target_roi: float, sensitivity: float) -> float:
    if roi > target_roi:
        # Bon ROI : on rend une partie de la marge au client
        return 1.0 - PRICE_RELIEF_FACTOR * ((roi - target_roi) / target_roi)
    # ROI insuffisant : on répercute le coût marketing sur le prix
    return 1.0 + sensitivity * (target_roi - roi) / target_roi


def smooth_multiplier(raw: float, previous: float, smoothing_factor: float, decay_factor: float) -> float:
    decayed_previous = 1.0 + (previous - 1.0) * decay_factor
    return smoothing_factor * raw + (1.0 - smoothing_factor) * decayed_previous


def clamp_multiplier(value: float, config: MCDConfig) -> float:
    return max(config.min_multiplier, min(value, config.max_multiplier))


def calculate_mcd_multiplier(
    weighted_spend: float,
    revenue: float,
    previous_multiplier: float,
    config: MCDConfig,
    target_roi: float,
) -> MCDCalculation:
    """
    Calcule le nouveau multiplicateur à partir des agrégats de la période.

    Retourne `applied=False` et un multiplicateur neutre (1.0) si le MCD est
    désactivé ou si la dépense pondérée est sous le seuil minimum.
    """
    if not config.enabled or weighted_spend < config.minimum_spend_threshold:
        return MCDCalculation(
            multiplier=1.0,
            applied=False,
            weighted_spend=weighted_spend,
            revenue=revenue,
        )

    roi = revenue / weighted_spend
    raw = compute_raw_multiplier(roi, target_roi, config.sensitivity_coefficient)
    smoothed = smooth_multiplier(raw, previous_multiplier, config.smoothing_factor, config.decay_factor)

    return MCDCalculation(
        multiplier=clamp_multiplier(smoothed, config),
        applied=True,
        weighted_spend=weighted_spend,
        revenue=revenue,
        roi=roi,
        raw_multiplier=raw,
        previous_multiplier=previous_multiplier,
        smoothed_multiplier=smoothed,
    )


def compute_platform_roi(revenue: float, amount: float) -> float:
    """ROI simplifié d'une plateforme (0 sans revenu attribué)."""
    if revenue <= 0 or amount <= 0:
        return 0.0
    return revenue / amount


def optimize_platform_weights(
    weights: Dict[str, float],
    performance: Dict[str, PlatformPerformance],
    config: OptimizationConfig,
) -> Dict[str, float]:
    """
    Ajuste multiplicativement le poids de chaque plateforme vers son ROI réalisé.

    Retourne un nouveau dictionnaire (les poids d'origine ne sont pas modifiés).
    Les plateformes sans ROI positif gardent leur poids.
    """
    new_weights = dict(weights)
    if not config.enabled:
        return new_weights

    for platform, data in performance.items():
        if data.roi <= 0:
            continue
        current_weight = new_weights.get(platform, 1.0)
        performance_ratio = data.roi / config.target_roi
        new_weight = current_weight * (1 + config.learning_rate * (performance_ratio - 1))
        new_weights[platform] = max(MIN_PLATFORM_WEIGHT, min(MAX_PLATFORM_WEIGHT, new_weight))

    return new_weights
