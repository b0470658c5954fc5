"""
Configuration centrale du moteur MCD / RCD.

Ce module définit les paramètres des deux sous-modèles :
- MCD (Marketing Cost Displacement) : multiplicateur de prix lié aux dépenses marketing,
- RCD (Returning Customer Discount) : remise fidélité des clients récurrents,
- optimisation croisée (ROI cible, learning rate des poids plateformes).

Les valeurs par défaut reprennent celles du service en production ; elles
peuvent être surchargées par environnement (`EngineConfig.from_env`) ou par
l'appelant (`EngineConfig.from_dict`).
"""

import os
from dataclasses import dataclass, field, fields, replace
from typing import Any, Dict, Mapping, Optional


# Seuil (en heures) au-delà duquel le multiplicateur MCD doit être recalculé
UPDATE_FREQUENCY_HOURS: Dict[str, int] = {
    "hourly": 1,
    "daily": 24,
    "weekly": 168,
    "monthly": 720,
}


def _default_platform_weights() -> Dict[str, float]:
    return {
        "google": 1.2,
        "facebook": 1.1,
        "instagram": 1.0,
        "twitter": 0.9,
        "email": 0.8,
    }


def _default_seasonal_multipliers() -> Dict[str, float]:
    return {
        "christmas": 1.2,
        "black-friday": 1.3,
        "summer": 1.1,
        "default": 1.0,
    }


def _default_category_weights() -> Dict[str, float]:
    return {
        "premium": 1.5,
        "standard": 1.0,
        "budget": 0.8,
    }


@dataclass(frozen=True)
class MCDConfig:
    """
    Paramètres du multiplicateur MCD.

    Le multiplicateur final est toujours borné à [min_multiplier, max_multiplier].
    """

    enabled: bool = True
    update_frequency: str = "daily"
    sensitivity_coefficient: float = 1.0
    # Poids de la nouvelle valeur brute dans le lissage (0..1)
    smoothing_factor: float = 0.3
    minimum_spend_threshold: float = 100.0
    platform_weights: Dict[str, float] = field(default_factory=_default_platform_weights)
    # Retour progressif de l'ancien multiplicateur vers 1.0
    decay_factor: float = 0.95
    min_multiplier: float = 0.85
    max_multiplier: float = 1.5

    def __post_init__(self) -> None:
        if self.update_frequency not in UPDATE_FREQUENCY_HOURS:
            raise ValueError(
                f"update_frequency invalide: {self.update_frequency!r} "
                f"(attendu: {', '.join(UPDATE_FREQUENCY_HOURS)})"
            )
        if self.min_multiplier > self.max_multiplier:
            raise ValueError("min_multiplier doit être inférieur ou égal à max_multiplier")
        for name in ("smoothing_factor", "decay_factor"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} doit être compris entre 0 et 1 (reçu {value})")


@dataclass(frozen=True)
class RCDThresholds:
    """Seuils d'éligibilité et paliers de fidélité (en unité monétaire / visites)."""

    minimum_spend: float = 50.0
    minimum_visits: int = 2
    loyalty_tier1: float = 500.0
    loyalty_tier2: float = 1000.0


@dataclass(frozen=True)
class RCDConfig:
    """
    Paramètres de la remise RCD.

    `max_discount` et `referral_bonus` sont exprimés en pourcentage.
    """

    enabled: bool = True
    max_discount: float = 20.0
    spend_weight: float = 2.0
    frequency_weight: float = 1.5
    recency_weight: float = 1.2
    thresholds: RCDThresholds = field(default_factory=RCDThresholds)
    referral_bonus: float = 5.0
    seasonal_multipliers: Dict[str, float] = field(default_factory=_default_seasonal_multipliers)
    product_category_weights: Dict[str, float] = field(default_factory=_default_category_weights)
    # Durée de validité de la remise mise en cache sur le client
    discount_cache_hours: float = 24.0

    def __post_init__(self) -> None:
        if self.max_discount < 0:
            raise ValueError("max_discount doit être positif")
        if self.spend_weight + self.frequency_weight + self.recency_weight <= 0:
            raise ValueError("La somme des poids RCD doit être strictement positive")


@dataclass(frozen=True)
class OptimizationConfig:
    """Paramètres de l'optimisation croisée MCD / plateformes."""

    enabled: bool = True
    target_roi: float = 3.0
    learning_rate: float = 0.1

    def __post_init__(self) -> None:
        if self.target_roi <= 0:
            raise ValueError("target_roi doit être strictement positif")


@dataclass(frozen=True)
class EngineConfig:
    """
    Configuration complète d'une instance de `PricingEngine`.

    Immuable : seule la copie des poids plateformes détenue par le moteur
    évolue (optimisation adaptative).
    """

    business_id: str = "default"
    timezone: str = "UTC"
    mcd: MCDConfig = field(default_factory=MCDConfig)
    rcd: RCDConfig = field(default_factory=RCDConfig)
    optimization: OptimizationConfig = field(default_factory=OptimizationConfig)

    @classmethod
    def from_env(cls) -> "EngineConfig":
        """Crée une configuration depuis les variables d'environnement (defaults sinon)."""
        mcd = MCDConfig(
            enabled=_env_bool("MCD_ENABLED", True),
            update_frequency=os.getenv("MCD_FREQUENCY", "daily"),
            sensitivity_coefficient=_env_float("MCD_SENSITIVITY", 1.0),
            smoothing_factor=_env_float("MCD_SMOOTHING", 0.3),
            minimum_spend_threshold=_env_float("MCD_MIN_SPEND", 100.0),
            decay_factor=_env_float("MCD_DECAY_FACTOR", 0.95),
            min_multiplier=_env_float("MCD_MIN_MULTIPLIER", 0.85),
            max_multiplier=_env_float("MCD_MAX_MULTIPLIER", 1.5),
        )
        rcd = RCDConfig(
            enabled=_env_bool("RCD_ENABLED", True),
            max_discount=_env_float("RCD_MAX_DISCOUNT", 20.0),
            spend_weight=_env_float("RCD_SPEND_WEIGHT", 2.0),
            frequency_weight=_env_float("RCD_FREQUENCY_WEIGHT", 1.5),
            recency_weight=_env_float("RCD_RECENCY_WEIGHT", 1.2),
            referral_bonus=_env_float("RCD_REFERRAL_BONUS", 5.0),
        )
        optimization = OptimizationConfig(
            enabled=_env_bool("OPTIMIZATION_ENABLED", True),
            target_roi=_env_float("TARGET_ROI", 3.0),
            learning_rate=_env_float("LEARNING_RATE", 0.1),
        )
        return cls(
            business_id=os.getenv("BUSINESS_ID", "default"),
            timezone=os.getenv("DEFAULT_TIMEZONE", "UTC"),
            mcd=mcd,
            rcd=rcd,
            optimization=optimization,
        )

    @classmethod
    def from_dict(
        cls,
        overrides: Optional[Mapping[str, Any]] = None,
        base: Optional["EngineConfig"] = None,
    ) -> "EngineConfig":
        """
        Applique des surcharges imbriquées sur une configuration de base.

        Exemple :
            EngineConfig.from_dict({"mcd": {"update_frequency": "hourly"},
                                    "rcd": {"thresholds": {"minimum_visits": 3}}})

        Les clés inconnues lèvent une `ValueError`.
        """
        return _merge(base or cls(), overrides or {})


def _merge(instance: Any, overrides: Mapping[str, Any]) -> Any:
    known = {f.name: f for f in fields(instance)}
    changes: Dict[str, Any] = {}
    for key, value in overrides.items():
        if key not in known:
            raise ValueError(f"Paramètre de configuration inconnu: {type(instance).__name__}.{key}")
        current = getattr(instance, key)
        if hasattr(current, "__dataclass_fields__") and isinstance(value, Mapping):
            changes[key] = _merge(current, value)
        elif isinstance(current, dict) and isinstance(value, Mapping):
            # Les dictionnaires (poids, multiplicateurs) sont fusionnés, pas remplacés
            changes[key] = {**current, **value}
        else:
            changes[key] = value
    return replace(instance, **changes)


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return value.strip().lower() != "false"


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"Variable d'environnement {name} invalide: {value!r}")


def get_default_engine_config() -> EngineConfig:
    """
    Retourne la configuration à utiliser par défaut : variables d'environnement
    si présentes, valeurs de production sinon.
    """
    return EngineConfig.from_env()
