"""
Moteur de pricing MCD / RCD.

Ce package contient :
- la configuration du moteur (MCD, RCD, optimisation croisée),
- les modèles de calcul purs (multiplicateur MCD, remise RCD, segmentation),
- l'interface de persistance (mémoire / Supabase),
- le moteur `PricingEngine` qui orchestre le tout,
- les analytics business et le serveur de requêtes JSON.
"""

from .config import EngineConfig, get_default_engine_config
from .engine import PricingEngine
from .exceptions import PricingValidationError

__all__ = [
    "EngineConfig",
    "PricingEngine",
    "PricingValidationError",
    "get_default_engine_config",
]
