"""
Script CLI pour injecter des données de démonstration.

Usage typique (depuis la racine du projet) :

    python -m scripts.seed_demo_data --business-id demo --seed 42

Ce script :
- enregistre une dépense marketing par plateforme (google, facebook, instagram),
- crée trois clients de démo avec cinq achats chacun,
- affiche le multiplicateur MCD et la remise de chaque client.

Les données vont dans Supabase si SUPABASE_URL / SUPABASE_SERVICE_ROLE_KEY
sont configurés, en mémoire sinon.
"""

import argparse
import json
import logging
import random
from typing import Any, Dict, Optional

from mcd_rcd_engine.config import EngineConfig, get_default_engine_config
from mcd_rcd_engine.engine import PricingEngine
from mcd_rcd_engine.interfaces.data_access import create_repository
from mcd_rcd_engine.settings import Settings

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


DEMO_PLATFORMS = ["google", "facebook", "instagram"]
DEMO_CUSTOMERS = ["demo1@example.com", "demo2@example.com", "demo3@example.com"]
PURCHASES_PER_CUSTOMER = 5


def seed_demo_data(engine: PricingEngine, rng: Optional[random.Random] = None) -> Dict[str, Any]:
    """
    Injecte les données de démo via le moteur (mêmes validations qu'en production).

    Retourne un résumé : multiplicateur courant et remise par client.
    """
    rng = rng or random.Random()

    for platform in DEMO_PLATFORMS:
        engine.record_marketing_spend(platform, round(rng.random() * 1000 + 500, 2))

    discounts: Dict[str, float] = {}
    for email in DEMO_CUSTOMERS:
        for _ in range(PURCHASES_PER_CUSTOMER):
            result = engine.record_transaction(email, round(rng.random() * 500 + 100, 2))
        discounts[email] = result.discount

    return {
        "business_id": engine.business_id,
        "mcd_multiplier": engine.current_mcd_multiplier,
        "discounts": discounts,
    }


def main() -> None:
    parser = argparse.ArgumentParser(description="Seed demo marketing spend and transactions.")
    parser.add_argument("--business-id", default=None, help="Identifiant business (défaut: BUSINESS_ID).")
    parser.add_argument("--seed", type=int, default=None, help="Graine aléatoire (reproductibilité).")

    args = parser.parse_args()

    config = get_default_engine_config()
    if args.business_id:
        config = EngineConfig.from_dict({"business_id": args.business_id}, base=config)

    engine = PricingEngine(config=config, repository=create_repository(Settings.from_env()))

    logger.info("Seeding demo data...")
    summary = seed_demo_data(engine, random.Random(args.seed))
    logger.info("Seed complete")

    print(json.dumps(summary, indent=2, ensure_ascii=False))


if __name__ == "__main__":
    main()
