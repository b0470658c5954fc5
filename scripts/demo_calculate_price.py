"""
Script de démonstration pour tester le calcul de prix MCD / RCD.

Usage (depuis la racine du projet) :

    python -m scripts.demo_calculate_price --base-price 100 --email demo1@example.com --category premium

Avec `--with-demo-data`, un moteur en mémoire est d'abord alimenté par
`scripts.seed_demo_data` (utile sans base Supabase).
"""

import argparse
import json
import random
import sys

from mcd_rcd_engine.engine import PricingEngine
from mcd_rcd_engine.interfaces.data_access import InMemoryRepository, create_repository
from mcd_rcd_engine.settings import Settings

from scripts.seed_demo_data import seed_demo_data


def main() -> None:
    parser = argparse.ArgumentParser(description="Demo: compute the final price for a base price.")
    parser.add_argument("--base-price", required=True, type=float, help="Prix de base.")
    parser.add_argument("--email", default=None, help="Email du client (facultatif).")
    parser.add_argument("--category", default="standard", help="Catégorie produit (premium, standard, budget).")
    parser.add_argument("--with-demo-data", action="store_true", help="Utiliser un stockage mémoire pré-rempli.")
    parser.add_argument("--seed", type=int, default=42, help="Graine des données de démo.")

    args = parser.parse_args()

    try:
        if args.with_demo_data:
            engine = PricingEngine(repository=InMemoryRepository())
            seed_demo_data(engine, random.Random(args.seed))
        else:
            engine = PricingEngine(repository=create_repository(Settings.from_env()))

        quote = engine.calculate_final_price(args.base_price, args.email, args.category)

        # Afficher uniquement le JSON pour que l'appelant puisse le parser
        print(json.dumps(quote.to_dict(), ensure_ascii=False))

    except Exception as e:
        error_response = {
            "error": True,
            "error_type": type(e).__name__,
            "error_message": str(e),
            "final_price": None,
        }
        print(json.dumps(error_response, ensure_ascii=False))
        sys.exit(1)


if __name__ == "__main__":
    main()
