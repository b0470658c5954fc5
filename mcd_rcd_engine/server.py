"""
Serveur Python persistant pour le moteur MCD / RCD.

Ce script construit le moteur au démarrage et attend les requêtes via stdin.
Il est conçu pour être robuste : si une requête plante, le serveur loggue
l'erreur mais ne s'arrête pas.

Communication :
- Entrée : JSON ligne par ligne sur stdin, avec un champ "action"
- Sortie : JSON ligne par ligne sur stdout
- Logs : stderr

Exemple :
    {"action": "calculate_price", "basePrice": 100, "email": "a@b.com", "productCategory": "premium"}
"""

import json
import logging
import sys
from typing import Any, Callable, Dict, Optional

from .analytics import get_analytics_overview, get_customer_segments, get_revenue_trends
from .config import get_default_engine_config
from .engine import PricingEngine
from .exceptions import PricingValidationError
from .interfaces.data_access import create_repository
from .settings import Settings

logger = logging.getLogger(__name__)


GENERIC_ERROR_MESSAGE = "Erreur interne du moteur de pricing"
INVALID_DAYS_MESSAGE = "Le paramètre days doit être un entier positif"


def _require(data: Dict[str, Any], key: str, message: str) -> Any:
    value = data.get(key)
    if value is None or value == "":
        raise PricingValidationError(message)
    return value


def _calculate_price(engine: PricingEngine, data: Dict[str, Any]) -> Dict[str, Any]:
    base_price = _require(data, "basePrice", "Le prix de base est requis")
    quote = engine.calculate_final_price(
        base_price,
        customer_email=data.get("email"),
        product_category=data.get("productCategory", "standard"),
    )
    return {
        "base_price": quote.base_price,
        "final_price": quote.final_price,
        "mcd_adjustment": {
            "multiplier": quote.mcd_multiplier,
            "percentage": round((quote.mcd_multiplier - 1) * 100, 1),
        },
        "rcd_discount": {
            "percentage": quote.rcd_discount,
            "amount": quote.discount_amount,
            "eligible": quote.rcd_discount > 0,
            "customer_segment": quote.customer_segment,
            "product_category": quote.product_category,
        },
        "breakdown": quote.to_dict(),
    }


def _record_marketing_spend(engine: PricingEngine, data: Dict[str, Any]) -> Dict[str, Any]:
    campaign_data = dict(data.get("campaignData") or {})
    for key in ("campaignName", "campaignId"):
        if data.get(key):
            campaign_data[key] = data[key]

    record = engine.record_marketing_spend(data.get("platform"), data.get("amount"), campaign_data)
    return {
        "record": record.to_row(),
        "current_mcd_multiplier": engine.current_mcd_multiplier,
    }


def _record_transaction(engine: PricingEngine, data: Dict[str, Any]) -> Dict[str, Any]:
    result = engine.record_transaction(
        data.get("email"),
        data.get("amount"),
        referral_code=data.get("referralCode"),
        product_ids=data.get("productIds"),
        product_categories=data.get("productCategories"),
        referral_source=data.get("referralSource"),
    )
    return result.to_dict()


def _customer_discount(engine: PricingEngine, data: Dict[str, Any]) -> Dict[str, Any]:
    email = _require(data, "email", "Le paramètre email est requis")
    return engine.get_discount_details(email)


def _lifetime_value(engine: PricingEngine, data: Dict[str, Any]) -> Dict[str, Any]:
    email = _require(data, "email", "Le paramètre email est requis")
    clv = engine.get_customer_lifetime_value(email)
    if clv is None:
        return {"email": email, "lifetime_value": None, "found": False}
    return {
        "email": email,
        "lifetime_value": clv,
        "customer_value_score": min(100, round(clv["total_value"] / 5000 * 100)),
        "found": True,
    }


def _marketing_roi(engine: PricingEngine, data: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "analytics": engine.get_marketing_roi(),
        "current_mcd_multiplier": engine.current_mcd_multiplier,
        "platform_weights": engine.platform_weights,
    }


def _simulate(engine: PricingEngine, data: Dict[str, Any]) -> Dict[str, Any]:
    base_price = _require(data, "basePrice", "Le prix de base est requis")
    return engine.simulate_price_scenarios(
        base_price,
        email=data.get("email"),
        product_category=data.get("productCategory", "standard"),
    )


def _analytics_overview(engine: PricingEngine, data: Dict[str, Any]) -> Dict[str, Any]:
    return get_analytics_overview(
        engine.repository, engine.business_id, period=data.get("period", "30d"), now=engine.now()
    )


def _revenue_trends(engine: PricingEngine, data: Dict[str, Any]) -> Dict[str, Any]:
    days = data.get("days", 30)
    try:
        if isinstance(days, bool):
            raise ValueError(days)
        days = int(days)
    except (TypeError, ValueError, OverflowError):
        raise PricingValidationError(INVALID_DAYS_MESSAGE)
    if days <= 0:
        raise PricingValidationError(INVALID_DAYS_MESSAGE)

    return get_revenue_trends(
        engine.repository,
        engine.business_id,
        group_by=data.get("groupBy", "day"),
        days=days,
        now=engine.now(),
    )


ACTIONS: Dict[str, Callable[[PricingEngine, Dict[str, Any]], Dict[str, Any]]] = {
    "calculate_price": _calculate_price,
    "record_marketing_spend": _record_marketing_spend,
    "record_transaction": _record_transaction,
    "customer_discount": _customer_discount,
    "lifetime_value": _lifetime_value,
    "marketing_roi": _marketing_roi,
    "simulate": _simulate,
    "mcd_multiplier": lambda engine, data: engine.get_current_mcd(),
    "recalculate_mcd": lambda engine, data: engine.recalculate_mcd(),
    "analytics_overview": _analytics_overview,
    "revenue_trends": _revenue_trends,
    "customer_segments": lambda engine, data: get_customer_segments(engine.repository, engine.business_id),
    "health": lambda engine, data: {"service": "MCD-RCD engine", "business_id": engine.business_id},
}


def process_request(engine: PricingEngine, data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Traite une requête JSON unique.

    Retourne {"status": "success", "action": ..., "data": {...}}.
    Lève `PricingValidationError` pour une action inconnue ou une entrée invalide.
    """
    action = data.get("action")
    if not action:
        raise PricingValidationError("Le champ action est requis")

    handler = ACTIONS.get(action)
    if handler is None:
        raise PricingValidationError(f"Action inconnue: {action}")

    return {"status": "success", "action": action, "data": handler(engine, data)}


def handle_line(engine: PricingEngine, line: str) -> Optional[Dict[str, Any]]:
    """
    Parse, traite et formate une ligne d'entrée.

    Les erreurs de validation sont renvoyées telles quelles ; les autres
    erreurs sont loggées et remplacées par un message générique.
    """
    line = line.strip()
    if not line:
        return None

    try:
        request_data = json.loads(line)
        if not isinstance(request_data, dict):
            raise PricingValidationError("La requête doit être un objet JSON")
        return process_request(engine, request_data)
    except json.JSONDecodeError as e:
        return {"status": "error", "error": f"JSON invalide: {e.msg}", "type": type(e).__name__}
    except PricingValidationError as e:
        return {"status": "error", "error": str(e), "type": type(e).__name__}
    except Exception as e:
        logger.exception(f"Erreur traitement requête: {e}")
        return {"status": "error", "error": GENERIC_ERROR_MESSAGE, "type": type(e).__name__}


def build_engine(settings: Optional[Settings] = None) -> PricingEngine:
    settings = settings or Settings.from_env()
    return PricingEngine(config=get_default_engine_config(), repository=create_repository(settings))


def main() -> None:
    settings = Settings.from_env()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )
    engine = build_engine(settings)
    logger.info("MCD/RCD pricing server started")

    # Boucle de lecture sur stdin
    while True:
        try:
            line = sys.stdin.readline()
            if not line:
                break  # Fin du flux (le process appelant a fermé stdin)

            response = handle_line(engine, line)
            if response is None:
                continue

            sys.stdout.write(json.dumps(response, default=str) + "\n")
            sys.stdout.flush()
        except KeyboardInterrupt:
            break

    logger.info("MCD/RCD pricing server stopped")


if __name__ == "__main__":
    main()
