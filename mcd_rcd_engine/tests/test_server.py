"""
Tests unitaires pour server.py
"""

import io
import json
import sys
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

# Ajouter la racine du projet au path
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from mcd_rcd_engine import server
from mcd_rcd_engine.engine import PricingEngine
from mcd_rcd_engine.interfaces.data_access import InMemoryRepository
from mcd_rcd_engine.settings import Settings


def _call(engine, payload):
    return server.handle_line(engine, json.dumps(payload))


class TestHandleLine:
    """Parsing et formatage des réponses."""

    def test_calculate_price(self, engine):
        response = _call(engine, {"action": "calculate_price", "basePrice": 100})

        assert response["status"] == "success"
        assert response["action"] == "calculate_price"
        assert response["data"]["final_price"] == 100.0
        assert response["data"]["mcd_adjustment"] == {"multiplier": 1.0, "percentage": 0.0}
        assert response["data"]["rcd_discount"]["eligible"] is False

    def test_validation_error_is_returned_verbatim(self, engine):
        response = _call(engine, {"action": "calculate_price", "basePrice": -5})
        assert response == {
            "status": "error",
            "error": "Le prix de base doit être positif",
            "type": "PricingValidationError",
        }

    def test_missing_base_price(self, engine):
        response = _call(engine, {"action": "simulate"})
        assert response["error"] == "Le prix de base est requis"

    def test_invalid_json(self, engine):
        response = server.handle_line(engine, "{not json")
        assert response["status"] == "error"
        assert response["error"].startswith("JSON invalide")

    def test_non_object_request(self, engine):
        response = server.handle_line(engine, "[1, 2]")
        assert response["error"] == "La requête doit être un objet JSON"

    def test_missing_action(self, engine):
        assert _call(engine, {"basePrice": 100})["error"] == "Le champ action est requis"

    def test_unknown_action(self, engine):
        assert _call(engine, {"action": "refund"})["error"] == "Action inconnue: refund"

    @pytest.mark.parametrize("line", [
        '{"action": "record_marketing_spend", "platform": 5, "amount": 100}',
        '{"action": "record_transaction", "email": 5, "amount": 100}',
        '{"action": "customer_discount", "email": 5}',
    ])
    def test_non_text_identifier_is_a_validation_error(self, engine, line):
        with patch.object(server, "logger") as mock_logger:
            response = server.handle_line(engine, line)

        assert response["status"] == "error"
        assert response["type"] == "PricingValidationError"
        assert "requis" in response["error"]
        mock_logger.exception.assert_not_called()

    @pytest.mark.parametrize("line", [
        '{"action": "calculate_price", "basePrice": NaN}',
        '{"action": "calculate_price", "basePrice": Infinity}',
        '{"action": "calculate_price", "basePrice": "inf"}',
        '{"action": "record_marketing_spend", "platform": "google", "amount": Infinity}',
        '{"action": "record_transaction", "email": "a@b.com", "amount": NaN}',
    ])
    def test_non_finite_amount_is_rejected(self, engine, repository, line):
        response = server.handle_line(engine, line)

        assert response["status"] == "error"
        assert response["type"] == "PricingValidationError"
        assert repository.marketing_spend == []
        assert repository.transactions == []

    @pytest.mark.parametrize("days", ["abc", None, 0, -3, True, 1e400])
    def test_invalid_trend_days(self, engine, days):
        with patch.object(server, "logger") as mock_logger:
            response = _call(engine, {"action": "revenue_trends", "days": days})

        assert response == {
            "status": "error",
            "error": server.INVALID_DAYS_MESSAGE,
            "type": "PricingValidationError",
        }
        mock_logger.exception.assert_not_called()

    def test_trend_days_as_string(self, engine):
        response = _call(engine, {"action": "revenue_trends", "days": "7"})
        assert response["data"]["period"] == "7 days"

    def test_blank_line_ignored(self, engine):
        assert server.handle_line(engine, "   \n") is None

    def test_internal_error_is_masked(self, clock):
        repository = MagicMock()
        repository.find_customer.side_effect = RuntimeError("connection refused")
        engine = PricingEngine(repository=repository, clock=clock)

        with patch.object(server, "logger") as mock_logger:
            response = _call(engine, {"action": "record_transaction", "email": "a@b.com", "amount": 10})

        assert response == {
            "status": "error",
            "error": server.GENERIC_ERROR_MESSAGE,
            "type": "RuntimeError",
        }
        mock_logger.exception.assert_called_once()


class TestActions:
    """Actions métier exposées par le serveur."""

    def test_transaction_then_discount(self, engine):
        for _ in range(2):
            _call(engine, {"action": "record_transaction", "email": "a@b.com", "amount": 100})

        response = _call(engine, {"action": "customer_discount", "email": "a@b.com"})
        assert response["data"]["discount_percentage"] == 20.0
        assert response["data"]["loyalty_tier"] == "bronze"

        price = _call(engine, {
            "action": "calculate_price",
            "basePrice": 100,
            "email": "a@b.com",
            "productCategory": "budget",
        })
        assert price["data"]["final_price"] == 84.0
        assert price["data"]["rcd_discount"]["percentage"] == 16.0

    def test_record_marketing_spend_keeps_campaign(self, engine, repository):
        response = _call(engine, {
            "action": "record_marketing_spend",
            "platform": "google",
            "amount": 250,
            "campaignName": "spring",
        })

        assert response["status"] == "success"
        assert response["data"]["record"]["campaign_data"] == {"campaignName": "spring"}
        assert repository.marketing_spend[0].amount == 250.0

    def test_record_transaction_result(self, engine):
        response = _call(engine, {"action": "record_transaction", "email": "a@b.com", "amount": 40})
        data = response["data"]
        assert data["discount"] == 0.0
        assert data["customer_segment"] == "new"
        assert data["referral_applied"] is False
        assert len(data["referral_code"]) == 8

    def test_lifetime_value(self, engine):
        _call(engine, {"action": "record_transaction", "email": "a@b.com", "amount": 500})

        found = _call(engine, {"action": "lifetime_value", "email": "a@b.com"})["data"]
        missing = _call(engine, {"action": "lifetime_value", "email": "x@y.com"})["data"]

        assert found["found"] is True
        assert found["customer_value_score"] == 10
        assert missing == {"email": "x@y.com", "lifetime_value": None, "found": False}

    def test_email_required(self, engine):
        assert _call(engine, {"action": "lifetime_value"})["error"] == "Le paramètre email est requis"

    @pytest.mark.parametrize("action", [
        "marketing_roi",
        "mcd_multiplier",
        "recalculate_mcd",
        "analytics_overview",
        "revenue_trends",
        "customer_segments",
        "health",
    ])
    def test_read_only_actions(self, engine, action):
        response = _call(engine, {"action": action})
        assert response["status"] == "success"
        assert response["action"] == action

    def test_all_actions_registered(self):
        assert set(server.ACTIONS) == {
            "calculate_price",
            "record_marketing_spend",
            "record_transaction",
            "customer_discount",
            "lifetime_value",
            "marketing_roi",
            "simulate",
            "mcd_multiplier",
            "recalculate_mcd",
            "analytics_overview",
            "revenue_trends",
            "customer_segments",
            "health",
        }


class TestMainLoop:
    """Boucle stdin / stdout."""

    def test_build_engine_without_database(self):
        engine = server.build_engine(Settings())
        assert isinstance(engine.repository, InMemoryRepository)

    def test_main_answers_each_line(self, engine):
        requests = "\n".join([
            json.dumps({"action": "health"}),
            "",
            "oops",
            json.dumps({"action": "calculate_price", "basePrice": 50}),
        ]) + "\n"
        stdout = io.StringIO()

        with patch.object(server, "build_engine", return_value=engine), \
                patch("sys.stdin", io.StringIO(requests)), \
                patch("sys.stdout", stdout):
            server.main()

        responses = [json.loads(line) for line in stdout.getvalue().splitlines()]
        assert [r["status"] for r in responses] == ["success", "error", "success"]
        assert responses[2]["data"]["final_price"] == 50.0


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
