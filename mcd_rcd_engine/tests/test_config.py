"""
Tests unitaires pour config.py
"""

import sys
from pathlib import Path
from unittest.mock import patch

import pytest

# Ajouter la racine du projet au path
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from mcd_rcd_engine.config import (
    UPDATE_FREQUENCY_HOURS,
    EngineConfig,
    MCDConfig,
    OptimizationConfig,
    RCDConfig,
)


class TestDefaults:
    """Valeurs par défaut de la configuration."""

    def test_mcd_defaults(self):
        config = MCDConfig()
        assert config.enabled is True
        assert config.update_frequency == "daily"
        assert config.smoothing_factor == 0.3
        assert config.minimum_spend_threshold == 100.0
        assert config.decay_factor == 0.95
        assert (config.min_multiplier, config.max_multiplier) == (0.85, 1.5)
        assert config.platform_weights["google"] == 1.2
        assert config.platform_weights["email"] == 0.8

    def test_rcd_defaults(self):
        config = RCDConfig()
        assert config.max_discount == 20.0
        assert (config.spend_weight, config.frequency_weight, config.recency_weight) == (2.0, 1.5, 1.2)
        assert config.thresholds.minimum_spend == 50.0
        assert config.thresholds.minimum_visits == 2
        assert config.referral_bonus == 5.0
        assert config.seasonal_multipliers["black-friday"] == 1.3
        assert config.product_category_weights["budget"] == 0.8

    def test_update_frequencies(self):
        assert UPDATE_FREQUENCY_HOURS == {"hourly": 1, "daily": 24, "weekly": 168, "monthly": 720}

    def test_default_platform_weights_are_not_shared(self):
        """Chaque instance a son propre dictionnaire de poids."""
        assert MCDConfig().platform_weights is not MCDConfig().platform_weights


class TestValidation:
    """Erreurs de construction."""

    def test_unknown_frequency_rejected(self):
        with pytest.raises(ValueError, match="update_frequency"):
            MCDConfig(update_frequency="yearly")

    def test_inverted_bounds_rejected(self):
        with pytest.raises(ValueError):
            MCDConfig(min_multiplier=1.6, max_multiplier=1.5)

    def test_smoothing_out_of_range_rejected(self):
        with pytest.raises(ValueError, match="smoothing_factor"):
            MCDConfig(smoothing_factor=1.5)

    def test_non_positive_target_roi_rejected(self):
        with pytest.raises(ValueError):
            OptimizationConfig(target_roi=0)

    def test_zero_rcd_weights_rejected(self):
        with pytest.raises(ValueError):
            RCDConfig(spend_weight=0, frequency_weight=0, recency_weight=0)


class TestFromDict:
    """Surcharges imbriquées."""

    def test_nested_override(self):
        config = EngineConfig.from_dict({
            "mcd": {"update_frequency": "hourly"},
            "rcd": {"thresholds": {"minimum_visits": 3}},
        })
        assert config.mcd.update_frequency == "hourly"
        assert config.mcd.smoothing_factor == 0.3
        assert config.rcd.thresholds.minimum_visits == 3
        assert config.rcd.thresholds.minimum_spend == 50.0

    def test_dict_fields_are_merged(self):
        config = EngineConfig.from_dict({"mcd": {"platform_weights": {"tiktok": 1.3}}})
        assert config.mcd.platform_weights["tiktok"] == 1.3
        assert config.mcd.platform_weights["google"] == 1.2

    def test_base_config_preserved(self):
        base = EngineConfig(business_id="shop-1")
        config = EngineConfig.from_dict({"optimization": {"target_roi": 2.0}}, base=base)
        assert config.business_id == "shop-1"
        assert config.optimization.target_roi == 2.0
        assert base.optimization.target_roi == 3.0

    def test_unknown_key_rejected(self):
        with pytest.raises(ValueError, match="inconnu"):
            EngineConfig.from_dict({"mcd": {"not_a_field": 1}})

    def test_invalid_override_rejected(self):
        with pytest.raises(ValueError):
            EngineConfig.from_dict({"mcd": {"update_frequency": "never"}})


class TestFromEnv:
    """Lecture des variables d'environnement."""

    def test_env_overrides(self):
        env = {
            "BUSINESS_ID": "shop-42",
            "MCD_FREQUENCY": "weekly",
            "MCD_ENABLED": "false",
            "RCD_MAX_DISCOUNT": "15",
            "TARGET_ROI": "2.5",
        }
        with patch.dict("os.environ", env, clear=True):
            config = EngineConfig.from_env()

        assert config.business_id == "shop-42"
        assert config.mcd.update_frequency == "weekly"
        assert config.mcd.enabled is False
        assert config.rcd.max_discount == 15.0
        assert config.optimization.target_roi == 2.5

    def test_defaults_without_env(self):
        with patch.dict("os.environ", {}, clear=True):
            config = EngineConfig.from_env()
        assert config == EngineConfig()

    def test_invalid_number_rejected(self):
        with patch.dict("os.environ", {"MCD_SENSITIVITY": "abc"}, clear=True):
            with pytest.raises(ValueError, match="MCD_SENSITIVITY"):
                EngineConfig.from_env()


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
