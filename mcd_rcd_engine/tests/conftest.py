"""
Fixtures partagées des tests du moteur MCD / RCD.
"""

import sys
from datetime import datetime, timedelta
from pathlib import Path

import pytest
import pytz

# Ajouter la racine du projet au path
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from mcd_rcd_engine.config import EngineConfig
from mcd_rcd_engine.engine import PricingEngine
from mcd_rcd_engine.interfaces.data_access import InMemoryRepository


# Mi-mars : hors de toute fenêtre saisonnière
FROZEN_NOW = datetime(2024, 3, 15, 12, 0, tzinfo=pytz.utc)


class FrozenClock:
    """Horloge contrôlable : renvoie `current` jusqu'au prochain `advance`."""

    def __init__(self, start: datetime = FROZEN_NOW):
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> datetime:
        self.current = self.current + timedelta(**kwargs)
        return self.current


@pytest.fixture
def clock():
    return FrozenClock()


@pytest.fixture
def repository():
    return InMemoryRepository()


@pytest.fixture
def make_engine(clock, repository):
    """Fabrique de moteur : `make_engine({"mcd": {...}})` surcharge la configuration."""

    def _make(overrides=None):
        config = EngineConfig.from_dict(overrides or {}, base=EngineConfig(business_id="test-business"))
        return PricingEngine(config=config, repository=repository, clock=clock)

    return _make


@pytest.fixture
def engine(make_engine):
    return make_engine()
