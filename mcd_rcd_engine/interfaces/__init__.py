"""
Sous-package `interfaces` du moteur MCD / RCD.

Responsabilités :
- fournir une couche d'abstraction entre le moteur et la persistance,
- centraliser les appels à Supabase/PostgreSQL,
- faciliter le test (stockage mémoire, client Supabase mockable).
"""

from .data_access import (
    InMemoryRepository,
    PricingRepository,
    SupabaseRepository,
    create_repository,
)

__all__ = [
    "InMemoryRepository",
    "PricingRepository",
    "SupabaseRepository",
    "create_repository",
]
