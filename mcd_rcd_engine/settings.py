"""
Configuration d'infrastructure du moteur (base de données, logs, fuseau).
"""

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

# Charger .env depuis la racine du projet
project_root = Path(__file__).parent.parent
load_dotenv(dotenv_path=project_root / ".env")


@dataclass
class Settings:
    """Configuration globale du service de pricing."""

    # Base de données
    supabase_url: str = ""
    supabase_key: str = ""

    # Identifiant business (multi-tenant)
    business_id: str = "default"

    # Timezone utilisée pour les fenêtres saisonnières
    default_timezone: str = "UTC"

    # Logging
    log_level: str = "INFO"

    @property
    def has_database(self) -> bool:
        """True si les identifiants Supabase sont renseignés."""
        return bool(self.supabase_url and self.supabase_key)

    @classmethod
    def from_env(cls) -> "Settings":
        """Crée une instance Settings depuis les variables d'environnement."""
        return cls(
            supabase_url=os.getenv("SUPABASE_URL", ""),
            supabase_key=os.getenv("SUPABASE_SERVICE_ROLE_KEY", os.getenv("SUPABASE_KEY", "")),
            business_id=os.getenv("BUSINESS_ID", "default"),
            default_timezone=os.getenv("DEFAULT_TIMEZONE", "UTC"),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )
